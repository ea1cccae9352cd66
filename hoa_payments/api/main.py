"""FastAPI application factory"""

import logging
from fastapi import Depends, FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.responses import JSONResponse, Response

from hoa_payments.api.middleware import RequestIDMiddleware, MetricsMiddleware
from hoa_payments.api.v1 import payments, units
from hoa_payments.infrastructure.database.session import get_db
from hoa_payments.infrastructure.observability.logging import setup_logging
from hoa_payments.config import settings

setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Build the payments API with tracing, metrics and the v1 routers"""
    app = FastAPI(
        title="HOA Unified Payments",
        description="Payment allocation across HOA dues, water bills and unit credit",
        version="0.1.0",
    )

    # Last added runs first, so the request id exists before timing starts
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check(db: Session = Depends(get_db)):
        try:
            db.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logging.exception("Health check could not reach the database")
            return JSONResponse(
                status_code=503,
                content={"status": "degraded", "service": settings.service_name, "database": "unreachable"},
            )
        return {"status": "ok", "service": settings.service_name, "database": "ok"}

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    for router, tag in ((payments.router, "payments"), (units.router, "units")):
        app.include_router(router, prefix="/v1", tags=[tag])

    return app


app = create_app()
