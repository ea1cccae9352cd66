"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Input amount, field or allocation plan is malformed"""

    pass


class InsufficientCreditError(DomainException):
    """Credit usage would drive the balance below zero"""

    pass


class StaleAllocationError(DomainException):
    """Bills or credit changed between preview and record"""

    pass


class DuplicateSubmissionError(DomainException):
    """Idempotency key was already used for a different payment"""

    def __init__(self, message: str, transaction_id: str | None = None):
        super().__init__(message)
        self.transaction_id = transaction_id


class PersistenceError(DomainException):
    """Storage write failed and the unit of work was rolled back"""

    pass
