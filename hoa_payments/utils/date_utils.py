"""Date manipulation utilities"""

from datetime import date


def same_month(a: date, b: date) -> bool:
    """True when both dates fall in the same calendar month of the same year"""
    return (a.year, a.month) == (b.year, b.month)


def add_years(from_date: date, years: int) -> date:
    """Shift a date by whole years (Feb 29 falls back to Feb 28)"""
    try:
        return from_date.replace(year=from_date.year + years)
    except ValueError:
        return from_date.replace(year=from_date.year + years, day=28)
