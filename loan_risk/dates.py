"""Date helpers shared by the data model, LGD, collateral and cash-flow modules."""

from datetime import date, datetime
from typing import Union

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta

DateLike = Union[date, datetime, str]

DAYS_PER_YEAR = 365
DAYS_PER_MONTH_APPROX = 30

PERIOD_MONTHS = {
    "monthly": 1,
    "quarterly": 3,
    "semiannual": 6,
    "annual": 12,
}


def to_date(value: DateLike) -> date:
    """Coerce a date, datetime or ISO string to a date.

    Raises:
        ValueError: If the string is not an ISO 8601 date
        TypeError: If the value is of an unsupported type
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return isoparse(value).date()
    raise TypeError(f"Expected a date or ISO string, got {type(value).__name__}")


def iso(value: date) -> str:
    return value.isoformat()


def years_between(start: DateLike, end: DateLike, days_per_year: float = DAYS_PER_YEAR) -> float:
    """Elapsed time in years using a fixed day count per year."""
    return (to_date(end) - to_date(start)).days / days_per_year


def add_months(start: date, months: int) -> date:
    """Calendar month arithmetic, clamping to month end where needed."""
    return start + relativedelta(months=months)


def period_months(frequency: str) -> int:
    """Number of months in one repayment period.

    Raises:
        ValueError: If the frequency is unknown
    """
    try:
        return PERIOD_MONTHS[frequency]
    except KeyError:
        raise ValueError(
            f"Unknown repayment frequency: {frequency}. "
            f"Choose from: {', '.join(PERIOD_MONTHS)}"
        )


def year_fraction(frequency: str) -> float:
    """Fraction of a year covered by one period of the given frequency."""
    return period_months(frequency) / 12
