from datetime import date, datetime

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta


def to_date(value) -> date | None:
    """Coerce a stored lease date into a ``date``; unusable values become ``None``."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            return date_parser.isoparse(value).date()
        except (ValueError, OverflowError):
            try:
                return date_parser.parse(value).date()
            except (ValueError, OverflowError):
                return None
    return None


def calendar_months_between(start: date, end: date) -> int:
    return (end.year * 12 + end.month) - (start.year * 12 + start.month)


def month_bounds(today: date) -> tuple[datetime, datetime]:
    start = datetime(today.year, today.month, 1)
    return start, start + relativedelta(months=1)
