"""
Calendar date helpers shared by the analytics engine

All values are local calendar dates (datetime.date), never instants: a
'YYYY-MM-DD' string always maps to the same wall-clock date regardless of
the host timezone. Weekday numbers follow the stored schedule convention
of Sunday = 0 through Saturday = 6.
"""
import re
from datetime import date, datetime, timedelta
from typing import Iterator, Optional, Tuple, Union

from whs_tracker.error_handlers.exceptions import FormatError, InvalidRangeError, RangeTooLargeError


DATE_PATTERN = re.compile(r'^(\d{4})-(\d{2})-(\d{2})(?:[T ].*)?$')
TIME_PATTERN = re.compile(r'^([01]?\d|2[0-3]):([0-5]\d)(?::([0-5]\d))?$')

WEEKDAY_NAMES = ('Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday')

DateLike = Union[date, datetime, str]


def parse_date_string(value: str) -> date:
    """
    Parse a 'YYYY-MM-DD' string into a calendar date.

    An ISO timestamp prefix ('2024-02-10T08:30:00Z') is accepted and only its
    date part is used; no timezone shifting is applied.

    Raises:
        FormatError: If the value is not a valid calendar date string
    """
    if not isinstance(value, str):
        raise FormatError(f"Invalid date {value!r}. Use YYYY-MM-DD")

    match = DATE_PATTERN.match(value.strip())
    if not match:
        raise FormatError(f"Invalid date '{value}'. Use YYYY-MM-DD")

    year, month, day = (int(part) for part in match.groups()[:3])
    try:
        return date(year, month, day)
    except ValueError:
        raise FormatError(f"Invalid date '{value}'. Use YYYY-MM-DD")


def format_date_string(value: date) -> str:
    """Format a calendar date as 'YYYY-MM-DD'."""
    return f'{value.year:04d}-{value.month:02d}-{value.day:02d}'


def to_calendar_date(value: Optional[DateLike]) -> Optional[date]:
    """
    Normalize a stored date value to a calendar date.

    datetimes keep their own wall-clock date, strings are parsed with
    parse_date_string and None passes through.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_date_string(value)


def parse_time_string(value: str) -> str:
    """
    Validate a 'HH:MM' (or 'HH:MM:SS') time and normalize it to 'HH:MM'.

    Raises:
        FormatError: If the value is not a valid time of day
    """
    if not isinstance(value, str):
        raise FormatError(f"Invalid time {value!r}. Use HH:MM")

    match = TIME_PATTERN.match(value.strip())
    if not match:
        raise FormatError(f"Invalid time '{value}'. Use HH:MM")

    hours, minutes = int(match.group(1)), int(match.group(2))
    return f'{hours:02d}:{minutes:02d}'


def compare_time(first: str, second: str) -> int:
    """
    Compare two 'HH:MM' times.

    Returns:
        Negative if first is earlier, positive if later, 0 if equal
    """
    first_hours, first_minutes = (int(part) for part in parse_time_string(first).split(':'))
    second_hours, second_minutes = (int(part) for part in parse_time_string(second).split(':'))
    return (first_hours * 60 + first_minutes) - (second_hours * 60 + second_minutes)


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Yield every calendar date from start to end inclusive (nothing if inverted)."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def days_in_range(start: date, end: date) -> int:
    """Number of calendar dates in the inclusive range (0 if inverted)."""
    return max((end - start).days + 1, 0)


def js_weekday(value: date) -> int:
    """Weekday number with Sunday = 0 ... Saturday = 6."""
    return (value.weekday() + 1) % 7


def weekday_name(value: date) -> str:
    return WEEKDAY_NAMES[js_weekday(value)]


def previous_period(start: date, end: date) -> Tuple[date, date]:
    """
    Equal-length range ending the day before start.

    Example:
        >>> previous_period(date(2024, 1, 15), date(2024, 1, 28))
        (date(2024, 1, 1), date(2024, 1, 14))
    """
    length = days_in_range(start, end)
    previous_end = start - timedelta(days=1)
    previous_start = previous_end - timedelta(days=max(length - 1, 0))
    return previous_start, previous_end


def validate_date_range(start: date, end: date, max_days: Optional[int] = None) -> int:
    """
    Check an analytics query range before any data is fetched.

    The span is the number of days between start and end, so a single-day
    range has span 0 and a 90-day cap admits up to 91 calendar dates.

    Returns:
        The span in days

    Raises:
        InvalidRangeError: If start is after end
        RangeTooLargeError: If the span exceeds max_days
    """
    if start > end:
        raise InvalidRangeError(
            f"startDate ({format_date_string(start)}) must be on or before endDate ({format_date_string(end)})"
        )

    span = (end - start).days
    if max_days is not None and span > max_days:
        raise RangeTooLargeError(max_days, span)
    return span


def today() -> date:
    """Today's local calendar date."""
    return date.today()


def first_day_of_month(value: Optional[date] = None) -> date:
    value = value or today()
    return value.replace(day=1)
