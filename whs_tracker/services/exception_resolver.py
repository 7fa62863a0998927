"""
Exception interval resolution

Answers "was this worker excused on date D" for worker exceptions (leave,
injury, transfer, ...) that may have been soft-closed part way through a
queried range.

An exception's soft-delete fields (is_active + deactivated_at) are folded
into a single ActiveInterval so the predicate lives in one place:

    covers(D) = start <= D <= (end or +inf)  and  D < (active_until or +inf)

active_until is the deactivation date, so the day the exception was closed
already counts as not excused. A closed exception without a deactivation
stamp never covers any date.
"""
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Set, Union

from .calendar_utils import iter_dates, to_calendar_date


EXCEPTION_TYPES = ('transfer', 'accident', 'injury', 'medical_leave', 'other')

EXCEPTION_TYPE_LABELS = {
    'transfer': 'Transfer',
    'accident': 'Accident',
    'injury': 'Injury',
    'medical_leave': 'Medical Leave',
    'other': 'Other',
}


def get_exception_type_label(exception_type: str) -> str:
    """User-facing label for an exception type code."""
    return EXCEPTION_TYPE_LABELS.get(exception_type, exception_type)


@dataclass(frozen=True)
class ActiveInterval:
    """Closed date interval [start, end] cut short by an optional active_until (exclusive)."""
    start: date
    end: Optional[date] = None
    active_until: Optional[date] = None

    def covers(self, day: date) -> bool:
        if day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        if self.active_until is not None and self.active_until <= day:
            return False
        return True

    def overlaps(self, range_start: date, range_end: date) -> bool:
        """True if the nominal [start, end] window touches the range (ignores active_until)."""
        return self.start <= range_end and (self.end is None or self.end >= range_start)


@dataclass(frozen=True)
class ExceptionSnapshot:
    """Read-only view of a worker exception used by the analytics engine"""
    worker_id: str
    start_date: date
    end_date: Optional[date] = None
    is_active: bool = True
    deactivated_at: Optional[date] = None
    exception_type: str = 'other'
    team_id: Optional[str] = None
    id: Optional[Union[int, str]] = None

    @classmethod
    def create(cls, worker_id, start_date, end_date=None, is_active=True,
               deactivated_at=None, exception_type='other', team_id=None, id=None):
        """Build a snapshot from raw stored values (strings, dates or datetimes)."""
        return cls(
            worker_id=worker_id,
            start_date=to_calendar_date(start_date),
            end_date=to_calendar_date(end_date),
            is_active=bool(is_active),
            deactivated_at=to_calendar_date(deactivated_at),
            exception_type=exception_type or 'other',
            team_id=team_id,
            id=id,
        )

    @property
    def interval(self) -> ActiveInterval:
        if self.deactivated_at is not None:
            active_until = self.deactivated_at
        elif self.is_active:
            active_until = None
        else:
            # Closed without a stamp: empty interval
            active_until = self.start_date
        return ActiveInterval(self.start_date, self.end_date, active_until)


ExceptionsByWorker = Dict[str, List[ExceptionSnapshot]]


def is_active_on(exception: ExceptionSnapshot, day: Union[date, datetime, str]) -> bool:
    """
    Check whether an exception excused its worker on a given calendar date.

    Example:
        >>> exc = ExceptionSnapshot.create('w1', '2024-02-01', is_active=False,
        ...                                deactivated_at='2024-02-10')
        >>> is_active_on(exc, '2024-02-05'), is_active_on(exc, '2024-02-10')
        (True, False)
    """
    return exception.interval.covers(to_calendar_date(day))


def group_exceptions_by_worker(exceptions: Iterable[ExceptionSnapshot]) -> ExceptionsByWorker:
    """Group exceptions by worker id, preserving input order within each worker."""
    grouped = defaultdict(list)
    for exception in exceptions:
        grouped[exception.worker_id].append(exception)
    return dict(grouped)


def has_active_exception(exceptions_by_worker: ExceptionsByWorker, worker_id: str, day: date) -> bool:
    """True if any of the worker's exceptions covers the date."""
    return any(is_active_on(exception, day) for exception in exceptions_by_worker.get(worker_id, ()))


def workers_with_active_exceptions(exceptions: Iterable[ExceptionSnapshot], day: date) -> Set[str]:
    """Ids of workers excused on the given date."""
    return {exception.worker_id for exception in exceptions if is_active_on(exception, day)}


def filter_active_exceptions(exceptions: Iterable[ExceptionSnapshot], day: date) -> List[ExceptionSnapshot]:
    return [exception for exception in exceptions if is_active_on(exception, day)]


def overlaps_range(exception: ExceptionSnapshot, range_start: date, range_end: date) -> bool:
    """
    True if the exception's start/end window touches the range.

    Ignores is_active/deactivated_at: closed exceptions still count in the
    per-type totals for the range.
    """
    return exception.interval.overlaps(range_start, range_end)


def exceptions_in_range(exceptions: Iterable[ExceptionSnapshot], range_start: date,
                        range_end: date) -> List[ExceptionSnapshot]:
    return [exception for exception in exceptions if overlaps_range(exception, range_start, range_end)]


def was_active_during(exception: ExceptionSnapshot, range_start: date, range_end: date) -> bool:
    """True if the exception covered at least one date of the range."""
    if not overlaps_range(exception, range_start, range_end):
        return False
    first_day = max(exception.start_date, range_start)
    last_day = min(exception.end_date, range_end) if exception.end_date else range_end
    return any(is_active_on(exception, day) for day in iter_dates(first_day, last_day))


def find_conflicting_exception(exceptions: Iterable[ExceptionSnapshot], range_start: date,
                               range_end: date) -> Optional[ExceptionSnapshot]:
    """
    First exception that excuses its worker on any date of the range.

    Used before assigning schedules to a worker who may be on leave.
    """
    for exception in exceptions:
        if was_active_during(exception, range_start, range_end):
            return exception
    return None
