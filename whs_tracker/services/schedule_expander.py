"""
Schedule expansion

Turns stored work schedules into a date -> set-of-worker-ids index over a
bounded query range. A schedule is either a one-off (scheduled_date) or a
weekly recurrence (day_of_week, Sunday = 0) bounded by optional
effective/expiry dates.

Callers choose the schedule population: forward-looking "who must check in
today" queries pass active schedules only, historical completion queries
pass every schedule including deactivated ones.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Union

from whs_tracker.error_handlers.exceptions import DataIntegrityWarning
from whs_tracker.error_handlers.logging import integrity_logger
from .calendar_utils import format_date_string, iter_dates, js_weekday, to_calendar_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduleSnapshot:
    """Read-only view of a work schedule used by the analytics engine"""
    worker_id: str
    scheduled_date: Optional[date] = None
    day_of_week: Optional[int] = None
    effective_date: Optional[date] = None
    expiry_date: Optional[date] = None
    is_active: bool = True
    team_id: Optional[str] = None
    id: Optional[Union[int, str]] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None

    @classmethod
    def create(cls, worker_id, scheduled_date=None, day_of_week=None, effective_date=None,
               expiry_date=None, is_active=True, team_id=None, id=None,
               start_time=None, end_time=None):
        """Build a snapshot from raw stored values (strings, dates or datetimes)."""
        return cls(
            worker_id=worker_id,
            scheduled_date=to_calendar_date(scheduled_date),
            day_of_week=day_of_week,
            effective_date=to_calendar_date(effective_date),
            expiry_date=to_calendar_date(expiry_date),
            is_active=bool(is_active),
            team_id=team_id,
            id=id,
            start_time=start_time,
            end_time=end_time,
        )

    @property
    def is_recurring(self) -> bool:
        return self.scheduled_date is None and self.day_of_week is not None

    def within_bounds(self, day: date) -> bool:
        """True if day lies inside the optional effective/expiry window."""
        if self.effective_date is not None and day < self.effective_date:
            return False
        if self.expiry_date is not None and day > self.expiry_date:
            return False
        return True


@dataclass
class ScheduleIndex:
    """ScheduledOnDate index produced by expand_schedules"""
    start: date
    end: date
    by_date: Dict[date, Set[str]] = field(default_factory=dict)
    warnings: List[DataIntegrityWarning] = field(default_factory=list)

    def workers_on(self, day: date) -> FrozenSet[str]:
        return frozenset(self.by_date.get(day, ()))

    def is_scheduled(self, worker_id: str, day: date) -> bool:
        return worker_id in self.by_date.get(day, ())

    def dates_for(self, worker_id: str) -> List[date]:
        return sorted(day for day, workers in self.by_date.items() if worker_id in workers)

    def scheduled_workers(self) -> Set[str]:
        workers = set()
        for day_workers in self.by_date.values():
            workers.update(day_workers)
        return workers

    def total_assignments(self) -> int:
        return sum(len(workers) for workers in self.by_date.values())


def _check_schedule(schedule: ScheduleSnapshot) -> Optional[DataIntegrityWarning]:
    """Return a warning if the schedule cannot be expanded, None otherwise."""
    has_date = schedule.scheduled_date is not None
    has_weekday = schedule.day_of_week is not None

    if has_date == has_weekday:
        return integrity_logger.record(
            DataIntegrityWarning.AMBIGUOUS_SCHEDULE,
            f"Schedule for worker {schedule.worker_id} must have exactly one of "
            f"scheduled_date or day_of_week",
            record_id=schedule.id,
        )

    if has_weekday:
        day_of_week = schedule.day_of_week
        if isinstance(day_of_week, bool) or not isinstance(day_of_week, int) or not 0 <= day_of_week <= 6:
            return integrity_logger.record(
                DataIntegrityWarning.INVALID_DAY_OF_WEEK,
                f"Schedule for worker {schedule.worker_id} has day_of_week={day_of_week!r} (expected 0-6)",
                record_id=schedule.id,
            )
    return None


def _recurring_dates(schedule: ScheduleSnapshot, range_start: date, range_end: date) -> Iterable[date]:
    """Dates matching the schedule's weekday inside its window clipped to the range."""
    window_start = max(schedule.effective_date or range_start, range_start)
    window_end = min(schedule.expiry_date or range_end, range_end)
    if window_start > window_end:
        return

    offset = (schedule.day_of_week - js_weekday(window_start)) % 7
    current = window_start + timedelta(days=offset)
    while current <= window_end:
        yield current
        current += timedelta(days=7)


def expand_schedules(
    schedules: Iterable[ScheduleSnapshot],
    range_start: date,
    range_end: date,
    active_only: bool = False,
    check_ins: Optional[Iterable] = None,
    worker_ids: Optional[Iterable[str]] = None,
) -> ScheduleIndex:
    """
    Build the ScheduledOnDate index for [range_start, range_end].

    Args:
        schedules: Stored schedules (any order)
        range_start: First date of the range (inclusive)
        range_end: Last date of the range (inclusive)
        active_only: Skip deactivated schedules (forward-looking queries)
        check_ins: When given, every worker/date with a check-in in range is
            also marked as scheduled, so history stays visible after its
            schedule was removed
        worker_ids: Restrict the index to these workers

    Returns:
        ScheduleIndex with one entry per date that has at least one worker.
        Malformed schedules are reported in index.warnings and skipped.
    """
    index = ScheduleIndex(start=range_start, end=range_end)
    allowed = set(worker_ids) if worker_ids is not None else None
    by_date = defaultdict(set)

    for schedule in schedules:
        if allowed is not None and schedule.worker_id not in allowed:
            continue
        if active_only and not schedule.is_active:
            continue

        warning = _check_schedule(schedule)
        if warning is not None:
            index.warnings.append(warning)
            continue

        if schedule.is_recurring:
            for day in _recurring_dates(schedule, range_start, range_end):
                by_date[day].add(schedule.worker_id)
        else:
            day = schedule.scheduled_date
            if range_start <= day <= range_end and schedule.within_bounds(day):
                by_date[day].add(schedule.worker_id)

    if check_ins is not None:
        for check_in in check_ins:
            if allowed is not None and check_in.worker_id not in allowed:
                continue
            if range_start <= check_in.check_in_date <= range_end:
                by_date[check_in.check_in_date].add(check_in.worker_id)

    index.by_date = dict(by_date)
    logger.debug(
        f"Expanded schedules {format_date_string(range_start)}..{format_date_string(range_end)}: "
        f"{len(index.by_date)} dates, {index.total_assignments()} assignments, "
        f"{len(index.warnings)} skipped"
    )
    return index


def schedule_matches_date(schedule: ScheduleSnapshot, day: date) -> bool:
    """
    Check if a single schedule puts its worker on shift on the given date.

    Malformed schedules never match.
    """
    has_date = schedule.scheduled_date is not None
    has_weekday = schedule.day_of_week is not None
    if has_date == has_weekday:
        return False

    if has_date:
        return schedule.scheduled_date == day and schedule.within_bounds(day)

    return schedule.day_of_week == js_weekday(day) and schedule.within_bounds(day)


def scheduled_dates_for_worker(schedules: Iterable[ScheduleSnapshot], range_start: date,
                               range_end: date) -> List[date]:
    """All dates in range on which any of the given schedules applies, ascending."""
    schedules = list(schedules)
    return [
        day for day in iter_dates(range_start, range_end)
        if any(schedule_matches_date(schedule, day) for schedule in schedules)
    ]


def find_next_scheduled_date(schedules: Iterable[ScheduleSnapshot], from_day: date,
                             max_days: int = 90) -> Optional[date]:
    """
    First scheduled date strictly after from_day, looking at most max_days ahead.

    Returns:
        The date, or None if nothing is scheduled in the look-ahead window
    """
    schedules = list(schedules)
    if not schedules:
        return None

    for offset in range(1, max_days + 1):
        day = from_day + timedelta(days=offset)
        if any(schedule_matches_date(schedule, day) for schedule in schedules):
            return day
    return None
