"""
Check-in reconciliation

Filters raw daily check-ins down to the ones that count towards compliance:
a check-in made on a day the worker was excused by an exception is
discarded. All functions return new collections and leave their inputs
untouched.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .calendar_utils import to_calendar_date
from .exception_resolver import ExceptionsByWorker, has_active_exception


GREEN = 'green'
AMBER = 'amber'
RED = 'red'
READINESS_CATEGORIES = (GREEN, AMBER, RED)

_READINESS_ALIASES = {
    'green': GREEN,
    'amber': AMBER,
    'yellow': AMBER,
    'red': RED,
}


def normalize_readiness(value: Optional[str]) -> Optional[str]:
    """
    Map a stored readiness label to 'green', 'amber' or 'red'.

    'Yellow' and 'Amber' are the same tier. Unknown or missing labels map
    to None and are left out of readiness counts.
    """
    if not isinstance(value, str):
        return None
    return _READINESS_ALIASES.get(value.strip().lower())


@dataclass(frozen=True)
class CheckInSnapshot:
    """Read-only view of a daily check-in used by the analytics engine"""
    worker_id: str
    check_in_date: date
    readiness: Optional[str] = None
    id: Optional[Union[int, str]] = None
    created_at: Optional[datetime] = None

    @classmethod
    def create(cls, worker_id, check_in_date, readiness=None, id=None, created_at=None):
        return cls(
            worker_id=worker_id,
            check_in_date=to_calendar_date(check_in_date),
            readiness=readiness,
            id=id,
            created_at=created_at,
        )

    @property
    def category(self) -> Optional[str]:
        return normalize_readiness(self.readiness)


def _recency_key(check_in: CheckInSnapshot) -> Tuple:
    """Ordering among check-ins of the same worker and date: later created wins, then higher id."""
    created = check_in.created_at or datetime.min
    if check_in.id is None:
        id_key = (0, 0, '')
    elif isinstance(check_in.id, int):
        id_key = (1, check_in.id, '')
    else:
        id_key = (2, 0, str(check_in.id))
    return (created, id_key)


def reconcile_check_ins(check_ins: Iterable[CheckInSnapshot],
                        exceptions_by_worker: ExceptionsByWorker) -> List[CheckInSnapshot]:
    """
    Keep only check-ins made on days their worker had no active exception.

    Returns:
        ValidCheckIns in input order
    """
    return [
        check_in for check_in in check_ins
        if not has_active_exception(exceptions_by_worker, check_in.worker_id, check_in.check_in_date)
    ]


def dedupe_check_ins(check_ins: Iterable[CheckInSnapshot]) -> List[CheckInSnapshot]:
    """
    Collapse duplicates to one check-in per worker per date, keeping the latest.

    Returns:
        Check-ins ordered by date, then worker id
    """
    latest: Dict[Tuple[str, date], CheckInSnapshot] = {}
    for check_in in check_ins:
        key = (check_in.worker_id, check_in.check_in_date)
        current = latest.get(key)
        if current is None or _recency_key(check_in) > _recency_key(current):
            latest[key] = check_in
    return [latest[key] for key in sorted(latest, key=lambda item: (item[1], item[0]))]


def latest_check_in_by_worker(check_ins: Iterable[CheckInSnapshot]) -> Dict[str, CheckInSnapshot]:
    """
    Most recent check-in per worker (greatest date; ties go to the latest created).
    """
    latest: Dict[str, CheckInSnapshot] = {}
    for check_in in check_ins:
        current = latest.get(check_in.worker_id)
        if current is None:
            latest[check_in.worker_id] = check_in
            continue
        if (check_in.check_in_date, _recency_key(check_in)) > (current.check_in_date, _recency_key(current)):
            latest[check_in.worker_id] = check_in
    return latest


def check_ins_in_range(check_ins: Iterable[CheckInSnapshot], range_start: date,
                       range_end: date) -> List[CheckInSnapshot]:
    return [check_in for check_in in check_ins if range_start <= check_in.check_in_date <= range_end]


def count_by_category(check_ins: Iterable[CheckInSnapshot]) -> Dict[str, int]:
    """Green/amber/red counts; check-ins with an unknown label are not counted."""
    counts = {category: 0 for category in READINESS_CATEGORIES}
    for check_in in check_ins:
        category = check_in.category
        if category is not None:
            counts[category] += 1
    return counts
