"""
Compliance Aggregator

Folds schedules, exceptions and check-ins into the analytics payload shared
by the team leader, supervisor and executive dashboards:

    {
        "summary": {totalCheckIns, expectedCheckIns, completionRate,
                    avgReadiness, readinessDistribution, trend, ...},
        "dailyTrends": [{date, completed, pending, green, amber, red}, ...],
        "workerStats": [{workerId, name, totalCheckIns, completionRate, ...}],
        "weeklyPattern": {"Sunday": {...}, ..., "Saturday": {...}},
        "teamStats": [...],
        "exceptionStats": {byType, byTeam, total}
    }

The aggregator is a pure function of an AnalyticsSnapshot and a date range.
It never mutates the snapshot, and the same snapshot and range always give
the same payload, which is what makes caching the payload safe.

Counting rules:
    expected(D)      workers scheduled on D with no exception covering D
    completionRate   round_half_away(valid / expected * 100, 1), 0.0 if expected is 0
    readiness        one vote per worker: the category of their latest valid
                     check-in; percentages are taken over green + amber + red
    pending          expected workers with no valid check-in in the range
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from math import ceil
from typing import Dict, Iterable, List, Optional, Set, Union

from whs_tracker.error_handlers.exceptions import DataIntegrityWarning
from .calendar_utils import WEEKDAY_NAMES, format_date_string, iter_dates, js_weekday, previous_period
from .checkin_reconciler import (
    AMBER,
    GREEN,
    READINESS_CATEGORIES,
    RED,
    CheckInSnapshot,
    check_ins_in_range,
    count_by_category,
    dedupe_check_ins,
    latest_check_in_by_worker,
    reconcile_check_ins,
)
from .exception_resolver import (
    EXCEPTION_TYPES,
    ExceptionSnapshot,
    ExceptionsByWorker,
    exceptions_in_range,
    group_exceptions_by_worker,
    has_active_exception,
    was_active_during,
)
from .schedule_expander import ScheduleIndex, ScheduleSnapshot, expand_schedules

logger = logging.getLogger(__name__)

Number = Union[int, float]

GREEN_LABEL_THRESHOLD = 70
AMBER_LABEL_THRESHOLD = 40


# ---------------------------------------------------------------------------
# Rounding
# ---------------------------------------------------------------------------

def round_half_away(value: Union[Number, Decimal], places: int = 1) -> Number:
    """
    Round half away from zero (2.25 -> 2.3, -2.25 -> -2.3).

    Returns an int when places is 0, a float otherwise.
    """
    quantum = Decimal(1).scaleb(-places)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    if places == 0:
        return int(rounded)
    result = float(rounded)
    return 0.0 if result == 0 else result


def _ratio_percent(part: int, whole: int) -> Decimal:
    return Decimal(part) * 100 / Decimal(whole)


def completion_rate(completed: int, expected: int) -> float:
    """
    Completion percentage at one decimal place.

    Zero expected check-ins gives 0.0, never a division error.
    """
    if expected <= 0:
        return 0.0
    return round_half_away(_ratio_percent(completed, expected), 1)


def percentage(part: int, whole: int) -> int:
    """Whole-number percentage, 0 when whole is 0."""
    if whole <= 0:
        return 0
    return round_half_away(_ratio_percent(part, whole), 0)


def readiness_label(green: int, amber: int, red: int) -> str:
    """Overall readiness label from category counts ('N/A' without data)."""
    total = green + amber + red
    if total == 0:
        return 'N/A'
    green_percent = _ratio_percent(green, total)
    if green_percent >= GREEN_LABEL_THRESHOLD:
        return 'Green'
    if green_percent >= AMBER_LABEL_THRESHOLD:
        return 'Amber'
    return 'Red'


def format_trend(delta: Union[Number, Decimal]) -> str:
    """Signed percentage-point delta, e.g. '+4.5%' or '-2.0%'."""
    rounded = round_half_away(delta, 1)
    sign = '+' if rounded >= 0 else ''
    return f'{sign}{rounded:.1f}%'


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TeamSnapshot:
    id: str
    name: str
    site_location: Optional[str] = None
    team_leader_id: Optional[str] = None
    team_leader_name: Optional[str] = None


@dataclass
class AnalyticsSnapshot:
    """
    Request-scoped data fetched once before aggregation.

    Attributes:
        workers: Worker universe, id -> display name
        schedules: Every schedule for the workers' teams (active and inactive)
        exceptions: Exceptions of the workers
        check_ins: Check-ins of the workers, covering the queried range and
            the equal-length period before it
        teams: Teams in scope (empty for single-team views without rollups)
        memberships: worker id -> team id
        warnings: Data integrity problems found while loading
    """
    workers: Dict[str, str] = field(default_factory=dict)
    schedules: List[ScheduleSnapshot] = field(default_factory=list)
    exceptions: List[ExceptionSnapshot] = field(default_factory=list)
    check_ins: List[CheckInSnapshot] = field(default_factory=list)
    teams: List[TeamSnapshot] = field(default_factory=list)
    memberships: Dict[str, str] = field(default_factory=dict)
    warnings: List[DataIntegrityWarning] = field(default_factory=list)

    @classmethod
    def empty(cls) -> 'AnalyticsSnapshot':
        return cls()


@dataclass
class PeriodMetrics:
    """Intermediate results for one date range"""
    start: date
    end: date
    index: ScheduleIndex
    expected_by_date: Dict[date, Set[str]]
    valid_check_ins: List[CheckInSnapshot]
    latest_by_worker: Dict[str, CheckInSnapshot]

    @property
    def expected_total(self) -> int:
        return sum(len(workers) for workers in self.expected_by_date.values())

    @property
    def completion_rate(self) -> float:
        return completion_rate(len(self.valid_check_ins), self.expected_total)

    def raw_completion_percent(self) -> Decimal:
        if self.expected_total == 0:
            return Decimal(0)
        return _ratio_percent(len(self.valid_check_ins), self.expected_total)

    def expected_workers(self) -> Set[str]:
        workers = set()
        for day_workers in self.expected_by_date.values():
            workers.update(day_workers)
        return workers

    def readiness_votes(self) -> Dict[str, int]:
        return count_by_category(self.latest_by_worker.values())

    def raw_green_percent(self) -> Decimal:
        votes = self.readiness_votes()
        total = sum(votes.values())
        if total == 0:
            return Decimal(0)
        return _ratio_percent(votes[GREEN], total)


def expected_workers_by_date(index: ScheduleIndex, exceptions_by_worker: ExceptionsByWorker,
                             range_start: date, range_end: date) -> Dict[date, Set[str]]:
    """
    Workers expected to check in on each date of the range.

    Every date in the range has an entry, possibly empty.
    """
    return {
        day: {
            worker_id for worker_id in index.workers_on(day)
            if not has_active_exception(exceptions_by_worker, worker_id, day)
        }
        for day in iter_dates(range_start, range_end)
    }


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------

class ComplianceAggregator:
    """
    Builds compliance analytics from an AnalyticsSnapshot.

    Args:
        snapshot: Data fetched for the request; never modified
        active_schedules_only: Count deactivated schedules as not expected
        include_check_in_days: Treat any worker/date with a check-in as
            scheduled, keeping history visible after schedules are removed
        max_trend_points: Sample dailyTrends down to about this many points
            (0 keeps every date)
    """

    def __init__(self, snapshot: AnalyticsSnapshot, active_schedules_only: bool = False,
                 include_check_in_days: bool = False, max_trend_points: int = 0):
        self.snapshot = snapshot
        self.active_schedules_only = active_schedules_only
        self.include_check_in_days = include_check_in_days
        self.max_trend_points = max_trend_points

        self._worker_ids = set(snapshot.workers)
        self._exceptions = [e for e in snapshot.exceptions if e.worker_id in self._worker_ids]
        self._exceptions_by_worker = group_exceptions_by_worker(self._exceptions)
        self._check_ins = [c for c in snapshot.check_ins if c.worker_id in self._worker_ids]

    # -- period computation -------------------------------------------------

    def compute_period(self, range_start: date, range_end: date) -> PeriodMetrics:
        """Expand, reconcile and count one date range."""
        range_check_ins = check_ins_in_range(self._check_ins, range_start, range_end)
        index = expand_schedules(
            self.snapshot.schedules,
            range_start,
            range_end,
            active_only=self.active_schedules_only,
            check_ins=range_check_ins if self.include_check_in_days else None,
            worker_ids=self._worker_ids,
        )
        valid = dedupe_check_ins(reconcile_check_ins(range_check_ins, self._exceptions_by_worker))

        return PeriodMetrics(
            start=range_start,
            end=range_end,
            index=index,
            expected_by_date=expected_workers_by_date(
                index, self._exceptions_by_worker, range_start, range_end
            ),
            valid_check_ins=valid,
            latest_by_worker=latest_check_in_by_worker(valid),
        )

    # -- payload sections ---------------------------------------------------

    def _summary(self, current: PeriodMetrics, previous: PeriodMetrics, relevant: Set[str]) -> Dict:
        votes = current.readiness_votes()
        vote_total = sum(votes.values())

        expected_workers = current.expected_workers()
        checked_in_workers = {check_in.worker_id for check_in in current.valid_check_ins}
        pending = len(expected_workers - checked_in_workers)

        active_on_end = [
            worker_id for worker_id in relevant
            if not has_active_exception(self._exceptions_by_worker, worker_id, current.end)
        ]

        completion_delta = current.raw_completion_percent() - previous.raw_completion_percent()
        readiness_delta = current.raw_green_percent() - previous.raw_green_percent()

        return {
            'totalWorkers': len(relevant),
            'activeWorkers': len(active_on_end),
            'totalCheckIns': len(current.valid_check_ins),
            'expectedCheckIns': current.expected_total,
            'completionRate': current.completion_rate,
            'avgReadiness': {
                'green': percentage(votes[GREEN], vote_total),
                'amber': percentage(votes[AMBER], vote_total),
                'red': percentage(votes[RED], vote_total),
            },
            'readinessDistribution': {
                'green': votes[GREEN],
                'amber': votes[AMBER],
                'red': votes[RED],
                'pending': pending,
            },
            'trend': {
                'completion': format_trend(completion_delta),
                'readiness': format_trend(readiness_delta),
            },
        }

    def _daily_trends(self, current: PeriodMetrics) -> List[Dict]:
        completed_by_date: Dict[date, List[CheckInSnapshot]] = {}
        for check_in in current.valid_check_ins:
            completed_by_date.setdefault(check_in.check_in_date, []).append(check_in)

        trends = []
        for day, expected in sorted(current.expected_by_date.items()):
            day_check_ins = completed_by_date.get(day, [])
            counts = count_by_category(day_check_ins)
            checked_in = {check_in.worker_id for check_in in day_check_ins}
            trends.append({
                'date': format_date_string(day),
                'expected': len(expected),
                'completed': len(day_check_ins),
                'pending': len(expected - checked_in),
                'green': counts[GREEN],
                'amber': counts[AMBER],
                'red': counts[RED],
            })

        if self.max_trend_points and len(trends) > self.max_trend_points:
            step = ceil(len(trends) / self.max_trend_points)
            trends = trends[::step]
        return trends

    def _relevant_workers(self, current: PeriodMetrics) -> Set[str]:
        """Workers scheduled, checked in, or excused at some point in the range."""
        relevant = set(current.index.scheduled_workers())
        relevant.update(
            check_in.worker_id
            for check_in in check_ins_in_range(self._check_ins, current.start, current.end)
        )
        relevant.update(
            exception.worker_id for exception in self._exceptions
            if was_active_during(exception, current.start, current.end)
        )
        return relevant & self._worker_ids

    def _worker_stats(self, current: PeriodMetrics, relevant: Set[str]) -> List[Dict]:
        check_ins_by_worker: Dict[str, List[CheckInSnapshot]] = {}
        for check_in in current.valid_check_ins:
            check_ins_by_worker.setdefault(check_in.worker_id, []).append(check_in)

        expected_days: Dict[str, int] = {}
        for workers in current.expected_by_date.values():
            for worker_id in workers:
                expected_days[worker_id] = expected_days.get(worker_id, 0) + 1

        stats = []
        for worker_id in relevant:
            worker_check_ins = check_ins_by_worker.get(worker_id, [])
            counts = count_by_category(worker_check_ins)
            expected = expected_days.get(worker_id, 0)
            stats.append({
                'workerId': worker_id,
                'name': self.snapshot.workers.get(worker_id) or 'Unknown',
                'teamId': self.snapshot.memberships.get(worker_id),
                'totalCheckIns': len(worker_check_ins),
                'expectedCheckIns': expected,
                'completionRate': completion_rate(len(worker_check_ins), expected),
                'greenCount': counts[GREEN],
                'amberCount': counts[AMBER],
                'redCount': counts[RED],
                'avgReadiness': readiness_label(counts[GREEN], counts[AMBER], counts[RED]),
            })

        stats.sort(key=lambda item: (item['name'].lower(), item['workerId']))
        return stats

    def _weekly_pattern(self, current: PeriodMetrics) -> Dict[str, Dict]:
        pattern = {
            name: {'expected': 0, 'completion': 0, GREEN: 0, AMBER: 0, RED: 0}
            for name in WEEKDAY_NAMES
        }

        for day, workers in current.expected_by_date.items():
            pattern[WEEKDAY_NAMES[js_weekday(day)]]['expected'] += len(workers)

        for check_in in current.valid_check_ins:
            day_data = pattern[WEEKDAY_NAMES[js_weekday(check_in.check_in_date)]]
            day_data['completion'] += 1
            category = check_in.category
            if category is not None:
                day_data[category] += 1

        result = {}
        for name in WEEKDAY_NAMES:
            day_data = pattern[name]
            result[name] = {
                'avgReadiness': readiness_label(day_data[GREEN], day_data[AMBER], day_data[RED]),
                'completion': day_data['completion'],
                'expected': day_data['expected'],
                'completionRate': completion_rate(day_data['completion'], day_data['expected']),
                'green': day_data[GREEN],
                'amber': day_data[AMBER],
                'red': day_data[RED],
            }
        return result

    def _range_exceptions(self, current: PeriodMetrics) -> List[ExceptionSnapshot]:
        return exceptions_in_range(self._exceptions, current.start, current.end)

    def _team_stats(self, current: PeriodMetrics) -> List[Dict]:
        if not self.snapshot.teams:
            return []

        range_exceptions = self._range_exceptions(current)
        stats = []
        for team in self.snapshot.teams:
            members = {
                worker_id for worker_id, team_id in self.snapshot.memberships.items()
                if team_id == team.id and worker_id in self._worker_ids
            }
            team_check_ins = [c for c in current.valid_check_ins if c.worker_id in members]
            expected = sum(len(workers & members) for workers in current.expected_by_date.values())
            counts = count_by_category(team_check_ins)
            active_members = [
                worker_id for worker_id in members
                if not has_active_exception(self._exceptions_by_worker, worker_id, current.end)
            ]

            stats.append({
                'teamId': team.id,
                'teamName': team.name,
                'siteLocation': team.site_location,
                'teamLeaderId': team.team_leader_id,
                'teamLeaderName': team.team_leader_name or 'Unknown',
                'totalMembers': len(members),
                'activeMembers': len(active_members),
                'totalCheckIns': len(team_check_ins),
                'expectedCheckIns': expected,
                'completionRate': completion_rate(len(team_check_ins), expected),
                'readiness': {
                    'green': counts[GREEN],
                    'amber': counts[AMBER],
                    'red': counts[RED],
                },
                'caseCount': sum(1 for e in range_exceptions if e.team_id == team.id),
            })

        stats.sort(key=lambda item: ((item['teamName'] or '').lower(), item['teamId']))
        return stats

    @staticmethod
    def _count_types(exceptions: Iterable[ExceptionSnapshot]) -> Dict[str, int]:
        counts = {exception_type: 0 for exception_type in EXCEPTION_TYPES}
        for exception in exceptions:
            counts[exception.exception_type] = counts.get(exception.exception_type, 0) + 1
        return dict(sorted(counts.items()))

    def _exception_stats(self, current: PeriodMetrics) -> Dict:
        range_exceptions = self._range_exceptions(current)
        by_team = {
            team.id: self._count_types(e for e in range_exceptions if e.team_id == team.id)
            for team in sorted(self.snapshot.teams, key=lambda t: t.id)
        }
        return {
            'byType': self._count_types(range_exceptions),
            'byTeam': by_team,
            'total': len(range_exceptions),
        }

    # -- public -------------------------------------------------------------

    def build(self, range_start: date, range_end: date) -> Dict:
        """
        Compute the analytics payload for [range_start, range_end].

        The range is assumed validated by the caller (start <= end, within cap).
        Empty snapshots produce the same shape with zeroed values.
        """
        current = self.compute_period(range_start, range_end)
        previous = self.compute_period(*previous_period(range_start, range_end))
        relevant = self._relevant_workers(current)

        for warning in current.index.warnings:
            logger.debug(f"Skipped schedule during aggregation: {warning!r}")

        return {
            'range': {
                'startDate': format_date_string(range_start),
                'endDate': format_date_string(range_end),
            },
            'summary': self._summary(current, previous, relevant),
            'dailyTrends': self._daily_trends(current),
            'workerStats': self._worker_stats(current, relevant),
            'weeklyPattern': self._weekly_pattern(current),
            'teamStats': self._team_stats(current),
            'exceptionStats': self._exception_stats(current),
            'dataWarnings': [
                warning.to_dict() for warning in self.snapshot.warnings + current.index.warnings
            ],
        }


def aggregate_compliance(snapshot: AnalyticsSnapshot, range_start: date, range_end: date,
                         **options) -> Dict:
    """Functional shortcut for ComplianceAggregator(snapshot, **options).build(...)."""
    return ComplianceAggregator(snapshot, **options).build(range_start, range_end)


def empty_payload(range_start: date, range_end: date) -> Dict:
    """Fully zeroed payload with the same shape as a populated one."""
    return ComplianceAggregator(AnalyticsSnapshot.empty()).build(range_start, range_end)
