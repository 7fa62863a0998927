"""
Unit tests for the compliance aggregator.

Tests cover:
- Expected check-ins net of exceptions and completion rate
- One-vote-per-worker readiness and the pending count
- Trend against the previous period
- Per-worker, weekday, team and exception rollups
- Empty snapshots and deterministic output
"""
import json
from datetime import date
from decimal import Decimal

import pytest

from whs_tracker.error_handlers.exceptions import DataIntegrityWarning
from whs_tracker.services.checkin_reconciler import CheckInSnapshot
from whs_tracker.services.compliance_aggregator import (
    AnalyticsSnapshot,
    ComplianceAggregator,
    TeamSnapshot,
    aggregate_compliance,
    completion_rate,
    empty_payload,
    format_trend,
    percentage,
    readiness_label,
    round_half_away,
)
from whs_tracker.services.exception_resolver import ExceptionSnapshot
from whs_tracker.services.schedule_expander import ScheduleSnapshot

RANGE_START = date(2024, 2, 5)  # Monday
RANGE_END = date(2024, 2, 18)   # Sunday

WEEKDAYS = (1, 2, 3, 4, 5)


def weekday_schedules(worker_id, team_id='t1'):
    return [
        ScheduleSnapshot.create(worker_id=worker_id, day_of_week=day, team_id=team_id)
        for day in WEEKDAYS
    ]


@pytest.fixture
def two_week_snapshot():
    """
    Three workers scheduled Monday to Friday over two weeks.

    Alice checks in Green on 8 weekdays, Bob is on medical leave for the
    whole second week (his check-in during the leave does not count) and
    Carol never checks in.
    """
    alice_days = ['2024-02-05', '2024-02-06', '2024-02-07', '2024-02-08', '2024-02-09',
                  '2024-02-12', '2024-02-13', '2024-02-14']
    check_ins = [CheckInSnapshot.create('alice', day, 'Green') for day in alice_days]
    check_ins.append(CheckInSnapshot.create('bob', '2024-02-13', 'Red'))

    return AnalyticsSnapshot(
        workers={'alice': 'Alice Adams', 'bob': 'Bob Brown', 'carol': 'Carol Chen'},
        schedules=weekday_schedules('alice') + weekday_schedules('bob') + weekday_schedules('carol'),
        exceptions=[
            ExceptionSnapshot.create('bob', '2024-02-12', end_date='2024-02-18',
                                     exception_type='medical_leave', team_id='t1', id=1),
        ],
        check_ins=check_ins,
        memberships={'alice': 't1', 'bob': 't1', 'carol': 't1'},
    )


class TestRounding:

    @pytest.mark.unit
    @pytest.mark.parametrize('value,expected', [
        (2.25, 2.3),
        (-2.25, -2.3),
        (0.05, 0.1),
        (Decimal('33.35'), 33.4),
        (-0.04, 0.0),
    ])
    def test_round_half_away(self, value, expected):
        assert round_half_away(value, 1) == expected

    @pytest.mark.unit
    def test_round_to_whole_number(self):
        assert round_half_away(Decimal('12.5'), 0) == 13
        assert isinstance(round_half_away(Decimal('12.5'), 0), int)

    @pytest.mark.unit
    def test_completion_rate(self):
        assert completion_rate(8, 25) == 32.0
        assert completion_rate(1, 3) == 33.3
        assert completion_rate(2, 3) == 66.7

    @pytest.mark.unit
    def test_completion_rate_zero_expected(self):
        assert completion_rate(0, 0) == 0.0
        assert completion_rate(3, 0) == 0.0
        assert isinstance(completion_rate(0, 0), float)

    @pytest.mark.unit
    def test_percentage(self):
        assert percentage(1, 8) == 13
        assert percentage(0, 0) == 0

    @pytest.mark.unit
    def test_format_trend(self):
        assert format_trend(Decimal('4.45')) == '+4.5%'
        assert format_trend(-2) == '-2.0%'
        assert format_trend(0) == '+0.0%'
        assert format_trend(-0.04) == '+0.0%'

    @pytest.mark.unit
    def test_readiness_label(self):
        assert readiness_label(7, 2, 1) == 'Green'
        assert readiness_label(4, 3, 3) == 'Amber'
        assert readiness_label(1, 1, 2) == 'Red'
        assert readiness_label(0, 0, 0) == 'N/A'


class TestSummary:

    @pytest.mark.unit
    def test_expected_and_completion(self, two_week_snapshot):
        payload = aggregate_compliance(two_week_snapshot, RANGE_START, RANGE_END)
        summary = payload['summary']

        assert summary['expectedCheckIns'] == 25
        assert summary['totalCheckIns'] == 8
        assert summary['completionRate'] == 32.0

    @pytest.mark.unit
    def test_readiness_votes_and_pending(self, two_week_snapshot):
        summary = aggregate_compliance(two_week_snapshot, RANGE_START, RANGE_END)['summary']

        assert summary['readinessDistribution'] == {'green': 1, 'amber': 0, 'red': 0, 'pending': 2}
        assert summary['avgReadiness'] == {'green': 100, 'amber': 0, 'red': 0}

    @pytest.mark.unit
    def test_worker_counts(self, two_week_snapshot):
        summary = aggregate_compliance(two_week_snapshot, RANGE_START, RANGE_END)['summary']

        assert summary['totalWorkers'] == 3
        # Bob is still on leave on the last day of the range
        assert summary['activeWorkers'] == 2

    @pytest.mark.unit
    def test_relevant_workers_resolved_once_per_build(self, two_week_snapshot, monkeypatch):
        calls = []
        resolve = ComplianceAggregator._relevant_workers

        def counting(aggregator, current):
            calls.append(current.start)
            return resolve(aggregator, current)

        monkeypatch.setattr(ComplianceAggregator, '_relevant_workers', counting)
        payload = aggregate_compliance(two_week_snapshot, RANGE_START, RANGE_END)

        assert calls == [RANGE_START]
        assert payload['summary']['totalWorkers'] == len(payload['workerStats']) == 3

    @pytest.mark.unit
    def test_trend_against_previous_period(self, two_week_snapshot):
        summary = aggregate_compliance(two_week_snapshot, RANGE_START, RANGE_END)['summary']

        assert summary['trend'] == {'completion': '+32.0%', 'readiness': '+100.0%'}

    @pytest.mark.unit
    def test_trend_with_previous_check_ins(self):
        snapshot = AnalyticsSnapshot(
            workers={'w1': 'Worker One'},
            schedules=[ScheduleSnapshot.create(worker_id='w1', day_of_week=1)],
            check_ins=[
                CheckInSnapshot.create('w1', '2024-01-29', 'Green'),  # previous period
                CheckInSnapshot.create('w1', '2024-02-12', 'Red'),
            ],
        )

        summary = aggregate_compliance(snapshot, RANGE_START, RANGE_END)['summary']

        # previous: 1 of 2 Mondays, all Green; current: 1 of 2 Mondays, all Red
        assert summary['completionRate'] == 50.0
        assert summary['trend'] == {'completion': '+0.0%', 'readiness': '-100.0%'}

    @pytest.mark.unit
    def test_one_vote_per_worker_uses_latest_check_in(self):
        snapshot = AnalyticsSnapshot(
            workers={'w1': 'Worker One', 'w2': 'Worker Two'},
            schedules=weekday_schedules('w1') + weekday_schedules('w2'),
            check_ins=[
                CheckInSnapshot.create('w1', '2024-02-05', 'Green'),
                CheckInSnapshot.create('w1', '2024-02-06', 'Green'),
                CheckInSnapshot.create('w1', '2024-02-07', 'Yellow'),
                CheckInSnapshot.create('w2', '2024-02-05', 'Red'),
            ],
        )

        summary = aggregate_compliance(snapshot, RANGE_START, RANGE_END)['summary']

        assert summary['readinessDistribution'] == {'green': 0, 'amber': 1, 'red': 1, 'pending': 0}
        assert summary['avgReadiness'] == {'green': 0, 'amber': 50, 'red': 50}


class TestDailyTrends:

    @pytest.mark.unit
    def test_one_entry_per_date(self, two_week_snapshot):
        trends = aggregate_compliance(two_week_snapshot, RANGE_START, RANGE_END)['dailyTrends']

        assert len(trends) == 14
        assert trends[0] == {
            'date': '2024-02-05', 'expected': 3, 'completed': 1, 'pending': 2,
            'green': 1, 'amber': 0, 'red': 0,
        }
        # Bob is excused in week two, his Red check-in is not counted
        assert trends[8] == {
            'date': '2024-02-13', 'expected': 2, 'completed': 1, 'pending': 1,
            'green': 1, 'amber': 0, 'red': 0,
        }
        assert trends[5]['expected'] == 0  # Saturday

    @pytest.mark.unit
    def test_pending_never_negative(self):
        snapshot = AnalyticsSnapshot(
            workers={'w1': 'Worker One'},
            check_ins=[CheckInSnapshot.create('w1', '2024-02-10', 'Green')],  # unscheduled Saturday
        )

        trends = aggregate_compliance(snapshot, RANGE_START, RANGE_END)['dailyTrends']

        saturday = next(entry for entry in trends if entry['date'] == '2024-02-10')
        assert saturday['completed'] == 1
        assert saturday['pending'] == 0

    @pytest.mark.unit
    def test_sampling_long_series(self, two_week_snapshot):
        payload = aggregate_compliance(two_week_snapshot, RANGE_START, RANGE_END, max_trend_points=5)

        assert [entry['date'] for entry in payload['dailyTrends']] == [
            '2024-02-05', '2024-02-08', '2024-02-11', '2024-02-14', '2024-02-17'
        ]


class TestRollups:

    @pytest.mark.unit
    def test_worker_stats(self, two_week_snapshot):
        stats = aggregate_compliance(two_week_snapshot, RANGE_START, RANGE_END)['workerStats']

        assert [s['name'] for s in stats] == ['Alice Adams', 'Bob Brown', 'Carol Chen']
        alice, bob, carol = stats
        assert (alice['expectedCheckIns'], alice['totalCheckIns'], alice['completionRate']) == (10, 8, 80.0)
        assert alice['greenCount'] == 8
        assert alice['avgReadiness'] == 'Green'
        assert (bob['expectedCheckIns'], bob['totalCheckIns'], bob['redCount']) == (5, 0, 0)
        assert bob['avgReadiness'] == 'N/A'
        assert (carol['expectedCheckIns'], carol['completionRate']) == (10, 0)
        assert alice['teamId'] == 't1'

    @pytest.mark.unit
    def test_weekly_pattern(self, two_week_snapshot):
        pattern = aggregate_compliance(two_week_snapshot, RANGE_START, RANGE_END)['weeklyPattern']

        assert list(pattern) == ['Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday']
        assert pattern['Monday']['expected'] == 5
        assert pattern['Monday']['completion'] == 2
        assert pattern['Monday']['completionRate'] == 40.0
        assert pattern['Thursday']['completionRate'] == 20.0
        assert pattern['Sunday'] == {
            'avgReadiness': 'N/A', 'completion': 0, 'expected': 0, 'completionRate': 0,
            'green': 0, 'amber': 0, 'red': 0,
        }

    @pytest.mark.unit
    def test_team_and_exception_stats(self, two_week_snapshot):
        two_week_snapshot.teams = [
            TeamSnapshot('t1', 'Alpha Crew', 'North Yard', 'l1', 'Lena Leader'),
            TeamSnapshot('t2', 'Bravo Crew', 'South Yard', 'l2', None),
        ]
        two_week_snapshot.workers['dave'] = 'Dave Diaz'
        two_week_snapshot.memberships['dave'] = 't2'
        two_week_snapshot.schedules.extend(weekday_schedules('dave', 't2'))
        two_week_snapshot.check_ins.append(CheckInSnapshot.create('dave', '2024-02-05', 'Amber'))

        payload = aggregate_compliance(two_week_snapshot, RANGE_START, RANGE_END)
        alpha, bravo = payload['teamStats']

        assert alpha['teamName'] == 'Alpha Crew'
        assert (alpha['totalMembers'], alpha['activeMembers']) == (3, 2)
        assert (alpha['expectedCheckIns'], alpha['totalCheckIns'], alpha['completionRate']) == (25, 8, 32.0)
        assert alpha['caseCount'] == 1
        assert bravo['readiness'] == {'green': 0, 'amber': 1, 'red': 0}
        assert bravo['completionRate'] == 10.0
        assert bravo['teamLeaderName'] == 'Unknown'

        exception_stats = payload['exceptionStats']
        assert exception_stats['total'] == 1
        assert exception_stats['byType']['medical_leave'] == 1
        assert exception_stats['byType']['transfer'] == 0
        assert exception_stats['byTeam']['t1']['medical_leave'] == 1
        assert sum(exception_stats['byTeam']['t2'].values()) == 0


class TestPolicies:

    @pytest.mark.unit
    def test_check_in_days_count_as_expected_when_enabled(self):
        snapshot = AnalyticsSnapshot(
            workers={'w1': 'Worker One'},
            check_ins=[CheckInSnapshot.create('w1', '2024-02-10', 'Green')],
        )

        default = aggregate_compliance(snapshot, RANGE_START, RANGE_END)['summary']
        widened = aggregate_compliance(snapshot, RANGE_START, RANGE_END, include_check_in_days=True)['summary']

        assert (default['expectedCheckIns'], default['completionRate']) == (0, 0)
        assert (widened['expectedCheckIns'], widened['completionRate']) == (1, 100.0)

    @pytest.mark.unit
    def test_deactivated_schedules_still_count_for_history(self):
        snapshot = AnalyticsSnapshot(
            workers={'w1': 'Worker One'},
            schedules=[ScheduleSnapshot.create(worker_id='w1', day_of_week=1, is_active=False)],
        )

        historical = aggregate_compliance(snapshot, RANGE_START, RANGE_END)['summary']
        active_only = aggregate_compliance(snapshot, RANGE_START, RANGE_END, active_schedules_only=True)['summary']

        assert historical['expectedCheckIns'] == 2
        assert active_only['expectedCheckIns'] == 0

    @pytest.mark.unit
    def test_closed_exception_excuses_only_its_active_days(self):
        snapshot = AnalyticsSnapshot(
            workers={'w1': 'Worker One'},
            schedules=weekday_schedules('w1'),
            exceptions=[ExceptionSnapshot.create('w1', '2024-02-05', is_active=False,
                                                 deactivated_at='2024-02-08')],
        )

        summary = aggregate_compliance(snapshot, RANGE_START, RANGE_END)['summary']

        # Mon-Wed excused, Thursday onwards expected again
        assert summary['expectedCheckIns'] == 7

    @pytest.mark.unit
    def test_malformed_schedules_reported(self):
        snapshot = AnalyticsSnapshot(
            workers={'w1': 'Worker One'},
            schedules=[ScheduleSnapshot.create(worker_id='w1', day_of_week=9, id=42)],
            warnings=[DataIntegrityWarning(DataIntegrityWarning.ORPHANED_MEMBER, 'missing user', 'ghost')],
        )

        payload = aggregate_compliance(snapshot, RANGE_START, RANGE_END)

        assert payload['summary']['expectedCheckIns'] == 0
        kinds = [warning['kind'] for warning in payload['dataWarnings']]
        assert DataIntegrityWarning.ORPHANED_MEMBER in kinds
        assert DataIntegrityWarning.INVALID_DAY_OF_WEEK in kinds


class TestDeterminism:

    @pytest.mark.unit
    def test_same_snapshot_gives_identical_json(self, two_week_snapshot):
        first = json.dumps(aggregate_compliance(two_week_snapshot, RANGE_START, RANGE_END))
        second = json.dumps(aggregate_compliance(two_week_snapshot, RANGE_START, RANGE_END))

        assert first == second

    @pytest.mark.unit
    def test_snapshot_not_mutated(self, two_week_snapshot):
        check_ins_before = list(two_week_snapshot.check_ins)
        schedules_before = list(two_week_snapshot.schedules)

        ComplianceAggregator(two_week_snapshot).build(RANGE_START, RANGE_END)

        assert two_week_snapshot.check_ins == check_ins_before
        assert two_week_snapshot.schedules == schedules_before

    @pytest.mark.unit
    def test_empty_payload_has_populated_shape(self, two_week_snapshot):
        populated = aggregate_compliance(two_week_snapshot, RANGE_START, RANGE_END)
        empty = empty_payload(RANGE_START, RANGE_END)

        assert list(empty) == list(populated)
        assert list(empty['summary']) == list(populated['summary'])
        assert json.dumps(empty['summary']['completionRate']) == '0.0'
        assert empty['summary']['trend'] == {'completion': '+0.0%', 'readiness': '+0.0%'}
        assert len(empty['dailyTrends']) == len(populated['dailyTrends'])
        assert list(empty['dailyTrends'][0]) == list(populated['dailyTrends'][0])
        assert list(empty['weeklyPattern']) == list(populated['weeklyPattern'])
        assert list(empty['exceptionStats']['byType']) == list(populated['exceptionStats']['byType'])
        assert empty['workerStats'] == []
