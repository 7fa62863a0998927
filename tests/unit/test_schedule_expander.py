"""
Unit tests for schedule expansion.

Tests cover:
- One-off and weekly recurring schedules
- Effective/expiry bounds and range clipping
- Active-only expansion and check-in days
- Malformed schedules reported as data integrity warnings
"""
from datetime import date

import pytest

from whs_tracker.error_handlers.exceptions import DataIntegrityWarning
from whs_tracker.services.checkin_reconciler import CheckInSnapshot
from whs_tracker.services.schedule_expander import (
    ScheduleSnapshot,
    expand_schedules,
    find_next_scheduled_date,
    schedule_matches_date,
    scheduled_dates_for_worker,
)

FEB_START = date(2024, 2, 1)   # Thursday
FEB_END = date(2024, 2, 29)    # Thursday


def recurring(worker_id='w1', day_of_week=1, **kwargs):
    return ScheduleSnapshot.create(worker_id=worker_id, day_of_week=day_of_week, **kwargs)


def one_off(worker_id='w1', scheduled_date='2024-02-05', **kwargs):
    return ScheduleSnapshot.create(worker_id=worker_id, scheduled_date=scheduled_date, **kwargs)


class TestExpandSchedules:

    @pytest.mark.unit
    def test_weekly_recurrence_over_month(self):
        index = expand_schedules([recurring(day_of_week=1)], FEB_START, FEB_END)

        assert index.dates_for('w1') == [date(2024, 2, 5), date(2024, 2, 12), date(2024, 2, 19), date(2024, 2, 26)]
        assert index.warnings == []

    @pytest.mark.unit
    def test_recurrence_respects_effective_and_expiry(self):
        schedule = recurring(day_of_week=1, effective_date='2024-02-06', expiry_date='2024-02-19')
        index = expand_schedules([schedule], FEB_START, FEB_END)

        assert index.dates_for('w1') == [date(2024, 2, 12), date(2024, 2, 19)]

    @pytest.mark.unit
    def test_mondays_in_january(self):
        index = expand_schedules([recurring(day_of_week=1)], date(2024, 1, 1), date(2024, 1, 31))

        assert index.dates_for('w1') == [
            date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15), date(2024, 1, 22), date(2024, 1, 29),
        ]

    @pytest.mark.unit
    def test_expiry_before_effective_matches_nothing(self):
        schedule = recurring(day_of_week=1, effective_date='2024-02-20', expiry_date='2024-02-10')
        index = expand_schedules([schedule], FEB_START, FEB_END)

        assert index.dates_for('w1') == []
        assert index.warnings == []
        assert index.total_assignments() == 0

    @pytest.mark.unit
    def test_one_off_inside_and_outside_range(self):
        schedules = [one_off(scheduled_date='2024-02-05'), one_off(scheduled_date='2024-03-05')]
        index = expand_schedules(schedules, FEB_START, FEB_END)

        assert index.dates_for('w1') == [date(2024, 2, 5)]

    @pytest.mark.unit
    def test_one_off_outside_its_bounds_is_skipped(self):
        schedule = one_off(scheduled_date='2024-02-05', effective_date='2024-02-10')
        index = expand_schedules([schedule], FEB_START, FEB_END)

        assert index.dates_for('w1') == []

    @pytest.mark.unit
    def test_same_worker_same_day_counts_once(self):
        schedules = [recurring(day_of_week=1), one_off(scheduled_date='2024-02-05')]
        index = expand_schedules(schedules, FEB_START, FEB_END)

        assert index.workers_on(date(2024, 2, 5)) == frozenset({'w1'})
        assert index.total_assignments() == 4

    @pytest.mark.unit
    def test_inactive_schedules(self):
        schedules = [recurring(day_of_week=1, is_active=False), recurring('w2', day_of_week=1)]

        historical = expand_schedules(schedules, FEB_START, FEB_END)
        forward = expand_schedules(schedules, FEB_START, FEB_END, active_only=True)

        assert historical.scheduled_workers() == {'w1', 'w2'}
        assert forward.scheduled_workers() == {'w2'}

    @pytest.mark.unit
    def test_worker_filter(self):
        schedules = [recurring('w1'), recurring('w2')]
        index = expand_schedules(schedules, FEB_START, FEB_END, worker_ids=['w2'])

        assert index.scheduled_workers() == {'w2'}

    @pytest.mark.unit
    def test_check_in_days_count_as_scheduled(self):
        check_ins = [
            CheckInSnapshot.create('w1', '2024-02-07', 'Green'),
            CheckInSnapshot.create('w1', '2024-03-07', 'Green'),
        ]
        index = expand_schedules([], FEB_START, FEB_END, check_ins=check_ins)

        assert index.dates_for('w1') == [date(2024, 2, 7)]

    @pytest.mark.unit
    def test_malformed_schedules_are_skipped_with_warnings(self):
        schedules = [
            recurring(day_of_week=7, id=1),
            ScheduleSnapshot.create(worker_id='w1', id=2),
            ScheduleSnapshot.create(worker_id='w1', scheduled_date='2024-02-05', day_of_week=1, id=3),
            recurring('w2', day_of_week=1, id=4),
        ]
        index = expand_schedules(schedules, FEB_START, FEB_END)

        assert index.scheduled_workers() == {'w2'}
        assert [(w.kind, w.record_id) for w in index.warnings] == [
            (DataIntegrityWarning.INVALID_DAY_OF_WEEK, 1),
            (DataIntegrityWarning.AMBIGUOUS_SCHEDULE, 2),
            (DataIntegrityWarning.AMBIGUOUS_SCHEDULE, 3),
        ]

    @pytest.mark.unit
    def test_single_day_range(self):
        index = expand_schedules([recurring(day_of_week=4)], FEB_START, FEB_START)

        assert index.dates_for('w1') == [FEB_START]

    @pytest.mark.unit
    def test_inputs_are_not_mutated(self):
        schedules = [recurring(day_of_week=1), one_off()]
        snapshot_before = list(schedules)

        expand_schedules(schedules, FEB_START, FEB_END)

        assert schedules == snapshot_before


class TestSingleScheduleHelpers:

    @pytest.mark.unit
    def test_schedule_matches_date(self):
        assert schedule_matches_date(recurring(day_of_week=0), date(2024, 2, 4)) is True
        assert schedule_matches_date(recurring(day_of_week=0), date(2024, 2, 5)) is False
        assert schedule_matches_date(one_off(), date(2024, 2, 5)) is True
        assert schedule_matches_date(ScheduleSnapshot.create(worker_id='w1'), date(2024, 2, 5)) is False

    @pytest.mark.unit
    def test_scheduled_dates_for_worker(self):
        schedules = [recurring(day_of_week=6), one_off(scheduled_date='2024-02-07')]

        assert scheduled_dates_for_worker(schedules, date(2024, 2, 5), date(2024, 2, 11)) == [
            date(2024, 2, 7), date(2024, 2, 10)
        ]

    @pytest.mark.unit
    def test_find_next_scheduled_date(self):
        schedules = [recurring(day_of_week=1)]

        assert find_next_scheduled_date(schedules, date(2024, 2, 5)) == date(2024, 2, 12)
        assert find_next_scheduled_date([], date(2024, 2, 5)) is None
        assert find_next_scheduled_date([one_off(scheduled_date='2024-01-01')], date(2024, 2, 5)) is None
