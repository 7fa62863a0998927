"""
Unit tests for check-in reconciliation.
"""
from datetime import date, datetime

import pytest

from whs_tracker.services.checkin_reconciler import (
    CheckInSnapshot,
    check_ins_in_range,
    count_by_category,
    dedupe_check_ins,
    latest_check_in_by_worker,
    normalize_readiness,
    reconcile_check_ins,
)
from whs_tracker.services.exception_resolver import ExceptionSnapshot, group_exceptions_by_worker


def check_in(worker_id, day, readiness='Green', **kwargs):
    return CheckInSnapshot.create(worker_id, day, readiness, **kwargs)


class TestNormalizeReadiness:

    @pytest.mark.unit
    @pytest.mark.parametrize('value,expected', [
        ('Green', 'green'),
        ('GREEN', 'green'),
        ('Yellow', 'amber'),
        ('amber', 'amber'),
        (' Red ', 'red'),
        ('Blue', None),
        ('', None),
        (None, None),
    ])
    def test_normalize(self, value, expected):
        assert normalize_readiness(value) == expected


class TestReconcile:

    @pytest.mark.unit
    def test_check_ins_on_excused_days_are_dropped(self):
        exceptions = group_exceptions_by_worker([
            ExceptionSnapshot.create('w1', '2024-02-05', end_date='2024-02-07'),
        ])
        check_ins = [
            check_in('w1', '2024-02-04'),
            check_in('w1', '2024-02-06'),
            check_in('w2', '2024-02-06'),
            check_in('w1', '2024-02-08'),
        ]

        valid = reconcile_check_ins(check_ins, exceptions)

        assert [(c.worker_id, c.check_in_date.day) for c in valid] == [('w1', 4), ('w2', 6), ('w1', 8)]
        assert len(check_ins) == 4

    @pytest.mark.unit
    def test_closed_exception_keeps_earlier_days_excused(self):
        exceptions = group_exceptions_by_worker([
            ExceptionSnapshot.create('w1', '2024-02-01', is_active=False, deactivated_at='2024-02-10'),
        ])
        check_ins = [check_in('w1', '2024-02-09'), check_in('w1', '2024-02-10')]

        valid = reconcile_check_ins(check_ins, exceptions)

        assert [c.check_in_date for c in valid] == [date(2024, 2, 10)]


class TestDedupe:

    @pytest.mark.unit
    def test_latest_created_wins(self):
        early = check_in('w1', '2024-02-05', 'Red', id=1, created_at=datetime(2024, 2, 5, 7))
        late = check_in('w1', '2024-02-05', 'Green', id=2, created_at=datetime(2024, 2, 5, 9))

        assert dedupe_check_ins([late, early]) == [late]

    @pytest.mark.unit
    def test_ordered_by_date_then_worker(self):
        check_ins = [check_in('w2', '2024-02-06'), check_in('w1', '2024-02-06'), check_in('w3', '2024-02-05')]

        result = dedupe_check_ins(check_ins)

        assert [(c.check_in_date.day, c.worker_id) for c in result] == [(5, 'w3'), (6, 'w1'), (6, 'w2')]


class TestLatestAndCounts:

    @pytest.mark.unit
    def test_latest_check_in_by_worker(self):
        check_ins = [
            check_in('w1', '2024-02-07', 'Red'),
            check_in('w1', '2024-02-05', 'Green'),
            check_in('w2', '2024-02-06', 'Yellow'),
        ]

        latest = latest_check_in_by_worker(check_ins)

        assert latest['w1'].readiness == 'Red'
        assert latest['w2'].category == 'amber'

    @pytest.mark.unit
    def test_count_by_category_skips_unknown_labels(self):
        check_ins = [check_in('w1', '2024-02-05', 'Green'), check_in('w2', '2024-02-05', 'Amber'),
                     check_in('w3', '2024-02-05', 'Yellow'), check_in('w4', '2024-02-05', 'Purple')]

        assert count_by_category(check_ins) == {'green': 1, 'amber': 2, 'red': 0}

    @pytest.mark.unit
    def test_check_ins_in_range(self):
        check_ins = [check_in('w1', '2024-01-31'), check_in('w1', '2024-02-01'), check_in('w1', '2024-02-29')]

        assert len(check_ins_in_range(check_ins, date(2024, 2, 1), date(2024, 2, 29))) == 2
