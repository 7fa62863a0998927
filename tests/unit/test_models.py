"""
Unit tests for database models.

Tests cover:
- Model creation and defaults
- Display names
- Snapshot conversion for the analytics engine
- Table constraints
"""
from datetime import date, datetime

import pytest
from sqlalchemy.exc import IntegrityError

from whs_tracker.models import display_name_for


class TestDisplayName:

    @pytest.mark.unit
    @pytest.mark.parametrize('kwargs,expected', [
        ({'full_name': ' Jane Doe ', 'first_name': 'J'}, 'Jane Doe'),
        ({'first_name': 'Jane', 'last_name': 'Doe'}, 'Jane Doe'),
        ({'first_name': 'Jane'}, 'Jane'),
        ({'email': 'jane.doe@example.com'}, 'jane.doe'),
        ({}, 'Unknown'),
    ])
    def test_fallbacks(self, kwargs, expected):
        assert display_name_for(**kwargs) == expected


class TestUserModel:

    @pytest.mark.unit
    def test_user_defaults(self, user_factory):
        user = user_factory(email='new@example.com', first_name=None, last_name=None)

        assert len(user.id) == 36
        assert user.role == 'worker'
        assert user.is_active is True
        assert user.display_name == 'new'
        assert user.has_role('worker', 'team_leader') is True

    @pytest.mark.unit
    def test_user_to_dict(self, worker):
        data = worker.to_dict()

        assert data['name'] == 'Will Worker'
        assert data['email'] == 'will@example.com'


class TestTeamModel:

    @pytest.mark.unit
    def test_team_members(self, team, worker, leader):
        assert team.member_ids() == [worker.id]
        assert team.to_dict()['team_leader_name'] == 'Lena Leader'
        assert team.to_dict()['member_count'] == 1

    @pytest.mark.unit
    def test_member_unique_per_team(self, models, db, team, worker):
        db.session.add(models['TeamMember'](team_id=team.id, user_id=worker.id))

        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()


class TestWorkScheduleModel:

    @pytest.mark.unit
    def test_recurring_snapshot(self, schedule_factory, worker, team):
        schedule = schedule_factory(worker, team, day_of_week=1, effective_date=date(2024, 2, 1))

        snapshot = schedule.to_snapshot()

        assert schedule.is_recurring is True
        assert snapshot.worker_id == worker.id
        assert snapshot.day_of_week == 1
        assert snapshot.effective_date == date(2024, 2, 1)
        assert snapshot.scheduled_date is None
        assert snapshot.id == schedule.id

    @pytest.mark.unit
    def test_to_dict(self, schedule_factory, worker, team):
        schedule = schedule_factory(worker, team, scheduled_date=date(2024, 2, 5))

        data = schedule.to_dict()

        assert data['scheduled_date'] == '2024-02-05'
        assert data['worker_name'] == 'Will Worker'
        assert data['is_active'] is True

    @pytest.mark.unit
    def test_exactly_one_of_date_or_weekday(self, schedule_factory, db, worker, team):
        with pytest.raises(IntegrityError):
            schedule_factory(worker, team, scheduled_date=date(2024, 2, 5), day_of_week=1)
        db.session.rollback()

        with pytest.raises(IntegrityError):
            schedule_factory(worker, team)
        db.session.rollback()

    @pytest.mark.unit
    def test_day_of_week_range(self, schedule_factory, db, worker, team):
        with pytest.raises(IntegrityError):
            schedule_factory(worker, team, day_of_week=7)
        db.session.rollback()


class TestWorkerExceptionModel:

    @pytest.mark.unit
    def test_closed_exception_snapshot_uses_calendar_date(self, exception_factory, worker, team):
        exception = exception_factory(
            worker, team,
            start_date=date(2024, 2, 1),
            is_active=False,
            deactivated_at=datetime(2024, 2, 10, 16, 45),
        )

        snapshot = exception.to_snapshot()

        assert snapshot.deactivated_at == date(2024, 2, 10)
        assert snapshot.is_active is False
        assert snapshot.team_id == team.id

    @pytest.mark.unit
    def test_to_dict_label(self, exception_factory, worker, team):
        exception = exception_factory(worker, team, exception_type='medical_leave')

        assert exception.to_dict()['exception_type_label'] == 'Medical Leave'


class TestDailyCheckInModel:

    @pytest.mark.unit
    def test_snapshot(self, checkin_factory, worker):
        check_in = checkin_factory(worker, date(2024, 2, 5), 'Yellow')

        snapshot = check_in.to_snapshot()

        assert snapshot.check_in_date == date(2024, 2, 5)
        assert snapshot.category == 'amber'

    @pytest.mark.unit
    def test_one_check_in_per_worker_per_day(self, checkin_factory, db, worker):
        checkin_factory(worker, date(2024, 2, 5))

        with pytest.raises(IntegrityError):
            checkin_factory(worker, date(2024, 2, 5), 'Red')
        db.session.rollback()
