"""
Pytest configuration and fixtures for WHS compliance tracker tests.

This module provides shared fixtures for:
- Flask application with test configuration
- Database setup and teardown
- Model factories for creating test data
- Request helpers carrying the requester identity header
"""
import itertools
from datetime import date, datetime

import pytest

from whs_tracker import create_app
from whs_tracker.extensions import db as _db
from whs_tracker.routes.auth import USER_ID_HEADER


@pytest.fixture(scope='session')
def app():
    """
    Create application for the tests.

    Uses TestingConfig with in-memory SQLite and the in-memory analytics
    cache. Scope is 'session' because the model classes are bound to the
    shared SQLAlchemy metadata once per process.
    """
    app = create_app('testing')
    app.config.update({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'WTF_CSRF_ENABLED': False,
        'RATELIMIT_ENABLED': False,
    })

    return app


@pytest.fixture(scope='function')
def db(app):
    """
    Create database for the tests.

    Creates all tables before each test function and drops them after.
    The analytics cache is emptied as well so cached payloads never leak
    between tests.
    """
    with app.app_context():
        _db.create_all()
        app.extensions['analytics_cache'].clear()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope='function')
def client(app, db):
    """Test client for the app."""
    with app.test_client() as client:
        with app.app_context():
            yield client


@pytest.fixture(scope='function')
def models(app, db):
    """All model classes registered by create_app()."""
    from whs_tracker.models import get_models
    return get_models()


@pytest.fixture
def cache(app, db):
    """The analytics cache registered on the app."""
    return app.extensions['analytics_cache']


@pytest.fixture
def auth_headers():
    """
    Build request headers identifying the requester.

    Usage:
        client.get('/api/analytics/team', headers=auth_headers(leader))
    """
    def _headers(user):
        return {USER_ID_HEADER: getattr(user, 'id', user)}

    return _headers


# =============================================================================
# Model Factories
# =============================================================================

@pytest.fixture
def user_factory(models, db):
    """
    Factory for creating User instances.

    Usage:
        worker = user_factory(full_name='Jane Doe')
        leader = user_factory(role='team_leader')
    """
    counter = itertools.count(1)

    def _create_user(**kwargs):
        User = models['User']
        number = next(counter)
        defaults = {
            'email': f'user{number}@example.com',
            'first_name': 'Test',
            'last_name': f'User {number}',
            'role': 'worker',
            'is_active': True,
        }
        defaults.update(kwargs)
        user = User(**defaults)
        db.session.add(user)
        db.session.commit()
        return user

    return _create_user


@pytest.fixture
def team_factory(models, db, user_factory):
    """
    Factory for creating Team instances with members.

    Creates a team leader if none is given.

    Usage:
        team = team_factory(members=[worker_a, worker_b])
        team = team_factory(team_leader=leader, supervisor=supervisor)
    """
    counter = itertools.count(1)

    def _create_team(team_leader=None, supervisor=None, members=(), **kwargs):
        Team, TeamMember = models['Team'], models['TeamMember']
        number = next(counter)

        if team_leader is None:
            team_leader = user_factory(role='team_leader', full_name=f'Leader {number}')

        defaults = {
            'name': f'Team {number}',
            'site_location': 'Main Site',
            'team_leader_id': team_leader.id,
            'supervisor_id': supervisor.id if supervisor else None,
        }
        defaults.update(kwargs)
        team = Team(**defaults)
        db.session.add(team)
        db.session.flush()

        for member in members:
            db.session.add(TeamMember(team_id=team.id, user_id=getattr(member, 'id', member)))
        db.session.commit()
        return team

    return _create_team


@pytest.fixture
def schedule_factory(models, db):
    """
    Factory for creating WorkSchedule instances.

    Usage:
        schedule_factory(worker, team, scheduled_date=date(2024, 2, 5))
        schedule_factory(worker, team, day_of_week=1, effective_date=date(2024, 2, 1))
    """
    def _create_schedule(worker, team, **kwargs):
        WorkSchedule = models['WorkSchedule']
        defaults = {
            'worker_id': worker.id,
            'team_id': team.id,
            'start_time': '07:00',
            'end_time': '15:30',
            'is_active': True,
        }
        defaults.update(kwargs)
        schedule = WorkSchedule(**defaults)
        db.session.add(schedule)
        db.session.commit()
        return schedule

    return _create_schedule


@pytest.fixture
def exception_factory(models, db):
    """
    Factory for creating WorkerException instances.

    Usage:
        exception_factory(worker, team, start_date=date(2024, 2, 10))
        exception_factory(worker, team, is_active=False, deactivated_at=datetime(2024, 2, 12, 9))
    """
    def _create_exception(worker, team, **kwargs):
        WorkerException = models['WorkerException']
        defaults = {
            'user_id': worker.id,
            'team_id': team.id,
            'exception_type': 'medical_leave',
            'start_date': date.today(),
            'is_active': True,
        }
        defaults.update(kwargs)
        exception = WorkerException(**defaults)
        db.session.add(exception)
        db.session.commit()
        return exception

    return _create_exception


@pytest.fixture
def checkin_factory(models, db):
    """
    Factory for creating DailyCheckIn instances.

    Usage:
        checkin_factory(worker, date(2024, 2, 5), 'Green')
    """
    def _create_check_in(worker, check_in_date, predicted_readiness='Green', **kwargs):
        DailyCheckIn = models['DailyCheckIn']
        defaults = {
            'user_id': worker.id,
            'check_in_date': check_in_date,
            'predicted_readiness': predicted_readiness,
            'pain_level': 0,
            'fatigue_level': 2,
            'stress_level': 1,
            'sleep_quality': 8,
            'created_at': datetime(check_in_date.year, check_in_date.month, check_in_date.day, 7, 0),
        }
        defaults.update(kwargs)
        check_in = DailyCheckIn(**defaults)
        db.session.add(check_in)
        db.session.commit()
        return check_in

    return _create_check_in


# =============================================================================
# Helper Fixtures
# =============================================================================

@pytest.fixture
def leader(user_factory):
    """A team leader."""
    return user_factory(role='team_leader', full_name='Lena Leader', email='lena@example.com')


@pytest.fixture
def supervisor(user_factory):
    """A supervisor."""
    return user_factory(role='supervisor', full_name='Sam Supervisor', email='sam@example.com')


@pytest.fixture
def worker(user_factory):
    """A single worker."""
    return user_factory(full_name='Will Worker', email='will@example.com')


@pytest.fixture
def team(team_factory, leader, supervisor, worker):
    """A team led by `leader`, supervised by `supervisor`, with `worker` as its only member."""
    return team_factory(team_leader=leader, supervisor=supervisor, members=[worker], name='Alpha Crew')
