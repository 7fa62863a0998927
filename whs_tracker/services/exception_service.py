"""
Exception service

Creates, closes and reopens worker exceptions. A worker has at most one
active exception. While it is open the worker's active schedules are
switched off; closing the exception switches the same schedules back on.

Closing never deletes: is_active is cleared and deactivated_at stamped so
analytics for earlier dates still see the worker as excused.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from whs_tracker.error_handlers.exceptions import (
    AuthorizationException,
    ConflictException,
    ResourceNotFoundException,
    ValidationException,
)
from whs_tracker.models import get_db, get_models
from whs_tracker.utils.validators import validate_required_fields
from .analytics_cache import SUPERVISOR_ANALYTICS_TAG, TEAM_ANALYTICS_TAG, invalidate_requesters
from .calendar_utils import parse_date_string
from .exception_resolver import EXCEPTION_TYPES

logger = logging.getLogger(__name__)

ALL_TEAMS_ROLES = ('whs_control_center', 'executive')


def _teams_in_scope(requester) -> List:
    Team = get_models()['Team']
    if requester.role == 'team_leader':
        return Team.query.filter_by(team_leader_id=requester.id).all()
    if requester.role == 'supervisor':
        return Team.query.filter_by(supervisor_id=requester.id).all()
    if requester.role in ALL_TEAMS_ROLES:
        return Team.query.all()
    return []


def _require_team_access(requester, team_id: Optional[str]):
    team = next((team for team in _teams_in_scope(requester) if team.id == team_id), None)
    if team is None:
        raise AuthorizationException('You do not manage this team')
    return team


def _invalidate(*teams):
    invalidate_requesters([team.team_leader_id for team in teams if team], [TEAM_ANALYTICS_TAG])
    invalidate_requesters([team.supervisor_id for team in teams if team], [SUPERVISOR_ANALYTICS_TAG])


def _active_exception_for(worker_id: str, exclude_id: Optional[int] = None):
    WorkerException = get_models()['WorkerException']
    query = WorkerException.query.filter_by(user_id=worker_id, is_active=True)
    if exclude_id is not None:
        query = query.filter(WorkerException.id != exclude_id)
    return query.first()


def _deactivate_schedules(worker_id: str, exception_id: int) -> int:
    WorkSchedule = get_models()['WorkSchedule']
    schedules = WorkSchedule.query.filter_by(worker_id=worker_id, is_active=True).all()
    for schedule in schedules:
        schedule.is_active = False
        schedule.deactivated_by_exception_id = exception_id
    return len(schedules)


def _reactivate_schedules(exception_id: int) -> int:
    WorkSchedule = get_models()['WorkSchedule']
    schedules = WorkSchedule.query.filter_by(deactivated_by_exception_id=exception_id, is_active=False).all()
    for schedule in schedules:
        schedule.is_active = True
        schedule.deactivated_by_exception_id = None
    return len(schedules)


def _get_exception(exception_id: int):
    WorkerException = get_models()['WorkerException']
    exception = WorkerException.query.get(exception_id)
    if exception is None:
        raise ResourceNotFoundException('Exception not found')
    return exception


def create_exception(requester, data: Optional[Dict]) -> Dict:
    """
    Open an exception for a member of a team the requester manages.

    A transfer moves the worker's membership to transfer_to_team_id and the
    exception is recorded against the target team.

    Raises:
        ValidationException: Missing/invalid type or dates
        AuthorizationException: Worker is outside the requester's teams
        ConflictException: Worker already has an active exception
    """
    models = get_models()
    TeamMember, Team, WorkerException = models['TeamMember'], models['Team'], models['WorkerException']
    data = validate_required_fields(data, ['worker_id', 'exception_type', 'start_date'])

    worker_id = data['worker_id']
    exception_type = data['exception_type']
    if exception_type not in EXCEPTION_TYPES:
        raise ValidationException(
            'Invalid exception type',
            details={'validTypes': list(EXCEPTION_TYPES)}
        )

    start_date = parse_date_string(data['start_date'])
    end_date = parse_date_string(data['end_date']) if data.get('end_date') else None
    if end_date is not None and end_date < start_date:
        raise ValidationException('end_date must be on or after start_date')

    membership = TeamMember.query.filter_by(user_id=worker_id).order_by(TeamMember.id).first()
    if membership is None:
        raise ResourceNotFoundException('Team member not found')
    team = _require_team_access(requester, membership.team_id)

    if _active_exception_for(worker_id) is not None:
        raise ConflictException('Worker already has an active exception. Close it before creating a new one.')

    target_team = team
    if exception_type == 'transfer':
        target_id = data.get('transfer_to_team_id')
        if not target_id:
            raise ValidationException('Transfer requires selecting a target team')
        if target_id == team.id:
            raise ValidationException('Cannot transfer worker to the same team')
        target_team = Team.query.get(target_id)
        if target_team is None:
            raise ResourceNotFoundException('Target team not found')
        membership.team_id = target_team.id

    db = get_db()
    exception = WorkerException(
        user_id=worker_id,
        team_id=target_team.id,
        exception_type=exception_type,
        reason=data.get('reason'),
        start_date=start_date,
        end_date=end_date,
        is_active=True,
        created_by=requester.id,
    )
    db.session.add(exception)
    db.session.flush()

    deactivated = _deactivate_schedules(worker_id, exception.id)
    db.session.commit()
    logger.info(
        f"{requester.role} {requester.id} opened {exception_type} exception {exception.id} "
        f"for {worker_id} ({deactivated} schedule(s) deactivated)"
    )

    _invalidate(team, target_team)

    result = {
        'message': 'Worker transferred successfully' if exception_type == 'transfer' else 'Exception created successfully',
        'exception': exception.to_dict(),
        'transferred': exception_type == 'transfer',
        'deactivatedSchedules': deactivated,
    }
    if deactivated:
        result['scheduleMessage'] = (
            f'{deactivated} active schedule(s) were automatically deactivated. '
            f'Schedule data is preserved for analytics.'
        )
    return result


def close_exception(requester, exception_id: int) -> Dict:
    """Soft-close an exception and reactivate the schedules it switched off."""
    exception = _get_exception(exception_id)
    team = _require_team_access(requester, exception.team_id)

    if not exception.is_active:
        raise ConflictException('Exception is already closed')

    exception.is_active = False
    exception.deactivated_at = datetime.now()
    reactivated = _reactivate_schedules(exception.id)
    get_db().session.commit()
    logger.info(f"{requester.role} {requester.id} closed exception {exception.id} ({reactivated} schedule(s) reactivated)")

    _invalidate(team)
    return {
        'message': 'Exception closed successfully',
        'exception': exception.to_dict(),
        'reactivatedSchedules': reactivated,
    }


def reopen_exception(requester, exception_id: int) -> Dict:
    """
    Reopen a closed exception.

    Raises:
        ConflictException: The exception is open, or the worker has another active exception
    """
    exception = _get_exception(exception_id)
    team = _require_team_access(requester, exception.team_id)

    if exception.is_active:
        raise ConflictException('Exception is already active')
    if _active_exception_for(exception.user_id, exclude_id=exception.id) is not None:
        raise ConflictException('Worker already has another active exception')

    exception.is_active = True
    exception.deactivated_at = None
    deactivated = _deactivate_schedules(exception.user_id, exception.id)
    get_db().session.commit()
    logger.info(f"{requester.role} {requester.id} reopened exception {exception.id}")

    _invalidate(team)
    return {
        'message': 'Exception reopened successfully',
        'exception': exception.to_dict(),
        'deactivatedSchedules': deactivated,
    }


def list_team_exceptions(requester, active_only: bool = False,
                         exception_type: Optional[str] = None) -> List[Dict]:
    """Exceptions of the teams in the requester's scope, newest start first."""
    WorkerException = get_models()['WorkerException']
    team_ids = [team.id for team in _teams_in_scope(requester)]
    if not team_ids:
        return []

    query = WorkerException.query.filter(WorkerException.team_id.in_(team_ids))
    if active_only:
        query = query.filter_by(is_active=True)
    if exception_type:
        if exception_type not in EXCEPTION_TYPES:
            raise ValidationException('Invalid exception type')
        query = query.filter_by(exception_type=exception_type)

    exceptions = query.order_by(WorkerException.start_date.desc(), WorkerException.id.desc()).all()
    return [exception.to_dict() for exception in exceptions]
