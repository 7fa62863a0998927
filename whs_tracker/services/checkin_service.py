"""
Check-in service
Daily readiness check-ins submitted by workers
"""
import logging
from typing import Dict, Optional

from whs_tracker.error_handlers.exceptions import ConflictException, ValidationException
from whs_tracker.models import get_db, get_models
from whs_tracker.utils.validators import validate_int_range
from .analytics_cache import SUPERVISOR_ANALYTICS_TAG, TEAM_ANALYTICS_TAG, invalidate_requesters
from .calendar_utils import format_date_string, parse_date_string, today, validate_date_range
from .checkin_reconciler import AMBER, GREEN, RED, normalize_readiness
from .exception_resolver import filter_active_exceptions, get_exception_type_label

logger = logging.getLogger(__name__)

STORED_READINESS = {GREEN: 'Green', AMBER: 'Amber', RED: 'Red'}

HEALTH_SIGNALS = (
    ('painLevel', 'pain_level', 10),
    ('fatigueLevel', 'fatigue_level', 10),
    ('stressLevel', 'stress_level', 10),
    ('sleepQuality', 'sleep_quality', 12),
)

HISTORY_MAX_LIMIT = 100
HISTORY_MAX_DAYS = 365


def _worker_teams(worker_id: str):
    models = get_models()
    TeamMember, Team = models['TeamMember'], models['Team']
    team_ids = [m.team_id for m in TeamMember.query.filter_by(user_id=worker_id).all()]
    if not team_ids:
        return []
    return Team.query.filter(Team.id.in_(team_ids)).all()


def submit_check_in(worker_id: str, data: Optional[Dict]) -> Dict:
    """
    Record the worker's check-in for a date (today unless checkInDate is given).

    Raises:
        ValidationException: Invalid readiness or health values, missing notes
            for Red, or the worker is excused by an exception on that date
        ConflictException: The worker already checked in on that date
    """
    models = get_models()
    DailyCheckIn, WorkerException = models['DailyCheckIn'], models['WorkerException']
    data = data or {}

    category = normalize_readiness(data.get('predictedReadiness'))
    if category is None:
        raise ValidationException('Invalid predicted readiness value')

    signals = {}
    for field, column, maximum in HEALTH_SIGNALS:
        if data.get(field) is None:
            raise ValidationException(f'{field} is required')
        signals[column] = validate_int_range(data.get(field), field, 0, maximum)

    notes = (data.get('additionalNotes') or '').strip()
    if category == RED and not notes:
        raise ValidationException(
            'Additional notes are required when you are not fit to work. '
            'Please explain your condition so your team leader can understand your situation.'
        )

    check_in_date = parse_date_string(data['checkInDate']) if data.get('checkInDate') else today()

    exceptions = [e.to_snapshot() for e in WorkerException.query.filter_by(user_id=worker_id).all()]
    covering = filter_active_exceptions(exceptions, check_in_date)
    if covering:
        raise ValidationException(
            f'You have an active {get_exception_type_label(covering[0].exception_type)} exception '
            f'on {format_date_string(check_in_date)} and do not need to check in',
            details={'exceptionId': covering[0].id}
        )

    if DailyCheckIn.query.filter_by(user_id=worker_id, check_in_date=check_in_date).first():
        raise ConflictException(f'Already checked in on {format_date_string(check_in_date)}')

    db = get_db()
    check_in = DailyCheckIn(
        user_id=worker_id,
        check_in_date=check_in_date,
        predicted_readiness=STORED_READINESS[category],
        additional_notes=notes or None,
        **signals
    )
    db.session.add(check_in)
    db.session.commit()
    logger.info(f"Worker {worker_id} checked in for {format_date_string(check_in_date)} ({check_in.predicted_readiness})")

    teams = _worker_teams(worker_id)
    invalidate_requesters([team.team_leader_id for team in teams], [TEAM_ANALYTICS_TAG])
    invalidate_requesters([team.supervisor_id for team in teams], [SUPERVISOR_ANALYTICS_TAG])

    return check_in.to_dict()


def worker_check_in_history(worker_id: str, start_value: Optional[str] = None,
                            end_value: Optional[str] = None, page: int = 1, limit: int = 10) -> Dict:
    """Paginated check-ins of a worker, newest first, optionally within a date range."""
    DailyCheckIn = get_models()['DailyCheckIn']

    page = validate_int_range(page, 'page', 1, 10000)
    limit = validate_int_range(limit, 'limit', 1, HISTORY_MAX_LIMIT)

    query = DailyCheckIn.query.filter_by(user_id=worker_id)
    if start_value or end_value:
        start = parse_date_string(start_value) if start_value else None
        end = parse_date_string(end_value) if end_value else today()
        if start is not None:
            validate_date_range(start, end, HISTORY_MAX_DAYS)
            query = query.filter(DailyCheckIn.check_in_date >= start)
        query = query.filter(DailyCheckIn.check_in_date <= end)

    total = query.count()
    check_ins = query.order_by(
        DailyCheckIn.check_in_date.desc(), DailyCheckIn.created_at.desc()
    ).offset((page - 1) * limit).limit(limit).all()

    return {
        'checkIns': [check_in.to_dict() for check_in in check_ins],
        'pagination': {
            'page': page,
            'limit': limit,
            'total': total,
            'totalPages': (total + limit - 1) // limit,
        },
    }
