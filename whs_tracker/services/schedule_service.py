"""
Schedule service

Team leaders assign work schedules to the workers of their team. A request
either names a single scheduled_date or a start_date/end_date window with
days_of_week, which creates one recurring record per weekday.
"""
import logging
from datetime import timedelta
from typing import Dict, List, Optional

from flask import current_app

from whs_tracker.error_handlers.exceptions import (
    ConflictException,
    ResourceNotFoundException,
    ValidationException,
)
from whs_tracker.models import get_db, get_models
from .analytics_cache import SUPERVISOR_ANALYTICS_TAG, TEAM_ANALYTICS_TAG, invalidate_requesters
from .calendar_utils import (
    WEEKDAY_NAMES,
    compare_time,
    format_date_string,
    iter_dates,
    parse_date_string,
    parse_time_string,
    today,
    validate_date_range,
)
from .exception_resolver import find_conflicting_exception, get_exception_type_label
from .schedule_expander import find_next_scheduled_date, schedule_matches_date

logger = logging.getLogger(__name__)

MY_SCHEDULE_DEFAULT_DAYS = 7
MY_SCHEDULE_MAX_DAYS = 90


def invalidate_team_analytics(team) -> int:
    """Drop cached analytics of the team's leader and supervisor."""
    return invalidate_requesters([team.team_leader_id], [TEAM_ANALYTICS_TAG]) + \
        invalidate_requesters([team.supervisor_id], [SUPERVISOR_ANALYTICS_TAG])


def get_leader_team(team_leader_id: str):
    Team = get_models()['Team']
    team = Team.query.filter_by(team_leader_id=team_leader_id).order_by(Team.created_at).first()
    if team is None:
        raise ResourceNotFoundException('Team not found')
    return team


def _require_member(team, worker_id: str):
    models = get_models()
    TeamMember, User = models['TeamMember'], models['User']

    membership = TeamMember.query.filter_by(team_id=team.id, user_id=worker_id).first()
    if membership is None:
        raise ResourceNotFoundException('Worker not found in your team')

    worker = User.query.get(worker_id)
    if worker is None or worker.role != 'worker':
        raise ValidationException('Invalid worker or user is not a worker')
    return worker


def _parse_optional_time(data: Dict, field: str) -> Optional[str]:
    value = data.get(field)
    return parse_time_string(value) if value else None


def _parse_schedule_request(data: Dict) -> Dict:
    """Validate a create request and return normalized field values."""
    if not data.get('worker_id') or not data.get('start_time') or not data.get('end_time'):
        raise ValidationException('worker_id, start_time, and end_time are required')

    start_time = parse_time_string(data['start_time'])
    end_time = parse_time_string(data['end_time'])
    if compare_time(end_time, start_time) <= 0:
        raise ValidationException('end_time must be after start_time')

    requires_daily_checkin = bool(data.get('requires_daily_checkin', False))
    daily_start = _parse_optional_time(data, 'daily_checkin_start_time')
    daily_end = _parse_optional_time(data, 'daily_checkin_end_time')
    if requires_daily_checkin:
        if not daily_start or not daily_end:
            raise ValidationException(
                'daily_checkin_start_time and daily_checkin_end_time are required '
                'when requires_daily_checkin is true'
            )
        if compare_time(daily_end, daily_start) <= 0:
            raise ValidationException('daily_checkin_end_time must be after daily_checkin_start_time')

    fields = {
        'worker_id': data['worker_id'],
        'start_time': start_time,
        'end_time': end_time,
        'check_in_window_start': _parse_optional_time(data, 'check_in_window_start'),
        'check_in_window_end': _parse_optional_time(data, 'check_in_window_end'),
        'requires_daily_checkin': requires_daily_checkin,
        'daily_checkin_start_time': daily_start,
        'daily_checkin_end_time': daily_end,
        'notes': data.get('notes'),
    }

    has_window = data.get('start_date') and data.get('end_date') and data.get('days_of_week') is not None
    if has_window:
        start_date = parse_date_string(data['start_date'])
        end_date = parse_date_string(data['end_date'])
        if start_date > end_date:
            raise ValidationException('start_date must be before or equal to end_date')

        days = data['days_of_week']
        if not isinstance(days, list) or not days:
            raise ValidationException('days_of_week must be a non-empty array of day numbers (0-6)')
        if any(isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6 for day in days):
            raise ValidationException('days_of_week must contain integers between 0 (Sunday) and 6 (Saturday)')

        fields.update(recurring=True, days_of_week=sorted(set(days)),
                      effective_date=start_date, expiry_date=end_date)
    elif data.get('scheduled_date'):
        fields.update(recurring=False, scheduled_date=parse_date_string(data['scheduled_date']))
    else:
        raise ValidationException('Either scheduled_date OR (start_date, end_date, and days_of_week) are required')

    return fields


def _check_duplicates(fields: Dict):
    WorkSchedule = get_models()['WorkSchedule']

    if fields['recurring']:
        existing = WorkSchedule.query.filter(
            WorkSchedule.worker_id == fields['worker_id'],
            WorkSchedule.scheduled_date.is_(None),
            WorkSchedule.day_of_week.in_(fields['days_of_week']),
        ).order_by(WorkSchedule.day_of_week).all()
        if existing:
            conflicting = ', '.join(
                f"{WEEKDAY_NAMES[s.day_of_week]} ({'active' if s.is_active else 'inactive'})" for s in existing
            )
            raise ConflictException(
                f'Schedule already exists for this worker on: {conflicting}. '
                f'Please edit or activate the existing schedule instead.'
            )
    else:
        existing = WorkSchedule.query.filter(
            WorkSchedule.worker_id == fields['worker_id'],
            WorkSchedule.scheduled_date == fields['scheduled_date'],
        ).first()
        if existing:
            status = 'active' if existing.is_active else 'inactive'
            raise ConflictException(
                f"Schedule already exists for this worker on "
                f"{format_date_string(fields['scheduled_date'])} ({status}). "
                f"Please edit or activate the existing schedule instead."
            )


def _check_exception_conflict(fields: Dict):
    WorkerException = get_models()['WorkerException']
    if fields['recurring']:
        window = (fields['effective_date'], fields['expiry_date'])
    else:
        window = (fields['scheduled_date'], fields['scheduled_date'])

    exceptions = WorkerException.query.filter_by(user_id=fields['worker_id']).all()
    conflict = find_conflicting_exception([e.to_snapshot() for e in exceptions], *window)
    if conflict is not None:
        raise ConflictException(
            f'Worker has an active {get_exception_type_label(conflict.exception_type)} exception '
            f'during this period',
            details={'exceptionId': conflict.id}
        )


def create_schedules(team_leader_id: str, data: Optional[Dict]) -> Dict:
    """
    Create one single-date schedule or one recurring schedule per weekday.

    Raises:
        ValidationException: Malformed request (FormatError for dates/times)
        ResourceNotFoundException: Requester has no team or worker is not a member
        ConflictException: Duplicate schedule or the worker is excused in the window
    """
    fields = _parse_schedule_request(data or {})
    team = get_leader_team(team_leader_id)
    _require_member(team, fields['worker_id'])
    _check_duplicates(fields)
    _check_exception_conflict(fields)

    db = get_db()
    WorkSchedule = get_models()['WorkSchedule']
    common = {
        key: fields[key] for key in (
            'worker_id', 'start_time', 'end_time', 'check_in_window_start', 'check_in_window_end',
            'requires_daily_checkin', 'daily_checkin_start_time', 'daily_checkin_end_time', 'notes',
        )
    }

    if fields['recurring']:
        schedules = [
            WorkSchedule(team_id=team.id, day_of_week=day, effective_date=fields['effective_date'],
                         expiry_date=fields['expiry_date'], created_by=team_leader_id, **common)
            for day in fields['days_of_week']
        ]
    else:
        schedules = [
            WorkSchedule(team_id=team.id, scheduled_date=fields['scheduled_date'],
                         created_by=team_leader_id, **common)
        ]

    db.session.add_all(schedules)
    db.session.commit()
    logger.info(f"Team leader {team_leader_id} created {len(schedules)} schedule(s) for {fields['worker_id']}")

    invalidate_team_analytics(team)

    if fields['recurring']:
        created_days = ', '.join(WEEKDAY_NAMES[day] for day in fields['days_of_week'])
    else:
        created_days = 'single date'
    return {
        'message': f'Worker schedule{"s" if len(schedules) != 1 else ""} created successfully ({created_days})',
        'schedules': [schedule.to_dict() for schedule in schedules],
        'count': len(schedules),
        'isRecurring': fields['recurring'],
    }


def deactivate_schedule(team_leader_id: str, schedule_id: int) -> Dict:
    """Soft-delete a schedule of the requester's team."""
    team = get_leader_team(team_leader_id)
    WorkSchedule = get_models()['WorkSchedule']

    schedule = WorkSchedule.query.filter_by(id=schedule_id, team_id=team.id).first()
    if schedule is None:
        raise ResourceNotFoundException('Schedule not found')

    schedule.is_active = False
    get_db().session.commit()
    logger.info(f"Team leader {team_leader_id} deactivated schedule {schedule_id}")

    invalidate_team_analytics(team)
    return schedule.to_dict()


def list_worker_schedules(team_leader_id: str, worker_id: Optional[str] = None,
                          start_value: Optional[str] = None, end_value: Optional[str] = None) -> List[Dict]:
    """
    Schedules of the requester's team, active and inactive.

    Date filters apply to single-date schedules only; recurring schedules
    are always listed. Recurring schedules come first, by weekday.
    """
    team = get_leader_team(team_leader_id)
    WorkSchedule = get_models()['WorkSchedule']

    query = WorkSchedule.query.filter_by(team_id=team.id)
    if worker_id:
        query = query.filter_by(worker_id=worker_id)

    start = parse_date_string(start_value) if start_value else None
    end = parse_date_string(end_value) if end_value else None

    schedules = []
    for schedule in query.all():
        if schedule.scheduled_date is not None:
            if start and schedule.scheduled_date < start:
                continue
            if end and schedule.scheduled_date > end:
                continue
        schedules.append(schedule)

    schedules.sort(key=lambda s: (
        s.day_of_week is None,
        s.day_of_week if s.day_of_week is not None else 0,
        s.scheduled_date or today(),
        s.start_time or '',
    ))
    return [schedule.to_dict() for schedule in schedules]


def _active_worker_snapshots(worker_id: str):
    WorkSchedule = get_models()['WorkSchedule']
    schedules = WorkSchedule.query.filter_by(worker_id=worker_id, is_active=True).all()
    return schedules, [schedule.to_snapshot() for schedule in schedules]


def next_scheduled_date(worker_id: str, from_value: Optional[str] = None) -> Optional[str]:
    """Next date after from_value (today by default) with an active schedule."""
    from_day = parse_date_string(from_value) if from_value else today()
    _, snapshots = _active_worker_snapshots(worker_id)
    next_day = find_next_scheduled_date(snapshots, from_day)
    return format_date_string(next_day) if next_day else None


def worker_schedule(worker_id: str, start_value: Optional[str] = None,
                    end_value: Optional[str] = None) -> Dict:
    """
    A worker's own upcoming shifts, one entry per occurrence.

    Only active schedules are listed. Defaults to today and the next 7 days;
    longer windows are capped at MY_SCHEDULE_MAX_DAYS.
    """
    start = parse_date_string(start_value) if start_value else today()
    end = parse_date_string(end_value) if end_value else start + timedelta(days=MY_SCHEDULE_DEFAULT_DAYS)
    validate_date_range(start, end, current_app.config.get('MY_SCHEDULE_MAX_DAYS', MY_SCHEDULE_MAX_DAYS))

    schedules, snapshots = _active_worker_snapshots(worker_id)

    entries = []
    for schedule, snapshot in zip(schedules, snapshots):
        for day in iter_dates(start, end):
            if schedule_matches_date(snapshot, day):
                entry = schedule.to_dict()
                entry['display_date'] = format_date_string(day)
                entries.append(entry)

    entries.sort(key=lambda entry: (entry['display_date'], entry['start_time'] or ''))
    next_day = find_next_scheduled_date(snapshots, end)

    return {
        'schedules': entries,
        'startDate': format_date_string(start),
        'endDate': format_date_string(end),
        'nextScheduledDate': format_date_string(next_day) if next_day else None,
    }
