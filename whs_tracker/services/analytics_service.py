"""
Analytics service

Role-specific callers of the compliance engine. Each caller validates the
date range against its own cap before touching the database, resolves the
teams the requester may see, and caches the resulting payload per requester.

Returns (payload, cache_status) where cache_status is 'HIT' or 'MISS'.
"""
import logging
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from flask import current_app

from whs_tracker.error_handlers.exceptions import ResourceNotFoundException
from whs_tracker.models import get_models
from .analytics_cache import (
    EXECUTIVE_ANALYTICS_TAG,
    SUPERVISOR_ANALYTICS_TAG,
    TEAM_ANALYTICS_TAG,
    generate_cache_key,
    get_cache,
)
from .calendar_utils import (
    first_day_of_month,
    format_date_string,
    parse_date_string,
    previous_period,
    today,
    validate_date_range,
)
from .checkin_reconciler import latest_check_in_by_worker
from .compliance_aggregator import ComplianceAggregator, empty_payload
from .exception_resolver import filter_active_exceptions
from .schedule_expander import expand_schedules
from .snapshot_loader import load_snapshot

logger = logging.getLogger(__name__)


def resolve_date_range(start_value: Optional[str], end_value: Optional[str],
                       max_days: int) -> Tuple[date, date]:
    """
    Parse and validate startDate/endDate query parameters.

    Missing values default to the first day of the current month and today.

    Raises:
        FormatError, InvalidRangeError, RangeTooLargeError
    """
    end = parse_date_string(end_value) if end_value else today()
    start = parse_date_string(start_value) if start_value else first_day_of_month(today())
    validate_date_range(start, end, max_days)
    return start, end


def _cached(prefix: str, params: Dict, builder: Callable[[], Dict]) -> Tuple[Dict, str]:
    cache = get_cache()
    key = generate_cache_key(prefix, params)

    cached = cache.get(key)
    if cached is not None:
        logger.debug(f"Cache hit: {key}")
        return cached, 'HIT'

    logger.debug(f"Cache miss: {key}")
    payload = builder()
    cache.set(key, payload, current_app.config.get('ANALYTICS_CACHE_TTL'))
    return payload, 'MISS'


def _build_payload(teams, start: date, end: date, worker_ids=None, include_teams=False,
                   include_check_in_days=False) -> Dict:
    fetch_start, _ = previous_period(start, end)
    snapshot = load_snapshot(teams, fetch_start, end, worker_ids=worker_ids, include_teams=include_teams)
    aggregator = ComplianceAggregator(
        snapshot,
        include_check_in_days=include_check_in_days,
        max_trend_points=current_app.config.get('DAILY_TREND_MAX_POINTS', 0),
    )
    return aggregator.build(start, end)


def _find_leader_team(team_leader_id: str):
    Team = get_models()['Team']
    team = Team.query.filter_by(team_leader_id=team_leader_id).order_by(Team.created_at).first()
    if team is None:
        raise ResourceNotFoundException('Team not found')
    return team


def team_leader_analytics(requester_id: str, start_value: Optional[str] = None,
                          end_value: Optional[str] = None,
                          worker_ids: Optional[List[str]] = None) -> Tuple[Dict, str]:
    """
    Compliance analytics for the team the requester leads.

    Check-in dates count as scheduled days here, so a worker's history stays
    visible after their schedule was removed.
    """
    start, end = resolve_date_range(start_value, end_value, current_app.config['TEAM_ANALYTICS_MAX_DAYS'])
    team = _find_leader_team(requester_id)

    def build():
        payload = _build_payload([team], start, end, worker_ids=worker_ids, include_check_in_days=True)
        payload['team'] = {'id': team.id, 'name': team.name, 'siteLocation': team.site_location}
        return payload

    params = {
        'userId': requester_id,
        'startDate': format_date_string(start),
        'endDate': format_date_string(end),
        'workerIds': worker_ids,
    }
    return _cached(TEAM_ANALYTICS_TAG, params, build)


def _with_top_teams(payload: Dict, limit: int = 5) -> Dict:
    ranked = sorted(
        (team for team in payload['teamStats'] if team['caseCount'] > 0),
        key=lambda team: (-team['caseCount'], team['teamName'].lower(), team['teamId'])
    )
    payload['topTeamsByCases'] = [
        {'teamId': team['teamId'], 'teamName': team['teamName'], 'caseCount': team['caseCount']}
        for team in ranked[:limit]
    ]
    return payload


def _multi_team_analytics(prefix: str, requester_id: str, teams: Iterable, start: date,
                          end: date) -> Tuple[Dict, str]:
    teams = list(teams)

    def build():
        if not teams:
            payload = empty_payload(start, end)
        else:
            payload = _build_payload(teams, start, end, include_teams=True)
        payload['teamCount'] = len(teams)
        return _with_top_teams(payload)

    params = {
        'userId': requester_id,
        'startDate': format_date_string(start),
        'endDate': format_date_string(end),
    }
    return _cached(prefix, params, build)


def supervisor_analytics(requester_id: str, start_value: Optional[str] = None,
                         end_value: Optional[str] = None) -> Tuple[Dict, str]:
    """Analytics across every team the requester supervises (zeroed when none)."""
    start, end = resolve_date_range(
        start_value, end_value, current_app.config['SUPERVISOR_ANALYTICS_MAX_DAYS']
    )
    Team = get_models()['Team']
    teams = Team.query.filter_by(supervisor_id=requester_id).all()
    return _multi_team_analytics(SUPERVISOR_ANALYTICS_TAG, requester_id, teams, start, end)


def executive_analytics(requester_id: str, start_value: Optional[str] = None,
                        end_value: Optional[str] = None) -> Tuple[Dict, str]:
    """Organisation-wide analytics for executives and the WHS control centre."""
    start, end = resolve_date_range(
        start_value, end_value, current_app.config['EXECUTIVE_ANALYTICS_MAX_DAYS']
    )
    Team = get_models()['Team']
    teams = Team.query.all()
    return _multi_team_analytics(EXECUTIVE_ANALYTICS_TAG, requester_id, teams, start, end)


def expected_check_ins_for_day(team_leader_id: str, day_value: Optional[str] = None) -> Dict:
    """
    Who must check in on a given day (today by default).

    Forward-looking: only active schedules count. Workers excused by an
    exception are listed separately and are not expected.
    """
    day = parse_date_string(day_value) if day_value else today()
    team = _find_leader_team(team_leader_id)
    snapshot = load_snapshot([team], day, day)

    index = expand_schedules(snapshot.schedules, day, day, active_only=True, worker_ids=snapshot.workers)
    excused = {exception.worker_id: exception for exception in filter_active_exceptions(snapshot.exceptions, day)}
    latest = latest_check_in_by_worker(snapshot.check_ins)

    expected, excused_workers = [], []
    for worker_id in sorted(index.workers_on(day), key=lambda w: (snapshot.workers[w].lower(), w)):
        entry = {'workerId': worker_id, 'name': snapshot.workers[worker_id]}
        if worker_id in excused:
            entry['exceptionType'] = excused[worker_id].exception_type
            excused_workers.append(entry)
            continue
        check_in = latest.get(worker_id)
        entry['checkedIn'] = check_in is not None
        entry['readiness'] = check_in.readiness if check_in else None
        expected.append(entry)

    completed = sum(1 for entry in expected if entry['checkedIn'])
    return {
        'date': format_date_string(day),
        'teamId': team.id,
        'expected': expected,
        'excused': excused_workers,
        'summary': {
            'expected': len(expected),
            'completed': completed,
            'pending': len(expected) - completed,
            'excused': len(excused_workers),
        },
    }
