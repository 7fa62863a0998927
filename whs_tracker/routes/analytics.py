"""
Analytics API Blueprint
Compliance dashboards for team leaders, supervisors and executives
"""
from flask import Blueprint, current_app, g, jsonify, request

from whs_tracker.error_handlers import handle_errors
from whs_tracker.services import analytics_service
from whs_tracker.utils.validators import parse_id_list
from .auth import require_role

analytics_bp = Blueprint('analytics', __name__, url_prefix='/api/analytics')


def _cached_response(payload, cache_status):
    response = jsonify(payload)
    response.headers['X-Cache'] = cache_status
    response.headers['Cache-Control'] = f"public, max-age={current_app.config.get('ANALYTICS_CACHE_TTL', 300)}"
    return response


@analytics_bp.route('/team', methods=['GET'])
@handle_errors
@require_role('team_leader')
def team_analytics():
    """
    Compliance analytics for the requester's team.

    Query params:
        startDate, endDate: YYYY-MM-DD (default: this month to today, max 90 days)
        workerIds: Optional comma-separated worker ids
    """
    payload, cache_status = analytics_service.team_leader_analytics(
        g.requester.id,
        request.args.get('startDate'),
        request.args.get('endDate'),
        parse_id_list(request.args.get('workerIds')),
    )
    return _cached_response(payload, cache_status)


@analytics_bp.route('/supervisor', methods=['GET'])
@handle_errors
@require_role('supervisor')
def supervisor_analytics():
    """Analytics across the requester's supervised teams (max 365 days)."""
    payload, cache_status = analytics_service.supervisor_analytics(
        g.requester.id,
        request.args.get('startDate'),
        request.args.get('endDate'),
    )
    return _cached_response(payload, cache_status)


@analytics_bp.route('/executive', methods=['GET'])
@handle_errors
@require_role('executive', 'whs_control_center')
def executive_analytics():
    """Organisation-wide analytics (max 730 days)."""
    payload, cache_status = analytics_service.executive_analytics(
        g.requester.id,
        request.args.get('startDate'),
        request.args.get('endDate'),
    )
    return _cached_response(payload, cache_status)


@analytics_bp.route('/team/today', methods=['GET'])
@handle_errors
@require_role('team_leader')
def team_expected_today():
    """Workers expected to check in on ?date= (default today) and their status."""
    result = analytics_service.expected_check_ins_for_day(g.requester.id, request.args.get('date'))
    return jsonify(result)
