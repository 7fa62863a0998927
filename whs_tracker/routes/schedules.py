"""
Schedules API Blueprint
Work schedule management for team leaders and schedule view for workers
"""
from flask import Blueprint, g, jsonify, request

from whs_tracker.error_handlers import handle_errors
from whs_tracker.services import schedule_service
from .auth import require_role

schedules_bp = Blueprint('schedules', __name__, url_prefix='/api/schedules')

NO_STORE_HEADERS = {
    'Cache-Control': 'no-store, no-cache, must-revalidate, proxy-revalidate',
    'Pragma': 'no-cache',
    'Expires': '0',
}


@schedules_bp.route('/workers', methods=['GET'])
@handle_errors
@require_role('team_leader')
def list_worker_schedules():
    """
    Schedules of the requester's team (active and inactive).

    Query params:
        workerId: Optional worker filter
        startDate, endDate: Optional filter for single-date schedules
    """
    schedules = schedule_service.list_worker_schedules(
        g.requester.id,
        worker_id=request.args.get('workerId'),
        start_value=request.args.get('startDate'),
        end_value=request.args.get('endDate'),
    )
    return jsonify({'schedules': schedules}), 200, NO_STORE_HEADERS


@schedules_bp.route('/workers', methods=['POST'])
@handle_errors
@require_role('team_leader')
def create_worker_schedules():
    """
    Create schedule(s) for a team member.

    Request JSON:
    {
        "worker_id": "...",
        "scheduled_date": "2025-10-17",          // single date, or:
        "start_date": "2025-10-01", "end_date": "2025-12-31",
        "days_of_week": [1, 2, 3, 4, 5],          // 0 = Sunday
        "start_time": "07:00", "end_time": "15:30"
    }
    """
    result = schedule_service.create_schedules(g.requester.id, request.get_json(silent=True))
    return jsonify(result), 201


@schedules_bp.route('/workers/<int:schedule_id>', methods=['DELETE'])
@handle_errors
@require_role('team_leader')
def deactivate_worker_schedule(schedule_id):
    """Soft-delete a schedule (kept for historical analytics)."""
    schedule = schedule_service.deactivate_schedule(g.requester.id, schedule_id)
    return jsonify({'message': 'Schedule deactivated', 'schedule': schedule})


@schedules_bp.route('/my-schedule', methods=['GET'])
@handle_errors
@require_role('worker')
def my_schedule():
    """The requesting worker's active shifts between startDate and endDate (default next 7 days)."""
    result = schedule_service.worker_schedule(
        g.requester.id,
        request.args.get('startDate'),
        request.args.get('endDate'),
    )
    return jsonify(result), 200, NO_STORE_HEADERS
