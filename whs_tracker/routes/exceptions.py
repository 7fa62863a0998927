"""
Exceptions API Blueprint
Worker exceptions (leave, injury, accident, transfer) managed by team leaders,
supervisors and the WHS control centre
"""
from flask import Blueprint, g, jsonify, request

from whs_tracker.error_handlers import handle_errors
from whs_tracker.services import exception_service
from .auth import require_role

exceptions_bp = Blueprint('exceptions', __name__, url_prefix='/api/exceptions')

MANAGER_ROLES = ('team_leader', 'supervisor', 'whs_control_center')


@exceptions_bp.route('', methods=['GET'])
@handle_errors
@require_role(*MANAGER_ROLES, 'executive')
def list_exceptions():
    """Exceptions of the requester's teams (?active=true, ?type=injury)."""
    exceptions = exception_service.list_team_exceptions(
        g.requester,
        active_only=request.args.get('active', '').lower() == 'true',
        exception_type=request.args.get('type'),
    )
    return jsonify({'exceptions': exceptions})


@exceptions_bp.route('', methods=['POST'])
@handle_errors
@require_role(*MANAGER_ROLES)
def create_exception():
    """
    Open an exception for a worker.

    Request JSON:
    {
        "worker_id": "...",
        "exception_type": "injury",       // transfer, accident, injury, medical_leave, other
        "start_date": "2025-10-17",
        "end_date": "2025-10-31",         // optional
        "reason": "...",                  // optional
        "transfer_to_team_id": "..."      // required for transfer
    }
    """
    result = exception_service.create_exception(g.requester, request.get_json(silent=True))
    return jsonify(result), 201


@exceptions_bp.route('/<int:exception_id>/close', methods=['POST'])
@handle_errors
@require_role(*MANAGER_ROLES)
def close_exception(exception_id):
    return jsonify(exception_service.close_exception(g.requester, exception_id))


@exceptions_bp.route('/<int:exception_id>/reopen', methods=['POST'])
@handle_errors
@require_role(*MANAGER_ROLES)
def reopen_exception(exception_id):
    return jsonify(exception_service.reopen_exception(g.requester, exception_id))
