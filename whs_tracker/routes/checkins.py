"""
Check-ins API Blueprint
Daily readiness check-ins for workers
"""
from flask import Blueprint, g, jsonify, request

from whs_tracker.error_handlers import handle_errors
from whs_tracker.services import checkin_service
from .auth import require_role

checkins_bp = Blueprint('checkins', __name__, url_prefix='/api/checkins')


@checkins_bp.route('', methods=['POST'])
@handle_errors
@require_role('worker')
def submit_check_in():
    """
    Submit today's check-in.

    Request JSON:
    {
        "predictedReadiness": "Green",    // Green, Yellow/Amber, Red
        "painLevel": 0, "fatigueLevel": 2, "stressLevel": 1, "sleepQuality": 8,
        "additionalNotes": "...",         // required for Red
        "checkInDate": "2025-10-17"       // optional, defaults to today
    }
    """
    check_in = checkin_service.submit_check_in(g.requester.id, request.get_json(silent=True))
    return jsonify({'message': 'Check-in submitted successfully', 'checkIn': check_in}), 201


@checkins_bp.route('/history', methods=['GET'])
@handle_errors
@require_role('worker')
def check_in_history():
    """The requesting worker's check-ins, newest first (?page, ?limit, ?startDate, ?endDate)."""
    result = checkin_service.worker_check_in_history(
        g.requester.id,
        request.args.get('startDate'),
        request.args.get('endDate'),
        page=request.args.get('page', 1, type=int),
        limit=request.args.get('limit', 10, type=int),
    )
    return jsonify(result)
