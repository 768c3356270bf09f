"""Dashboard routes."""

from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from printdesk.lifecycle.engine import current_engine

dashboard_bp = Blueprint('dashboard', __name__, url_prefix='/api/dashboard')


@dashboard_bp.route('/stats', methods=['GET'])
@login_required
def stats():
    """
    Request counts per status, scoped like the request listing.

    Returns:
        200: {"total", "pending", "approved", "rejected", "in_progress", "completed"}
    """
    counts = current_engine().status_counts(current_user._get_current_object())
    return jsonify(counts), 200
