"""Print request routes.

Every route delegates to the lifecycle engine, which runs the
authorization gate; the routes only translate HTTP in and out.
"""

from flask import Blueprint, jsonify, request, url_for
from flask_login import current_user, login_required

from printdesk.authz.gate import allowed_actions
from printdesk.files.routes import send_artifact
from printdesk.lifecycle.engine import current_engine

print_requests_bp = Blueprint('print_requests', __name__, url_prefix='/api/print-requests')


def serialize(print_request):
    """Request payload plus what the caller may do with it."""
    data = print_request.to_dict()
    data['allowed_actions'] = allowed_actions(current_user, print_request)
    return data


def _actor():
    return current_user._get_current_object()


def _submitted_fields():
    if request.files or request.form:
        return request.form
    return request.get_json(silent=True) or {}


@print_requests_bp.route('', methods=['POST'])
@login_required
def create_print_request():
    """
    Submit a print request with its document.

    Request:
        Content-Type: multipart/form-data
        Body: file, title, copies, print_format, delivery_method,
              delivery_room (room delivery only), due_at

    The organization is always the requester's own; an organization id in
    the body is ignored.

    Returns:
        201: Request created in PENDING
        400: Invalid field or file
        403: Caller is not a requester
        502: File storage failed
    """
    print_request = current_engine().create_request(
        _actor(),
        _submitted_fields(),
        request.files.get('file')
    )
    return jsonify({
        'message': 'Print request submitted successfully',
        'print_request': serialize(print_request)
    }), 201


@print_requests_bp.route('', methods=['GET'])
@login_required
def list_print_requests():
    """
    List the requests visible to the caller, newest first.

    Query Parameters:
        status: Optional status filter
        requester_id: Optional requester filter (admins only)

    Returns:
        200: List of requests
    """
    print_requests = current_engine().list_requests(_actor(), request.args)
    return jsonify({
        'print_requests': [serialize(p) for p in print_requests]
    }), 200


@print_requests_bp.route('/<int:request_id>', methods=['GET'])
@login_required
def get_print_request(request_id):
    """
    Get one request.

    Returns:
        200: Request details
        403: Requester asking for someone else's request
        404: Not found or in another organization
    """
    print_request = current_engine().get_request(_actor(), request_id)
    return jsonify(serialize(print_request)), 200


@print_requests_bp.route('/<int:request_id>/approve', methods=['POST'])
@login_required
def approve_print_request(request_id):
    print_request = current_engine().approve(_actor(), request_id)
    return jsonify({
        'message': 'Print request approved',
        'print_request': serialize(print_request)
    }), 200


@print_requests_bp.route('/<int:request_id>/reject', methods=['POST'])
@login_required
def reject_print_request(request_id):
    print_request = current_engine().reject(_actor(), request_id)
    return jsonify({
        'message': 'Print request rejected',
        'print_request': serialize(print_request)
    }), 200


@print_requests_bp.route('/<int:request_id>/status', methods=['POST'])
@login_required
def update_status(request_id):
    """
    Move a request to another status.

    Request Body:
        {"status": "IN_PROGRESS"}

    Returns:
        200: Status changed
        400: Unknown status value
        403: Caller's role does not own this edge
        404: Not found or in another organization
        409: No edge from the current status to the target
    """
    data = request.get_json(silent=True) or {}
    print_request = current_engine().transition(_actor(), request_id, data.get('status'))
    return jsonify({
        'message': f'Print request moved to {print_request.status.value}',
        'print_request': serialize(print_request)
    }), 200


@print_requests_bp.route('/<int:request_id>', methods=['DELETE'])
@login_required
def delete_print_request(request_id):
    """
    Delete a request and its stored document.

    Requesters may delete their own PENDING, REJECTED or COMPLETED
    requests; admins any request that has left PENDING.

    Returns:
        200: Deleted
        403: Not allowed in the current status
        404: Not found or in another organization
    """
    current_engine().delete_request(_actor(), request_id)
    return jsonify({'message': 'Print request deleted successfully'}), 200


@print_requests_bp.route('/<int:request_id>/preview', methods=['GET'])
@login_required
def preview_file(request_id):
    """Stream the document inline with its stored MIME type."""
    print_request = current_engine().get_request(_actor(), request_id)
    return send_artifact(print_request, as_attachment=False)


@print_requests_bp.route('/<int:request_id>/download', methods=['GET'])
@login_required
def download_file(request_id):
    """
    Download the document for printing and tell the requester.

    Returns:
        200: File content
        403: Caller is not a print operator
        404: Not found, in another organization or missing on disk
    """
    print_request = current_engine().record_download(_actor(), request_id)
    return send_artifact(print_request, as_attachment=True)


@print_requests_bp.route('/<int:request_id>/file-url', methods=['GET'])
@login_required
def file_url(request_id):
    """
    Issue a signed, expiring URL for the document.

    Returns:
        200: {"url": ..., "expires_in": seconds}
    """
    print_request = current_engine().get_request(_actor(), request_id)
    storage = current_engine().storage
    token = storage.issue_token(print_request.file_key)
    return jsonify({
        'url': url_for('files.serve_file', token=token, _external=True),
        'expires_in': storage.url_max_age
    }), 200
