"""Signed file URL route."""

import os

from flask import Blueprint, current_app, send_file

from printdesk.errors import NotFound
from printdesk.lifecycle.engine import current_engine
from printdesk.models import PrintRequest

files_bp = Blueprint('files', __name__, url_prefix='/api/files')


def send_artifact(print_request, as_attachment):
    """Send a request's stored document with its recorded MIME type and name."""
    absolute_path = current_engine().storage.get_file_path(print_request.file_key)

    if not os.path.exists(absolute_path):
        current_app.logger.error(f"File not found on disk: {absolute_path}")
        raise NotFound(f"Artifact of request {print_request.id} missing on disk")

    return send_file(
        absolute_path,
        mimetype=print_request.mimetype,
        as_attachment=as_attachment,
        download_name=print_request.original_filename
    )


@files_bp.route('/<token>', methods=['GET'])
def serve_file(token):
    """
    Serve a stored document to the holder of a token from ``file-url``.

    The token is the whole credential: no session is needed, which lets
    the browser open it in a new tab or an <img>/<iframe>. A token for a
    request that has since been deleted stops working.

    Returns:
        200: File content, inline
        404: Token forged or expired, request deleted, or file missing
    """
    key = current_engine().storage.resolve_token(token)
    print_request = PrintRequest.query.filter_by(file_key=key).first()
    if print_request is None:
        raise NotFound(f"No print request owns signed key {key}")
    return send_artifact(print_request, as_attachment=False)
