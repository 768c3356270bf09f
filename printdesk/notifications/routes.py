"""Real-time notification routes."""

import json

from flask import Blueprint, Response, current_app, jsonify, request, stream_with_context
from flask_login import current_user, login_required

from printdesk.authz.gate import check_session, ensure_active
from printdesk.errors import SessionInvalid
from printdesk.extensions import db
from printdesk.lifecycle.engine import current_engine

notifications_bp = Blueprint('notifications', __name__, url_prefix='/api/notifications')


def format_sse(event):
    """Encode a NotificationEvent as one server-sent events frame."""
    return (
        f"id: {event.event_id}\n"
        f"event: {event.kind.value}\n"
        f"data: {json.dumps(event.to_dict())}\n\n"
    )


def session_alive(user_id, epoch):
    """
    Build a check telling whether the session that opened a stream still holds.

    Each call reloads the user and organization from the database, so a
    terminated, disabled or deleted account is noticed on the next frame.
    """
    def alive():
        db.session.expire_all()
        try:
            check_session(user_id, epoch)
        except SessionInvalid as e:
            current_app.logger.info(f"Closing event stream of user {user_id}: {e.detail}")
            return False
        return True
    return alive


def event_stream(fanout, listener, keepalive_seconds, still_valid=None):
    """
    Yield frames for ``listener`` until the client goes away.

    A comment line goes out whenever no event arrived for
    ``keepalive_seconds`` so proxies keep the connection open. When
    ``still_valid`` is given it is called before every frame after the
    first; the stream ends as soon as it returns False.
    """
    try:
        yield ': connected\n\n'
        while True:
            event = listener.get(timeout=keepalive_seconds)
            if still_valid is not None and not still_valid():
                return
            if event is None:
                yield ': keepalive\n\n'
                continue
            yield format_sse(event)
    finally:
        fanout.remove_listener(listener)


@notifications_bp.route('/stream', methods=['GET'])
@login_required
def stream():
    """
    Open a server-sent events stream of the caller's notifications.

    Only events published after the stream opened are delivered. The
    stream closes once the session is terminated or the account disabled.

    Returns:
        200: text/event-stream
    """
    actor = current_user._get_current_object()
    ensure_active(actor)

    fanout = current_app.extensions['printdesk.fanout']
    listener = fanout.add_listener(actor.organization_id, actor.id, actor.role)

    return Response(
        stream_with_context(
            event_stream(
                fanout,
                listener,
                current_app.config['SSE_KEEPALIVE_SECONDS'],
                still_valid=session_alive(actor.id, actor.session_epoch)
            )
        ),
        mimetype='text/event-stream',
        headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'}
    )


@notifications_bp.route('/announce', methods=['POST'])
@login_required
def announce():
    """
    Broadcast a message to every requester of the organization.

    Request Body:
        {"message": "Printer on floor 2 is down until noon"}

    Returns:
        202: Announcement queued
        400: Empty or overlong message
        403: Caller is not an organization admin
    """
    data = request.get_json(silent=True) or {}
    event = current_engine().announce(current_user._get_current_object(), data.get('message'))
    return jsonify({'message': 'Announcement sent', 'event': event.to_dict()}), 202
