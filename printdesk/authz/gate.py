"""Authorization gate.

Checks run in a fixed order, before any state is touched:

0. session: inactive account/organization or stale session epoch
   -> SessionInvalid
1. tenant: resource of another organization -> NotFound
2. role and ownership against the permission table -> Forbidden
"""

import logging
from functools import wraps

from flask import g
from flask_login import current_user

from printdesk.authz.permissions import (
    DELETABLE_STATUSES,
    Operation,
    REQUEST_OPERATIONS,
    TRANSITION_OPERATIONS,
    VISIBLE_STATUSES,
    operations_leaving,
    role_allows,
)
from printdesk.errors import Forbidden, NotFound, SessionInvalid
from printdesk.extensions import db
from printdesk.models import Role, User

logger = logging.getLogger(__name__)


def ensure_active(actor):
    """Raise SessionInvalid if the account or its organization is disabled."""
    if not actor.is_active:
        raise SessionInvalid(f"User {actor.id} is inactive")
    if actor.organization is None or not actor.organization.is_active:
        raise SessionInvalid(f"Organization of user {actor.id} is inactive")


def check_session(user_id, presented_epoch):
    """
    Resolve the user behind a credential.

    Args:
        user_id: User ID carried by the credential
        presented_epoch: Session epoch the credential was issued under

    Returns:
        User

    Raises:
        SessionInvalid: Unknown or disabled user, or stale epoch
    """
    user = db.session.get(User, int(user_id))
    if user is None:
        raise SessionInvalid(f"User {user_id} no longer exists")

    ensure_active(user)

    if int(presented_epoch) != user.session_epoch:
        raise SessionInvalid(
            f"Stale session for user {user.id}: "
            f"presented epoch {presented_epoch}, current {user.session_epoch}"
        )

    return user


def load_session_user(session_id):
    """Flask-Login user loader for ``"<id>:<epoch>"`` session ids."""
    try:
        user_id, _, epoch = session_id.partition(':')
        return check_session(user_id, epoch or 0)
    except ValueError:
        logger.warning(f"Malformed session id: {session_id!r}")
        return None
    except SessionInvalid as e:
        logger.info(f"Session rejected: {e.detail}")
        g.session_invalid = True
        return None


def _denial(actor, operation, resource):
    """Return the error that ``actor`` would get, or None if permitted."""
    try:
        ensure_active(actor)
    except SessionInvalid as e:
        return e

    if resource is not None and resource.organization_id != actor.organization_id:
        return NotFound(
            f"{type(resource).__name__} {resource.id} is not in organization {actor.organization_id}"
        )

    operation = Operation(operation)
    if not role_allows(actor.role, operation):
        return Forbidden(f"Role {actor.role.value} may not {operation.value}")

    if resource is None:
        return None

    role = Role(actor.role)
    owns = getattr(resource, 'requester_id', None) == actor.id

    if role == Role.REQUESTER and not owns:
        return Forbidden(f"User {actor.id} does not own {resource!r}")

    visible = VISIBLE_STATUSES.get(role)
    if visible is not None and getattr(resource, 'status', None) not in visible:
        return Forbidden(f"Role {role.value} does not handle requests in {resource.status.value}")

    if operation == Operation.DELETE_REQUEST:
        if resource.status not in DELETABLE_STATUSES.get(role, frozenset()):
            return Forbidden(f"Role {role.value} may not delete in {resource.status.value}")

    return None


def authorize(actor, operation, resource=None):
    """
    Raise unless ``actor`` may perform ``operation`` on ``resource``.

    Raises:
        SessionInvalid, NotFound, Forbidden
    """
    error = _denial(actor, operation, resource)
    if error is not None:
        if isinstance(error, Forbidden):
            logger.warning(
                f"Denied {Operation(operation).value} for user {actor.id}: {error.detail}"
            )
        raise error


def is_allowed(actor, operation, resource=None):
    return _denial(actor, operation, resource) is None


def allowed_actions(actor, print_request):
    """Operations the actor can perform on ``print_request`` right now."""
    leaving = operations_leaving(print_request.status)
    return [
        operation.value
        for operation in REQUEST_OPERATIONS
        if (operation not in TRANSITION_OPERATIONS or operation in leaving)
        and is_allowed(actor, operation, print_request)
    ]


def requires(operation):
    """
    Decorator rejecting the current user unless their role allows ``operation``.

    Must be placed below ``@login_required``. Resource-level checks still
    happen in the service layer.
    """
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            authorize(current_user._get_current_object(), operation)
            return view(*args, **kwargs)
        return wrapped
    return decorator
