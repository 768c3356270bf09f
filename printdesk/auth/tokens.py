"""Signed bearer tokens for API clients.

A token carries the user id and the session epoch it was issued under.
Terminating a user's sessions bumps the stored epoch, which invalidates
every token issued before without keeping a revocation list.
"""

import logging

from flask import current_app, g
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from printdesk.authz.gate import check_session
from printdesk.errors import SessionInvalid

logger = logging.getLogger(__name__)

TOKEN_SALT = 'printdesk.auth-token'


def _serializer():
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=TOKEN_SALT)


def issue_token(user):
    return _serializer().dumps({'uid': user.id, 'epoch': user.session_epoch})


def load_token_user(token):
    """
    Resolve a bearer token to its user, or None if it is not usable.

    Sets ``g.session_invalid`` when the token was genuine but its session
    has been terminated, expired or disabled.
    """
    try:
        payload = _serializer().loads(token, max_age=current_app.config['TOKEN_MAX_AGE'])
    except SignatureExpired:
        g.session_invalid = True
        return None
    except BadSignature:
        logger.warning("Rejected bearer token with bad signature")
        return None

    try:
        return check_session(payload['uid'], payload['epoch'])
    except (KeyError, TypeError, ValueError):
        logger.warning("Rejected bearer token with malformed payload")
        return None
    except SessionInvalid as e:
        logger.info(f"Token rejected: {e.detail}")
        g.session_invalid = True
        return None
