"""Authentication routes."""

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from printdesk.auth.tokens import issue_token
from printdesk.authz.permissions import operations_for
from printdesk.dates import resolve_zone
from printdesk.errors import Conflict, ValidationError
from printdesk.extensions import db, limiter
from printdesk.lifecycle.forms import parse_choice
from printdesk.models import Organization, Role, SubscriptionPlan, User

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

MIN_PASSWORD_LENGTH = 8


def normalize_email(value):
    email = (value or '').strip().lower()
    if not email or '@' not in email:
        raise ValidationError('A valid email is required')
    return email


def validate_password(value):
    if not value or len(value) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
    return value


def _session_payload(user, message):
    return {
        'message': message,
        'token': issue_token(user),
        'user': user.to_dict(),
        'permissions': operations_for(user.role),
    }


@auth_bp.route('/signup-org', methods=['POST'])
def signup_organization():
    """
    Register an organization together with its first admin.

    Request Body:
        {
            "org_name": "Springfield High",
            "admin_name": "Edna K.",
            "email": "admin@springfield.edu",
            "password": "password123",
            "address": "optional",
            "timezone": "optional IANA zone",
            "subscription_plan": "optional, STARTER by default"
        }

    Returns:
        201: Organization created, admin logged in
        400: Missing or invalid fields
        409: Email already registered
    """
    data = request.get_json(silent=True) or {}

    org_name = (data.get('org_name') or '').strip()
    admin_name = (data.get('admin_name') or '').strip()
    if not org_name or not admin_name:
        raise ValidationError('org_name and admin_name are required')

    email = normalize_email(data.get('email'))
    password = validate_password(data.get('password'))

    plan = SubscriptionPlan.STARTER
    if data.get('subscription_plan'):
        plan = parse_choice(SubscriptionPlan, data['subscription_plan'], 'subscription_plan')

    tz_name = (data.get('timezone') or '').strip() or None
    if tz_name:
        resolve_zone(tz_name)

    if User.query.filter_by(email=email).first():
        raise Conflict('Email already registered')

    organization = Organization(
        name=org_name,
        admin_email=email,
        address=(data.get('address') or '').strip() or None,
        subscription_plan=plan,
        timezone=tz_name,
    )
    admin = User(name=admin_name, email=email, role=Role.ORG_ADMIN, organization=organization)
    admin.set_password(password)
    admin.record_login()

    db.session.add_all([organization, admin])
    db.session.commit()

    login_user(admin)
    current_app.logger.info(f"Organization {organization.id} registered by {email}")

    payload = _session_payload(admin, 'Organization registered successfully')
    payload['organization'] = organization.to_dict()
    return jsonify(payload), 201


@auth_bp.route('/login', methods=['POST'])
@limiter.limit(lambda: current_app.config['LOGIN_RATE_LIMIT'])
def login():
    """
    Authenticate user and create session.

    Request Body:
        {
            "email": "user@example.com",
            "password": "password123"
        }

    Returns:
        200: Login successful with user info and bearer token
        400: Missing credentials
        401: Invalid credentials
        403: Account or organization disabled
    """
    data = request.get_json(silent=True)

    if not data or not data.get('email') or not data.get('password'):
        return jsonify({'error': 'Email and password required', 'code': 'VALIDATION_ERROR'}), 400

    user = User.query.filter_by(email=data['email'].strip().lower()).first()

    if not user or not user.check_password(data['password']):
        current_app.logger.warning(f"Failed login attempt for {data['email']}")
        return jsonify({'error': 'Invalid credentials', 'code': 'INVALID_CREDENTIALS'}), 401

    if not user.is_active or not user.organization.is_active:
        return jsonify({
            'error': 'Account is disabled. Please contact your administrator.',
            'code': 'ACCOUNT_DISABLED'
        }), 403

    user.record_login()
    db.session.commit()
    login_user(user)

    return jsonify(_session_payload(user, 'Login successful')), 200


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    """
    End user session.

    Returns:
        200: Logout successful
    """
    logout_user()
    return jsonify({'message': 'Logout successful'}), 200


@auth_bp.route('/me', methods=['GET'])
@login_required
def get_current_user():
    """
    Get current authenticated user with the operations their role allows.

    Returns:
        200: Current user info
    """
    payload = current_user.to_dict()
    payload['organization'] = current_user.organization.to_dict()
    payload['permissions'] = operations_for(current_user.role)
    return jsonify(payload), 200
