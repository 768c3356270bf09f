"""Organization account management routes (organization admins only)."""

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from printdesk.auth.routes import normalize_email, validate_password
from printdesk.authz.gate import requires
from printdesk.authz.permissions import Operation
from printdesk.errors import Conflict, NotFound, QuotaExceeded, ValidationError
from printdesk.extensions import db
from printdesk.lifecycle.engine import current_engine
from printdesk.lifecycle.forms import parse_choice
from printdesk.models import Role, User

users_bp = Blueprint('users', __name__, url_prefix='/api/users')


def get_member(user_id):
    """
    Load a user of the current admin's organization.

    Raises:
        NotFound: If the user is missing or belongs to another organization
    """
    user = User.query.filter_by(id=user_id, organization_id=current_user.organization_id).first()
    if user is None:
        raise NotFound(f"User {user_id} not in organization {current_user.organization_id}")
    return user


@users_bp.route('', methods=['GET'])
@login_required
@requires(Operation.MANAGE_USERS)
def list_users():
    """
    List the other accounts of the organization.

    Query Parameters:
        role: Optional role filter

    Returns:
        200: List of users with per-role usage against the plan
    """
    query = User.query.filter(
        User.organization_id == current_user.organization_id,
        User.id != current_user.id
    )
    if request.args.get('role'):
        query = query.filter(User.role == parse_choice(Role, request.args['role'], 'role'))

    users = query.order_by(User.created_at.desc()).all()
    organization = current_user.organization

    return jsonify({
        'users': [u.to_dict() for u in users],
        'usage': {
            role.value: {
                'count': organization.count_users(role),
                'limit': organization.role_limit(role),
            }
            for role in Role
        }
    }), 200


@users_bp.route('', methods=['POST'])
@login_required
@requires(Operation.MANAGE_USERS)
def create_user():
    """
    Create an account in the admin's organization.

    Request Body:
        {
            "name": "Jane Doe",
            "email": "jane@example.com",
            "password": "password123",
            "role": "REQUESTER"
        }

    Returns:
        201: User created
        400: Missing or invalid fields
        403: Subscription plan limit for this role reached
        409: Email already registered
    """
    data = request.get_json(silent=True) or {}

    name = (data.get('name') or '').strip()
    if not name:
        raise ValidationError('name is required')
    email = normalize_email(data.get('email'))
    password = validate_password(data.get('password'))
    role = parse_choice(Role, data.get('role'), 'role')

    organization = current_user.organization
    if not organization.has_capacity_for(role):
        raise QuotaExceeded(
            f"The {organization.subscription_plan.value} plan allows at most "
            f"{organization.role_limit(role)} {role.value} account(s)"
        )

    if User.query.filter_by(email=email).first():
        raise Conflict('User with this email already exists')

    user = User(name=name, email=email, role=role, organization_id=organization.id)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    current_app.logger.info(f"User {user.id} ({role.value}) created by admin {current_user.id}")

    return jsonify({
        'message': f'{role.value} account created successfully',
        'user': user.to_dict()
    }), 201


@users_bp.route('/<int:user_id>', methods=['PATCH'])
@login_required
@requires(Operation.MANAGE_USERS)
def update_user(user_id):
    """
    Enable or disable an account, or rename it.

    Request Body:
        {"is_active": false, "name": "optional"}

    Returns:
        200: Updated user
        400: Invalid fields or attempt to disable yourself
        404: User not found
    """
    user = get_member(user_id)
    data = request.get_json(silent=True) or {}

    if 'is_active' in data:
        if not isinstance(data['is_active'], bool):
            raise ValidationError('is_active must be true or false')
        if user.id == current_user.id and not data['is_active']:
            raise ValidationError('Cannot disable your own account')
        user.is_active = data['is_active']

    if 'name' in data:
        name = (data.get('name') or '').strip()
        if not name:
            raise ValidationError('name must not be empty')
        user.name = name

    db.session.commit()
    return jsonify({'user': user.to_dict()}), 200


@users_bp.route('/<int:user_id>', methods=['DELETE'])
@login_required
@requires(Operation.MANAGE_USERS)
def delete_user(user_id):
    """
    Delete an account together with its print requests and their files.

    Returns:
        200: User deleted
        400: Attempt to delete yourself
        404: User not found
    """
    if user_id == current_user.id:
        raise ValidationError('Cannot delete your own account')

    user = get_member(user_id)
    current_engine().discard_artifacts_of(user)

    db.session.delete(user)
    db.session.commit()

    current_app.logger.info(f"User {user_id} deleted by admin {current_user.id}")
    return jsonify({'message': 'User account deleted successfully'}), 200


@users_bp.route('/<int:user_id>/terminate-session', methods=['POST'])
@login_required
@requires(Operation.MANAGE_USERS)
def terminate_session(user_id):
    """
    Log a user out everywhere by moving their session epoch forward.

    Every cookie session and bearer token issued earlier is rejected on
    its next use; the account itself stays active.

    Returns:
        200: Sessions terminated
        404: User not found
    """
    user = get_member(user_id)
    user.terminate_sessions()
    db.session.commit()

    current_app.logger.info(
        f"Sessions of user {user.id} terminated by admin {current_user.id} "
        f"(epoch now {user.session_epoch})"
    )
    return jsonify({'message': 'User session terminated successfully'}), 200
