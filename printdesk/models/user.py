"""User model with Flask-Login integration."""

import enum

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from printdesk.dates import isoformat_utc, utcnow
from printdesk.extensions import db
from printdesk.models.base import TimestampMixin


class Role(str, enum.Enum):
    REQUESTER = 'REQUESTER'
    ORG_ADMIN = 'ORG_ADMIN'
    PRINT_OPERATOR = 'PRINT_OPERATOR'


class User(db.Model, UserMixin, TimestampMixin):
    """
    User model representing staff of one organization.

    - organization_id is set at creation and never changes
    - session_epoch only ever grows; every credential embeds the epoch it
      was issued under and stops working once the stored value moves on
    """

    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.Enum(Role, native_enum=False, length=20), nullable=False)
    session_epoch = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    last_login_at = db.Column(db.DateTime, nullable=True)

    organization_id = db.Column(
        db.Integer,
        db.ForeignKey('organizations.id'),
        nullable=False,
        index=True
    )

    # Relationships
    organization = db.relationship('Organization', back_populates='users')
    print_requests = db.relationship(
        'PrintRequest', back_populates='requester', lazy='dynamic', cascade='all, delete-orphan'
    )

    def set_password(self, password):
        """Hash and store password."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Verify password against hash."""
        return check_password_hash(self.password_hash, password)

    def get_id(self):
        # Flask-Login stores this in the session cookie
        return f'{self.id}:{self.session_epoch or 0}'

    def terminate_sessions(self):
        """Invalidate every session and token issued so far."""
        self.session_epoch = (self.session_epoch or 0) + 1

    def record_login(self):
        self.last_login_at = utcnow()

    def __repr__(self):
        return f'<User {self.email}>'

    def to_dict(self):
        """Convert to dictionary representation."""
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'role': self.role.value,
            'organization_id': self.organization_id,
            'is_active': self.is_active,
            'last_login_at': isoformat_utc(self.last_login_at),
            'created_at': isoformat_utc(self.created_at)
        }
