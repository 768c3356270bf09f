"""Organization model: the tenant boundary."""

import enum

from printdesk.dates import isoformat_utc
from printdesk.extensions import db
from printdesk.models.base import TimestampMixin
from printdesk.models.user import Role


class SubscriptionPlan(str, enum.Enum):
    STARTER = 'STARTER'
    PROFESSIONAL = 'PROFESSIONAL'
    ENTERPRISE = 'ENTERPRISE'


# Accounts allowed per role; a missing role means unlimited
PLAN_LIMITS = {
    SubscriptionPlan.STARTER: {
        Role.REQUESTER: 25,
        Role.ORG_ADMIN: 1,
        Role.PRINT_OPERATOR: 1,
    },
    SubscriptionPlan.PROFESSIONAL: {
        Role.REQUESTER: 250,
        Role.ORG_ADMIN: 5,
        Role.PRINT_OPERATOR: 5,
    },
    SubscriptionPlan.ENTERPRISE: {},
}


class Organization(db.Model, TimestampMixin):
    """
    Organization model representing tenants.

    Every user and every print request belongs to exactly one organization
    and is never visible to members of another one.
    """

    __tablename__ = 'organizations'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    admin_email = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(512), nullable=True)
    subscription_plan = db.Column(
        db.Enum(SubscriptionPlan, native_enum=False, length=20),
        nullable=False,
        default=SubscriptionPlan.STARTER
    )
    # IANA zone used to read due dates submitted without an offset
    timezone = db.Column(db.String(64), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Relationships
    users = db.relationship('User', back_populates='organization', lazy='dynamic', cascade='all, delete-orphan')
    print_requests = db.relationship(
        'PrintRequest', back_populates='organization', lazy='dynamic', cascade='all, delete-orphan'
    )

    def __repr__(self):
        return f'<Organization {self.name}>'

    def role_limit(self, role):
        """Maximum number of accounts with ``role``, or None if unlimited."""
        plan = self.subscription_plan or SubscriptionPlan.STARTER
        return PLAN_LIMITS[plan].get(Role(role))

    def count_users(self, role):
        return self.users.filter_by(role=Role(role)).count()

    def has_capacity_for(self, role):
        limit = self.role_limit(role)
        return limit is None or self.count_users(role) < limit

    def to_dict(self):
        """Convert to dictionary representation."""
        return {
            'id': self.id,
            'name': self.name,
            'admin_email': self.admin_email,
            'address': self.address,
            'subscription_plan': self.subscription_plan.value,
            'timezone': self.timezone,
            'is_active': self.is_active,
            'created_at': isoformat_utc(self.created_at)
        }
