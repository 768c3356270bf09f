"""Database models package."""

from printdesk.models.user import Role, User
from printdesk.models.organization import Organization, SubscriptionPlan, PLAN_LIMITS
from printdesk.models.print_request import (
    DeliveryMethod,
    PrintFormat,
    PrintRequest,
    RequestStatus,
)

__all__ = [
    'Organization', 'SubscriptionPlan', 'PLAN_LIMITS',
    'User', 'Role',
    'PrintRequest', 'RequestStatus', 'PrintFormat', 'DeliveryMethod',
]
