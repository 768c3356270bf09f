"""Role x operation permission table.

This is the single place that says which role may do what. The gate
enforces it and the API reports it back to clients (``allowed_actions``),
so the browser never carries its own copy of these rules.
"""

import enum

from printdesk.models import RequestStatus, Role


class Operation(str, enum.Enum):
    CREATE_REQUEST = 'create_request'
    LIST_REQUESTS = 'list_requests'
    READ_REQUEST = 'read_request'
    APPROVE_REQUEST = 'approve_request'
    REJECT_REQUEST = 'reject_request'
    START_PRINTING = 'start_printing'
    COMPLETE_PRINTING = 'complete_printing'
    DELETE_REQUEST = 'delete_request'
    DOWNLOAD_FILE = 'download_file'
    VIEW_STATS = 'view_stats'
    MANAGE_USERS = 'manage_users'
    ANNOUNCE = 'announce'


ALL_ROLES = frozenset(Role)

PERMISSIONS = {
    Operation.CREATE_REQUEST: frozenset({Role.REQUESTER}),
    Operation.LIST_REQUESTS: ALL_ROLES,
    Operation.READ_REQUEST: ALL_ROLES,
    Operation.APPROVE_REQUEST: frozenset({Role.ORG_ADMIN}),
    Operation.REJECT_REQUEST: frozenset({Role.ORG_ADMIN}),
    Operation.START_PRINTING: frozenset({Role.PRINT_OPERATOR}),
    Operation.COMPLETE_PRINTING: frozenset({Role.PRINT_OPERATOR}),
    Operation.DELETE_REQUEST: frozenset({Role.REQUESTER, Role.ORG_ADMIN}),
    Operation.DOWNLOAD_FILE: frozenset({Role.PRINT_OPERATOR}),
    Operation.VIEW_STATS: ALL_ROLES,
    Operation.MANAGE_USERS: frozenset({Role.ORG_ADMIN}),
    Operation.ANNOUNCE: frozenset({Role.ORG_ADMIN}),
}

# The only edges of the lifecycle, each owned by exactly one operation
TRANSITIONS = {
    (RequestStatus.PENDING, RequestStatus.APPROVED): Operation.APPROVE_REQUEST,
    (RequestStatus.PENDING, RequestStatus.REJECTED): Operation.REJECT_REQUEST,
    (RequestStatus.APPROVED, RequestStatus.IN_PROGRESS): Operation.START_PRINTING,
    (RequestStatus.IN_PROGRESS, RequestStatus.COMPLETED): Operation.COMPLETE_PRINTING,
}

TRANSITION_OPERATIONS = frozenset(TRANSITIONS.values())

# Operations that act on one existing print request
REQUEST_OPERATIONS = (
    Operation.READ_REQUEST,
    Operation.APPROVE_REQUEST,
    Operation.REJECT_REQUEST,
    Operation.START_PRINTING,
    Operation.COMPLETE_PRINTING,
    Operation.DELETE_REQUEST,
    Operation.DOWNLOAD_FILE,
)

# Statuses a role may delete in, on top of the DELETE_REQUEST role check
DELETABLE_STATUSES = {
    Role.REQUESTER: frozenset({
        RequestStatus.PENDING, RequestStatus.REJECTED, RequestStatus.COMPLETED,
    }),
    Role.ORG_ADMIN: frozenset({
        RequestStatus.APPROVED, RequestStatus.REJECTED,
        RequestStatus.IN_PROGRESS, RequestStatus.COMPLETED,
    }),
}

# Statuses a role sees when listing; None means all of them
VISIBLE_STATUSES = {
    Role.REQUESTER: None,
    Role.ORG_ADMIN: None,
    Role.PRINT_OPERATOR: frozenset({
        RequestStatus.APPROVED, RequestStatus.IN_PROGRESS, RequestStatus.COMPLETED,
    }),
}


def role_allows(role, operation):
    return Role(role) in PERMISSIONS[Operation(operation)]


def operations_for(role):
    """Operations ``role`` may perform on at least some resource."""
    return sorted(op.value for op, roles in PERMISSIONS.items() if Role(role) in roles)


def transition_operation(current_status, target_status):
    """Operation owning the edge, or None if the edge does not exist."""
    return TRANSITIONS.get((RequestStatus(current_status), RequestStatus(target_status)))


def operations_leaving(status):
    """Operations owning an edge out of ``status``."""
    return frozenset(op for (source, _), op in TRANSITIONS.items() if source == RequestStatus(status))
