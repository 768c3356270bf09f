"""Authorization gate and tenant isolation tests."""

import pytest
from flask_login import login_user

from printdesk.authz.gate import allowed_actions, authorize, check_session, is_allowed
from printdesk.authz.permissions import (
    PERMISSIONS,
    TRANSITIONS,
    Operation,
    operations_for,
    transition_operation,
)
from printdesk.errors import Forbidden, NotFound, SessionInvalid
from printdesk.models import PrintRequest, RequestStatus, Role


class TestPermissionTable:

    def test_every_operation_has_roles(self):
        assert set(PERMISSIONS) == set(Operation)
        assert all(PERMISSIONS[op] for op in Operation)

    def test_each_edge_owned_by_one_role(self):
        for operation in TRANSITIONS.values():
            assert len(PERMISSIONS[operation]) == 1

    def test_transition_lookup(self):
        assert transition_operation('PENDING', 'APPROVED') == Operation.APPROVE_REQUEST
        assert transition_operation(RequestStatus.IN_PROGRESS, RequestStatus.COMPLETED) == \
            Operation.COMPLETE_PRINTING
        assert transition_operation(RequestStatus.PENDING, RequestStatus.IN_PROGRESS) is None
        assert transition_operation(RequestStatus.COMPLETED, RequestStatus.PENDING) is None

    def test_operations_for_roles(self):
        assert operations_for(Role.REQUESTER) == [
            'create_request', 'delete_request', 'list_requests', 'read_request', 'view_stats',
        ]
        assert 'create_request' not in operations_for(Role.ORG_ADMIN)
        assert 'delete_request' not in operations_for(Role.PRINT_OPERATOR)


class TestGate:

    def test_inactive_actor_rejected_before_role_check(self, db, requester):
        requester.is_active = False
        db.session.commit()

        with pytest.raises(SessionInvalid):
            authorize(requester, Operation.CREATE_REQUEST)

    def test_tenant_check_precedes_role_check(self, org2_operator, requester, make_request):
        """An operator of another organization learns nothing, not even 'forbidden'."""
        print_request = make_request(requester)

        with pytest.raises(NotFound):
            authorize(org2_operator, Operation.DELETE_REQUEST, print_request)

    def test_role_check(self, admin, operator):
        with pytest.raises(Forbidden):
            authorize(admin, Operation.CREATE_REQUEST)
        with pytest.raises(Forbidden):
            authorize(operator, Operation.ANNOUNCE)
        authorize(admin, Operation.ANNOUNCE)

    def test_is_allowed_does_not_raise(self, requester, admin):
        assert is_allowed(requester, Operation.CREATE_REQUEST)
        assert not is_allowed(admin, Operation.CREATE_REQUEST)

    def test_check_session_epoch(self, db, requester):
        assert check_session(requester.id, 0) is requester

        requester.terminate_sessions()
        db.session.commit()

        with pytest.raises(SessionInvalid):
            check_session(requester.id, 0)
        assert check_session(str(requester.id), '1') is requester

    def test_check_session_unknown_user(self, db):
        with pytest.raises(SessionInvalid):
            check_session(9999, 0)


class TestAllowedActions:

    def test_requester_on_own_pending(self, requester, make_request):
        print_request = make_request(requester)
        assert allowed_actions(requester, print_request) == ['read_request', 'delete_request']

    def test_requester_on_own_approved(self, requester, make_request):
        print_request = make_request(requester, status=RequestStatus.APPROVED)
        assert allowed_actions(requester, print_request) == ['read_request']

    def test_requester_on_someone_elses(self, requester, other_requester, make_request):
        print_request = make_request(other_requester)
        assert allowed_actions(requester, print_request) == []

    def test_admin_on_pending(self, admin, requester, make_request):
        print_request = make_request(requester)
        assert allowed_actions(admin, print_request) == [
            'read_request', 'approve_request', 'reject_request',
        ]

    def test_admin_on_completed(self, admin, requester, make_request):
        print_request = make_request(requester, status=RequestStatus.COMPLETED)
        assert allowed_actions(admin, print_request) == ['read_request', 'delete_request']

    def test_operator_on_approved(self, operator, requester, make_request):
        print_request = make_request(requester, status=RequestStatus.APPROVED)
        assert allowed_actions(operator, print_request) == [
            'read_request', 'start_printing', 'download_file',
        ]

    def test_operator_on_in_progress(self, operator, requester, make_request):
        print_request = make_request(requester, status=RequestStatus.IN_PROGRESS)
        assert allowed_actions(operator, print_request) == [
            'read_request', 'complete_printing', 'download_file',
        ]

    def test_other_organization_gets_nothing(self, org2_admin, requester, make_request):
        print_request = make_request(requester, status=RequestStatus.COMPLETED)
        assert allowed_actions(org2_admin, print_request) == []


class TestTenantIsolation:
    """Resources of another organization look exactly like missing ones."""

    def test_tenant_query_scopes_to_current_user(self, app, requester, org2_requester, make_request):
        mine = make_request(requester)
        make_request(org2_requester)

        with app.test_request_context():
            login_user(requester)
            assert PrintRequest.tenant_query().all() == [mine]
            assert PrintRequest.get_for_tenant(mine.id) is mine

    def test_tenant_query_requires_request_context(self):
        with pytest.raises(RuntimeError):
            PrintRequest.tenant_query()

    def test_get_for_tenant_hides_other_organization(self, requester, org2, make_request):
        print_request = make_request(requester)

        with pytest.raises(NotFound):
            PrintRequest.get_for_tenant(print_request.id, tenant_id=org2.id)

    def test_all_for_tenant(self, requester, org1, org2, make_request):
        print_request = make_request(requester)

        assert PrintRequest.all_for_tenant(tenant_id=org1.id) == [print_request]
        assert PrintRequest.all_for_tenant(tenant_id=org2.id) == []

    @pytest.mark.parametrize('method, suffix', [
        ('get', ''),
        ('delete', ''),
        ('post', '/approve'),
        ('post', '/reject'),
        ('get', '/preview'),
        ('get', '/file-url'),
    ])
    def test_admin_of_other_org_gets_not_found(self, org2_admin_client, requester, make_request, method, suffix):
        print_request = make_request(requester, status=RequestStatus.COMPLETED)

        response = getattr(org2_admin_client, method)(f'/api/print-requests/{print_request.id}{suffix}')

        assert response.status_code == 404
        assert response.get_json() == {'error': 'Not found', 'code': 'NOT_FOUND'}

    def test_cross_tenant_indistinguishable_from_missing(self, org2_admin_client, requester, make_request):
        print_request = make_request(requester)

        existing = org2_admin_client.post(f'/api/print-requests/{print_request.id}/approve')
        missing = org2_admin_client.post('/api/print-requests/99999/approve')

        assert existing.status_code == missing.status_code == 404
        assert existing.get_json() == missing.get_json()

    def test_operator_of_other_org_cannot_change_status(self, org2_operator_client, requester, make_request, db):
        print_request = make_request(requester, status=RequestStatus.APPROVED)

        response = org2_operator_client.post(
            f'/api/print-requests/{print_request.id}/status', json={'status': 'IN_PROGRESS'}
        )

        assert response.status_code == 404
        db.session.expire_all()
        assert db.session.get(PrintRequest, print_request.id).status == RequestStatus.APPROVED

    def test_other_org_listing_is_empty(self, org2_admin_client, requester, make_request):
        make_request(requester)

        response = org2_admin_client.get('/api/print-requests')

        assert response.status_code == 200
        assert response.get_json()['print_requests'] == []
