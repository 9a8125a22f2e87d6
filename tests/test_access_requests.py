"""Tests for the access request workflow and its duplicate policy."""
import pytest

from marketing_ops.exceptions import AuthorizationDenied, ConfigurationError, InvalidTransition, ValidationFailed
from marketing_ops.authentication import actor_from_document
from marketing_ops.models import User
from marketing_ops.services import AccessRequestService, DirectoryService, InfluencerService

from .conftest import make_user


@pytest.fixture
def influencer(store, manager, influencer_data):
    return InfluencerService(actor=manager, store=store).create(influencer_data)


class TestRequesting:
    def test_request_records_requester_and_department(self, store, executive, influencer):
        request = AccessRequestService(actor=executive, store=store).request_access(influencer['id'])
        assert request['status'] == 'pending'
        assert request['requester_email'] == executive.email
        assert request['requester_name'] == executive.name
        assert request['influencer_name'] == influencer['name']
        assert request['department'] == 'Marketing'

    def test_executive_without_department_is_told_to_contact_admin(self, store, influencer):
        orphan = actor_from_document(make_user(store, 'orphan@example.com', User.Role.EXECUTIVE), store)
        with pytest.raises(ConfigurationError) as exc_info:
            AccessRequestService(actor=orphan, store=store).request_access(influencer['id'])
        assert 'not assigned to a department' in exc_info.value.message
        assert store.list('access_request') == []

    def test_managers_do_not_request_access(self, store, manager, influencer):
        with pytest.raises(AuthorizationDenied):
            AccessRequestService(actor=manager, store=store).request_access(influencer['id'])

    def test_status_for_uses_latest_request(self, store, executive, manager, influencer):
        service = AccessRequestService(actor=executive, store=store)
        first = service.request_access(influencer['id'])
        AccessRequestService(actor=manager, store=store).approve(first['id'])
        assert service.status_for(influencer['id']) == 'approved'
        service.request_access(influencer['id'])
        assert service.status_for(influencer['id']) == 'pending'


class TestResolving:
    def test_manager_approves_own_department(self, store, executive, manager, influencer):
        request = AccessRequestService(actor=executive, store=store).request_access(influencer['id'])
        approved = AccessRequestService(actor=manager, store=store).approve(request['id'])
        assert approved['status'] == 'approved'
        assert approved['resolved_by'] == manager.email
        assert approved['resolved_at'] is not None

    def test_manager_of_other_department_cannot_resolve(self, store, executive, sales_manager, influencer):
        request = AccessRequestService(actor=executive, store=store).request_access(influencer['id'])
        with pytest.raises(AuthorizationDenied) as exc_info:
            AccessRequestService(actor=sales_manager, store=store).approve(request['id'])
        assert exc_info.value.reason == 'foreign_department'

    def test_admin_of_requesting_department_resolves(self, store, executive, admin, influencer):
        created = DirectoryService(actor=admin, store=store).create_user(
            {'email': 'ops.admin@example.com', 'password': 'pw-123', 'role': 'admin', 'department': 'Marketing'}
        )
        assert created['department'] == 'Marketing'
        marketing_admin = actor_from_document(store.get('user', created['id']), store)
        request = AccessRequestService(actor=executive, store=store).request_access(influencer['id'])
        resolver = AccessRequestService(actor=marketing_admin, store=store)
        assert [item['id'] for item in resolver.list_for_resolver()] == [request['id']]
        approved = resolver.approve(request['id'])
        assert approved['status'] == 'approved'
        assert approved['resolved_by'] == 'ops.admin@example.com'

    def test_admin_without_department_cannot_resolve(self, store, executive, admin, influencer):
        request = AccessRequestService(actor=executive, store=store).request_access(influencer['id'])
        with pytest.raises(AuthorizationDenied):
            AccessRequestService(actor=admin, store=store).reject(request['id'])

    def test_rejected_request_cannot_be_revoked_or_approved(self, store, executive, manager, influencer):
        request = AccessRequestService(actor=executive, store=store).request_access(influencer['id'])
        resolver = AccessRequestService(actor=manager, store=store)
        resolver.reject(request['id'])
        with pytest.raises(InvalidTransition):
            resolver.revoke(request['id'])
        with pytest.raises(InvalidTransition):
            resolver.approve(request['id'])

    def test_pending_request_cannot_be_revoked(self, store, executive, manager, influencer):
        request = AccessRequestService(actor=executive, store=store).request_access(influencer['id'])
        with pytest.raises(InvalidTransition):
            AccessRequestService(actor=manager, store=store).revoke(request['id'])

    def test_resolver_list_is_scoped_to_department(self, store, executive, manager, sales_manager, influencer):
        AccessRequestService(actor=executive, store=store).request_access(influencer['id'])
        assert len(AccessRequestService(actor=manager, store=store).list_for_resolver()) == 1
        assert AccessRequestService(actor=sales_manager, store=store).list_for_resolver() == []
        assert AccessRequestService(actor=manager, store=store).list_for_resolver(status='approved') == []

    def test_executives_cannot_list_resolver_queue(self, store, executive):
        with pytest.raises(AuthorizationDenied):
            AccessRequestService(actor=executive, store=store).list_for_resolver()

    def test_requester_sees_own_requests(self, store, executive, other_executive, influencer):
        AccessRequestService(actor=executive, store=store).request_access(influencer['id'])
        assert len(AccessRequestService(actor=executive, store=store).list_for_requester()) == 1
        assert AccessRequestService(actor=other_executive, store=store).list_for_requester() == []


class TestDuplicatePolicy:
    def test_allow_keeps_every_request(self, store, executive, influencer):
        service = AccessRequestService(actor=executive, store=store, policy='allow')
        service.request_access(influencer['id'])
        service.request_access(influencer['id'])
        assert len(service.list_for_requester()) == 2

    def test_block_open_refuses_while_pending(self, store, executive, manager, influencer):
        service = AccessRequestService(actor=executive, store=store, policy='block_open')
        first = service.request_access(influencer['id'])
        with pytest.raises(ValidationFailed):
            service.request_access(influencer['id'])
        AccessRequestService(actor=manager, store=store).reject(first['id'])
        assert service.request_access(influencer['id'])['status'] == 'pending'

    def test_block_all_allows_again_only_after_revocation(self, store, executive, manager, influencer):
        service = AccessRequestService(actor=executive, store=store, policy='block_all')
        resolver = AccessRequestService(actor=manager, store=store)
        first = service.request_access(influencer['id'])
        resolver.approve(first['id'])
        resolver.revoke(first['id'])
        second = service.request_access(influencer['id'])
        resolver.reject(second['id'])
        with pytest.raises(ValidationFailed):
            service.request_access(influencer['id'])

    def test_unknown_policy_is_a_configuration_error(self, store, executive):
        with pytest.raises(ConfigurationError):
            AccessRequestService(actor=executive, store=store, policy='sometimes')
