"""Tests for the permission evaluator and the DRF role gate."""
from types import SimpleNamespace

import pytest

from marketing_ops.exceptions import AuthorizationDenied
from marketing_ops.models import AccessRequest, User
from marketing_ops.permissions import Actor, PermissionEvaluator, RolePermission


def actor(role, department=None, email=None):
    return Actor(
        id='00000000-0000-0000-0000-000000000001',
        name=role.title(),
        email=email or f'{role}@example.com',
        role=role,
        department=department,
        department_id='dept' if department else None,
    )


@pytest.fixture
def evaluator():
    return PermissionEvaluator()


class TestCampaignTransitions:
    def test_manager_in_own_department_is_allowed(self, evaluator):
        assert evaluator.can_transition_campaign(actor(User.Role.MANAGER, 'Marketing'), 'marketing ')

    def test_manager_in_other_department_is_read_only(self, evaluator):
        decision = evaluator.can_transition_campaign(actor(User.Role.MANAGER, 'Sales'), 'Marketing')
        assert not decision
        assert decision.reason == 'foreign_department'
        assert decision.message == 'Read-only: Owned by Marketing'

    def test_executive_is_never_allowed(self, evaluator):
        decision = evaluator.can_transition_campaign(actor(User.Role.EXECUTIVE, 'Marketing'), 'Marketing')
        assert not decision
        assert decision.reason == 'read_only'
        assert decision.message == 'Read-only: Observer Mode'

    @pytest.mark.parametrize('role', [User.Role.ADMIN, User.Role.SUPER_ADMIN])
    def test_admin_tier_can_act_anywhere(self, evaluator, role):
        assert evaluator.can_transition_campaign(actor(role), 'Sales')


class TestCampaignWrites:
    def test_executive_can_edit_own_campaign_only(self, evaluator):
        executive = actor(User.Role.EXECUTIVE, 'Marketing', email='Exec@Example.com')
        assert evaluator.can_write_campaign(executive, 'Marketing', 'exec@example.com')
        assert not evaluator.can_write_campaign(executive, 'Marketing', 'someone@example.com')

    def test_manager_edit_follows_department(self, evaluator):
        manager = actor(User.Role.MANAGER, 'Sales')
        assert not evaluator.can_write_campaign(manager, 'Marketing', manager.email)
        assert evaluator.can_write_campaign(manager, 'Sales', 'other@example.com')

    def test_create_is_limited_to_own_department(self, evaluator):
        executive = actor(User.Role.EXECUTIVE, 'Marketing')
        assert evaluator.can_create_campaign(executive, 'Marketing')
        assert evaluator.can_create_campaign(executive, 'Sales').reason == 'foreign_department'
        assert evaluator.can_create_campaign(actor(User.Role.ADMIN), 'Sales')


class TestInfluencerAndMobile:
    def test_creator_or_admin_can_edit_influencer(self, evaluator):
        assert evaluator.can_write_influencer(actor(User.Role.EXECUTIVE, email='a@x.com'), 'A@X.com')
        assert evaluator.can_write_influencer(actor(User.Role.ADMIN), 'a@x.com')
        decision = evaluator.can_write_influencer(actor(User.Role.MANAGER, 'Marketing'), 'a@x.com')
        assert decision.reason == 'not_owner'

    @pytest.mark.parametrize(
        'status, visible',
        [
            (None, False),
            (AccessRequest.Status.PENDING, False),
            (AccessRequest.Status.REJECTED, False),
            (AccessRequest.Status.REVOKED, False),
            (AccessRequest.Status.APPROVED, True),
        ],
    )
    def test_executive_sees_mobile_only_when_approved(self, evaluator, status, visible):
        assert evaluator.can_view_mobile(actor(User.Role.EXECUTIVE, 'Marketing'), status) is visible

    @pytest.mark.parametrize('role', [User.Role.MANAGER, User.Role.ADMIN, User.Role.SUPER_ADMIN])
    def test_other_roles_always_see_mobile(self, evaluator, role):
        assert evaluator.can_view_mobile(actor(role, 'Marketing'), None) is True


class TestAccessAndDirectory:
    def test_only_executives_request_access(self, evaluator):
        assert evaluator.can_request_access(actor(User.Role.EXECUTIVE, 'Marketing'))
        assert not evaluator.can_request_access(actor(User.Role.MANAGER, 'Marketing'))

    def test_resolver_must_match_request_department(self, evaluator):
        assert evaluator.can_resolve_access_request(actor(User.Role.MANAGER, 'Marketing'), 'Marketing')
        assert not evaluator.can_resolve_access_request(actor(User.Role.MANAGER, 'Sales'), 'Marketing')
        assert not evaluator.can_resolve_access_request(actor(User.Role.EXECUTIVE, 'Marketing'), 'Marketing')

    def test_only_super_admin_manages_super_admins(self, evaluator):
        assert not evaluator.can_manage_user(actor(User.Role.ADMIN), User.Role.SUPER_ADMIN)
        assert evaluator.can_manage_user(actor(User.Role.ADMIN), User.Role.MANAGER)
        assert evaluator.can_manage_user(actor(User.Role.SUPER_ADMIN), User.Role.SUPER_ADMIN)
        assert not evaluator.can_manage_user(actor(User.Role.MANAGER, 'Marketing'), User.Role.EXECUTIVE)

    def test_require_raises_with_reason(self, evaluator):
        decision = evaluator.can_transition_campaign(actor(User.Role.EXECUTIVE, 'Marketing'), 'Marketing')
        with pytest.raises(AuthorizationDenied) as exc_info:
            evaluator.require(decision)
        assert exc_info.value.reason == 'read_only'
        assert exc_info.value.as_payload()['detail'] == 'Read-only: Observer Mode'


class TestRolePermission:
    def request(self, role, method='GET'):
        return SimpleNamespace(user=actor(role, 'Marketing'), method=method)

    def test_view_without_allowlist_is_open(self):
        assert RolePermission().has_permission(self.request(User.Role.EXECUTIVE), SimpleNamespace())

    def test_tuple_allowlist(self):
        view = SimpleNamespace(allowed_roles=(User.Role.MANAGER,))
        assert RolePermission().has_permission(self.request(User.Role.MANAGER), view)
        assert not RolePermission().has_permission(self.request(User.Role.EXECUTIVE), view)

    def test_per_method_allowlist(self):
        view = SimpleNamespace(allowed_roles={'post': (User.Role.ADMIN,)})
        assert RolePermission().has_permission(self.request(User.Role.EXECUTIVE, 'GET'), view)
        assert not RolePermission().has_permission(self.request(User.Role.EXECUTIVE, 'POST'), view)

    def test_anonymous_is_rejected(self):
        assert not RolePermission().has_permission(SimpleNamespace(user=None, method='GET'), SimpleNamespace())
