"""Role, department and ownership checks.

``PermissionEvaluator`` is the single authorization choke point: every
mutating service call and every read of an influencer's mobile number asks it
first. It is a pure function of the actor and the target's ownership data and
never touches the store. ``RolePermission`` is the coarse per-endpoint gate
used by the DRF views.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from rest_framework.permissions import BasePermission

from .exceptions import AuthorizationDenied
from .models import AccessRequest, User

ADMIN_ROLES = frozenset({User.Role.ADMIN, User.Role.SUPER_ADMIN})
RESOLVER_ROLES = frozenset({User.Role.MANAGER, User.Role.ADMIN, User.Role.SUPER_ADMIN})


def same_department(left: Optional[str], right: Optional[str]) -> bool:
    if not left or not right:
        return False
    return left.strip().casefold() == right.strip().casefold()


def same_identity(left: Optional[str], right: Optional[str]) -> bool:
    if not left or not right:
        return False
    return left.strip().lower() == right.strip().lower()


@dataclass(frozen=True)
class Actor:
    """Authenticated user as seen by the workflows."""

    id: str
    name: str
    email: str
    role: str
    department: Optional[str] = None
    department_id: Optional[str] = None
    avatar: str = ''

    is_authenticated = True
    is_anonymous = False

    @property
    def pk(self) -> str:
        return self.id

    @property
    def is_admin_tier(self) -> bool:
        return self.role in ADMIN_ROLES

    def as_dict(self) -> dict[str, Optional[str]]:
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'department': self.department,
            'avatar': self.avatar,
        }


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ''
    message: str = ''

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(True)


def _observer() -> Decision:
    return Decision(False, 'read_only', 'Read-only: Observer Mode')


def _foreign(department: Optional[str]) -> Decision:
    return Decision(False, 'foreign_department', f"Read-only: Owned by {department or 'another department'}")


def _not_owner(kind: str) -> Decision:
    return Decision(False, 'not_owner', f'Only the creator of this {kind} can modify it')


class PermissionEvaluator:
    """Decides what an actor may do to campaigns, influencers and requests."""

    def can_transition_campaign(self, actor: Actor, department: Optional[str]) -> Decision:
        if actor.is_admin_tier:
            return ALLOW
        if actor.role == User.Role.MANAGER:
            return ALLOW if same_department(actor.department, department) else _foreign(department)
        return _observer()

    def can_write_campaign(self, actor: Actor, department: Optional[str], created_by: Optional[str]) -> Decision:
        if actor.role == User.Role.EXECUTIVE:
            return ALLOW if same_identity(actor.email, created_by) else _observer()
        return self.can_transition_campaign(actor, department)

    def can_create_campaign(self, actor: Actor, department: Optional[str]) -> Decision:
        if actor.is_admin_tier:
            return ALLOW
        if actor.role in (User.Role.MANAGER, User.Role.EXECUTIVE):
            if same_department(actor.department, department):
                return ALLOW
            return Decision(
                False,
                'foreign_department',
                'Campaigns can only be logged for your own department',
            )
        return _observer()

    def can_write_influencer(self, actor: Actor, created_by: Optional[str]) -> Decision:
        if actor.is_admin_tier or same_identity(actor.email, created_by):
            return ALLOW
        return _not_owner('influencer')

    def can_view_mobile(self, actor: Actor, access_status: Optional[str]) -> bool:
        if actor.role != User.Role.EXECUTIVE:
            return True
        return access_status == AccessRequest.Status.APPROVED

    def can_request_access(self, actor: Actor) -> Decision:
        if actor.role != User.Role.EXECUTIVE:
            return Decision(False, 'not_required', 'Only executives need to request contact access')
        return ALLOW

    def can_resolve_access_request(self, actor: Actor, department: Optional[str]) -> Decision:
        if actor.role not in RESOLVER_ROLES:
            return _observer()
        if not same_department(actor.department, department):
            return _foreign(department)
        return ALLOW

    def can_manage_directory(self, actor: Actor) -> Decision:
        if actor.is_admin_tier:
            return ALLOW
        return Decision(False, 'admin_only', 'Only administrators can manage departments and users')

    def can_manage_user(self, actor: Actor, target_role: Optional[str]) -> Decision:
        decision = self.can_manage_directory(actor)
        if not decision:
            return decision
        if target_role == User.Role.SUPER_ADMIN and actor.role != User.Role.SUPER_ADMIN:
            return Decision(False, 'super_admin_only', 'Only a super admin can manage super admin accounts')
        return ALLOW

    @staticmethod
    def require(decision: Decision):
        if not decision.allowed:
            raise AuthorizationDenied(decision.message or 'You do not have permission to perform this action.', decision.reason)


evaluator = PermissionEvaluator()


class RolePermission(BasePermission):
    """Gate endpoints based on declared role allowlists."""

    message = 'You do not have permission to perform this action.'

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = request.user
        if not user or not user.is_authenticated:
            return False
        allowed_roles: Iterable[str] | dict[str, Iterable[str]] | None = getattr(view, 'allowed_roles', None)
        if not allowed_roles:
            return True
        if isinstance(allowed_roles, dict):
            method_roles = allowed_roles.get(request.method.lower()) or allowed_roles.get(request.method.upper())
            if not method_roles:
                return True
            return user.role in method_roles
        return user.role in allowed_roles
