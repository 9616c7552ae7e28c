# lab_core/common/permissions.py

from __future__ import annotations

from typing import Dict, FrozenSet, Set

from rest_framework.permissions import SAFE_METHODS, BasePermission

# Django auth Group names
ROLE_ADMIN = "ADMIN"
ROLE_MEMBER = "MEMBER"

ADMIN_ONLY: FrozenSet[str] = frozenset({ROLE_ADMIN})
NOBODY: FrozenSet[str] = frozenset()


def user_roles(user) -> Set[str]:
    """
    Roles of a request user.

    Superusers are ADMIN regardless of groups. Other authenticated users get
    their Django group names, or MEMBER when they belong to no group.
    Anonymous users have no roles.
    """
    if user is None or not getattr(user, "is_authenticated", False):
        return set()

    if getattr(user, "is_superuser", False):
        return {ROLE_ADMIN}

    roles: Set[str] = set()
    if hasattr(user, "groups"):
        roles.update(user.groups.values_list("name", flat=True))

    return roles or {ROLE_MEMBER}


def is_admin_user(user) -> bool:
    return ROLE_ADMIN in user_roles(user)


class BaseRolePermission(BasePermission):
    """
    Role check keyed by ViewSet action.

    read_roles covers safe methods, write_roles everything else;
    action_roles overrides both for named actions (custom @action names
    included). ADMIN always passes. Unauthenticated requests never do.
    """
    message = "You do not have permission to perform this action."

    read_roles: FrozenSet[str] = ADMIN_ONLY
    write_roles: FrozenSet[str] = ADMIN_ONLY
    action_roles: Dict[str, FrozenSet[str]] = {}

    def allowed_roles(self, request, view) -> FrozenSet[str]:
        action = getattr(view, "action", None)
        if action in self.action_roles:
            return self.action_roles[action]
        return self.read_roles if request.method in SAFE_METHODS else self.write_roles

    def has_permission(self, request, view) -> bool:
        roles = user_roles(request.user)
        if not roles:
            return False
        if ROLE_ADMIN in roles:
            return True
        return bool(roles & self.allowed_roles(request, view))

    def has_object_permission(self, request, view, obj) -> bool:
        return self.has_permission(request, view)


class CatalogAdminPermission(BaseRolePermission):
    """Tariffs, the price ledger, references and memberships: ADMIN only."""


class AuditPermission(BaseRolePermission):
    """The audit trail is read-only, and only admins read it."""
    write_roles = NOBODY
