"""
store.permissions
Role resolution and capability checks. This module is the single authority
for "who may do what": views, admin and services all go through it.
"""
import logging

from django.conf import settings
from rest_framework import exceptions
from rest_framework.permissions import BasePermission

from .models import Role, User, UserRole

logger = logging.getLogger(__name__)

SUPERADMIN, ADMIN, EDITOR = Role.SUPERADMIN, Role.ADMIN, Role.EDITOR

# capability -> roles granting it
CAPABILITIES = {
    "access_admin": {SUPERADMIN, ADMIN, EDITOR},
    "manage_catalog": {SUPERADMIN, ADMIN, EDITOR},
    "manage_orders": {SUPERADMIN, ADMIN, EDITOR},
    "manage_invoices": {SUPERADMIN, ADMIN, EDITOR},
    "approve_reviews": {SUPERADMIN, ADMIN, EDITOR},
    "delete_reviews": {SUPERADMIN, ADMIN},
    "manage_roles": {SUPERADMIN},
    "delete_users": {SUPERADMIN},
}

DENIED_MESSAGES = {
    "manage_roles": "Only superadmin can manage roles",
    "delete_users": "Only superadmin can delete users",
}


def primary_superadmin_emails() -> frozenset:
    return frozenset(e.strip().lower() for e in getattr(settings, "PRIMARY_SUPERADMIN_EMAILS", []) if e)


def is_primary_superadmin(email) -> bool:
    return bool(email) and email.strip().lower() in primary_superadmin_emails()


def resolve_roles(user_or_id) -> frozenset:
    """
    Role names held by a user: live user_roles rows, plus superadmin for the
    primary accounts whatever the join table says. Recomputed on every call.
    """
    if user_or_id is None:
        return frozenset()
    if isinstance(user_or_id, User):
        user = user_or_id
    else:
        user = User.objects.filter(pk=user_or_id).first()
    if user is None or user.pk is None:
        return frozenset()

    names = set(
        UserRole.objects.filter(user_id=user.pk, role__isnull=False)
        .values_list("role__name", flat=True)
    )
    if is_primary_superadmin(user.email):
        names.add(SUPERADMIN)
    return frozenset(names)


def resolve_roles_bulk(users) -> dict:
    """{user_id: frozenset(role names)} for a page of users, in one query."""
    users = list(users)
    by_user = {u.pk: set() for u in users}
    rows = UserRole.objects.filter(user_id__in=list(by_user), role__isnull=False).values_list(
        "user_id", "role__name"
    )
    for user_id, name in rows:
        by_user[user_id].add(name)
    for u in users:
        if is_primary_superadmin(u.email):
            by_user[u.pk].add(SUPERADMIN)
    return {uid: frozenset(names) for uid, names in by_user.items()}


def capabilities_for(roles) -> frozenset:
    roles = set(roles or ())
    return frozenset(cap for cap, granted in CAPABILITIES.items() if roles & granted)


def has_capability(user, capability: str) -> bool:
    if user is None or not getattr(user, "is_authenticated", False):
        return False
    return capability in capabilities_for(resolve_roles(user))


def require_capability(user, capability: str):
    if user is None or not getattr(user, "is_authenticated", False):
        raise exceptions.NotAuthenticated()
    if not has_capability(user, capability):
        logger.info(f"Denied {capability} to {getattr(user, 'email', user)}")
        raise exceptions.PermissionDenied(DENIED_MESSAGES.get(capability, "Insufficient permissions"))


class HasCapability(BasePermission):
    """
    Views declare `required_capability` (default "access_admin") and may
    override it per action through `action_capabilities`.
    """
    default_capability = "access_admin"

    def _capability(self, view) -> str:
        action = getattr(view, "action", None)
        per_action = getattr(view, "action_capabilities", {}) or {}
        if action in per_action:
            return per_action[action]
        return getattr(view, "required_capability", self.default_capability)

    def has_permission(self, request, view):
        capability = self._capability(view)
        if capability is None:
            return True
        require_capability(request.user, capability)
        return True
