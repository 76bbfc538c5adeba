"""
Caller identity and privilege derivation (``kyc_kernel.domain.caller``).

Responsibility
--------------
Turns the authenticated user payload (as returned by the backend's
``/auth/me``) into the small ``Caller`` value the review kernel reasons
about.  This is the one place where "is this user a super admin" and
"may this user enter the admin portal" are decided.

Invariants enforced
-------------------
* Explicit-flag rule: a flag grants access only when it is literally
  ``True``.  The presence of an ``admin`` object, even an empty one, grants
  nothing -- vendors are commonly sent ``"admin": {}``.
* Super admins hold every permission.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

CONTEXT_ADMIN = "admin"
CONTEXT_VENDOR = "vendor"


@dataclass(frozen=True)
class Caller:
    """Who is asking.  Derived per request, never stored."""

    actor_id: str | None
    is_privileged: bool = False
    has_admin_access: bool = False
    permissions: frozenset[str] = frozenset()
    roles: frozenset[str] = frozenset()
    active_context: str = CONTEXT_VENDOR


def _admin_block(user: Mapping[str, Any]) -> Mapping[str, Any]:
    admin = user.get("admin")
    return admin if isinstance(admin, Mapping) else {}


def _flag(container: Mapping[str, Any], key: str) -> bool:
    return container.get(key) is True


def is_super_admin(user: Mapping[str, Any] | None) -> bool:
    """Explicit ``is_super_admin`` flag on the user or its admin block."""
    if not user:
        return False
    return _flag(user, "is_super_admin") or _flag(_admin_block(user), "is_super_admin")


def has_admin_access(user: Mapping[str, Any] | None) -> bool:
    """True when any explicit admin flag is set."""
    if not user:
        return False
    admin = _admin_block(user)
    return (
        _flag(user, "has_admin_access")
        or _flag(user, "is_super_admin")
        or _flag(admin, "is_super_admin")
        or _flag(admin, "is_platform_admin")
    )


def _names(items: Any) -> set[str]:
    names: set[str] = set()
    for item in items or ():
        if isinstance(item, str):
            names.add(item)
        elif isinstance(item, Mapping) and isinstance(item.get("name"), str):
            names.add(item["name"])
    return names


def caller_from_session_user(
    user: Mapping[str, Any],
    active_context: str | None = None,
) -> Caller:
    """Build a ``Caller`` from the ``/auth/me`` user payload.

    ``active_context`` overrides the context the payload reports; when
    neither is known, admins land in the admin context and everyone else
    in the vendor context.
    """
    admin = _admin_block(user)
    privileged = is_super_admin(user)
    admin_access = has_admin_access(user)

    permissions = _names(user.get("permissions")) | _names(admin.get("platform_permissions"))
    roles = _names(user.get("roles")) | _names(admin.get("platform_roles"))

    context = active_context or user.get("active_context") or user.get("default_context")
    if context not in (CONTEXT_ADMIN, CONTEXT_VENDOR):
        context = CONTEXT_ADMIN if admin_access else CONTEXT_VENDOR

    actor_id = user.get("id")
    return Caller(
        actor_id=str(actor_id) if actor_id is not None else None,
        is_privileged=privileged,
        has_admin_access=admin_access,
        permissions=frozenset(permissions),
        roles=frozenset(roles),
        active_context=context,
    )


def has_permission(caller: Caller | None, permission: str) -> bool:
    if caller is None:
        return False
    if caller.is_privileged:
        return True
    return permission in caller.permissions


def has_role(caller: Caller | None, role: str) -> bool:
    if caller is None:
        return False
    return role in caller.roles
