"""
kyc_services.rbac_authority -- Permission check at the review boundary.

Responsibility:
    Decide whether a caller may perform a KYC admin action.  Actions map to
    the backend's permission names; super admins hold every permission.

Architecture position:
    Services layer.  Called by ``KycReviewService`` before any transition
    check or backend call.

Invariants:
    - The kernel stays actor-agnostic; this module receives a ``Caller``
      already derived from the session user.
    - An action with no mapped permission is denied (fail-closed).
"""

from __future__ import annotations

from kyc_kernel.domain.caller import CONTEXT_ADMIN, Caller, has_permission

# action -> permission name granted by the backend
ACTION_TO_PERMISSION: dict[str, str] = {
    "view": "view_kyc",
    "update_status": "approve_kyc",
    "export": "export_kyc",
}


def get_permission_for_action(action: str) -> str | None:
    """Return the permission required for this action, or None if not in scope."""
    return ACTION_TO_PERMISSION.get(action)


def check_permission(caller: Caller | None, action: str) -> tuple[bool, str]:
    """Check whether ``caller`` may perform ``action``.

    Returns:
        (allowed, reason). reason is empty when allowed, or a short message
        when denied.
    """
    if caller is None:
        return (False, "RBAC: no authenticated caller")

    required = get_permission_for_action(action)
    if required is None:
        return (False, f"RBAC: unknown action '{action}'")

    if caller.is_privileged:
        return (True, "")

    if not caller.has_admin_access:
        return (False, "RBAC: caller has no admin access")
    if caller.active_context != CONTEXT_ADMIN:
        return (False, f"RBAC: action '{action}' requires the admin context")

    if not has_permission(caller, required):
        return (False, f"RBAC: permission '{required}' not granted to actor")

    return (True, "")
