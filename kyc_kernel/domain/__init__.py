"""
Pure domain layer.

This module contains value objects and decision functions with NO
dependencies on:
- HTTP clients or sessions
- Configuration files
- Time/clock
- I/O

All domain objects are immutable and deterministic.
"""

from kyc_kernel.domain.caller import (
    CONTEXT_ADMIN,
    CONTEXT_VENDOR,
    Caller,
    caller_from_session_user,
    has_admin_access,
    has_permission,
    has_role,
    is_super_admin,
)
from kyc_kernel.domain.dtos import (
    AdminKycFilters,
    ExportFormat,
    KycActionResult,
    KycDocument,
    KycListPage,
    KycStatistics,
    KycStatusUpdateRequest,
    PaginationMeta,
)
from kyc_kernel.domain.review import (
    FAILURE_REASON_REQUIRED,
    FAILURE_RECORD_LOCKED,
    FAILURE_TRANSITION_NOT_PERMITTED,
    ReviewDecision,
    TransitionAttempt,
    can_modify,
    enforce_attempt,
    evaluate_attempt,
    is_reason_satisfied,
    is_transition_permitted,
    requires_reason,
    reviewer_next_states,
)
from kyc_kernel.domain.status import (
    FINAL_STATUSES,
    INITIAL_STATUS,
    STATUS_REGISTRY,
    KycStatus,
    StatusInfo,
    description_for,
    is_final,
    label_for,
    parse_status,
)
from kyc_kernel.domain.transitions import (
    DEFAULT_POLICY,
    PRIVILEGED_TRANSITIONS,
    REGULAR_TRANSITIONS,
    TransitionPolicy,
    available_next_states,
)

__all__ = [
    # Status registry
    "KycStatus",
    "StatusInfo",
    "STATUS_REGISTRY",
    "FINAL_STATUSES",
    "INITIAL_STATUS",
    "parse_status",
    "label_for",
    "description_for",
    "is_final",
    # Transition tables
    "TransitionPolicy",
    "DEFAULT_POLICY",
    "REGULAR_TRANSITIONS",
    "PRIVILEGED_TRANSITIONS",
    "available_next_states",
    # Review decisions
    "TransitionAttempt",
    "ReviewDecision",
    "FAILURE_RECORD_LOCKED",
    "FAILURE_TRANSITION_NOT_PERMITTED",
    "FAILURE_REASON_REQUIRED",
    "is_transition_permitted",
    "requires_reason",
    "is_reason_satisfied",
    "can_modify",
    "reviewer_next_states",
    "evaluate_attempt",
    "enforce_attempt",
    # Caller
    "Caller",
    "CONTEXT_ADMIN",
    "CONTEXT_VENDOR",
    "caller_from_session_user",
    "has_admin_access",
    "has_permission",
    "has_role",
    "is_super_admin",
    # DTOs
    "AdminKycFilters",
    "ExportFormat",
    "KycActionResult",
    "KycDocument",
    "KycListPage",
    "KycStatistics",
    "KycStatusUpdateRequest",
    "PaginationMeta",
]
