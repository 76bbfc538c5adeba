"""
kyc_services.review_service -- Reviewer-facing KYC status changes.

Responsibility:
    Orchestrates one reviewer action end to end: permission check, the
    modification gate / transition validator / reason policy, then the
    backend status update.  Also builds the option set a review screen
    offers for a record.

Architecture position:
    Services layer.  Composes ``rbac_authority``, the pure checks in
    ``kyc_kernel.domain.review`` and ``AdminKycApi``.

Invariants enforced:
    - Checks run in order RBAC -> gate -> validator -> reason; the backend
      is called only when all pass.
    - Exactly one ``KYC_STATUS_TRANSITION`` trace record is emitted per
      ``update_status`` call, whatever the outcome.

Failure modes:
    - ``PermissionDeniedError`` -- caller lacks ``approve_kyc``.
    - ``RecordLockedError`` -- final record, non-privileged caller.
    - ``TransitionNotPermittedError`` -- target not one step away.
    - ``ReasonRequiredError`` -- rejected / needs_more_info without a reason.
    - ``BackendError`` subclasses -- propagated from the backend call,
      including ``MalformedResponseError`` for an unparseable success body.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from kyc_config import get_active_policy
from kyc_kernel.domain.caller import Caller
from kyc_kernel.domain.dtos import KycActionResult, KycStatusUpdateRequest
from kyc_kernel.domain.review import (
    TransitionAttempt,
    can_modify,
    enforce_attempt,
    requires_reason,
    reviewer_next_states,
)
from kyc_kernel.domain.status import STATUS_REGISTRY, KycStatus, coerce_status, label_for
from kyc_kernel.domain.transitions import TransitionPolicy
from kyc_kernel.exceptions import (
    PermissionDeniedError,
    ReasonRequiredError,
    RecordLockedError,
    TransitionNotPermittedError,
)
from kyc_kernel.logging_config import LogContext, get_logger
from kyc_services.admin_kyc_api import AdminKycApi
from kyc_services.rbac_authority import check_permission, get_permission_for_action

logger = get_logger("services.review_service")

TRACE_TYPE_KYC_TRANSITION = "KYC_STATUS_TRANSITION"
OUTCOME_SUCCESS = "success"
OUTCOME_RECORD_LOCKED = "record_locked"
OUTCOME_TRANSITION_NOT_PERMITTED = "transition_not_permitted"
OUTCOME_REASON_REQUIRED = "reason_required"
OUTCOME_PERMISSION_DENIED = "permission_denied"
OUTCOME_BACKEND_ERROR = "backend_error"

LOCKED_MESSAGE = "This KYC record is finalized and cannot be modified"

UPDATE_ACTION = "update_status"


def _emit_review_trace(
    organization_id: str,
    actor_id: str | None,
    from_state: str,
    to_state: str,
    is_privileged: bool,
    outcome: str,
    reason: str,
    duration_ms: float,
    outcome_sink: Callable[[dict], None] | None = None,
) -> None:
    """Emit a structured status-transition record for audit and lookback."""
    record: dict[str, Any] = {
        "trace_type": TRACE_TYPE_KYC_TRANSITION,
        "ts": datetime.now(UTC).isoformat(),
        "organization_id": organization_id,
        "actor_id": actor_id,
        "from_state": from_state,
        "to_state": to_state,
        "is_privileged": is_privileged,
        "outcome": outcome,
        "reason": reason,
        "duration_ms": round(duration_ms, 3),
    }
    for key, value in LogContext.get_all().items():
        if value is not None:
            record.setdefault(key, value)
    # LogRecord reserves "message"; pass it as the log msg instead
    logger.info("kyc_status_transition", extra=record)
    record["message"] = "kyc_status_transition"
    if outcome_sink is not None:
        outcome_sink(record)


@dataclass(frozen=True)
class NextStateOption:
    status: KycStatus
    label: str
    requires_reason: bool


@dataclass(frozen=True)
class ReviewOptions:
    """What a review screen may offer for one record."""

    current_status: str
    current_label: str
    can_modify: bool
    next_states: tuple[NextStateOption, ...]
    lock_message: str | None = None

    @property
    def reason_required_for(self) -> frozenset[KycStatus]:
        return frozenset(o.status for o in self.next_states if o.requires_reason)


class KycReviewService:
    """Applies reviewer status changes through the checks, then the backend.

    Without an explicit ``policy`` the active policy pack from
    ``kyc_config.get_active_policy()`` governs every decision.
    """

    def __init__(
        self,
        api: AdminKycApi,
        policy: TransitionPolicy | None = None,
        outcome_sink: Callable[[dict], None] | None = None,
    ):
        self._api = api
        self._policy = policy if policy is not None else get_active_policy().policy
        self._outcome_sink = outcome_sink

    @property
    def policy(self) -> TransitionPolicy:
        return self._policy

    def review_options(self, caller: Caller, current_status: KycStatus | str) -> ReviewOptions:
        known = coerce_status(current_status)
        modifiable = can_modify(current_status, caller.is_privileged, self._policy)
        order = list(STATUS_REGISTRY)
        targets = sorted(
            reviewer_next_states(current_status, caller.is_privileged, self._policy),
            key=order.index,
        )
        return ReviewOptions(
            current_status=str(current_status),
            current_label=label_for(known) if known is not None else str(current_status),
            can_modify=modifiable,
            next_states=tuple(
                NextStateOption(
                    status=target,
                    label=label_for(target),
                    requires_reason=requires_reason(target, self._policy),
                )
                for target in targets
            ),
            lock_message=None if modifiable else LOCKED_MESSAGE,
        )

    def update_status(
        self,
        caller: Caller,
        organization_id: str,
        current_status: KycStatus | str,
        proposed_status: KycStatus | str,
        reason: str | None = None,
        notes: str | None = None,
    ) -> KycActionResult:
        """Validate and apply one status change.

        Raises:
            PermissionDeniedError, RecordLockedError,
            TransitionNotPermittedError, ReasonRequiredError: a check failed;
                the backend was not called.
            BackendError: the backend refused, could not be reached or
                answered with a body that cannot be parsed.
        """
        t0 = time.monotonic()
        from_state = str(current_status)
        to_state = str(proposed_status)

        def trace(outcome: str, detail: str) -> None:
            _emit_review_trace(
                organization_id=organization_id,
                actor_id=caller.actor_id,
                from_state=from_state,
                to_state=to_state,
                is_privileged=caller.is_privileged,
                outcome=outcome,
                reason=detail,
                duration_ms=(time.monotonic() - t0) * 1000,
                outcome_sink=self._outcome_sink,
            )

        allowed, denial = check_permission(caller, UPDATE_ACTION)
        if not allowed:
            trace(OUTCOME_PERMISSION_DENIED, denial)
            raise PermissionDeniedError(
                get_permission_for_action(UPDATE_ACTION) or UPDATE_ACTION,
                caller.actor_id,
            )

        attempt = TransitionAttempt(
            current_status=current_status,
            proposed_status=proposed_status,
            is_privileged=caller.is_privileged,
            reason=reason,
        )
        try:
            decision = enforce_attempt(attempt, self._policy)
        except RecordLockedError as exc:
            trace(OUTCOME_RECORD_LOCKED, str(exc))
            raise
        except TransitionNotPermittedError as exc:
            trace(OUTCOME_TRANSITION_NOT_PERMITTED, str(exc))
            raise
        except ReasonRequiredError as exc:
            trace(OUTCOME_REASON_REQUIRED, str(exc))
            raise

        request = KycStatusUpdateRequest(
            status=coerce_status(proposed_status),
            notes=notes,
            reason=reason.strip() if decision.reason_required else None,
        )
        try:
            result = self._api.update_status(organization_id, request)
        except Exception as exc:
            # A malformed success body means the change may already be stored.
            trace(OUTCOME_BACKEND_ERROR, str(exc))
            raise

        trace(OUTCOME_SUCCESS, "")
        return result
