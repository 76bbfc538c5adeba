"""
KYC review decisions (``kyc_kernel.domain.review``).

Responsibility
--------------
The single decision point for "may this caller move this record from X to
Y".  Three independent checks, always evaluated in this order:

1. Modification gate   -- may the caller touch the record at all?
2. Transition validator -- is Y reachable from X for this privilege tier?
3. Reason policy       -- does Y need a justification, and was one given?

Architecture position
---------------------
**Kernel domain layer** -- pure functions over explicit inputs.  ZERO I/O,
no shared mutable state, safe to call from any number of concurrent
request handlers.

Invariants enforced
-------------------
* The three failure kinds stay distinct: ``record_locked`` (gate),
  ``transition_not_permitted`` (validator), ``reason_required`` (reason
  policy).  A locked record short-circuits before any target status is
  considered.
* A reason is required exactly for targets in
  ``policy.reason_required`` (``rejected`` and ``needs_more_info`` by
  default).
* Unknown statuses never raise here; they are refused.

Failure modes
-------------
* ``evaluate_attempt`` never raises; it returns a ``ReviewDecision``.
* ``enforce_attempt`` raises ``RecordLockedError``,
  ``TransitionNotPermittedError`` or ``ReasonRequiredError``.
"""

from __future__ import annotations

from dataclasses import dataclass

from kyc_kernel.domain.status import KycStatus, coerce_status
from kyc_kernel.domain.transitions import (
    DEFAULT_POLICY,
    TransitionPolicy,
    available_next_states,
)
from kyc_kernel.exceptions import (
    ReasonRequiredError,
    RecordLockedError,
    TransitionNotPermittedError,
)

FAILURE_RECORD_LOCKED = "record_locked"
FAILURE_TRANSITION_NOT_PERMITTED = "transition_not_permitted"
FAILURE_REASON_REQUIRED = "reason_required"


# -----------------------------------------------------------------------------
# Individual checks
# -----------------------------------------------------------------------------


def is_transition_permitted(
    current_status: KycStatus | str,
    proposed_status: KycStatus | str,
    is_privileged: bool,
    policy: TransitionPolicy | None = None,
) -> bool:
    """True iff ``proposed_status`` is one step away for this privilege tier."""
    proposed = coerce_status(proposed_status)
    if proposed is None:
        return False
    return proposed in available_next_states(current_status, is_privileged, policy)


def requires_reason(
    proposed_status: KycStatus | str,
    policy: TransitionPolicy | None = None,
) -> bool:
    """True iff moving to ``proposed_status`` needs a justification."""
    policy = policy or DEFAULT_POLICY
    return coerce_status(proposed_status) in policy.reason_required


def is_reason_satisfied(reason: str | None) -> bool:
    """A reason counts only if it has a non-whitespace character."""
    return isinstance(reason, str) and bool(reason.strip())


def can_modify(
    current_status: KycStatus | str,
    is_privileged: bool,
    policy: TransitionPolicy | None = None,
) -> bool:
    """Coarse gate: privileged callers always; others only on non-final records.

    A status outside the enumeration is treated as locked for regular callers.
    """
    if is_privileged:
        return True
    policy = policy or DEFAULT_POLICY
    current = coerce_status(current_status)
    return current is not None and current not in policy.final_states


def reviewer_next_states(
    current_status: KycStatus | str,
    is_privileged: bool,
    policy: TransitionPolicy | None = None,
) -> frozenset[KycStatus]:
    """Targets a reviewer can pick: empty when the gate is closed."""
    if not can_modify(current_status, is_privileged, policy):
        return frozenset()
    return available_next_states(current_status, is_privileged, policy)


# -----------------------------------------------------------------------------
# Combined decision
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class TransitionAttempt:
    """A proposed status change.  Never persisted."""

    current_status: KycStatus | str
    proposed_status: KycStatus | str
    is_privileged: bool = False
    reason: str | None = None


@dataclass(frozen=True)
class ReviewDecision:
    """Outcome of evaluating a ``TransitionAttempt``.

    ``failure`` names the first check that refused the attempt, or is None.
    """

    permitted: bool
    reason_required: bool
    reason_satisfied: bool
    can_modify: bool
    failure: str | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


def evaluate_attempt(
    attempt: TransitionAttempt,
    policy: TransitionPolicy | None = None,
) -> ReviewDecision:
    """Run gate, validator and reason policy in order.  Never raises."""
    policy = policy or DEFAULT_POLICY
    reason_satisfied = is_reason_satisfied(attempt.reason)

    if not can_modify(attempt.current_status, attempt.is_privileged, policy):
        return ReviewDecision(
            permitted=False,
            reason_required=False,
            reason_satisfied=reason_satisfied,
            can_modify=False,
            failure=FAILURE_RECORD_LOCKED,
        )

    permitted = is_transition_permitted(
        attempt.current_status,
        attempt.proposed_status,
        attempt.is_privileged,
        policy,
    )
    if not permitted:
        return ReviewDecision(
            permitted=False,
            reason_required=False,
            reason_satisfied=reason_satisfied,
            can_modify=True,
            failure=FAILURE_TRANSITION_NOT_PERMITTED,
        )

    reason_required = requires_reason(attempt.proposed_status, policy)
    return ReviewDecision(
        permitted=True,
        reason_required=reason_required,
        reason_satisfied=reason_satisfied,
        can_modify=True,
        failure=(
            FAILURE_REASON_REQUIRED
            if reason_required and not reason_satisfied
            else None
        ),
    )


def enforce_attempt(
    attempt: TransitionAttempt,
    policy: TransitionPolicy | None = None,
) -> ReviewDecision:
    """Like ``evaluate_attempt`` but raises the typed error for a refusal."""
    decision = evaluate_attempt(attempt, policy)
    current = str(attempt.current_status)
    proposed = str(attempt.proposed_status)
    if decision.failure == FAILURE_RECORD_LOCKED:
        raise RecordLockedError(current)
    if decision.failure == FAILURE_TRANSITION_NOT_PERMITTED:
        raise TransitionNotPermittedError(current, proposed, attempt.is_privileged)
    if decision.failure == FAILURE_REASON_REQUIRED:
        raise ReasonRequiredError(proposed)
    return decision
