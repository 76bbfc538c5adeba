"""
Policy pack validator (``kyc_config.validator``).

Responsibility
--------------
Validates a ``TransitionPolicyDef`` before it is compiled, so that a pack
which would break the review invariants never reaches a decision.

Invariants enforced
-------------------
* Closed status set -- ``statuses`` is exactly the kernel enumeration.
* Every status has an entry in both tiers; every target is a status.
* Privilege monotonicity -- privileged targets include regular targets.
* Finality -- a final status keeps no regular edge except the vendor
  resubmission edge into ``submitted``.
* ``reason_required``, ``final_states`` and ``initial_status`` name
  declared statuses.

Failure modes
-------------
* Errors (``PolicyValidationResult.errors``) -> the pack MUST NOT be
  compiled.
* Warnings -> the pack may be compiled but should be reviewed
  (unreachable statuses, final statuses nobody can reopen).
"""

from __future__ import annotations

from dataclasses import dataclass, field

from kyc_config.schema import TransitionPolicyDef
from kyc_kernel.domain.status import KycStatus
from kyc_kernel.domain.transitions import RESUBMISSION_TARGET

KNOWN_STATUSES: frozenset[str] = frozenset(s.value for s in KycStatus)


@dataclass
class PolicyValidationResult:
    """
    Result of policy pack validation.

    ``is_valid`` is True only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_policy_def(defn: TransitionPolicyDef) -> PolicyValidationResult:
    """Validate a parsed policy pack.  Never raises."""
    result = PolicyValidationResult()
    declared = set(defn.statuses)

    _validate_status_set(defn, result)

    if defn.initial_status not in declared:
        result.add_error(f"initial_status '{defn.initial_status}' is not a declared status")
    for label, values in (
        ("final_states", defn.final_states),
        ("reason_required", defn.reason_required),
    ):
        for value in values:
            if value not in declared:
                result.add_error(f"{label} entry '{value}' is not a declared status")

    regular = defn.regular.as_dict()
    privileged = defn.privileged.as_dict()
    for tier, table in (("regular", regular), ("privileged", privileged)):
        for status in defn.statuses:
            if status not in table:
                result.add_error(f"{tier} transitions have no entry for '{status}'")
        for source, targets in table.items():
            if source not in declared:
                result.add_error(f"{tier} transitions list undeclared status '{source}'")
            for target in targets:
                if target not in declared:
                    result.add_error(
                        f"{tier} transition '{source}' -> '{target}' targets an undeclared status"
                    )

    for source, targets in regular.items():
        dropped = set(targets) - set(privileged.get(source, ()))
        if dropped:
            result.add_error(
                f"privileged transitions from '{source}' drop regular targets {sorted(dropped)}"
            )

    for final in defn.final_states:
        extra = set(regular.get(final, ())) - {RESUBMISSION_TARGET.value}
        if extra:
            result.add_error(
                f"final status '{final}' has regular transitions {sorted(extra)}; "
                f"only resubmission to '{RESUBMISSION_TARGET.value}' is allowed"
            )
        if not privileged.get(final):
            result.add_warning(f"final status '{final}' cannot be reopened by any caller")

    _warn_unreachable(defn, regular, privileged, result)
    return result


def _validate_status_set(defn: TransitionPolicyDef, result: PolicyValidationResult) -> None:
    seen: set[str] = set()
    for status in defn.statuses:
        if status in seen:
            result.add_error(f"status '{status}' is declared twice")
        seen.add(status)
        if status not in KNOWN_STATUSES:
            result.add_error(f"status '{status}' is not a KYC status")
    for missing in sorted(KNOWN_STATUSES - seen):
        result.add_error(f"KYC status '{missing}' is not declared")


def _warn_unreachable(
    defn: TransitionPolicyDef,
    regular: dict[str, tuple[str, ...]],
    privileged: dict[str, tuple[str, ...]],
    result: PolicyValidationResult,
) -> None:
    reachable = {defn.initial_status}
    changed = True
    while changed:
        changed = False
        for table in (regular, privileged):
            for source, targets in table.items():
                if source in reachable:
                    for target in targets:
                        if target not in reachable:
                            reachable.add(target)
                            changed = True
    for status in defn.statuses:
        if status not in reachable:
            result.add_warning(
                f"status '{status}' is unreachable from '{defn.initial_status}'"
            )
