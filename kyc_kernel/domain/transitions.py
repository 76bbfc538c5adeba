"""
KYC transition tables (``kyc_kernel.domain.transitions``).

Responsibility
--------------
Encodes, for each status, the statuses reachable in one step, separately
for regular reviewers and for privileged overseers (super admins).  Both
tables live in one frozen ``TransitionPolicy`` value which is passed into
every decision function, so alternative policies can be built for tests
or loaded from configuration without touching module state.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  Configuration
packs (``kyc_config``) compile into a ``TransitionPolicy``; the kernel
never imports from ``kyc_config``.

Invariants enforced
-------------------
* Every status is a key of both tables (closed state set).
* No orphan targets: every target status is also a key.
* Privilege monotonicity: for every status the privileged targets are a
  superset of the regular targets.  Escalation is therefore a table swap,
  never a branch around the table.

Failure modes
-------------
* Building a policy that violates an invariant raises
  ``PolicyStructureError`` listing every problem found.
* ``available_next_states`` never raises: unknown statuses yield an empty
  set (fails closed).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from kyc_kernel.domain.status import FINAL_STATUSES, KycStatus, coerce_status
from kyc_kernel.exceptions import PolicyStructureError

TransitionTable = Mapping[KycStatus, frozenset[KycStatus]]

_EMPTY: frozenset[KycStatus] = frozenset()

# Vendors resubmit into this status; it is the only edge a final status may
# keep in the regular table.
RESUBMISSION_TARGET = KycStatus.SUBMITTED


def _freeze_table(table: Mapping) -> TransitionTable:
    return MappingProxyType({k: frozenset(v) for k, v in table.items()})


def _structure_problems(
    regular: TransitionTable,
    privileged: TransitionTable,
) -> list[str]:
    problems: list[str] = []
    for tier, table in (("regular", regular), ("privileged", privileged)):
        for status in KycStatus:
            if status not in table:
                problems.append(f"{tier} table has no entry for '{status.value}'")
        for source, targets in table.items():
            if not isinstance(source, KycStatus):
                problems.append(f"{tier} table key {source!r} is not a KYC status")
                continue
            for target in targets:
                if not isinstance(target, KycStatus) or target not in table:
                    problems.append(
                        f"{tier} transition '{source.value}' -> {target!r} "
                        f"targets an undefined status"
                    )
    for status, targets in regular.items():
        missing = targets - privileged.get(status, _EMPTY)
        if missing:
            names = sorted(t.value for t in missing if isinstance(t, KycStatus))
            problems.append(
                f"privileged table drops regular transitions from "
                f"'{getattr(status, 'value', status)}': {names}"
            )
    return problems


@dataclass(frozen=True)
class TransitionPolicy:
    """Both transition tables plus the statuses that need a reason or are final.

    Contract: frozen; tables are read-only mappings of frozensets.
    Guarantees: structural invariants (module docstring) hold for every
    constructed instance.
    """

    name: str
    regular: TransitionTable
    privileged: TransitionTable
    reason_required: frozenset[KycStatus] = frozenset(
        {KycStatus.REJECTED, KycStatus.NEEDS_MORE_INFO}
    )
    final_states: frozenset[KycStatus] = FINAL_STATUSES
    version: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "regular", _freeze_table(self.regular))
        object.__setattr__(self, "privileged", _freeze_table(self.privileged))
        object.__setattr__(self, "reason_required", frozenset(self.reason_required))
        object.__setattr__(self, "final_states", frozenset(self.final_states))

        problems = _structure_problems(self.regular, self.privileged)
        for label, statuses in (
            ("reason_required", self.reason_required),
            ("final_states", self.final_states),
        ):
            for s in statuses:
                if not isinstance(s, KycStatus):
                    problems.append(f"{label} entry {s!r} is not a KYC status")
        if problems:
            raise PolicyStructureError(problems)

    @classmethod
    def from_tables(
        cls,
        name: str,
        regular: Mapping[str, Iterable[str]],
        privileged: Mapping[str, Iterable[str]],
        reason_required: Iterable[str] | None = None,
        final_states: Iterable[str] | None = None,
        version: int = 1,
    ) -> TransitionPolicy:
        """Build a policy from wire-string tables (as found in YAML packs)."""
        problems: list[str] = []

        def convert(value: str, where: str) -> KycStatus | None:
            status = coerce_status(value)
            if status is None:
                problems.append(f"{where}: unknown status {value!r}")
            return status

        def convert_table(raw: Mapping[str, Iterable[str]], tier: str) -> dict:
            table: dict[KycStatus, frozenset[KycStatus]] = {}
            for source, targets in raw.items():
                key = convert(source, f"{tier} table key")
                values = {convert(t, f"{tier} '{source}'") for t in (targets or ())}
                if key is not None:
                    table[key] = frozenset(v for v in values if v is not None)
            return table

        regular_table = convert_table(regular, "regular")
        privileged_table = convert_table(privileged, "privileged")
        kwargs: dict = {}
        if reason_required is not None:
            kwargs["reason_required"] = frozenset(
                s for s in (convert(v, "reason_required") for v in reason_required) if s
            )
        if final_states is not None:
            kwargs["final_states"] = frozenset(
                s for s in (convert(v, "final_states") for v in final_states) if s
            )
        if problems:
            raise PolicyStructureError(problems)
        return cls(
            name=name,
            regular=regular_table,
            privileged=privileged_table,
            version=version,
            **kwargs,
        )

    def table_for(self, is_privileged: bool) -> TransitionTable:
        return self.privileged if is_privileged else self.regular

    def transition_pairs(self, is_privileged: bool) -> tuple[tuple[KycStatus, KycStatus], ...]:
        """All (from, to) edges of one tier in a stable order."""
        table = self.table_for(is_privileged)
        order = list(KycStatus)
        return tuple(
            (source, target)
            for source in order
            for target in sorted(table.get(source, _EMPTY), key=order.index)
        )

    def is_final(self, status: object) -> bool:
        return coerce_status(status) in self.final_states


def available_next_states(
    status: KycStatus | str,
    is_privileged: bool,
    policy: TransitionPolicy | None = None,
) -> frozenset[KycStatus]:
    """Statuses reachable from ``status`` in one step for this privilege tier.

    Unknown statuses yield an empty set.
    """
    policy = policy or DEFAULT_POLICY
    current = coerce_status(status)
    if current is None:
        return _EMPTY
    return policy.table_for(bool(is_privileged)).get(current, _EMPTY)


# -----------------------------------------------------------------------------
# Default policy
# -----------------------------------------------------------------------------

_S = KycStatus

REGULAR_TRANSITIONS: TransitionTable = _freeze_table({
    _S.NOT_SUBMITTED: {_S.PENDING, _S.SUBMITTED},
    _S.PENDING: {_S.SUBMITTED},
    _S.SUBMITTED: {_S.IN_REVIEW, _S.NEEDS_MORE_INFO, _S.REJECTED},
    _S.IN_REVIEW: {_S.NEEDS_MORE_INFO, _S.REVIEWED, _S.REJECTED},
    _S.NEEDS_MORE_INFO: {_S.SUBMITTED, _S.IN_REVIEW, _S.REJECTED},
    _S.REVIEWED: {_S.APPROVED, _S.REJECTED, _S.IN_REVIEW},
    _S.APPROVED: set(),  # final
    _S.REJECTED: {_S.SUBMITTED},  # vendor resubmission only
})

PRIVILEGED_TRANSITIONS: TransitionTable = _freeze_table({
    **REGULAR_TRANSITIONS,
    _S.APPROVED: {_S.IN_REVIEW, _S.REJECTED},
    _S.REJECTED: {_S.SUBMITTED, _S.IN_REVIEW},
})

DEFAULT_POLICY = TransitionPolicy(
    name="default",
    regular=REGULAR_TRANSITIONS,
    privileged=PRIVILEGED_TRANSITIONS,
)
