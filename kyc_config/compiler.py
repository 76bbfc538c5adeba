"""
Policy pack compiler (``kyc_config.compiler``).

Turns a validated ``TransitionPolicyDef`` into the runtime artifact: a
kernel ``TransitionPolicy`` plus a canonical fingerprint that identifies
the compiled rules independent of YAML formatting, key order or comments.
"""

from __future__ import annotations

from dataclasses import dataclass

from kyc_config.loader import compute_checksum
from kyc_config.schema import TransitionPolicyDef
from kyc_kernel.domain.status import KycStatus
from kyc_kernel.domain.transitions import TransitionPolicy


@dataclass(frozen=True)
class CompiledTransitionPolicy:
    """Runtime artifact handed to services."""

    name: str
    version: int
    checksum: str
    canonical_fingerprint: str
    policy: TransitionPolicy
    initial_status: KycStatus


def canonical_form(policy: TransitionPolicy) -> dict:
    """Order-independent description of the compiled rules."""

    def table(is_privileged: bool) -> dict[str, list[str]]:
        out: dict[str, list[str]] = {}
        for source, target in policy.transition_pairs(is_privileged):
            out.setdefault(source.value, []).append(target.value)
        for status in KycStatus:
            out.setdefault(status.value, [])
        return out

    return {
        "name": policy.name,
        "version": policy.version,
        "regular": table(False),
        "privileged": table(True),
        "reason_required": sorted(s.value for s in policy.reason_required),
        "final_states": sorted(s.value for s in policy.final_states),
    }


def compile_policy(defn: TransitionPolicyDef) -> CompiledTransitionPolicy:
    """
    Compile a pack definition.

    Preconditions:
        - ``defn`` passed ``validate_policy_def``.
    Raises:
        PolicyStructureError: if the tables still violate a kernel
            invariant (the kernel re-checks on construction).
    """
    policy = TransitionPolicy.from_tables(
        name=defn.name,
        regular=defn.regular.as_dict(),
        privileged=defn.privileged.as_dict(),
        reason_required=defn.reason_required,
        final_states=defn.final_states,
        version=defn.version,
    )
    return CompiledTransitionPolicy(
        name=defn.name,
        version=defn.version,
        checksum=defn.checksum,
        canonical_fingerprint=compute_checksum(canonical_form(policy)),
        policy=policy,
        initial_status=KycStatus(defn.initial_status),
    )
