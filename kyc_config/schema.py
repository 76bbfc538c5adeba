"""
Transition policy pack schema.

Defines the human-authored, reviewable source artifact for KYC transition
rules.  YAML files are parsed into these types by the loader, checked by
the validator and compiled into a kernel ``TransitionPolicy`` by the
compiler.

Key distinction:
  TransitionPolicyDef       = source artifact (human-authored, versioned)
  CompiledTransitionPolicy  = runtime artifact (machine-validated, frozen)
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TransitionTableDef:
    """One tier of transitions as written in YAML: (from, (to, ...)) pairs."""

    edges: tuple[tuple[str, tuple[str, ...]], ...]

    def as_dict(self) -> dict[str, tuple[str, ...]]:
        return {source: targets for source, targets in self.edges}

    def sources(self) -> tuple[str, ...]:
        return tuple(source for source, _ in self.edges)


@dataclass(frozen=True)
class TransitionPolicyDef:
    """A complete transition policy pack."""

    name: str
    version: int
    description: str
    statuses: tuple[str, ...]
    initial_status: str
    final_states: tuple[str, ...]
    reason_required: tuple[str, ...]
    regular: TransitionTableDef
    privileged: TransitionTableDef
    checksum: str = ""
