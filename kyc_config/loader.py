"""
Policy pack loader (``kyc_config.loader``).

Responsibility
--------------
Loads a YAML transition policy pack and parses it into the frozen
``kyc_config.schema`` types.  This is build/test tooling: services obtain
policies through ``kyc_config.get_active_policy()`` only.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  pack, stored on the parsed definition for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from kyc_config.schema import TransitionPolicyDef, TransitionTableDef

POLICY_FILENAME = "policy.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level, got {type(data).__name__}")
    return data


def _str_tuple(value: Any, where: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ValueError(f"{where}: expected a list of statuses, got {value!r}")
    return tuple(str(v) for v in value)


def parse_table(data: Any, where: str) -> TransitionTableDef:
    """Parse ``{from: [to, ...]}`` into a ``TransitionTableDef``.

    An empty or null target list means the status has no outgoing edges.
    """
    if not isinstance(data, dict):
        raise ValueError(f"{where}: expected a mapping of status -> targets")
    return TransitionTableDef(
        edges=tuple(
            (str(source), _str_tuple(targets, f"{where}.{source}"))
            for source, targets in data.items()
        )
    )


def parse_policy_def(data: dict[str, Any]) -> TransitionPolicyDef:
    """
    Parse a ``TransitionPolicyDef`` from a dict.

    Preconditions:
        - ``data`` contains ``name``, ``statuses``, ``initial_status`` and
          ``transitions`` with both ``regular`` and ``privileged`` tiers.
    Raises:
        KeyError: if required keys are missing.
        ValueError: if a section has the wrong shape.
    """
    transitions = data["transitions"]
    return TransitionPolicyDef(
        name=data["name"],
        version=int(data.get("version", 1)),
        description=data.get("description", ""),
        statuses=_str_tuple(data["statuses"], "statuses"),
        initial_status=str(data["initial_status"]),
        final_states=_str_tuple(data.get("final_states"), "final_states"),
        reason_required=_str_tuple(data.get("reason_required"), "reason_required"),
        regular=parse_table(transitions["regular"], "transitions.regular"),
        privileged=parse_table(transitions["privileged"], "transitions.privileged"),
        checksum=compute_checksum(data),
    )


def load_policy_def(path: Path) -> TransitionPolicyDef:
    """Load a pack from a ``policy.yaml`` file or the directory holding one."""
    path = Path(path)
    if path.is_dir():
        path = path / POLICY_FILENAME
    return parse_policy_def(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
