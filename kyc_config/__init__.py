"""
kyc_config -- single public entrypoint for KYC review configuration.

Responsibility:
    Provides the only runtime ways to obtain configuration:
    ``get_active_policy()`` for the transition rules and
    ``get_backend_settings()`` for the backend connection.  YAML loading is
    internal build/test tooling.

Architecture position:
    Configuration -- sits above ``kyc_kernel`` and below ``kyc_services``.
    The kernel never imports from ``kyc_config``; the compiler translates
    packs into kernel ``TransitionPolicy`` values.

Invariants enforced:
    - Build-time validation: a pack must pass ``validate_policy_def``
      before it is compiled.
    - Fingerprint pinning: when an APPROVED_FINGERPRINT file exists in the
      pack directory, the compiled fingerprint must match it.

Failure modes:
    - ``FileNotFoundError`` -- no pack with the requested name.
    - ``ValueError`` -- schema or structural validation failures.
    - ``ConfigIntegrityError`` -- fingerprint mismatch against the pin.

Audit relevance:
    Every successful ``get_active_policy()`` call emits a
    ``KYC_POLICY_TRACE`` log entry with the pack name, version, checksum
    and fingerprint, tying each review decision to the rules that
    governed it.
"""

from __future__ import annotations

from pathlib import Path

from kyc_config.compiler import CompiledTransitionPolicy, compile_policy
from kyc_config.integrity import ConfigIntegrityError, verify_fingerprint_pin
from kyc_config.loader import POLICY_FILENAME, load_policy_def
from kyc_config.settings import BackendSettings, get_backend_settings
from kyc_config.validator import validate_policy_def
from kyc_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_SETS_DIR = Path(__file__).parent / "sets"
DEFAULT_POLICY_NAME = "default"


def get_active_policy(
    name: str = DEFAULT_POLICY_NAME,
    config_dir: Path | None = None,
) -> CompiledTransitionPolicy:
    """Load, validate, compile and verify the named policy pack.

    Args:
        name: Pack directory name under the sets directory.
        config_dir: Override path to the sets directory.
            Defaults to kyc_config/sets/.

    Raises:
        FileNotFoundError: if ``<config_dir>/<name>/policy.yaml`` is missing.
        ValueError: if validation fails.
        ConfigIntegrityError: if a pin exists and does not match.
    """
    pack_dir = (config_dir or _DEFAULT_SETS_DIR) / name
    policy_path = pack_dir / POLICY_FILENAME
    if not policy_path.is_file():
        raise FileNotFoundError(f"No KYC policy pack at {policy_path}")

    defn = load_policy_def(policy_path)

    validation = validate_policy_def(defn)
    if not validation.is_valid:
        raise ValueError(
            f"Policy pack '{name}' failed validation:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("kyc_policy_warning", extra={"policy": defn.name, "warning": warning})

    compiled = compile_policy(defn)

    _logger.info(
        "KYC_POLICY_TRACE",
        extra={
            "trace_type": "KYC_POLICY_TRACE",
            "policy": compiled.name,
            "policy_version": compiled.version,
            "checksum": compiled.checksum,
            "fingerprint": compiled.canonical_fingerprint,
            "regular_edge_count": len(compiled.policy.transition_pairs(False)),
            "privileged_edge_count": len(compiled.policy.transition_pairs(True)),
        },
    )

    verify_fingerprint_pin(
        policy_name=compiled.name,
        canonical_fingerprint=compiled.canonical_fingerprint,
        pack_dir=pack_dir,
    )
    return compiled


__all__ = [
    "BackendSettings",
    "CompiledTransitionPolicy",
    "ConfigIntegrityError",
    "DEFAULT_POLICY_NAME",
    "get_active_policy",
    "get_backend_settings",
]
