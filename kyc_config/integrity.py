"""
Policy pack integrity -- fingerprint pinning for approved packs.

When a pack directory contains an APPROVED_FINGERPRINT file, the compiled
canonical fingerprint must match the pinned value, so nobody can loosen the
review rules by editing YAML without going through approval.

The pin file is a single line: the SHA-256 hex string produced by
``compile_policy()``.  Without a pin file the check is skipped
(draft/dev workflow).
"""

from __future__ import annotations

from pathlib import Path

from kyc_kernel.exceptions import PolicyError

PINFILE_NAME = "APPROVED_FINGERPRINT"


class ConfigIntegrityError(PolicyError):
    """Compiled policy fingerprint does not match the approved pin.

    Attributes:
        policy_name: The policy pack name.
        expected: The pinned (approved) fingerprint.
        actual: The computed canonical fingerprint.
        pin_path: Path to the APPROVED_FINGERPRINT file.
    """

    code: str = "CONFIG_INTEGRITY_MISMATCH"

    def __init__(self, policy_name: str, expected: str, actual: str, pin_path: Path):
        self.policy_name = policy_name
        self.expected = expected
        self.actual = actual
        self.pin_path = pin_path
        super().__init__(
            f"Integrity check failed for policy '{policy_name}': "
            f"pinned fingerprint {expected[:16]}... != "
            f"compiled fingerprint {actual[:16]}... (pin file: {pin_path})"
        )


def read_pinned_fingerprint(pack_dir: Path) -> str | None:
    """Return the pinned fingerprint, or None if the pack is not pinned."""
    pin_path = pack_dir / PINFILE_NAME
    if not pin_path.is_file():
        return None
    return pin_path.read_text().strip()


def write_pinned_fingerprint(pack_dir: Path, fingerprint: str) -> Path:
    pin_path = pack_dir / PINFILE_NAME
    pin_path.write_text(fingerprint + "\n")
    return pin_path


def verify_fingerprint_pin(policy_name: str, canonical_fingerprint: str, pack_dir: Path) -> None:
    """No-op without a pin file.

    Raises:
        ConfigIntegrityError: if a pin exists and does not match.
    """
    pinned = read_pinned_fingerprint(pack_dir)
    if pinned is None:
        return
    if canonical_fingerprint != pinned:
        raise ConfigIntegrityError(
            policy_name=policy_name,
            expected=pinned,
            actual=canonical_fingerprint,
            pin_path=pack_dir / PINFILE_NAME,
        )
