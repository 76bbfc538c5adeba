#!/usr/bin/env python3
"""
Approve a KYC policy pack by writing its canonical fingerprint to
APPROVED_FINGERPRINT.

Usage:
    python scripts/approve_policy.py [pack_directory | policy.yaml]

If nothing is given, defaults to kyc_config/sets/default/

The script:
  1. Loads policy.yaml from the pack
  2. Validates it
  3. Compiles to CompiledTransitionPolicy
  4. Writes canonical_fingerprint to APPROVED_FINGERPRINT in the pack

Once pinned, editing policy.yaml without re-running approval makes
get_active_policy() raise ConfigIntegrityError.
"""

import sys
from pathlib import Path

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from kyc_config.compiler import compile_policy
from kyc_config.integrity import write_pinned_fingerprint
from kyc_config.loader import load_policy_def
from kyc_config.validator import validate_policy_def


def approve(pack_dir: Path) -> str:
    """Load, validate, compile, and write the pin file.

    Returns the canonical fingerprint that was written.
    """
    print(f"Loading policy pack from: {pack_dir}")
    defn = load_policy_def(pack_dir)
    print(f"  name:      {defn.name}")
    print(f"  version:   {defn.version}")
    print(f"  checksum:  {defn.checksum[:16]}...")

    print("Validating...")
    result = validate_policy_def(defn)
    if not result.is_valid:
        print("VALIDATION FAILED:")
        for err in result.errors:
            print(f"  ERROR: {err}")
        sys.exit(1)
    for w in result.warnings:
        print(f"  WARNING: {w}")

    print("Compiling...")
    compiled = compile_policy(defn)
    print(f"  canonical_fingerprint: {compiled.canonical_fingerprint}")
    print(f"  regular edges:    {len(compiled.policy.transition_pairs(False))}")
    print(f"  privileged edges: {len(compiled.policy.transition_pairs(True))}")

    pin_path = write_pinned_fingerprint(pack_dir, compiled.canonical_fingerprint)
    print(f"Wrote {pin_path}")
    return compiled.canonical_fingerprint


def main():
    if len(sys.argv) > 1:
        target = Path(sys.argv[1])
    else:
        target = ROOT / "kyc_config" / "sets" / "default"

    if target.is_file():
        target = target.parent
    if not target.is_dir():
        print(f"Error: pack not found: {target}", file=sys.stderr)
        sys.exit(1)

    approve(target)
    print("Done. Policy is now pinned.")


if __name__ == "__main__":
    main()
