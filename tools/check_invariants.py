#!/usr/bin/env python3
"""Electorate invariant checks against the voting policy file."""

from __future__ import annotations

import json
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
CONFIG_DIR = ROOT / "config"
POLICY_FILENAME = "voting_policy.json"

PRINCIPAL_HEX_DIGITS = 40
RECLOSE_POLICIES = {"allow", "reject"}


def load_json(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def check_identifier(identifier: dict, errors: list[str]) -> None:
    """Identifiers are a prefix followed by exactly one principal's width of hex."""
    prefix = identifier.get("prefix")
    if not isinstance(prefix, str) or not prefix:
        errors.append("identifier.prefix must be a non-empty string")
    digits = identifier.get("hex_digits")
    if digits != PRINCIPAL_HEX_DIGITS:
        errors.append(
            f"identifier.hex_digits must be {PRINCIPAL_HEX_DIGITS}, got {digits}"
        )


def check_sessions(sessions: dict, errors: list[str]) -> None:
    reclose = sessions.get("reclose_policy")
    if reclose not in RECLOSE_POLICIES:
        errors.append(
            f"sessions.reclose_policy must be one of {sorted(RECLOSE_POLICIES)}, "
            f"got {reclose!r}"
        )


def check(config_dir: Path | None = None) -> int:
    path = (config_dir or CONFIG_DIR) / POLICY_FILENAME
    errors: list[str] = []

    if not path.exists():
        print(f"Invariant check failed:\n- policy file not found: {path}")
        return 1
    policy = load_json(path)

    # --- Identifier invariants ---
    if "identifier" not in policy:
        errors.append("missing section: identifier")
    else:
        check_identifier(policy["identifier"], errors)

    # --- Session lifecycle invariants ---
    if "sessions" not in policy:
        errors.append("missing section: sessions")
    else:
        check_sessions(policy["sessions"], errors)

    unknown = set(policy) - {"identifier", "sessions"}
    if unknown:
        errors.append(f"unknown policy sections: {sorted(unknown)}")

    if errors:
        print("Invariant check failed:")
        for err in errors:
            print(f"- {err}")
        return 1

    print("Invariant check passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(check(Path(sys.argv[1]) if len(sys.argv) > 1 else None))
