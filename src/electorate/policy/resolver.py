"""Policy resolver — loads electorate configuration.

Configuration lives in ``config/voting_policy.json``. A small set of
environment variables (read from a project ``.env`` when present) can
override it for a deployment without editing the policy file:

    ELECTORATE_CONFIG_DIR      directory holding voting_policy.json
    ELECTORATE_DATA_DIR        where the CLI keeps state.json / events.jsonl
    ELECTORATE_RECLOSE_POLICY  "allow" or "reject"
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from electorate.identity.parser import DEFAULT_PREFIX
from electorate.identity.principal import PRINCIPAL_HEX_DIGITS
from electorate.sessions.store import ReclosePolicy

logger = logging.getLogger(__name__)

POLICY_FILENAME = "voting_policy.json"

ENV_CONFIG_DIR = "ELECTORATE_CONFIG_DIR"
ENV_DATA_DIR = "ELECTORATE_DATA_DIR"
ENV_RECLOSE_POLICY = "ELECTORATE_RECLOSE_POLICY"

_DEFAULTS: dict[str, Any] = {
    "identifier": {
        "prefix": DEFAULT_PREFIX,
        "hex_digits": PRINCIPAL_HEX_DIGITS,
    },
    "sessions": {
        "reclose_policy": ReclosePolicy.ALLOW.value,
    },
}


class PolicyError(ValueError):
    """Raised when the policy file is missing required values or is invalid."""


def load_environment(env_file: Optional[Path] = None) -> None:
    """Load a .env file into os.environ (existing variables win)."""
    if env_file is not None:
        load_dotenv(env_file)
    else:
        load_dotenv()


class PolicyResolver:
    """Typed access to the electorate policy."""

    def __init__(self, policy: dict[str, Any], environ: Optional[dict[str, str]] = None) -> None:
        self._policy = policy
        self._environ = environ if environ is not None else dict(os.environ)
        self._validate()

    @classmethod
    def from_config_dir(
        cls,
        config_dir: Path,
        environ: Optional[dict[str, str]] = None,
    ) -> PolicyResolver:
        """Load voting_policy.json from config_dir (defaults if absent)."""
        path = config_dir / POLICY_FILENAME
        policy: dict[str, Any] = {}
        if path.exists():
            with path.open("r", encoding="utf-8") as f:
                policy = json.load(f)
            logger.debug("loaded policy from %s", path)
        else:
            logger.info("no %s in %s, using defaults", POLICY_FILENAME, config_dir)
        return cls(policy, environ)

    @classmethod
    def defaults(cls) -> PolicyResolver:
        return cls({}, environ={})

    def _section(self, name: str) -> dict[str, Any]:
        merged = dict(_DEFAULTS[name])
        merged.update(self._policy.get(name, {}))
        return merged

    def _validate(self) -> None:
        prefix = self.identifier_prefix()
        if not prefix:
            raise PolicyError("identifier.prefix must be non-empty")
        digits = self._section("identifier")["hex_digits"]
        if digits != PRINCIPAL_HEX_DIGITS:
            raise PolicyError(
                f"identifier.hex_digits must be {PRINCIPAL_HEX_DIGITS}, got {digits}"
            )
        # Raises PolicyError for unknown values.
        self.reclose_policy()

    def identifier_prefix(self) -> str:
        return str(self._section("identifier")["prefix"])

    def identifier_prefix_length(self) -> int:
        return len(self.identifier_prefix())

    def identifier_width(self) -> int:
        """Full text width of a canonical identifier, prefix included."""
        return self.identifier_prefix_length() + PRINCIPAL_HEX_DIGITS

    def reclose_policy(self) -> ReclosePolicy:
        raw = self._environ.get(ENV_RECLOSE_POLICY) or self._section("sessions")["reclose_policy"]
        try:
            return ReclosePolicy(str(raw).lower())
        except ValueError:
            raise PolicyError(
                f"reclose_policy must be one of "
                f"{[p.value for p in ReclosePolicy]}, got {raw!r}"
            ) from None

    def data_dir(self, default: Path) -> Path:
        raw = self._environ.get(ENV_DATA_DIR)
        return Path(raw) if raw else default

    def as_dict(self) -> dict[str, Any]:
        return {
            "identifier": {
                "prefix": self.identifier_prefix(),
                "hex_digits": PRINCIPAL_HEX_DIGITS,
            },
            "sessions": {"reclose_policy": self.reclose_policy().value},
        }
