"""Tests for the policy resolver — policy file, defaults and environment overrides."""

import json
from pathlib import Path

import pytest

from electorate.policy.resolver import (
    ENV_DATA_DIR,
    ENV_RECLOSE_POLICY,
    PolicyError,
    PolicyResolver,
    load_environment,
)
from electorate.sessions.store import ReclosePolicy


CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


def _write_policy(directory: Path, policy: dict) -> Path:
    (directory / "voting_policy.json").write_text(json.dumps(policy), encoding="utf-8")
    return directory


class TestPolicyFile:
    def test_shipped_policy(self) -> None:
        resolver = PolicyResolver.from_config_dir(CONFIG_DIR, environ={})
        assert resolver.identifier_prefix() == "0x"
        assert resolver.identifier_prefix_length() == 2
        assert resolver.identifier_width() == 42
        assert resolver.reclose_policy() == ReclosePolicy.ALLOW

    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        resolver = PolicyResolver.from_config_dir(tmp_path, environ={})
        assert resolver.as_dict() == PolicyResolver.defaults().as_dict()

    def test_reject_policy_from_file(self, tmp_path: Path) -> None:
        _write_policy(tmp_path, {"sessions": {"reclose_policy": "reject"}})
        resolver = PolicyResolver.from_config_dir(tmp_path, environ={})
        assert resolver.reclose_policy() == ReclosePolicy.REJECT

    def test_unknown_reclose_policy(self, tmp_path: Path) -> None:
        _write_policy(tmp_path, {"sessions": {"reclose_policy": "sometimes"}})
        with pytest.raises(PolicyError):
            PolicyResolver.from_config_dir(tmp_path, environ={})

    def test_wrong_width(self, tmp_path: Path) -> None:
        _write_policy(tmp_path, {"identifier": {"hex_digits": 64}})
        with pytest.raises(PolicyError):
            PolicyResolver.from_config_dir(tmp_path, environ={})

    def test_empty_prefix(self, tmp_path: Path) -> None:
        _write_policy(tmp_path, {"identifier": {"prefix": ""}})
        with pytest.raises(PolicyError):
            PolicyResolver.from_config_dir(tmp_path, environ={})


class TestEnvironment:
    def test_reclose_override(self) -> None:
        resolver = PolicyResolver.from_config_dir(
            CONFIG_DIR, environ={ENV_RECLOSE_POLICY: "REJECT"},
        )
        assert resolver.reclose_policy() == ReclosePolicy.REJECT

    def test_data_dir_override(self, tmp_path: Path) -> None:
        default = tmp_path / "default"
        assert PolicyResolver.defaults().data_dir(default) == default
        resolver = PolicyResolver({}, environ={ENV_DATA_DIR: str(tmp_path / "env")})
        assert resolver.data_dir(default) == tmp_path / "env"

    def test_load_environment_reads_dotenv(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        # Register the variable with monkeypatch so teardown removes what .env sets.
        monkeypatch.setenv(ENV_RECLOSE_POLICY, "allow")
        monkeypatch.delenv(ENV_RECLOSE_POLICY)
        env_file = tmp_path / ".env"
        env_file.write_text(f"{ENV_RECLOSE_POLICY}=reject\n", encoding="utf-8")
        load_environment(env_file)
        resolver = PolicyResolver.from_config_dir(CONFIG_DIR)
        assert resolver.reclose_policy() == ReclosePolicy.REJECT
