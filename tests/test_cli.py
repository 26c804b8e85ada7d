"""Tests for Electorate CLI — proves CLI dispatches correctly."""

import json
from pathlib import Path

import pytest

from electorate.cli import build_parser, main
from electorate.policy.resolver import PolicyError, PolicyResolver


CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


def _run(data_dir: Path, *argv: str) -> int:
    return main(["--config", str(CONFIG_DIR), "--data", str(data_dir), *argv])


class TestCLIParsing:
    def test_status_command(self) -> None:
        args = build_parser().parse_args(["status"])
        assert args.command == "status"

    def test_create_session_command(self) -> None:
        args = build_parser().parse_args([
            "create-session", "--caller", "0xff", "--title", "Board",
            "--proposal", "0xaa", "--proposal", "0xbb", "--super-elector",
        ])
        assert args.command == "create-session"
        assert args.proposal == ["0xaa", "0xbb"]
        assert args.super_elector is True

    def test_vote_command(self) -> None:
        args = build_parser().parse_args([
            "vote", "--caller", "0x01", "--session", "3", "--index", "1",
        ])
        assert (args.session, args.index) == (3, 1)


class TestCLIExecution:
    def test_no_command_shows_help(self, capsys) -> None:
        assert main([]) == 0

    def test_status_runs(self, tmp_path: Path, capsys) -> None:
        assert _run(tmp_path, "status") == 0
        status = json.loads(capsys.readouterr().out)
        assert status["sessions"]["total"] == 0

    def test_check_invariants_runs(self) -> None:
        assert main(["--config", str(CONFIG_DIR), "check-invariants"]) == 0

    def test_election_e2e(self, tmp_path: Path, capsys) -> None:
        assert _run(tmp_path, "register-normal", "--caller", "0x01") == 0
        assert _run(tmp_path, "register-normal", "--caller", "0x02") == 0
        assert _run(
            tmp_path, "create-session", "--caller", "0xff", "--title", "Board",
            "--proposal", "0xaaaa", "--proposal", "0xbbbb", "--super-elector",
        ) == 0
        assert _run(tmp_path, "vote", "--caller", "0x01", "--session", "1", "--index", "0") == 0
        assert _run(tmp_path, "vote", "--caller", "0x02", "--session", "1", "--index", "0") == 0
        assert _run(tmp_path, "close-session", "--caller", "0xff", "--session", "1") == 0
        capsys.readouterr()

        assert _run(tmp_path, "super-elector", "--principal", "0xaaaa") == 0
        record = json.loads(capsys.readouterr().out)
        assert record["is_super_elector"] is True
        assert record["weight"] == 2
        assert record["allocation"] == 2

        assert _run(tmp_path, "session-info", "--session", "1") == 0
        info = json.loads(capsys.readouterr().out)
        assert info["is_open"] is False
        assert info["tally"] == [2, 0]

        assert _run(tmp_path, "events", "--kind", "super_elector_elected") == 0
        lines = capsys.readouterr().out.strip().splitlines()
        assert len(lines) == 1

    def test_rejected_vote_exits_nonzero(self, tmp_path: Path, capsys) -> None:
        _run(tmp_path, "create-session", "--caller", "0xff", "--title", "T", "--proposal", "x")
        assert _run(tmp_path, "vote", "--caller", "0x01", "--session", "1", "--index", "0") == 1
        assert "not_eligible" in capsys.readouterr().err

    def test_unknown_session_exits_nonzero(self, tmp_path: Path, capsys) -> None:
        assert _run(tmp_path, "session-info", "--session", "4") == 1
        assert "not_found" in capsys.readouterr().err

    def test_malformed_caller_exits_nonzero(self, tmp_path: Path, capsys) -> None:
        assert _run(tmp_path, "register-normal", "--caller", "0") == 1
        assert "malformed_identifier" in capsys.readouterr().err

    def test_check_invariants_agrees_with_resolver(self, tmp_path: Path, capsys) -> None:
        policy = {
            "identifier": {"prefix": "addr:", "hex_digits": 40},
            "sessions": {"reclose_policy": "allow"},
        }
        (tmp_path / "voting_policy.json").write_text(json.dumps(policy), encoding="utf-8")
        assert main(["--config", str(tmp_path), "check-invariants"]) == 0
        assert PolicyResolver.from_config_dir(tmp_path, environ={}).identifier_prefix_length() == 5

        policy["identifier"]["prefix"] = ""
        (tmp_path / "voting_policy.json").write_text(json.dumps(policy), encoding="utf-8")
        assert main(["--config", str(tmp_path), "check-invariants"]) == 1
        with pytest.raises(PolicyError):
            PolicyResolver.from_config_dir(tmp_path, environ={})
