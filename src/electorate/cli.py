"""Electorate CLI — command-line host for the voting engine.

The CLI plays the part of the host: it takes the caller principal as an
already-authenticated argument and keeps state in a data directory.

Usage:
    python -m electorate.cli status
    python -m electorate.cli register-normal --caller 0x01
    python -m electorate.cli create-session --caller 0xff --title Board \\
        --proposal 0xaaaa --proposal 0xbbbb --super-elector
    python -m electorate.cli vote --caller 0x01 --session 1 --index 0
    python -m electorate.cli close-session --caller 0xff --session 1
    python -m electorate.cli session-info --session 1
    python -m electorate.cli super-elector --principal 0xaaaa
    python -m electorate.cli events --kind super_elector_elected
    python -m electorate.cli check-invariants
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from electorate.errors import VotingError
from electorate.persistence.event_log import EventKind, EventLog
from electorate.persistence.state_store import StateStore
from electorate.policy.resolver import (
    ENV_CONFIG_DIR,
    PolicyError,
    PolicyResolver,
    load_environment,
)
from electorate.service import ElectorateService, ServiceResult


DEFAULT_CONFIG = Path(__file__).resolve().parents[2] / "config"
DEFAULT_DATA = Path(__file__).resolve().parents[2] / "data"


def _make_service(config_dir: Path, data_dir: Path | None = None) -> ElectorateService:
    """Create an ElectorateService with durable persistence."""
    resolver = PolicyResolver.from_config_dir(config_dir)
    data_dir = data_dir or resolver.data_dir(DEFAULT_DATA)
    data_dir.mkdir(parents=True, exist_ok=True)
    event_log = EventLog(storage_path=data_dir / "events.jsonl")
    state_store = StateStore(storage_path=data_dir / "state.json")
    return ElectorateService(resolver, event_log=event_log, state_store=state_store)


def _report(result: ServiceResult, message: str) -> int:
    if result.success:
        print(message.format(**result.data))
        if "warning" in result.data:
            print(f"Warning: {result.data['warning']}", file=sys.stderr)
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_status(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    print(json.dumps(service.status(), indent=2))
    return 0


def cmd_register_normal(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    result = service.register_normal(service.parse_principal(args.caller))
    return _report(result, "Registered normal elector: {principal}")


def cmd_create_session(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    result = service.create_session(
        caller=service.parse_principal(args.caller),
        title=args.title,
        proposals=args.proposal or [],
        is_super_elector_vote=args.super_elector,
    )
    return _report(result, "Created session: {session_id}")


def cmd_vote(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    result = service.vote(
        service.parse_principal(args.caller), args.session, args.index,
    )
    return _report(
        result,
        "Voted for proposal {proposal_index} in session {session_id} (weight {weight})",
    )


def cmd_close_session(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    result = service.close(service.parse_principal(args.caller), args.session)
    code = _report(result, "Closed session: {session_id}")
    for principal in result.data.get("promoted", []):
        print(f"  elected: {principal}")
    return code


def cmd_session_info(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    result = service.get_session_info(args.session)
    if result.success:
        print(json.dumps(result.data, indent=2))
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_super_elector(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    principal = service.parse_principal(args.principal)
    is_super, weight, allocation = service.is_super_elector(principal)
    print(json.dumps({
        "principal": principal.hex,
        "is_super_elector": is_super,
        "weight": weight,
        "allocation": allocation,
    }, indent=2))
    return 0


def cmd_events(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    kind = EventKind(args.kind) if args.kind else None
    for event in service.events(kind):
        print(json.dumps(event.to_record(), sort_keys=True))
    return 0


def cmd_check_invariants(args: argparse.Namespace) -> int:
    """Run policy invariant checks."""
    tools_dir = Path(__file__).resolve().parents[2] / "tools"
    sys.path.insert(0, str(tools_dir))
    from check_invariants import check
    return check(args.config)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="electorate",
        description="Electorate — two-tier voting engine CLI",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config directory (default: $ELECTORATE_CONFIG_DIR or config/)",
    )
    parser.add_argument(
        "--data",
        type=Path,
        default=None,
        help="Path to data directory (default: $ELECTORATE_DATA_DIR or data/)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("status", help="Show system status")

    p_reg = sub.add_parser("register-normal", help="Register as a normal elector")
    p_reg.add_argument("--caller", required=True, help="Caller principal (0x...)")

    p_create = sub.add_parser("create-session", help="Open a voting session")
    p_create.add_argument("--caller", required=True, help="Owner principal (0x...)")
    p_create.add_argument("--title", required=True, help="Session title")
    p_create.add_argument(
        "--proposal", action="append",
        help="Proposal text (repeat for each proposal, in order)",
    )
    p_create.add_argument(
        "--super-elector", action="store_true",
        help="Session elects super electors (proposals name candidates)",
    )

    p_vote = sub.add_parser("vote", help="Cast a vote")
    p_vote.add_argument("--caller", required=True, help="Voter principal (0x...)")
    p_vote.add_argument("--session", required=True, type=int, help="Session ID")
    p_vote.add_argument("--index", required=True, type=int, help="Proposal index")

    p_close = sub.add_parser("close-session", help="Close a session (owner only)")
    p_close.add_argument("--caller", required=True, help="Owner principal (0x...)")
    p_close.add_argument("--session", required=True, type=int, help="Session ID")

    p_info = sub.add_parser("session-info", help="Show a session")
    p_info.add_argument("--session", required=True, type=int, help="Session ID")

    p_super = sub.add_parser("super-elector", help="Look up a super elector")
    p_super.add_argument("--principal", required=True, help="Principal (0x...)")

    p_events = sub.add_parser("events", help="Print the event log")
    p_events.add_argument(
        "--kind", choices=[k.value for k in EventKind], help="Filter by event kind",
    )

    sub.add_parser("check-invariants", help="Run policy invariant checks")

    return parser


def main(argv: list[str] | None = None) -> int:
    load_environment()
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.config is None:
        env_dir = os.environ.get(ENV_CONFIG_DIR)
        args.config = Path(env_dir) if env_dir else DEFAULT_CONFIG

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "status": cmd_status,
        "register-normal": cmd_register_normal,
        "create-session": cmd_create_session,
        "vote": cmd_vote,
        "close-session": cmd_close_session,
        "session-info": cmd_session_info,
        "super-elector": cmd_super_elector,
        "events": cmd_events,
        "check-invariants": cmd_check_invariants,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except VotingError as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    except PolicyError as e:
        print(f"Invalid policy: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
