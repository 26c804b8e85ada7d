"""Electorate service — unified facade for the two-tier voting engine.

This is the primary interface a host uses. It wires the components
around one shared StateStore:
- Elector registry (normal registration, super-elector lookup)
- Session store (create, inspect, close)
- Voting engine (eligibility, weighted tallies)
- Election processor (super-elector promotion on close)

Callers are already-authenticated principals supplied by the host; the
service authorises, it never authenticates. Every mutating operation
returns a ServiceResult. A rejected operation carries the VotingErrorKind
and leaves the state untouched. Notifications are appended to the event
log only once their operation has committed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from electorate import __version__
from electorate.engine.election import ElectionProcessor
from electorate.engine.voting import VotingEngine
from electorate.errors import VotingError, VotingErrorKind
from electorate.identity.parser import format_principal, parse
from electorate.identity.principal import PrincipalId
from electorate.persistence.event_log import (
    EventKind,
    EventLog,
    EventLogError,
    EventRecord,
    Notification,
)
from electorate.persistence.state_store import StateStore
from electorate.policy.resolver import PolicyResolver
from electorate.registry.electors import ElectorRegistry
from electorate.sessions.store import SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    error_kind: Optional[VotingErrorKind] = None


class ElectorateService:
    """Unified voting engine facade.

    Usage:
        resolver = PolicyResolver.from_config_dir(config_dir)
        service = ElectorateService(resolver)

        service.register_normal(alice)
        result = service.create_session(owner, "Board", ["0x...01", "0x...02"], True)
        service.vote(alice, result.data["session_id"], 0)
        service.close(owner, result.data["session_id"])

    Persistence (optional):
        service = ElectorateService(resolver, event_log=log, state_store=store)
        # State is saved on each commit and loaded on construction.
    """

    def __init__(
        self,
        resolver: PolicyResolver,
        event_log: Optional[EventLog] = None,
        state_store: Optional[StateStore] = None,
    ) -> None:
        self._resolver = resolver
        self._event_log = event_log if event_log is not None else EventLog()
        self._store = state_store if state_store is not None else StateStore()

        self._registry = ElectorRegistry(self._store)
        self._election = ElectionProcessor(
            self._registry,
            prefix_length=resolver.identifier_prefix_length(),
        )
        self._sessions = SessionStore(
            self._store,
            self._election,
            reclose_policy=resolver.reclose_policy(),
        )
        self._voting = VotingEngine(self._store, self._sessions)

        # Continue numbering from a persisted log to avoid ID collisions.
        self._event_counter = self._event_log.count
        self._store.subscribe(self._record_events)

    # ------------------------------------------------------------------
    # Electors
    # ------------------------------------------------------------------

    def register_normal(self, caller: PrincipalId) -> ServiceResult:
        """Register caller as a normal elector (idempotent)."""
        return self._execute(lambda: {
            "principal": caller.hex,
            "newly_registered": self._registry.register_normal(caller),
        })

    def is_super_elector(self, principal: PrincipalId) -> tuple[bool, int, int]:
        """Return (is_super_elector, weight, allocation)."""
        return self._registry.is_super_elector(principal)

    def is_normal_elector(self, principal: PrincipalId) -> bool:
        return self._registry.is_normal_elector(principal)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(
        self,
        caller: PrincipalId,
        title: str,
        proposals: Sequence[str],
        is_super_elector_vote: bool,
    ) -> ServiceResult:
        """Open a new voting session owned by caller."""
        return self._execute(lambda: {
            "session_id": self._sessions.create_session(
                caller, title, proposals, is_super_elector_vote,
            ),
        })

    def vote(self, caller: PrincipalId, session_id: int, proposal_index: int) -> ServiceResult:
        """Cast caller's single vote in a session."""
        return self._execute(lambda: {
            "session_id": session_id,
            "proposal_index": proposal_index,
            "weight": self._voting.vote(caller, session_id, proposal_index),
        })

    def close(self, caller: PrincipalId, session_id: int) -> ServiceResult:
        """Close a session (owner only), running the election if applicable."""
        def _close() -> dict[str, Any]:
            promoted = self._sessions.close(caller, session_id)
            return {
                "session_id": session_id,
                "promoted": [p.hex for p in promoted],
            }
        return self._execute(_close)

    def get_session_info(self, session_id: int) -> ServiceResult:
        """Look up (title, is_open, proposals, is_super_elector_vote)."""
        def _info() -> dict[str, Any]:
            info = self._sessions.get_session_info(session_id)
            return {
                "session_id": session_id,
                "title": info.title,
                "is_open": info.is_open,
                "proposals": list(info.proposals),
                "is_super_elector_vote": info.is_super_elector_vote,
                "tally": self._sessions.tally(session_id),
            }
        return self._execute(_info)

    def voted_proposal(self, session_id: int, principal: PrincipalId) -> Optional[int]:
        """The proposal index principal voted for in a session, if any."""
        return self._sessions.voted_proposal(session_id, principal)

    @property
    def session_count(self) -> int:
        return self._store.session_count

    @property
    def super_elector_count(self) -> int:
        return self._registry.super_elector_count

    # ------------------------------------------------------------------
    # Identifiers
    # ------------------------------------------------------------------

    def parse_principal(self, text: str) -> PrincipalId:
        """Parse identifier text with the configured prefix length.

        Raises VotingError(MALFORMED_IDENTIFIER) for too-short input.
        """
        return parse(text, self._resolver.identifier_prefix_length())

    def format_principal(self, principal: PrincipalId) -> str:
        return format_principal(principal, self._resolver.identifier_prefix())

    # ------------------------------------------------------------------
    # Status and queries
    # ------------------------------------------------------------------

    def events(self, kind: Optional[EventKind] = None) -> list[EventRecord]:
        """Committed notifications, in emission order."""
        return self._event_log.events(kind)

    def status(self) -> dict[str, Any]:
        """Return system-wide status summary."""
        sessions = self._sessions.list_sessions()
        return {
            "version": __version__,
            "sessions": {
                "total": self.session_count,
                "open": sum(1 for s in sessions if s.is_open),
                "super_elector_votes": sum(1 for s in sessions if s.is_super_elector_vote),
            },
            "electors": {
                "normal": len(self._registry.normal_electors()),
                "super": len(self._registry.super_electors()),
                "super_elector_count": self.super_elector_count,
            },
            "events": self._event_log.count,
            "reclose_policy": self._sessions.reclose_policy.value,
            "persistence_degraded": self._store.persistence_degraded,
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _execute(self, operation: Callable[[], dict[str, Any]]) -> ServiceResult:
        """Run an operation and convert failures into a ServiceResult."""
        degraded_before = self._store.persistence_degraded
        try:
            data = operation()
        except VotingError as e:
            logger.info("rejected: %s", e)
            return ServiceResult(success=False, errors=[str(e)], error_kind=e.kind)
        except (EventLogError, OSError) as e:
            logger.error("audit trail failure, operation rolled back: %s", e)
            return ServiceResult(success=False, errors=[f"Event log failure: {e}"])
        except ValueError as e:
            logger.warning("invalid value, operation rolled back: %s", e)
            return ServiceResult(success=False, errors=[f"Invalid value: {e}"])

        if self._store.persistence_degraded and not degraded_before:
            data["warning"] = (
                "Persistence degraded: state committed in audit trail but state file is stale"
            )
        return ServiceResult(success=True, data=data)

    @staticmethod
    def _event_id(number: int) -> str:
        return f"EVT-{number:08d}"

    def _record_events(self, notifications: list[Notification]) -> None:
        """Append one commit's notifications to the event log as one batch.

        Ids are only consumed once the batch is written, so a failed write
        leaves neither events nor a gap in the numbering.
        """
        records = [
            EventRecord.create(
                event_id=self._event_id(self._event_counter + i),
                event_kind=n.kind,
                actor_id=n.actor_id,
                payload=n.payload,
            )
            for i, n in enumerate(notifications, 1)
        ]
        self._event_log.append_many(records)
        self._event_counter += len(records)
