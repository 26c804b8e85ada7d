"""State store — the single shared store every component operates on.

The store holds the normal-elector set, the super-elector registry, the
session table and the two global counters. Components receive the store
at construction instead of reaching for module-level state.

Write discipline:
- Every mutating operation runs inside ``transaction()``. A re-entrant lock
  serialises writers. Each mutator journals the prior value of the one
  key it touches, and a session is copied by ``edit_session()`` before it
  is changed in place. If the body raises, the journal is replayed in
  reverse, so rollback costs what the transaction touched, not the size
  of the store.
- Notifications staged with ``emit()`` are delivered to subscribers only
  when the outermost transaction commits, in staging order. A rolled-back
  transaction discards them.
- With a ``storage_path`` the committed state is written to a JSON file.
  A write failure after notifications were delivered does not roll back
  (the audit trail is already durable); it sets ``persistence_degraded``.

Reads use ``read()`` which takes the same lock, so they always observe
committed state.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

from electorate.identity.principal import PrincipalId
from electorate.models.voting import NO_SUPER_ELECTOR, SuperElectorRecord, VotingSession
from electorate.persistence.event_log import EventKind, Notification

logger = logging.getLogger(__name__)

Subscriber = Callable[[list[Notification]], None]
Undo = Callable[[], None]

_MISSING = object()


def _restore_key(mapping: dict, key: Any, prior: Any) -> Undo:
    def undo() -> None:
        if prior is _MISSING:
            mapping.pop(key, None)
        else:
            mapping[key] = prior
    return undo


class StateStore:
    """In-memory electorate state with transactional writes.

    Usage:
        store = StateStore()                         # in-memory
        store = StateStore(Path("data/state.json"))  # durable

        with store.transaction():
            store.add_normal_elector(p)
            store.emit(EventKind.NORMAL_ELECTOR_REGISTERED, p.hex, {...})
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._storage_path = storage_path
        self._lock = threading.RLock()
        self._depth = 0
        self._journal: list[Undo] = []
        self._copied_sessions: set[int] = set()
        self._pending: list[Notification] = []
        self._subscribers: list[Subscriber] = []
        self.persistence_degraded = False

        self._normal_electors: set[PrincipalId] = set()
        self._super_electors: dict[PrincipalId, SuperElectorRecord] = {}
        self._sessions: dict[int, VotingSession] = {}
        self._session_count = 0
        self._super_elector_count = 0

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[StateStore]:
        """Run a block atomically against the store.

        Nested transactions join the outermost one.
        """
        with self._lock:
            outermost = self._depth == 0
            if outermost:
                self._journal = []
                self._copied_sessions = set()
                self._pending = []
            self._depth += 1
            try:
                yield self
            except BaseException:
                self._depth -= 1
                if outermost:
                    self._rollback()
                raise
            self._depth -= 1
            if outermost:
                self._commit()

    @contextmanager
    def read(self) -> Iterator[StateStore]:
        """Hold the store lock for a consistent multi-field read."""
        with self._lock:
            yield self

    def subscribe(self, subscriber: Subscriber) -> None:
        """Register a callback receiving committed notifications."""
        self._subscribers.append(subscriber)

    def emit(self, kind: EventKind, actor_id: str, payload: dict[str, Any]) -> None:
        """Stage a notification for delivery when the transaction commits."""
        if self._depth == 0:
            raise RuntimeError("emit() called outside a transaction")
        self._pending.append(Notification(kind=kind, actor_id=actor_id, payload=payload))

    def _record(self, undo: Undo) -> None:
        if self._depth:
            self._journal.append(undo)

    def _undo(self) -> None:
        journal, self._journal = self._journal, []
        for undo in reversed(journal):
            undo()
        self._copied_sessions = set()

    def _rollback(self) -> None:
        logger.debug(
            "rolling back transaction (%d changes undone, %d staged events dropped)",
            len(self._journal), len(self._pending),
        )
        self._undo()
        self._pending = []

    def _commit(self) -> None:
        pending, self._pending = self._pending, []
        # Subscribers write the audit trail; a failure there aborts the commit.
        try:
            for subscriber in self._subscribers:
                subscriber(list(pending))
        except (ValueError, OSError):
            self._undo()
            raise
        self._journal = []
        self._copied_sessions = set()

        if self._storage_path is None:
            return
        try:
            self._save_to_file(self._storage_path)
        except OSError as e:
            self.persistence_degraded = True
            logger.warning(
                "state committed to audit trail but not saved to %s: %s",
                self._storage_path, e,
            )

    # ------------------------------------------------------------------
    # Normal electors
    # ------------------------------------------------------------------

    def has_normal_elector(self, principal: PrincipalId) -> bool:
        return principal in self._normal_electors

    def add_normal_elector(self, principal: PrincipalId) -> None:
        if principal in self._normal_electors:
            return
        self._normal_electors.add(principal)
        self._record(lambda: self._normal_electors.discard(principal))

    def normal_electors(self) -> set[PrincipalId]:
        return set(self._normal_electors)

    # ------------------------------------------------------------------
    # Super electors
    # ------------------------------------------------------------------

    def get_super_elector(self, principal: PrincipalId) -> SuperElectorRecord:
        return self._super_electors.get(principal, NO_SUPER_ELECTOR)

    def put_super_elector(self, principal: PrincipalId, record: SuperElectorRecord) -> None:
        prior = self._super_electors.get(principal, _MISSING)
        self._super_electors[principal] = record
        self._record(_restore_key(self._super_electors, principal, prior))

    def super_electors(self) -> dict[PrincipalId, SuperElectorRecord]:
        return dict(self._super_electors)

    @property
    def super_elector_count(self) -> int:
        return self._super_elector_count

    def increment_super_elector_count(self) -> int:
        prior = self._super_elector_count
        self._super_elector_count += 1
        self._record(lambda: setattr(self, "_super_elector_count", prior))
        return self._super_elector_count

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    @property
    def session_count(self) -> int:
        return self._session_count

    def next_session_id(self) -> int:
        """Reserve the next sequential session id (1-based)."""
        prior = self._session_count
        self._session_count += 1
        self._record(lambda: setattr(self, "_session_count", prior))
        return self._session_count

    def get_session(self, session_id: int) -> Optional[VotingSession]:
        """Return the live session record, or None if never created.

        Use ``edit_session()`` instead when the record is about to change.
        """
        return self._sessions.get(session_id)

    def edit_session(self, session_id: int) -> Optional[VotingSession]:
        """Return the live session record, journalled for in-place changes.

        The first call in a transaction copies that one session so a
        rollback can put it back.
        """
        session = self._sessions.get(session_id)
        if session is None or not self._depth or session_id in self._copied_sessions:
            return session
        self._copied_sessions.add(session_id)
        self._record(_restore_key(self._sessions, session_id, copy.deepcopy(session)))
        return session

    def put_session(self, session: VotingSession) -> None:
        prior = self._sessions.get(session.session_id, _MISSING)
        self._sessions[session.session_id] = session
        self._record(_restore_key(self._sessions, session.session_id, prior))
        self._copied_sessions.add(session.session_id)

    def sessions(self) -> list[VotingSession]:
        return [self._sessions[k] for k in sorted(self._sessions)]

    # ------------------------------------------------------------------
    # File persistence
    # ------------------------------------------------------------------

    def to_records(self) -> dict[str, Any]:
        """Serialise the full state for JSON persistence."""
        return {
            "session_count": self._session_count,
            "super_elector_count": self._super_elector_count,
            "normal_electors": sorted(p.hex for p in self._normal_electors),
            "super_electors": {
                p.hex: {
                    "is_super_elector": r.is_super_elector,
                    "weight": r.weight,
                    "allocation": r.allocation,
                }
                for p, r in sorted(self._super_electors.items())
            },
            "sessions": [s.to_record() for s in self.sessions()],
        }

    def _save_to_file(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(self.to_records(), f, indent=2, sort_keys=True)
        os.replace(tmp, path)

    def _load_from_file(self, path: Path) -> None:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        self._session_count = int(data.get("session_count", 0))
        self._super_elector_count = int(data.get("super_elector_count", 0))
        self._normal_electors = {
            PrincipalId(int(h, 16)) for h in data.get("normal_electors", [])
        }
        self._super_electors = {
            PrincipalId(int(h, 16)): SuperElectorRecord(
                is_super_elector=bool(r["is_super_elector"]),
                weight=int(r["weight"]),
                allocation=int(r["allocation"]),
            )
            for h, r in data.get("super_electors", {}).items()
        }
        self._sessions = {}
        for record in data.get("sessions", []):
            session = VotingSession.from_record(record)
            self._sessions[session.session_id] = session
        logger.info(
            "loaded state from %s: %d sessions, %d super electors",
            path, self._session_count, len(self._super_electors),
        )
