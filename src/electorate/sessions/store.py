"""Session store — creation, lookup and closure of voting sessions.

Sessions are keyed by a sequential id starting at 1 and are never
deleted. A session is mutated only by voting (while open) and by
closing. Closing a super-elector election hands the session to the
ElectionProcessor inside the same transaction, so a failed election
leaves the session open and the registry untouched.

Re-closing:
    Closing does not require the session to be open. Closing a
    super-elector session twice re-runs the election over the final tally.
    Promotion overwrites records, so the registry ends up identical, but
    the super-elector counter and the SuperElectorElected notifications
    are produced a second time. ``reclose_policy`` selects between:
    - ReclosePolicy.ALLOW: close again and re-run the election.
    - ReclosePolicy.REJECT: fail a second close with ALREADY_SETTLED.
"""

from __future__ import annotations

import enum
import logging
from typing import Optional, Sequence

from electorate.engine.election import ElectionProcessor
from electorate.errors import VotingError, VotingErrorKind
from electorate.identity.principal import PrincipalId
from electorate.models.voting import SessionInfo, VotingSession
from electorate.persistence.event_log import EventKind
from electorate.persistence.state_store import StateStore

logger = logging.getLogger(__name__)


class ReclosePolicy(str, enum.Enum):
    """What closing an already-closed session does."""
    ALLOW = "allow"
    REJECT = "reject"


class SessionStore:
    """Owns the session table of the shared store."""

    def __init__(
        self,
        store: StateStore,
        election: ElectionProcessor,
        reclose_policy: ReclosePolicy = ReclosePolicy.ALLOW,
    ) -> None:
        self._store = store
        self._election = election
        self._reclose_policy = reclose_policy

    @property
    def reclose_policy(self) -> ReclosePolicy:
        return self._reclose_policy

    def create_session(
        self,
        caller: PrincipalId,
        title: str,
        proposals: Sequence[str],
        is_super_elector_vote: bool,
    ) -> int:
        """Open a new session owned by caller.

        No validation is applied to the title or proposal text. An empty
        proposal list is legal; such a session can never take a vote.

        Returns:
            The new session id.
        """
        with self._store.transaction() as store:
            session_id = store.next_session_id()
            store.put_session(VotingSession(
                session_id=session_id,
                owner=caller,
                title=title,
                proposals=list(proposals),
                is_super_elector_vote=is_super_elector_vote,
            ))
            store.emit(
                EventKind.SESSION_CREATED,
                caller.hex,
                {
                    "session_id": session_id,
                    "title": title,
                    "is_super_elector_vote": is_super_elector_vote,
                },
            )
        logger.info(
            "session %d created by %s (%d proposals, super_elector_vote=%s)",
            session_id, caller, len(proposals), is_super_elector_vote,
        )
        return session_id

    def require(self, session_id: int) -> VotingSession:
        """Return the live session record or raise NOT_FOUND.

        Callers must hold the store lock (inside a transaction or read).
        """
        session: Optional[VotingSession] = None
        if 1 <= session_id <= self._store.session_count:
            session = self._store.get_session(session_id)
        if session is None:
            raise VotingError(
                VotingErrorKind.NOT_FOUND,
                f"Session not found: {session_id}",
            )
        return session

    def get_session_info(self, session_id: int) -> SessionInfo:
        """Return (title, is_open, proposals, is_super_elector_vote)."""
        with self._store.read():
            return self.require(session_id).info()

    def get_session(self, session_id: int) -> VotingSession:
        """Return a detached copy of the full session record."""
        with self._store.read():
            return VotingSession.from_record(self.require(session_id).to_record())

    def list_sessions(self, open_only: bool = False) -> list[SessionInfo]:
        with self._store.read() as store:
            return [
                s.info() for s in store.sessions()
                if s.is_open or not open_only
            ]

    def voted_proposal(self, session_id: int, principal: PrincipalId) -> Optional[int]:
        """The proposal index principal voted for, or None if they have not voted."""
        with self._store.read():
            return self.require(session_id).voted_proposal_index.get(principal)

    def tally(self, session_id: int) -> list[int]:
        """Accumulated weight per proposal, in proposal order."""
        with self._store.read():
            session = self.require(session_id)
            return [session.votes_for(i) for i in range(len(session.proposals))]

    def close(self, caller: PrincipalId, session_id: int) -> list[PrincipalId]:
        """Close a session; run the election if it is a super-elector vote.

        Returns:
            Principals promoted by the election (empty for ordinary sessions).

        Raises:
            VotingError(NOT_FOUND): Unknown session.
            VotingError(UNAUTHORIZED): Caller is not the session owner.
            VotingError(ALREADY_SETTLED): Session already closed and the
                re-close policy is REJECT.
            VotingError(MALFORMED_IDENTIFIER): A proposal cannot be parsed
                as a candidate. Nothing is applied.
        """
        with self._store.transaction() as store:
            session = self.require(session_id)
            if caller != session.owner:
                raise VotingError(
                    VotingErrorKind.UNAUTHORIZED,
                    f"{caller} is not the owner of session {session_id}",
                )
            was_open = session.is_open
            if not was_open:
                if self._reclose_policy == ReclosePolicy.REJECT:
                    raise VotingError(
                        VotingErrorKind.ALREADY_SETTLED,
                        f"Session {session_id} is already closed",
                    )
                logger.warning("session %d closed again; election re-runs", session_id)

            session = store.edit_session(session_id)
            session.is_open = False
            store.emit(
                EventKind.SESSION_CLOSED,
                caller.hex,
                {"session_id": session_id, "was_open": was_open},
            )

            promoted: list[PrincipalId] = []
            if session.is_super_elector_vote:
                promoted = self._election.process(session)

        logger.info("session %d closed by %s", session_id, caller)
        return promoted
