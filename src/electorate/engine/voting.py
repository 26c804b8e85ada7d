"""Voting engine — eligibility checks and weighted vote recording.

Checks run in a fixed order and all of them pass before anything is
written:
1. The session is open (SESSION_CLOSED).
2. The caller has not voted in it (ALREADY_VOTED).
3. The proposal index is in range (INVALID_PROPOSAL_INDEX).
4. The caller belongs to the elector class the session is for
   (NOT_ELIGIBLE): normal electors vote in super-elector elections,
   super electors vote in ordinary sessions.

Weighting: a vote in a super-elector election counts 1. A vote in an
ordinary session counts the caller's super-elector weight.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from electorate.errors import VotingError, VotingErrorKind
from electorate.identity.principal import PrincipalId
from electorate.models.voting import VotingSession
from electorate.persistence.event_log import EventKind
from electorate.persistence.state_store import StateStore

if TYPE_CHECKING:
    from electorate.sessions.store import SessionStore

logger = logging.getLogger(__name__)


class VotingEngine:
    """Records one vote per principal per session."""

    def __init__(self, store: StateStore, sessions: SessionStore) -> None:
        self._store = store
        self._sessions = sessions

    def vote(self, caller: PrincipalId, session_id: int, proposal_index: int) -> int:
        """Cast caller's vote for a proposal.

        Returns:
            The weight the vote contributed to the tally.

        Raises:
            VotingError: NOT_FOUND, SESSION_CLOSED, ALREADY_VOTED,
                INVALID_PROPOSAL_INDEX or NOT_ELIGIBLE. State is unchanged.
        """
        with self._store.transaction() as store:
            session = self._sessions.require(session_id)
            weight = self._check(store, session, caller, proposal_index)

            session = store.edit_session(session_id)
            session.has_voted.add(caller)
            session.voted_proposal_index[caller] = proposal_index
            session.tally[proposal_index] = session.votes_for(proposal_index) + weight
            store.emit(
                EventKind.VOTED,
                caller.hex,
                {
                    "session_id": session_id,
                    "voter": caller.hex,
                    "proposal_index": proposal_index,
                },
            )

        logger.info(
            "%s voted for proposal %d in session %d (weight %d)",
            caller, proposal_index, session_id, weight,
        )
        return weight

    def _check(
        self,
        store: StateStore,
        session: VotingSession,
        caller: PrincipalId,
        proposal_index: int,
    ) -> int:
        """Validate a vote and return its weight. Never mutates."""
        sid = session.session_id
        if not session.is_open:
            raise VotingError(VotingErrorKind.SESSION_CLOSED, f"Session {sid} is closed")
        if caller in session.has_voted:
            raise VotingError(
                VotingErrorKind.ALREADY_VOTED,
                f"{caller} has already voted in session {sid}",
            )
        if not 0 <= proposal_index < len(session.proposals):
            raise VotingError(
                VotingErrorKind.INVALID_PROPOSAL_INDEX,
                f"Proposal index {proposal_index} out of range for session {sid} "
                f"({len(session.proposals)} proposals)",
            )

        if session.is_super_elector_vote:
            if not store.has_normal_elector(caller):
                raise VotingError(
                    VotingErrorKind.NOT_ELIGIBLE,
                    f"{caller} is not a normal elector; session {sid} elects super electors",
                )
            return 1

        record = store.get_super_elector(caller)
        if not record.is_super_elector:
            raise VotingError(
                VotingErrorKind.NOT_ELIGIBLE,
                f"{caller} is not a super elector; session {sid} is an ordinary vote",
            )
        return record.weight
