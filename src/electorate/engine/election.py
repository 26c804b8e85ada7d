"""Election processor — turns a closed super-elector session into super electors.

For every proposal, in proposal order:
1. Parse the proposal text as the candidate's principal identifier.
2. If the proposal received votes, promote the candidate with
   weight = allocation = votes received.

Zero-vote proposals are skipped, though their text is still parsed, so
a proposal too short to parse fails the whole election. Several
proposals naming the same candidate are not merged: the later one
overwrites the earlier promotion.
"""

from __future__ import annotations

import logging

from electorate.identity.parser import DEFAULT_PREFIX_LENGTH, parse
from electorate.identity.principal import PrincipalId
from electorate.models.voting import VotingSession
from electorate.registry.electors import ElectorRegistry

logger = logging.getLogger(__name__)


class ElectionProcessor:
    """Derives super electors from a super-elector session's tally."""

    def __init__(
        self,
        registry: ElectorRegistry,
        prefix_length: int = DEFAULT_PREFIX_LENGTH,
    ) -> None:
        self._registry = registry
        self._prefix_length = prefix_length

    def process(self, session: VotingSession) -> list[PrincipalId]:
        """Promote every candidate with a positive tally.

        Must run inside the caller's store transaction; a parse failure
        raises and the transaction discards any promotions already made.

        Returns:
            Promoted principals in processing order (repeats possible).
        """
        promoted: list[PrincipalId] = []
        for index, text in enumerate(session.proposals):
            candidate = parse(text, self._prefix_length)
            votes = session.votes_for(index)
            if votes <= 0:
                continue
            self._registry.promote(candidate, weight=votes, allocation=votes)
            promoted.append(candidate)

        logger.info(
            "election for session %d promoted %d candidate(s)",
            session.session_id, len(promoted),
        )
        return promoted
