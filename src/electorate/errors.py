"""Named failure kinds for every electorate operation.

All failures are synchronous and preclude partial mutation: a component
raises VotingError before touching state (or inside a store transaction
that rolls back), and the service layer converts it into a failed
ServiceResult carrying the same kind.
"""

from __future__ import annotations

import enum


class VotingErrorKind(str, enum.Enum):
    """Classification of rejected operations."""
    ROLE_CONFLICT = "role_conflict"
    UNAUTHORIZED = "unauthorized"
    SESSION_CLOSED = "session_closed"
    ALREADY_VOTED = "already_voted"
    INVALID_PROPOSAL_INDEX = "invalid_proposal_index"
    NOT_ELIGIBLE = "not_eligible"
    NOT_FOUND = "not_found"
    MALFORMED_IDENTIFIER = "malformed_identifier"
    # Only raised when the re-close policy is "reject".
    ALREADY_SETTLED = "already_settled"


class VotingError(Exception):
    """Raised when an operation is rejected. State is left unchanged."""

    def __init__(self, kind: VotingErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.args[0]}"
