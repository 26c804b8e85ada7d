"""Core data models for Electorate."""

from electorate.models.voting import (
    NO_SUPER_ELECTOR,
    SessionInfo,
    SuperElectorRecord,
    VotingSession,
)

__all__ = [
    "NO_SUPER_ELECTOR",
    "SessionInfo",
    "SuperElectorRecord",
    "VotingSession",
]
