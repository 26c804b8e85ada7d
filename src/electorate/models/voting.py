"""Voting data models — elector records and voting sessions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from electorate.identity.principal import PrincipalId


@dataclass(frozen=True)
class SuperElectorRecord:
    """Status of a principal in the super-elector registry.

    Frozen — an election replaces the whole record, it never accumulates
    into an existing one.
    """
    is_super_elector: bool = False
    weight: int = 0
    allocation: int = 0

    def __post_init__(self) -> None:
        if self.weight < 0 or self.allocation < 0:
            raise ValueError(
                f"Weight and allocation must be non-negative, "
                f"got weight={self.weight}, allocation={self.allocation}"
            )

    def as_tuple(self) -> tuple[bool, int, int]:
        return (self.is_super_elector, self.weight, self.allocation)


NO_SUPER_ELECTOR = SuperElectorRecord()


@dataclass
class VotingSession:
    """A titled, proposal-bearing voting round.

    Mutable — ``vote`` fills has_voted, voted_proposal_index and tally while
    the session is open; ``close`` flips is_open. Sessions are never deleted.

    Invariant: has_voted and voted_proposal_index share the same key set,
    and every recorded index is a valid index into proposals.
    """
    session_id: int
    owner: PrincipalId
    title: str
    proposals: list[str]
    is_super_elector_vote: bool
    is_open: bool = True
    has_voted: set[PrincipalId] = field(default_factory=set)
    voted_proposal_index: dict[PrincipalId, int] = field(default_factory=dict)
    tally: dict[int, int] = field(default_factory=dict)

    def votes_for(self, proposal_index: int) -> int:
        """Accumulated weight behind a proposal (0 if it received none)."""
        return self.tally.get(proposal_index, 0)

    def info(self) -> SessionInfo:
        return SessionInfo(
            title=self.title,
            is_open=self.is_open,
            proposals=tuple(self.proposals),
            is_super_elector_vote=self.is_super_elector_vote,
        )

    def to_record(self) -> dict[str, Any]:
        """Serialise for persistence. Principals are stored as hex text."""
        return {
            "session_id": self.session_id,
            "owner": self.owner.hex,
            "title": self.title,
            "proposals": list(self.proposals),
            "is_super_elector_vote": self.is_super_elector_vote,
            "is_open": self.is_open,
            "voted_proposal_index": {
                p.hex: idx for p, idx in sorted(self.voted_proposal_index.items())
            },
            "tally": {str(idx): weight for idx, weight in sorted(self.tally.items())},
        }

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> VotingSession:
        voted = {
            PrincipalId(int(hex_id, 16)): int(idx)
            for hex_id, idx in data.get("voted_proposal_index", {}).items()
        }
        return cls(
            session_id=int(data["session_id"]),
            owner=PrincipalId(int(data["owner"], 16)),
            title=data["title"],
            proposals=list(data["proposals"]),
            is_super_elector_vote=bool(data["is_super_elector_vote"]),
            is_open=bool(data["is_open"]),
            has_voted=set(voted),
            voted_proposal_index=voted,
            tally={int(idx): int(w) for idx, w in data.get("tally", {}).items()},
        )


@dataclass(frozen=True)
class SessionInfo:
    """Public read view of a session."""
    title: str
    is_open: bool
    proposals: tuple[str, ...]
    is_super_elector_vote: bool

    def as_tuple(self) -> tuple[str, bool, list[str], bool]:
        return (self.title, self.is_open, list(self.proposals), self.is_super_elector_vote)
