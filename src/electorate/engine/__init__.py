"""Voting engine and election processor."""

from electorate.engine.election import ElectionProcessor
from electorate.engine.voting import VotingEngine

__all__ = ["ElectionProcessor", "VotingEngine"]
