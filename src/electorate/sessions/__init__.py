"""Voting session storage and lifecycle."""

from electorate.sessions.store import ReclosePolicy, SessionStore

__all__ = ["ReclosePolicy", "SessionStore"]
