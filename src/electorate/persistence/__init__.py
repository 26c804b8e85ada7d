"""Persistence layer — shared state store and append-only event log."""

from electorate.persistence.event_log import (
    EventKind,
    EventLog,
    EventLogError,
    EventRecord,
    Notification,
)
from electorate.persistence.state_store import StateStore

__all__ = [
    "EventKind",
    "EventLog",
    "EventLogError",
    "EventRecord",
    "Notification",
    "StateStore",
]
