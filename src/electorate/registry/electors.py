"""Elector registry — who may vote, and with what weight.

Two classes of participant:
- Normal electors register themselves and vote (one person, one vote)
  in super-elector election sessions.
- Super electors are created only by an election. They carry a vote
  weight and a governance allocation and vote in ordinary sessions.

Invariants enforced:
- A principal that is already a super elector cannot register as a
  normal elector (ROLE_CONFLICT).
- Normal registration is idempotent and never removed.
- Promotion overwrites the super-elector record; it never accumulates.
"""

from __future__ import annotations

import logging

from electorate.errors import VotingError, VotingErrorKind
from electorate.identity.principal import PrincipalId
from electorate.models.voting import SuperElectorRecord
from electorate.persistence.event_log import EventKind
from electorate.persistence.state_store import StateStore

logger = logging.getLogger(__name__)


class ElectorRegistry:
    """Registry of normal and super electors, backed by the shared store."""

    def __init__(self, store: StateStore) -> None:
        self._store = store

    def register_normal(self, caller: PrincipalId) -> bool:
        """Register caller as a normal elector.

        Returns:
            True if caller was newly added, False if already registered.

        Raises:
            VotingError(ROLE_CONFLICT): If caller is already a super elector.
        """
        with self._store.transaction() as store:
            if store.get_super_elector(caller).is_super_elector:
                raise VotingError(
                    VotingErrorKind.ROLE_CONFLICT,
                    f"{caller} is a super elector and cannot register as a normal elector",
                )
            if store.has_normal_elector(caller):
                return False
            store.add_normal_elector(caller)
            store.emit(
                EventKind.NORMAL_ELECTOR_REGISTERED,
                caller.hex,
                {"principal": caller.hex},
            )
        logger.info("registered normal elector %s", caller)
        return True

    def is_normal_elector(self, principal: PrincipalId) -> bool:
        with self._store.read() as store:
            return store.has_normal_elector(principal)

    def is_super_elector(self, principal: PrincipalId) -> tuple[bool, int, int]:
        """Return (is_super_elector, weight, allocation); zeros if absent."""
        with self._store.read() as store:
            return store.get_super_elector(principal).as_tuple()

    def promote(self, principal: PrincipalId, weight: int, allocation: int) -> SuperElectorRecord:
        """Install principal as a super elector, replacing any earlier record.

        Increments the global super-elector counter on every call, including
        when the principal was already a super elector.
        """
        record = SuperElectorRecord(
            is_super_elector=True, weight=weight, allocation=allocation,
        )
        with self._store.transaction() as store:
            store.put_super_elector(principal, record)
            store.increment_super_elector_count()
            store.emit(
                EventKind.SUPER_ELECTOR_ELECTED,
                principal.hex,
                {
                    "candidate": principal.hex,
                    "weight": weight,
                    "allocation": allocation,
                },
            )
        logger.debug(
            "promoted %s to super elector (weight=%d, allocation=%d)",
            principal, weight, allocation,
        )
        return record

    def normal_electors(self) -> set[PrincipalId]:
        with self._store.read() as store:
            return store.normal_electors()

    def super_electors(self) -> dict[PrincipalId, SuperElectorRecord]:
        with self._store.read() as store:
            return store.super_electors()

    @property
    def super_elector_count(self) -> int:
        return self._store.super_elector_count
