"""Tests for the voting engine — eligibility, one vote each, weighted tallies.

Proves:
- A second vote by the same principal fails with ALREADY_VOTED and the
  tally keeps the value it had after the first vote.
- An out-of-range proposal index fails with INVALID_PROPOSAL_INDEX and
  mutates nothing.
- Normal electors vote only in super-elector sessions and super electors
  only in ordinary sessions (NOT_ELIGIBLE otherwise).
- Weighting law: ordinary sessions add the voter's weight; super-elector
  sessions add exactly 1 regardless of any weight the voter holds.
- Checks are evaluated in order and before any mutation.
"""

import pytest

from electorate.engine.election import ElectionProcessor
from electorate.engine.voting import VotingEngine
from electorate.errors import VotingError, VotingErrorKind
from electorate.identity.principal import PrincipalId
from electorate.persistence.event_log import EventKind, Notification
from electorate.persistence.state_store import StateStore
from electorate.registry.electors import ElectorRegistry
from electorate.sessions.store import SessionStore


OWNER = PrincipalId(0x0FF1CE)
P1 = PrincipalId(0x1)
P2 = PrincipalId(0x2)
SUPER = PrincipalId(0x5E)


@pytest.fixture
def store() -> StateStore:
    return StateStore()


@pytest.fixture
def registry(store: StateStore) -> ElectorRegistry:
    return ElectorRegistry(store)


@pytest.fixture
def sessions(store: StateStore, registry: ElectorRegistry) -> SessionStore:
    return SessionStore(store, ElectionProcessor(registry))


@pytest.fixture
def voting(store: StateStore, sessions: SessionStore) -> VotingEngine:
    return VotingEngine(store, sessions)


def _snapshot(sessions: SessionStore, session_id: int) -> dict:
    return sessions.get_session(session_id).to_record()


class TestSuperElectorSessions:
    def test_normal_elector_votes_with_weight_one(
        self, registry: ElectorRegistry, sessions: SessionStore, voting: VotingEngine,
    ) -> None:
        registry.register_normal(P1)
        sid = sessions.create_session(OWNER, "Board", ["0xaa", "0xbb"], True)
        assert voting.vote(P1, sid, 1) == 1
        assert sessions.tally(sid) == [0, 1]
        assert sessions.voted_proposal(sid, P1) == 1

    def test_weight_ignored_in_super_elector_session(
        self, registry: ElectorRegistry, sessions: SessionStore, voting: VotingEngine,
    ) -> None:
        registry.register_normal(P1)
        registry.promote(P1, weight=9, allocation=9)
        sid = sessions.create_session(OWNER, "Board", ["0xaa"], True)
        assert voting.vote(P1, sid, 0) == 1
        assert sessions.tally(sid) == [1]

    def test_unregistered_not_eligible(
        self, registry: ElectorRegistry, sessions: SessionStore, voting: VotingEngine,
    ) -> None:
        registry.promote(SUPER, weight=3, allocation=3)
        sid = sessions.create_session(OWNER, "Board", ["0xaa"], True)
        for principal in (P2, SUPER):
            with pytest.raises(VotingError) as exc:
                voting.vote(principal, sid, 0)
            assert exc.value.kind == VotingErrorKind.NOT_ELIGIBLE
        assert sessions.tally(sid) == [0]


class TestOrdinarySessions:
    def test_super_elector_votes_with_weight(
        self, registry: ElectorRegistry, sessions: SessionStore, voting: VotingEngine,
    ) -> None:
        registry.promote(SUPER, weight=7, allocation=7)
        sid = sessions.create_session(OWNER, "Budget", ["yes", "no"], False)
        assert voting.vote(SUPER, sid, 0) == 7
        assert sessions.tally(sid) == [7, 0]

    def test_weights_accumulate_per_proposal(
        self, registry: ElectorRegistry, sessions: SessionStore, voting: VotingEngine,
    ) -> None:
        registry.promote(P1, weight=2, allocation=2)
        registry.promote(P2, weight=5, allocation=5)
        sid = sessions.create_session(OWNER, "Budget", ["yes", "no"], False)
        voting.vote(P1, sid, 1)
        voting.vote(P2, sid, 1)
        assert sessions.tally(sid) == [0, 7]

    def test_normal_elector_not_eligible(
        self, registry: ElectorRegistry, sessions: SessionStore, voting: VotingEngine,
    ) -> None:
        registry.register_normal(P1)
        sid = sessions.create_session(OWNER, "Budget", ["yes"], False)
        with pytest.raises(VotingError) as exc:
            voting.vote(P1, sid, 0)
        assert exc.value.kind == VotingErrorKind.NOT_ELIGIBLE


class TestRejections:
    def test_double_vote_rejected(
        self, registry: ElectorRegistry, sessions: SessionStore, voting: VotingEngine,
    ) -> None:
        registry.register_normal(P1)
        sid = sessions.create_session(OWNER, "Board", ["0xaa", "0xbb"], True)
        voting.vote(P1, sid, 0)
        after_first = _snapshot(sessions, sid)
        with pytest.raises(VotingError) as exc:
            voting.vote(P1, sid, 1)
        assert exc.value.kind == VotingErrorKind.ALREADY_VOTED
        assert _snapshot(sessions, sid) == after_first
        assert sessions.tally(sid) == [1, 0]

    @pytest.mark.parametrize("index", [2, 3, 100, -1])
    def test_invalid_index_rejected(
        self, registry: ElectorRegistry, sessions: SessionStore,
        voting: VotingEngine, index: int,
    ) -> None:
        registry.register_normal(P1)
        sid = sessions.create_session(OWNER, "Board", ["0xaa", "0xbb"], True)
        before = _snapshot(sessions, sid)
        with pytest.raises(VotingError) as exc:
            voting.vote(P1, sid, index)
        assert exc.value.kind == VotingErrorKind.INVALID_PROPOSAL_INDEX
        assert _snapshot(sessions, sid) == before
        assert sessions.voted_proposal(sid, P1) is None

    def test_empty_session_never_takes_a_vote(
        self, registry: ElectorRegistry, sessions: SessionStore, voting: VotingEngine,
    ) -> None:
        registry.register_normal(P1)
        sid = sessions.create_session(OWNER, "Empty", [], True)
        with pytest.raises(VotingError) as exc:
            voting.vote(P1, sid, 0)
        assert exc.value.kind == VotingErrorKind.INVALID_PROPOSAL_INDEX

    def test_closed_session_rejected(
        self, registry: ElectorRegistry, sessions: SessionStore, voting: VotingEngine,
    ) -> None:
        registry.promote(SUPER, weight=1, allocation=1)
        sid = sessions.create_session(OWNER, "Budget", ["yes"], False)
        sessions.close(OWNER, sid)
        with pytest.raises(VotingError) as exc:
            voting.vote(SUPER, sid, 0)
        assert exc.value.kind == VotingErrorKind.SESSION_CLOSED

    def test_unknown_session(self, voting: VotingEngine) -> None:
        with pytest.raises(VotingError) as exc:
            voting.vote(P1, 1, 0)
        assert exc.value.kind == VotingErrorKind.NOT_FOUND


class TestCheckOrder:
    def test_closed_reported_before_already_voted(
        self, registry: ElectorRegistry, sessions: SessionStore, voting: VotingEngine,
    ) -> None:
        registry.register_normal(P1)
        sid = sessions.create_session(OWNER, "Board", ["0xaa"], True)
        voting.vote(P1, sid, 0)
        sessions.close(OWNER, sid)
        with pytest.raises(VotingError) as exc:
            voting.vote(P1, sid, 0)
        assert exc.value.kind == VotingErrorKind.SESSION_CLOSED

    def test_already_voted_reported_before_bad_index(
        self, registry: ElectorRegistry, sessions: SessionStore, voting: VotingEngine,
    ) -> None:
        registry.register_normal(P1)
        sid = sessions.create_session(OWNER, "Board", ["0xaa"], True)
        voting.vote(P1, sid, 0)
        with pytest.raises(VotingError) as exc:
            voting.vote(P1, sid, 5)
        assert exc.value.kind == VotingErrorKind.ALREADY_VOTED

    def test_bad_index_reported_before_eligibility(
        self, sessions: SessionStore, voting: VotingEngine,
    ) -> None:
        sid = sessions.create_session(OWNER, "Board", ["0xaa"], True)
        with pytest.raises(VotingError) as exc:
            voting.vote(P2, sid, 1)
        assert exc.value.kind == VotingErrorKind.INVALID_PROPOSAL_INDEX


class TestNotifications:
    def test_voted_emitted_only_on_success(
        self, store: StateStore, registry: ElectorRegistry,
        sessions: SessionStore, voting: VotingEngine,
    ) -> None:
        received: list[Notification] = []
        registry.register_normal(P1)
        sid = sessions.create_session(OWNER, "Board", ["0xaa"], True)
        store.subscribe(received.extend)

        voting.vote(P1, sid, 0)
        with pytest.raises(VotingError):
            voting.vote(P1, sid, 0)

        assert received == [Notification(
            kind=EventKind.VOTED,
            actor_id=P1.hex,
            payload={"session_id": sid, "voter": P1.hex, "proposal_index": 0},
        )]
