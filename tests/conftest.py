"""Pytest fixtures for blackjack round tests."""

import pytest
from decimal import Decimal
from random import Random

from core.cards import Card
from core.errors import CardSourceError, StorageError
from core.hand import Hand
from core.participants import Dealer, Player
from core.game import RoundEngine
from core.shoe import ShoeManager
from core.sources import DrawResult, LocalCardSource, ReshuffleResult, ShoeCreated


class ScriptedCardSource:
    """
    Card source dealing a fixed list of cards in order.

    Draws past the end of the script return fewer cards than requested.
    Operations named in `fail_on` raise CardSourceError.
    """

    def __init__(self, *codes: str, remaining: int = 312, shoe_id: str = "scripted") -> None:
        self.script = [Card.from_string(code) for code in codes]
        self.full_count = remaining
        self.remaining = remaining
        self.shoe_id = shoe_id
        self.fail_on: set[str] = set()
        self.calls: list[tuple[str, int | None]] = []

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise CardSourceError(f"{operation} unavailable")

    async def create_shoe(self, deck_count: int) -> ShoeCreated:
        self.calls.append(("create", deck_count))
        self._check("create")
        return ShoeCreated(shoe_id=self.shoe_id, remaining=self.remaining)

    async def draw(self, shoe_id: str, count: int) -> DrawResult:
        self.calls.append(("draw", count))
        self._check("draw")
        drawn, self.script = self.script[:count], self.script[count:]
        self.remaining -= len(drawn)
        return DrawResult(cards=tuple(drawn), remaining=self.remaining)

    async def reshuffle(self, shoe_id: str) -> ReshuffleResult:
        self.calls.append(("reshuffle", None))
        self._check("reshuffle")
        self.remaining = self.full_count
        return ReshuffleResult(remaining=self.remaining)


class RecordingStore:
    """Balance store that remembers saves and can be told to fail."""

    def __init__(self) -> None:
        self.saved: list[tuple[str, Decimal]] = []
        self.fail = False

    async def save(self, username: str, balance: Decimal) -> None:
        if self.fail:
            raise StorageError("disk full")
        self.saved.append((username, balance))


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return Random(42)


@pytest.fixture
def local_source(rng):
    """In-process card source with a seeded shuffle."""
    return LocalCardSource(rng=rng)


@pytest.fixture
def scripted_source():
    """Factory for card sources dealing the given card codes in order."""
    return ScriptedCardSource


@pytest.fixture
def balance_store():
    return RecordingStore()


@pytest.fixture
def hand_of():
    """Factory building a Hand from card codes, e.g. hand_of("AS", "KH")."""

    def _hand_of(*codes: str) -> Hand:
        return Hand([Card.from_string(code) for code in codes])

    return _hand_of


@pytest.fixture
def empty_hand():
    return Hand()


@pytest.fixture
def blackjack_hand(hand_of):
    """A natural blackjack hand."""
    return hand_of("AS", "KH")


@pytest.fixture
def soft_17_hand(hand_of):
    """A soft 17 hand (A-6)."""
    return hand_of("AS", "6H")


@pytest.fixture
def hard_17_hand(hand_of):
    """A hard 17 hand (10-7)."""
    return hand_of("10S", "7H")


@pytest.fixture
def bust_hand(hand_of):
    """A busted hand (K-7-5)."""
    return hand_of("KS", "7H", "5C")


@pytest.fixture
def player():
    return Player(username="alice", balance=Decimal("100"))


@pytest.fixture
def dealer():
    return Dealer()


@pytest.fixture
def make_engine(scripted_source, balance_store):
    """
    Factory for an engine whose shoe deals the given cards in order.

    The first four cards form the initial deal: player, player, dealer, dealer.
    """

    def _make_engine(*codes: str, balance: int = 100) -> RoundEngine:
        source = scripted_source(*codes)
        shoe = ShoeManager(source, source.shoe_id, source.remaining)
        return RoundEngine(
            Player(username="alice", balance=Decimal(balance)),
            shoe,
            balance_store,
        )

    return _make_engine


@pytest.fixture
def memory_store():
    """Install a fresh in-memory store as the shared API store."""
    import api.storage as storage_module

    store = storage_module.InMemoryStore()
    storage_module._store = store
    yield store
    storage_module._store = None
