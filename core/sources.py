"""Card source contract and an in-process implementation."""

import logging
from dataclasses import dataclass
from random import Random
from typing import Protocol
from uuid import uuid4

from core.cards import Card, Rank, Suit
from core.errors import CardSourceError

logger = logging.getLogger(__name__)

CARDS_PER_DECK = 52


@dataclass(frozen=True, slots=True)
class ShoeCreated:
    """A freshly shuffled shoe as reported by the source."""

    shoe_id: str
    remaining: int


@dataclass(frozen=True, slots=True)
class DrawResult:
    """Cards drawn, in delivery order, and the count left in the shoe."""

    cards: tuple[Card, ...]
    remaining: int


@dataclass(frozen=True, slots=True)
class ReshuffleResult:
    remaining: int


class CardSource(Protocol):
    """
    Supplier of shuffled cards.

    Implementations must report the remaining count after every call and
    raise CardSourceError on any failure.
    """

    async def create_shoe(self, deck_count: int) -> ShoeCreated: ...

    async def draw(self, shoe_id: str, count: int) -> DrawResult: ...

    async def reshuffle(self, shoe_id: str) -> ReshuffleResult: ...


class LocalCardSource:
    """
    Card source backed by in-memory shoes.

    Cards are drawn from the end of a shuffled list. Reshuffling returns every
    dealt card to its shoe.
    """

    def __init__(self, rng: Random | None = None) -> None:
        self._rng = rng or Random()
        self._shoes: dict[str, list[Card]] = {}
        self._deck_counts: dict[str, int] = {}

    def _full_shoe(self, deck_count: int) -> list[Card]:
        return [
            Card(rank, suit)
            for _ in range(deck_count)
            for suit in Suit
            for rank in Rank
        ]

    def _cards(self, shoe_id: str) -> list[Card]:
        if shoe_id not in self._shoes:
            raise CardSourceError(f"Unknown shoe: {shoe_id}")
        return self._shoes[shoe_id]

    async def create_shoe(self, deck_count: int) -> ShoeCreated:
        if deck_count < 1:
            raise CardSourceError("Shoe must have at least 1 deck")
        shoe_id = uuid4().hex[:12]
        cards = self._full_shoe(deck_count)
        self._rng.shuffle(cards)
        self._shoes[shoe_id] = cards
        self._deck_counts[shoe_id] = deck_count
        return ShoeCreated(shoe_id=shoe_id, remaining=len(cards))

    async def draw(self, shoe_id: str, count: int) -> DrawResult:
        cards = self._cards(shoe_id)
        if count > len(cards):
            raise CardSourceError(
                f"Not enough cards remaining to draw {count} additional"
            )
        drawn = tuple(cards.pop() for _ in range(count))
        return DrawResult(cards=drawn, remaining=len(cards))

    async def reshuffle(self, shoe_id: str) -> ReshuffleResult:
        self._cards(shoe_id)
        cards = self._full_shoe(self._deck_counts[shoe_id])
        self._rng.shuffle(cards)
        self._shoes[shoe_id] = cards
        logger.debug("Local shoe %s reshuffled", shoe_id)
        return ReshuffleResult(remaining=len(cards))
