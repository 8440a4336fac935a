"""Hand evaluation for blackjack."""

from dataclasses import dataclass, field
from typing import Iterable, Iterator

from core.cards import Card


@dataclass(frozen=True, slots=True)
class HandTotal:
    """Value of a hand and whether an Ace is currently counted as 11."""

    value: int
    has_soft_ace: bool

    @property
    def is_busted(self) -> bool:
        return self.value > 21


def evaluate_cards(cards: Iterable[Card]) -> HandTotal:
    """
    Calculate the best total for a sequence of cards.

    Every Ace but one counts as 1. The remaining Ace counts as 11 when that
    does not bust the hand, which makes the hand soft. If no assignment stays
    at or under 21 the minimum total is returned.
    """
    total = 0
    aces = 0

    for card in cards:
        if card.is_ace:
            aces += 1
        else:
            total += card.value

    if aces == 0:
        return HandTotal(total, False)

    total += aces - 1
    if total + 11 <= 21:
        return HandTotal(total + 11, True)
    return HandTotal(total + 1, False)


@dataclass
class Hand:
    """An ordered hand of cards owned by one participant."""

    cards: list[Card] = field(default_factory=list)

    def add_card(self, card: Card) -> None:
        """Add a card to the hand."""
        self.cards.append(card)

    def set_cards(self, cards: Iterable[Card]) -> None:
        """Replace the hand with the given cards."""
        self.cards = list(cards)

    def clear(self) -> None:
        """Remove all cards from the hand."""
        self.cards.clear()

    @property
    def total(self) -> HandTotal:
        """Recompute the hand total from the current cards."""
        return evaluate_cards(self.cards)

    @property
    def value(self) -> int:
        return self.total.value

    @property
    def is_soft(self) -> bool:
        return self.total.has_soft_ace

    @property
    def is_blackjack(self) -> bool:
        """Check if the hand is a natural blackjack (21 with 2 cards)."""
        return len(self.cards) == 2 and self.value == 21

    @property
    def is_busted(self) -> bool:
        return self.value > 21

    def __len__(self) -> int:
        return len(self.cards)

    def __iter__(self) -> Iterator[Card]:
        return iter(self.cards)

    def __str__(self) -> str:
        cards_str = " ".join(str(card) for card in self.cards)
        total = self.total
        value_str = f"({total.value})"
        if total.has_soft_ace:
            value_str = f"(soft {total.value})"
        if self.is_blackjack:
            value_str = "(BLACKJACK)"
        if total.is_busted:
            value_str = "(BUST)"
        return f"{cards_str} {value_str}"

    def __repr__(self) -> str:
        return f"Hand({self.cards!r}, value={self.value})"
