"""Core blackjack round engine - 100% UI-agnostic."""

from core.cards import Card, Rank, Suit
from core.hand import Hand, HandTotal, evaluate_cards
from core.participants import Dealer, Player
from core.shoe import ShoeManager
from core.sources import CardSource, LocalCardSource

__all__ = [
    "Card",
    "Rank",
    "Suit",
    "Hand",
    "HandTotal",
    "evaluate_cards",
    "Dealer",
    "Player",
    "ShoeManager",
    "CardSource",
    "LocalCardSource",
]
