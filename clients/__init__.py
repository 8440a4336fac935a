"""Clients for external card sources."""

from clients.deck_of_cards import DeckOfCardsClient

__all__ = ["DeckOfCardsClient"]
