"""Tests for Player and Dealer."""

import pytest
from decimal import Decimal

from core.cards import Card, Rank, Suit
from core.errors import ErrorKind, PersistenceError, StorageError
from core.participants import STARTING_BALANCE, Dealer, Player


class TestPlayer:
    """Tests for the Player class."""

    def test_defaults(self):
        player = Player(username="bob")
        assert player.balance == STARTING_BALANCE
        assert player.bet == Decimal("0")
        assert len(player.hand) == 0

    def test_debit_and_credit(self, player):
        player.debit(Decimal("30"))
        assert player.balance == Decimal("70")
        player.credit(Decimal("75"))
        assert player.balance == Decimal("145")

    def test_blackjack_through_hand(self, player):
        player.hand.set_cards([Card(Rank.ACE, Suit.SPADES), Card(Rank.KING, Suit.HEARTS)])
        assert player.hand.is_blackjack
        assert player.hand.total.value == 21

    @pytest.mark.asyncio
    async def test_save(self, player, balance_store):
        player.debit(Decimal("10"))
        await player.save(balance_store)
        assert balance_store.saved == [("alice", Decimal("90"))]

    @pytest.mark.asyncio
    async def test_save_failure_wrapped(self, player, balance_store):
        """Test that a store failure surfaces as a persistence error with its cause."""
        balance_store.fail = True

        with pytest.raises(PersistenceError) as exc_info:
            await player.save(balance_store)

        error = exc_info.value
        assert error.kind == ErrorKind.PERSISTENCE
        assert isinstance(error.cause, StorageError)
        assert isinstance(error.root_cause, StorageError)
        assert player.balance == Decimal("100")

    @pytest.mark.asyncio
    async def test_save_without_username(self, balance_store):
        with pytest.raises(PersistenceError):
            await Player(username="").save(balance_store)
        assert balance_store.saved == []


class TestDealer:
    """Tests for the Dealer class."""

    def test_upcard_empty(self, dealer):
        assert dealer.upcard is None

    def test_upcard_is_first_card(self, dealer, hand_of):
        dealer.hand.set_cards(hand_of("7S", "KH").cards)
        assert dealer.upcard == Card(Rank.SEVEN, Suit.SPADES)

    @pytest.mark.parametrize(
        "codes",
        [
            ("6C", "9D"),
            ("10S", "6H"),
            ("2C", "3D"),
            ("AS", "5H"),
        ],
    )
    def test_hits_below_17(self, dealer, hand_of, codes):
        dealer.hand.set_cards(hand_of(*codes).cards)
        assert dealer.should_hit()

    def test_hits_soft_17(self, dealer, soft_17_hand):
        dealer.hand.set_cards(soft_17_hand.cards)
        assert dealer.should_hit()

    def test_hits_multi_card_soft_17(self, dealer, hand_of):
        """Test A-A-5 (soft 17 over three cards)."""
        dealer.hand.set_cards(hand_of("AS", "AH", "5C").cards)
        assert dealer.hand.value == 17
        assert dealer.should_hit()

    def test_stands_hard_17(self, dealer, hard_17_hand):
        dealer.hand.set_cards(hard_17_hand.cards)
        assert not dealer.should_hit()

    def test_stands_hard_17_with_ace(self, dealer, hand_of):
        """Test that an ace forced to 1 makes 17 hard."""
        dealer.hand.set_cards(hand_of("AS", "6H", "KC").cards)
        assert dealer.hand.value == 17
        assert not dealer.should_hit()

    @pytest.mark.parametrize("codes", [("10S", "8H"), ("AS", "7H"), ("KS", "QH"), ("KS", "7H", "5C")])
    def test_stands_above_17(self, dealer, hand_of, codes):
        dealer.hand.set_cards(hand_of(*codes).cards)
        assert not dealer.should_hit()
