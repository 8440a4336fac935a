"""Round outcome and payout rules."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from core.hand import Hand

# 3:2 on a natural; the only payout ratio offered
BLACKJACK_PAYOUT = Decimal("1.5")


class Outcome(Enum):
    """Possible outcomes of a round."""

    PLAYER_WON = "player_won"
    DEALER_WON = "dealer_won"
    PUSH = "push"
    PLAYER_BLACKJACK = "player_won_blackjack"
    DEALER_BLACKJACK = "dealer_won_blackjack"

    @property
    def player_wins(self) -> bool:
        return self in (Outcome.PLAYER_WON, Outcome.PLAYER_BLACKJACK)


class PlayerStatus(Enum):
    """Whether the player may keep acting on their hand."""

    BUSTED = "busted"
    HAS_21 = "has_21"
    ACTIVE = "active"


@dataclass(frozen=True, slots=True)
class RoundResult:
    """Outcome of a round and the total returned to the player."""

    outcome: Outcome
    payout: Decimal


def player_status(hand: Hand) -> PlayerStatus:
    value = hand.value
    if value > 21:
        return PlayerStatus.BUSTED
    if value == 21:
        return PlayerStatus.HAS_21
    return PlayerStatus.ACTIVE


def determine_outcome(player_hand: Hand, dealer_hand: Hand) -> Outcome:
    """
    Compare the player's hand with the dealer's.

    Naturals are settled first. Two naturals fall through to the normal
    comparison and push at 21. A busted player loses even if the dealer
    also busts.
    """
    player_bj = player_hand.is_blackjack
    dealer_bj = dealer_hand.is_blackjack

    if player_bj and not dealer_bj:
        return Outcome.PLAYER_BLACKJACK
    if dealer_bj and not player_bj:
        return Outcome.DEALER_BLACKJACK

    player_value = player_hand.value
    dealer_value = dealer_hand.value

    if player_value > 21:
        return Outcome.DEALER_WON
    if dealer_value > 21:
        return Outcome.PLAYER_WON
    if player_value > dealer_value:
        return Outcome.PLAYER_WON
    if dealer_value > player_value:
        return Outcome.DEALER_WON
    return Outcome.PUSH


def calculate_payout(outcome: Outcome, bet: Decimal) -> Decimal:
    """
    Total returned to the player, stake included.

    The stake was taken when the bet was placed, so a loss returns nothing.
    """
    if outcome == Outcome.PLAYER_BLACKJACK:
        return bet + bet * BLACKJACK_PAYOUT
    if outcome == Outcome.PLAYER_WON:
        return bet + bet
    if outcome == Outcome.PUSH:
        return bet
    return Decimal("0")
