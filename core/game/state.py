"""Round state enumeration."""

from enum import Enum, auto


class RoundState(Enum):
    """
    Round state machine states.

    Flow: AWAITING_BET → INITIAL_DEAL → PLAYER_TURN → DEALER_TURN → ROUND_END
    """

    # Waiting for the player to stake
    AWAITING_BET = auto()

    # Stake taken, cards not yet dealt
    INITIAL_DEAL = auto()

    # Player hits or stands
    PLAYER_TURN = auto()

    # Dealer draws to 17
    DEALER_TURN = auto()

    # Outcome and payout
    ROUND_END = auto()

