"""Pydantic schemas for API requests and responses."""

from pydantic import BaseModel, ConfigDict, Field
from typing import Literal


class NewGameRequest(BaseModel):
    """Request to start a session for a player."""

    username: str = Field(..., min_length=1, max_length=32, pattern=r"^[A-Za-z0-9_.-]+$")


class NewGameResponse(BaseModel):
    session_id: str
    balance: float
    returning_player: bool


class BetRequest(BaseModel):
    """Request to place a bet."""

    amount: int = Field(..., ge=1, description="Bet amount")


class DepositRequest(BaseModel):
    """Request to add funds between rounds."""

    amount: int = Field(..., ge=1, le=100_000)


class ActionRequest(BaseModel):
    """Request for player action."""

    action: Literal["hit", "stand"]


class CardResponse(BaseModel):
    """Card representation."""

    model_config = ConfigDict(from_attributes=True)

    rank: str
    suit: str
    code: str
    value: int


class HandResponse(BaseModel):
    """Hand representation. Value fields are None while a card is hidden."""

    cards: list[CardResponse]
    hidden_cards: int = 0
    value: int | None
    is_soft: bool | None
    is_blackjack: bool | None
    is_busted: bool | None


class RoundResultResponse(BaseModel):
    """Round result."""

    outcome: Literal[
        "player_won",
        "dealer_won",
        "push",
        "player_won_blackjack",
        "dealer_won_blackjack",
    ]
    payout: float


class GameStateResponse(BaseModel):
    """Current round state."""

    state: str
    username: str
    balance: float
    bet: float
    player_hand: HandResponse
    player_status: Literal["busted", "has_21", "active"]
    dealer_hand: HandResponse
    dealer_upcard: CardResponse | None
    result: RoundResultResponse | None
    cards_remaining: int
    needs_reshuffle: bool
    can_hit: bool
    can_stand: bool
    error: str | None = None


class ErrorResponse(BaseModel):
    """Body returned for engine errors."""

    detail: str
    kind: str
    phase: str
