"""Round engine, outcome rules and state management."""

from core.game.events import GameEvent, EventType
from core.game.outcome import Outcome, PlayerStatus, RoundResult
from core.game.state import RoundState
from core.game.engine import RoundEngine

__all__ = [
    "GameEvent",
    "EventType",
    "Outcome",
    "PlayerStatus",
    "RoundResult",
    "RoundState",
    "RoundEngine",
]
