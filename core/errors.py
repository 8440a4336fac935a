"""Error taxonomy for the round engine and its collaborators.

Every core error carries a kind, the phase that failed and the wrapped
cause, so callers can inspect a failure chain without parsing messages.
"""

from enum import Enum, auto
from typing import ClassVar, Iterator


class ErrorKind(Enum):
    """Broad category of a failure."""

    SETUP = auto()
    DRAW = auto()
    BETTING = auto()
    PERSISTENCE = auto()
    STATE = auto()


class Phase(Enum):
    """The operation that failed. Values are the user-facing messages."""

    SHOE_SETUP = "failed to set up shoe"
    ENGINE_SETUP = "failed to initialize round engine"
    DRAW_CARD = "failed to draw card"
    DRAW_CARDS = "failed to draw cards"
    RESHUFFLE = "failed to reshuffle shoe"
    INITIAL_DEAL = "failed to deal initial cards"
    PLAYER_HIT = "failed to hit player"
    DEALER_HIT = "failed to hit dealer"
    PLACE_BET = "failed to place bet"
    SAVE_PLAYER = "failed to save player"
    ROUND_FLOW = "invalid action for round state"


class CardSourceError(Exception):
    """Raised by a card source when a request cannot be fulfilled."""


class StorageError(Exception):
    """Raised by a balance store when loading or saving fails."""


class BlackjackError(Exception):
    """Base class for errors raised by the core."""

    kind: ClassVar[ErrorKind]

    def __init__(
        self,
        phase: Phase,
        detail: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.phase = phase
        self.detail = detail
        self.cause = cause
        message = phase.value if detail is None else f"{phase.value}: {detail}"
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def chain(self) -> Iterator[BaseException]:
        """Yield this error followed by every wrapped cause, outermost first."""
        error: BaseException | None = self
        while error is not None:
            yield error
            if isinstance(error, BlackjackError):
                error = error.cause
            else:
                error = error.__cause__

    @property
    def root_cause(self) -> BaseException:
        """The innermost error of the chain."""
        *_, last = self.chain()
        return last

    def to_dict(self) -> dict[str, str]:
        """Serialize for API error bodies."""
        return {
            "detail": str(self),
            "kind": self.kind.name,
            "phase": self.phase.name,
        }


class SetupError(BlackjackError):
    """The shoe could not be created."""

    kind = ErrorKind.SETUP


class DrawError(BlackjackError):
    """A draw or reshuffle failed or returned the wrong number of cards."""

    kind = ErrorKind.DRAW


class BettingError(BlackjackError):
    """A bet was rejected before any state changed."""

    kind = ErrorKind.BETTING


class PersistenceError(BlackjackError):
    """The balance was updated in memory but could not be saved."""

    kind = ErrorKind.PERSISTENCE


class InvalidStateError(BlackjackError):
    """An operation was called in a round state that does not allow it."""

    kind = ErrorKind.STATE
