"""HTTP card source backed by the Deck of Cards API (deckofcardsapi.com)."""

import logging
from typing import Any, Literal, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from config import config
from core.cards import Card, Rank, Suit
from core.errors import CardSourceError
from core.sources import DrawResult, ReshuffleResult, ShoeCreated

logger = logging.getLogger(__name__)


class _ApiStatus(BaseModel):
    """Outcome flag present on every body, failures included."""

    success: bool
    error: str | None = None


class _ApiResponse(_ApiStatus):
    """Fields common to every successful API response."""

    remaining: int


class CreateShoeResponse(_ApiResponse):
    deck_id: str


class CardPayload(BaseModel):
    # Two-character code, e.g. "AS" for the ace of spades, "0H" for a ten
    code: str
    # Face value as the API spells it: "2".."10", "JACK", "QUEEN", "KING", "ACE"
    value: str
    suit: Literal["HEARTS", "SPADES", "DIAMONDS", "CLUBS"]


class DrawResponse(_ApiResponse):
    cards: list[CardPayload]


class ReshuffleResponse(_ApiResponse):
    pass


ResponseT = TypeVar("ResponseT", bound=_ApiResponse)


class DeckOfCardsClient:
    """
    Card source that keeps its shoes on the Deck of Cards API.

    Every failure (transport error, HTTP error status, malformed body or
    `success: false`) is raised as CardSourceError.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: API root (defaults to config.deck_api.base_url)
            timeout: Request timeout in seconds (defaults to config.deck_api.timeout)
            client: Pre-built httpx client, mainly for tests
        """
        self._client = client or httpx.AsyncClient(
            base_url=base_url or config.deck_api.base_url,
            timeout=timeout or config.deck_api.timeout,
        )

    async def __aenter__(self) -> "DeckOfCardsClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(
        self,
        path: str,
        model: type[ResponseT],
        params: dict[str, Any] | None = None,
    ) -> ResponseT:
        try:
            response = await self._client.get(path, params=params)
            response.raise_for_status()
            body = response.json()
            status = _ApiStatus.model_validate(body)
        except httpx.HTTPError as err:
            raise CardSourceError(f"Request to {path} failed: {err}") from err
        except ValidationError as err:
            raise CardSourceError(f"Invalid API response from {path}") from err
        except ValueError as err:
            raise CardSourceError(f"Response from {path} is not JSON") from err

        # Failure bodies carry only the flag and a reason
        if not status.success:
            raise CardSourceError(f"API failed: {status.error or 'no reason given'}")

        try:
            return model.model_validate(body)
        except ValidationError as err:
            raise CardSourceError(f"Invalid API response from {path}") from err

    async def create_shoe(self, deck_count: int) -> ShoeCreated:
        """Create a new shuffled shoe of `deck_count` decks."""
        data = await self._get(
            "/new/shuffle/", CreateShoeResponse, params={"deck_count": deck_count}
        )
        return ShoeCreated(shoe_id=data.deck_id, remaining=data.remaining)

    async def draw(self, shoe_id: str, count: int) -> DrawResult:
        """Draw `count` cards from the shoe."""
        if not shoe_id:
            raise CardSourceError("shoe_id is not specified")

        data = await self._get(f"/{shoe_id}/draw/", DrawResponse, params={"count": count})
        cards = []
        for payload in data.cards:
            card = _to_card(payload)
            if card is None:
                logger.warning("Dropping card with unknown rank %r", payload.value)
                continue
            cards.append(card)
        return DrawResult(cards=tuple(cards), remaining=data.remaining)

    async def reshuffle(self, shoe_id: str) -> ReshuffleResult:
        """Return all cards to the shoe and shuffle it."""
        if not shoe_id:
            raise CardSourceError("shoe_id is not specified")

        data = await self._get(f"/{shoe_id}/shuffle/", ReshuffleResponse)
        return ReshuffleResult(remaining=data.remaining)


def _to_card(payload: CardPayload) -> Card | None:
    rank = Rank.from_api(payload.value)
    if rank is None:
        return None
    return Card(rank=rank, suit=Suit(payload.suit), code=payload.code)
