"""Shoe management with a casino-style cut card."""

import logging
from decimal import ROUND_HALF_UP, Decimal

from core.cards import Card
from core.errors import CardSourceError, DrawError, Phase, SetupError
from core.sources import CardSource

logger = logging.getLogger(__name__)

# How far into the shoe the cut card is placed. Once it is reached the shoe
# is reshuffled before the following round.
CUT_CARD_FRACTION = 0.775

DEFAULT_DECK_COUNT = 6


def cut_card_position(initial_count: int, fraction: float = CUT_CARD_FRACTION) -> int:
    """Remaining-card count at which the cut card sits, rounded half up."""
    position = Decimal(initial_count) * (1 - Decimal(str(fraction)))
    return int(position.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class ShoeManager:
    """
    Tracks one shoe held by a card source.

    The cut card position is fixed when the shoe is created and reused after
    every reshuffle, like a physical cut card in a full shoe.
    """

    def __init__(
        self,
        source: CardSource,
        shoe_id: str,
        remaining: int,
        cut_card: int | None = None,
    ) -> None:
        self._source = source
        self._shoe_id = shoe_id
        self._remaining = remaining
        self._cut_card_position = (
            cut_card if cut_card is not None else cut_card_position(remaining)
        )

    @classmethod
    async def create(
        cls,
        source: CardSource,
        deck_count: int = DEFAULT_DECK_COUNT,
    ) -> "ShoeManager":
        """
        Request a freshly shuffled shoe from the source.

        Args:
            source: Card source holding the shoe
            deck_count: Number of 52-card decks in the shoe

        Raises:
            SetupError: if the source fails or reports an unusable shoe
        """
        if deck_count < 1:
            raise ValueError("Shoe must have at least 1 deck")

        try:
            created = await source.create_shoe(deck_count)
        except CardSourceError as err:
            raise SetupError(Phase.SHOE_SETUP, cause=err) from err

        if not created.shoe_id:
            raise SetupError(Phase.SHOE_SETUP, "source returned no shoe id")
        if created.remaining <= 0:
            raise SetupError(
                Phase.SHOE_SETUP,
                f"source returned an empty shoe (remaining={created.remaining})",
            )

        shoe = cls(source, created.shoe_id, created.remaining)
        logger.info(
            "Created shoe %s with %d cards, cut card at %d",
            shoe.shoe_id,
            shoe.remaining,
            shoe.cut_card_position,
        )
        return shoe

    async def draw_one(self) -> Card:
        """
        Draw exactly one card.

        Raises:
            DrawError: if the source fails or delivers anything but one card
        """
        cards = await self._draw(1, Phase.DRAW_CARD)
        return cards[0]

    async def draw_many(self, count: int) -> list[Card]:
        """Draw `count` cards in the order the source delivers them."""
        return await self._draw(count, Phase.DRAW_CARDS)

    async def _draw(self, count: int, phase: Phase) -> list[Card]:
        try:
            result = await self._source.draw(self._shoe_id, count)
        except CardSourceError as err:
            raise DrawError(phase, cause=err) from err

        if len(result.cards) != count:
            raise DrawError(
                phase,
                f"wrong number of cards drawn, expected {count}, received {len(result.cards)}",
            )

        self._remaining = result.remaining
        logger.debug("Drew %d card(s) from %s, %d left", count, self._shoe_id, self._remaining)
        return list(result.cards)

    async def reshuffle(self) -> None:
        """Shuffle every card back into the shoe. The cut card does not move."""
        try:
            result = await self._source.reshuffle(self._shoe_id)
        except CardSourceError as err:
            raise DrawError(Phase.RESHUFFLE, cause=err) from err

        self._remaining = result.remaining
        logger.info("Reshuffled shoe %s, %d cards remaining", self._shoe_id, self._remaining)

    @property
    def needs_reshuffle(self) -> bool:
        """Check if the cut card has been reached."""
        return self._remaining < self._cut_card_position

    @property
    def shoe_id(self) -> str:
        return self._shoe_id

    @property
    def remaining(self) -> int:
        """Return the number of cards remaining, as last reported by the source."""
        return self._remaining

    @property
    def cut_card_position(self) -> int:
        return self._cut_card_position
