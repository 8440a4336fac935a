"""Round participants: the player and the dealer.

Both own a Hand rather than inheriting from a shared base; the Hand is the
capability they share.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Protocol

from core.cards import Card
from core.errors import Phase, PersistenceError, StorageError
from core.hand import Hand

# Balance given to a player the first time they are seen
STARTING_BALANCE = Decimal("100")


class BalanceStore(Protocol):
    """Persists a player's balance."""

    async def save(self, username: str, balance: Decimal) -> None: ...


@dataclass
class Player:
    """The player: a hand, a balance and the stake for the current round."""

    username: str
    balance: Decimal = STARTING_BALANCE
    bet: Decimal = Decimal("0")
    hand: Hand = field(default_factory=Hand)

    def debit(self, amount: Decimal) -> None:
        self.balance -= amount

    def credit(self, amount: Decimal) -> None:
        self.balance += amount

    async def save(self, store: BalanceStore) -> None:
        """
        Persist the current balance.

        Raises:
            PersistenceError: if the store fails; the in-memory balance is kept.
        """
        if not self.username:
            raise PersistenceError(Phase.SAVE_PLAYER, "username is invalid")
        try:
            await store.save(self.username, self.balance)
        except StorageError as err:
            raise PersistenceError(Phase.SAVE_PLAYER, cause=err) from err


@dataclass
class Dealer:
    """The dealer: a hand plus the house drawing rule."""

    hand: Hand = field(default_factory=Hand)

    @property
    def upcard(self) -> Card | None:
        """The first card dealt, the only one shown during the player's turn."""
        return self.hand.cards[0] if self.hand.cards else None

    def should_hit(self) -> bool:
        """Hit below 17 and on soft 17; stand on hard 17 and above."""
        total = self.hand.total
        return total.value < 17 or (total.value == 17 and total.has_soft_ace)
