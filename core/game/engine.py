"""Round engine driving one blackjack round at a time through a state machine."""

import logging
from decimal import Decimal
from typing import Callable

from transitions import Machine

from core.cards import Card
from core.errors import (
    BettingError,
    DrawError,
    InvalidStateError,
    Phase,
    PersistenceError,
    SetupError,
)
from core.game.events import EventEmitter, EventType, GameEvent
from core.game.outcome import (
    Outcome,
    PlayerStatus,
    RoundResult,
    calculate_payout,
    determine_outcome,
    player_status,
)
from core.game.state import RoundState
from core.participants import BalanceStore, Dealer, Player
from core.shoe import DEFAULT_DECK_COUNT, ShoeManager
from core.sources import CardSource

logger = logging.getLogger(__name__)

# Player gets the first two cards of the initial draw, dealer the next two
INITIAL_DEAL_SIZE = 4


class RoundEngine:
    """
    Plays rounds of blackjack for one player against the dealer.

    The engine owns both hands and the shoe. It has no user interface:
    callers drive it through its operations, read its properties and may
    subscribe to the events it emits. Every card-source failure is wrapped
    with the phase that failed and re-raised; nothing is retried.
    """

    STATES = [s.name.lower() for s in RoundState]

    TRANSITIONS = [
        {"trigger": "start_deal", "source": "awaiting_bet", "dest": "initial_deal"},
        {"trigger": "begin_player_turn", "source": "initial_deal", "dest": "player_turn"},
        {"trigger": "player_natural", "source": "initial_deal", "dest": "dealer_turn"},
        {"trigger": "dealer_natural", "source": "initial_deal", "dest": "round_end"},
        {"trigger": "end_player_turn", "source": "player_turn", "dest": "dealer_turn"},
        {"trigger": "end_dealer_turn", "source": "dealer_turn", "dest": "round_end"},
        {"trigger": "next_round", "source": "round_end", "dest": "awaiting_bet"},
    ]

    def __init__(
        self,
        player: Player,
        shoe: ShoeManager,
        store: BalanceStore | None = None,
        dealer: Dealer | None = None,
        initial_state: RoundState = RoundState.AWAITING_BET,
    ) -> None:
        """
        Initialize an engine around an existing shoe.

        Args:
            player: The player, with their balance
            shoe: Shoe to deal from
            store: Where balances are saved after each payout (None to skip)
            dealer: Dealer to play against (a fresh one if not provided)
            initial_state: State to start in, used when restoring a round
        """
        self.player = player
        self.dealer = dealer or Dealer()
        self.shoe = shoe
        self.store = store
        self.events = EventEmitter()

        self._outcome: Outcome | None = None
        self._payout: Decimal | None = None

        self.machine = Machine(
            model=self,
            states=self.STATES,
            transitions=self.TRANSITIONS,
            initial=initial_state.name.lower(),
            auto_transitions=False,
            model_attribute="_machine_state",
        )

    @classmethod
    async def start(
        cls,
        player: Player,
        source: CardSource,
        store: BalanceStore | None = None,
        deck_count: int = DEFAULT_DECK_COUNT,
    ) -> "RoundEngine":
        """
        Create a shoe from the source and return an engine ready for a bet.

        Raises:
            SetupError: if the shoe cannot be created
        """
        try:
            shoe = await ShoeManager.create(source, deck_count)
        except SetupError as err:
            raise SetupError(Phase.ENGINE_SETUP, cause=err) from err

        engine = cls(player, shoe, store)
        engine.events.emit(
            EventType.SHOE_CREATED,
            shoe_id=shoe.shoe_id,
            remaining=shoe.remaining,
            cut_card=shoe.cut_card_position,
        )
        return engine

    @property
    def state(self) -> RoundState:
        """Get current round state as enum."""
        return RoundState[self._machine_state.upper()]  # type: ignore

    def subscribe(
        self,
        handler: Callable[[GameEvent], None],
        event_type: EventType | None = None,
    ) -> None:
        """Subscribe to round events."""
        self.events.subscribe(handler, event_type)

    def _require(self, *states: RoundState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.name for s in states)
            self.events.emit(
                EventType.INVALID_ACTION,
                state=self.state.name,
                allowed=allowed,
            )
            raise InvalidStateError(
                Phase.ROUND_FLOW,
                f"round is in {self.state.name}, expected {allowed}",
            )

    # Betting

    def place_bet(self, amount: Decimal | int) -> None:
        """
        Take the stake for a new round out of the player's balance.

        Raises:
            BettingError: if the amount is not positive or exceeds the balance
        """
        self._require(RoundState.AWAITING_BET)

        amount = Decimal(str(amount))
        if amount <= 0:
            raise BettingError(Phase.PLACE_BET, "bet must be positive")
        if amount > self.player.balance:
            self.events.emit(
                EventType.INSUFFICIENT_FUNDS,
                required=float(amount),
                available=float(self.player.balance),
            )
            raise BettingError(Phase.PLACE_BET, "cannot bet more than player's balance")

        self.player.bet = amount
        self.player.debit(amount)
        self.events.emit(EventType.BET_PLACED, amount=float(amount))
        self.start_deal()

    @property
    def bet(self) -> Decimal:
        return self.player.bet

    # Dealing

    async def deal_initial(self) -> None:
        """
        Deal two cards each to the player and the dealer from a single draw.

        A player natural skips straight to the dealer's turn. A dealer natural
        against a player without one ends the round.

        Raises:
            DrawError: if the draw fails; the round stays in INITIAL_DEAL
        """
        self._require(RoundState.INITIAL_DEAL)

        try:
            cards = await self.shoe.draw_many(INITIAL_DEAL_SIZE)
        except DrawError as err:
            raise DrawError(Phase.INITIAL_DEAL, cause=err) from err

        self.player.hand.set_cards(cards[:2])
        self.dealer.hand.set_cards(cards[2:])

        self.events.emit(
            EventType.ROUND_STARTED,
            player_cards=[str(c) for c in self.player.hand],
            dealer_upcard=str(self.dealer.upcard),
            player_value=self.player.hand.value,
        )

        if self.player.hand.is_blackjack:
            self.events.emit(EventType.PLAYER_BLACKJACK)
            self.player_natural()
        elif self.dealer.hand.is_blackjack:
            self.events.emit(EventType.DEALER_BLACKJACK)
            self.dealer_natural()
        else:
            self.begin_player_turn()

    # Player turn

    @property
    def player_status(self) -> PlayerStatus:
        return player_status(self.player.hand)

    async def player_hit(self) -> PlayerStatus:
        """
        Give the player one more card.

        The player's turn ends automatically on a bust or on 21.

        Raises:
            DrawError: if the draw fails; the hand is unchanged
        """
        self._require(RoundState.PLAYER_TURN)

        card = await self._draw(Phase.PLAYER_HIT)
        self.player.hand.add_card(card)
        self.events.emit(
            EventType.CARD_DEALT,
            card=str(card),
            hand="player",
            hand_value=self.player.hand.value,
        )
        self.events.emit(EventType.PLAYER_HIT, hand_value=self.player.hand.value)

        status = self.player_status
        if status == PlayerStatus.BUSTED:
            self.events.emit(EventType.PLAYER_BUSTS, hand_value=self.player.hand.value)
            self.end_player_turn()
        elif status == PlayerStatus.HAS_21:
            self.events.emit(EventType.PLAYER_HAS_21)
            self.end_player_turn()
        return status

    def stand(self) -> None:
        """Player keeps their hand; the dealer plays next."""
        self._require(RoundState.PLAYER_TURN)
        self.events.emit(EventType.PLAYER_STAND, hand_value=self.player.hand.value)
        self.end_player_turn()

    @property
    def can_hit(self) -> bool:
        return (
            self.state == RoundState.PLAYER_TURN
            and self.player_status == PlayerStatus.ACTIVE
        )

    @property
    def can_stand(self) -> bool:
        return self.state == RoundState.PLAYER_TURN

    # Dealer turn

    @property
    def dealer_upcard(self) -> Card | None:
        return self.dealer.upcard

    async def dealer_auto_play(self) -> None:
        """
        Draw for the dealer until the house rule says stand.

        Raises:
            DrawError: if a draw fails; cards already dealt to the dealer stay
        """
        self._require(RoundState.DEALER_TURN)

        while self.dealer.should_hit():
            card = await self._draw(Phase.DEALER_HIT)
            self.dealer.hand.add_card(card)
            self.events.emit(
                EventType.CARD_DEALT,
                card=str(card),
                hand="dealer",
                hand_value=self.dealer.hand.value,
            )
            self.events.emit(EventType.DEALER_HITS, hand_value=self.dealer.hand.value)

        if self.dealer.hand.is_busted:
            self.events.emit(EventType.DEALER_BUSTS, hand_value=self.dealer.hand.value)
        else:
            self.events.emit(EventType.DEALER_STANDS, hand_value=self.dealer.hand.value)

        self.end_dealer_turn()

    async def _draw(self, phase: Phase) -> Card:
        try:
            return await self.shoe.draw_one()
        except DrawError as err:
            raise DrawError(phase, cause=err) from err

    # Resolution

    def evaluate_outcome(self) -> Outcome:
        """Decide the round and remember the outcome."""
        self._require(RoundState.ROUND_END)
        self._outcome = determine_outcome(self.player.hand, self.dealer.hand)
        return self._outcome

    async def apply_payout(self) -> Decimal:
        """
        Credit the player with the payout for the evaluated outcome and save.

        Raises:
            InvalidStateError: if no outcome was evaluated or it was already paid
            PersistenceError: if saving fails; the credited balance stands
        """
        self._require(RoundState.ROUND_END)
        if self._outcome is None:
            raise InvalidStateError(Phase.ROUND_FLOW, "outcome has not been evaluated")
        if self._payout is not None:
            raise InvalidStateError(Phase.ROUND_FLOW, "payout already applied")

        payout = calculate_payout(self._outcome, self.player.bet)
        self._payout = payout
        self.player.credit(payout)

        self.events.emit(
            EventType.PAYOUT_APPLIED,
            outcome=self._outcome.value,
            player_wins=self._outcome.player_wins,
            payout=float(payout),
            balance=float(self.player.balance),
        )
        logger.info(
            "Round for %s: %s, bet %s, payout %s, balance %s",
            self.player.username,
            self._outcome.value,
            self.player.bet,
            payout,
            self.player.balance,
        )

        if self.store is not None:
            try:
                await self.player.save(self.store)
            except PersistenceError as err:
                self.events.emit(EventType.BALANCE_SAVE_FAILED, error=str(err))
                raise

        return payout

    async def resolve_round(self) -> RoundResult:
        """Evaluate the outcome and apply the payout in one step."""
        outcome = self.evaluate_outcome()
        payout = await self.apply_payout()
        self.events.emit(EventType.ROUND_ENDED, outcome=outcome.value, payout=float(payout))
        return RoundResult(outcome=outcome, payout=payout)

    @property
    def outcome(self) -> Outcome | None:
        return self._outcome

    @property
    def payout(self) -> Decimal | None:
        return self._payout

    @property
    def result(self) -> RoundResult | None:
        if self._outcome is None or self._payout is None:
            return None
        return RoundResult(outcome=self._outcome, payout=self._payout)

    # Between rounds

    def reset_round(self) -> None:
        """
        Forget the outcome, payout and stake, and wait for the next bet.

        The event history only covers the round in progress.
        """
        self._require(RoundState.ROUND_END)
        self._outcome = None
        self._payout = None
        self.player.bet = Decimal("0")
        self.events.clear_history()
        self.events.emit(EventType.ROUND_RESET)
        self.next_round()

    async def check_reshuffle(self) -> bool:
        """
        Reshuffle the shoe if the cut card has been reached.

        Only allowed between rounds. Returns True if the shoe was reshuffled.
        """
        self._require(RoundState.ROUND_END, RoundState.AWAITING_BET)
        if not self.shoe.needs_reshuffle:
            return False

        await self.shoe.reshuffle()
        self.events.emit(EventType.SHOE_RESHUFFLED, remaining=self.shoe.remaining)
        return True
