"""Game API endpoints."""

import asyncio
import logging
from decimal import Decimal
from typing import Annotated, Any

from fastapi import APIRouter, HTTPException, Header

from api.schemas import (
    ActionRequest,
    BetRequest,
    CardResponse,
    DepositRequest,
    GameStateResponse,
    HandResponse,
    NewGameRequest,
    NewGameResponse,
    RoundResultResponse,
)
from api.session import (
    create_session,
    delete_session,
    extract_session_id,
    get_session,
    get_user_session,
    set_user_session,
    update_session,
)
from api.storage import PlayerStore, get_player_store, get_store
from clients.deck_of_cards import DeckOfCardsClient
from config import config
from core.cards import Card, Rank, Suit
from core.errors import InvalidStateError, PersistenceError, Phase, StorageError
from core.game import Outcome, RoundEngine, RoundState
from core.hand import Hand
from core.participants import Dealer, Player
from core.shoe import ShoeManager
from core.sources import CardSource, LocalCardSource

logger = logging.getLogger(__name__)

router = APIRouter()

# Live engines by raw session id, backed by the snapshot in the session store
_engines: dict[str, RoundEngine] = {}

# Requests for one session run one at a time
_locks: dict[str, asyncio.Lock] = {}

_card_source: CardSource | None = None

SESSION_KEY_ROUND = "round"


def get_card_source() -> CardSource:
    """Get or create the configured card source."""
    global _card_source
    if _card_source is None:
        if config.deck_api.source == "local":
            _card_source = LocalCardSource()
        else:
            _card_source = DeckOfCardsClient()
    return _card_source


async def close_card_source() -> None:
    """Release the card source's connections, if it holds any."""
    global _card_source
    if isinstance(_card_source, DeckOfCardsClient):
        await _card_source.aclose()
    _card_source = None


def _serialize_card(card: Card) -> dict[str, str]:
    return {"rank": card.rank.value, "suit": card.suit.value, "code": card.code}


def _deserialize_card(data: dict[str, str]) -> Card:
    return Card(Rank(data["rank"]), Suit(data["suit"]), data.get("code", ""))


def _serialize_round(engine: RoundEngine) -> dict[str, Any]:
    """Serialize a round for session storage."""
    return {
        "state": engine.state.name,
        "username": engine.player.username,
        "balance": str(engine.player.balance),
        "bet": str(engine.player.bet),
        "player_cards": [_serialize_card(c) for c in engine.player.hand],
        "dealer_cards": [_serialize_card(c) for c in engine.dealer.hand],
        "outcome": engine.outcome.value if engine.outcome else None,
        "payout": str(engine.payout) if engine.payout is not None else None,
        "shoe": {
            "id": engine.shoe.shoe_id,
            "remaining": engine.shoe.remaining,
            "cut_card": engine.shoe.cut_card_position,
        },
    }


def _deserialize_round(
    data: dict[str, Any],
    source: CardSource,
    store: PlayerStore,
) -> RoundEngine:
    """Restore a round from session data."""
    player = Player(
        username=data["username"],
        balance=Decimal(data["balance"]),
        bet=Decimal(data["bet"]),
        hand=Hand([_deserialize_card(c) for c in data["player_cards"]]),
    )
    dealer = Dealer(hand=Hand([_deserialize_card(c) for c in data["dealer_cards"]]))
    shoe = ShoeManager(
        source,
        data["shoe"]["id"],
        data["shoe"]["remaining"],
        cut_card=data["shoe"]["cut_card"],
    )

    engine = RoundEngine(
        player,
        shoe,
        store,
        dealer=dealer,
        initial_state=RoundState[data["state"]],
    )
    if data["outcome"] is not None:
        engine._outcome = Outcome(data["outcome"])
    if data["payout"] is not None:
        engine._payout = Decimal(data["payout"])
    return engine


def _session_id(token: str) -> str:
    session_id = extract_session_id(token)
    if session_id is None:
        raise HTTPException(status_code=401, detail="Invalid or expired session")
    return session_id


def _session_lock(session_id: str) -> asyncio.Lock:
    return _locks.setdefault(session_id, asyncio.Lock())


def _forget(session_id: str) -> None:
    """Drop the cached engine and lock of a session."""
    _engines.pop(session_id, None)
    _locks.pop(session_id, None)


async def _prune_engines() -> None:
    """Drop cached engines whose session expired or was deleted."""
    await (await get_store()).cleanup_expired()
    for session_id in list(_engines):
        if await get_session(session_id) is None:
            _forget(session_id)


async def _get_engine(session_id: str) -> RoundEngine:
    """
    Get the session's engine from the cache or the session store.

    A session that expired or was replaced has no game, even if its engine
    is still cached.
    """
    session = await get_session(session_id)
    if not session or SESSION_KEY_ROUND not in session:
        _forget(session_id)
        raise HTTPException(status_code=404, detail="No game for this session")

    engine = _engines.get(session_id)
    if engine is None:
        engine = _deserialize_round(
            session[SESSION_KEY_ROUND],
            get_card_source(),
            await get_player_store(),
        )
        _engines[session_id] = engine
    return engine


async def _save_engine(session_id: str, engine: RoundEngine) -> None:
    # A session closed while the request ran stays closed
    if _engines.get(session_id) is not engine:
        return
    await update_session(session_id, {SESSION_KEY_ROUND: _serialize_round(engine)})


async def _close_previous_session(username: str) -> None:
    """Close the user's last session once any request on it has finished."""
    previous = await get_user_session(username)
    if previous is None:
        return
    async with _session_lock(previous):
        _forget(previous)
        await delete_session(previous)


async def _advance(engine: RoundEngine) -> str | None:
    """
    Play the dealer and settle the round once the player is done.

    Returns the save error message if the payout could not be persisted.
    """
    if engine.state == RoundState.DEALER_TURN:
        await engine.dealer_auto_play()

    if engine.state == RoundState.ROUND_END and engine.outcome is None:
        try:
            await engine.resolve_round()
        except PersistenceError as err:
            logger.warning("Round settled but balance not saved: %s", err)
            return str(err)
    return None


def _card_response(card: Card) -> CardResponse:
    return CardResponse(
        rank=card.rank.value,
        suit=card.suit.value,
        code=card.code,
        value=card.value,
    )


def _hand_response(hand: Hand, hide_hole_card: bool = False) -> HandResponse:
    if hide_hole_card and len(hand) > 1:
        return HandResponse(
            cards=[_card_response(hand.cards[0])],
            hidden_cards=len(hand) - 1,
            value=None,
            is_soft=None,
            is_blackjack=None,
            is_busted=None,
        )

    total = hand.total
    return HandResponse(
        cards=[_card_response(c) for c in hand],
        value=total.value,
        is_soft=total.has_soft_ace,
        is_blackjack=hand.is_blackjack,
        is_busted=total.is_busted,
    )


def _state_response(engine: RoundEngine, error: str | None = None) -> GameStateResponse:
    """Convert round state to a response."""
    hide_hole_card = engine.state in (RoundState.INITIAL_DEAL, RoundState.PLAYER_TURN)
    upcard = engine.dealer_upcard
    result = engine.result

    return GameStateResponse(
        state=engine.state.name,
        username=engine.player.username,
        balance=float(engine.player.balance),
        bet=float(engine.bet),
        player_hand=_hand_response(engine.player.hand),
        player_status=engine.player_status.value,
        dealer_hand=_hand_response(engine.dealer.hand, hide_hole_card),
        dealer_upcard=_card_response(upcard) if upcard else None,
        result=(
            RoundResultResponse(outcome=result.outcome.value, payout=float(result.payout))
            if result
            else None
        ),
        cards_remaining=engine.shoe.remaining,
        needs_reshuffle=engine.shoe.needs_reshuffle,
        can_hit=engine.can_hit,
        can_stand=engine.can_stand,
        error=error,
    )


@router.post("/new")
async def new_game(request: NewGameRequest) -> NewGameResponse:
    """
    Load or create the player and open a session with a fresh shoe.

    The player's previous session is closed first. A round left open there
    forfeits its stake, which was saved when the bet was placed.
    """
    await _close_previous_session(request.username)
    await _prune_engines()

    store = await get_player_store()
    try:
        balance = await store.load(request.username)
        returning = balance is not None
        if balance is None:
            balance = Decimal(config.game.starting_balance)
            await store.save(request.username, balance)
    except StorageError as err:
        logger.error("Failed to load or save player %s: %s", request.username, err)
        raise HTTPException(status_code=503, detail="Failed to load or save player data")

    player = Player(username=request.username, balance=balance)
    engine = await RoundEngine.start(
        player,
        get_card_source(),
        store,
        deck_count=config.game.num_decks,
    )

    token = await create_session({"username": request.username})
    session_id = _session_id(token)
    _engines[session_id] = engine
    await set_user_session(request.username, session_id)
    await _save_engine(session_id, engine)

    return NewGameResponse(
        session_id=token,
        balance=float(player.balance),
        returning_player=returning,
    )


@router.get("/state")
async def get_state(
    session_token: Annotated[str, Header(alias="X-Session-ID")],
) -> GameStateResponse:
    """Get current round state."""
    session_id = _session_id(session_token)
    async with _session_lock(session_id):
        engine = await _get_engine(session_id)
        return _state_response(engine)


@router.post("/bet")
async def place_bet(
    request: BetRequest,
    session_token: Annotated[str, Header(alias="X-Session-ID")],
) -> GameStateResponse:
    """Place a bet and deal the initial cards."""
    session_id = _session_id(session_token)
    async with _session_lock(session_id):
        engine = await _get_engine(session_id)
        try:
            # A deal that failed earlier is retried with the stake already taken
            if engine.state != RoundState.INITIAL_DEAL:
                engine.place_bet(request.amount)
            # The stake leaves the stored balance before any card is seen
            await engine.player.save(await get_player_store())
            await engine.deal_initial()
            error = await _advance(engine)
        finally:
            await _save_engine(session_id, engine)

        return _state_response(engine, error)


@router.post("/action")
async def player_action(
    request: ActionRequest,
    session_token: Annotated[str, Header(alias="X-Session-ID")],
) -> GameStateResponse:
    """Hit or stand. When the player's turn ends the dealer plays out the round."""
    session_id = _session_id(session_token)
    async with _session_lock(session_id):
        engine = await _get_engine(session_id)
        try:
            # A dealer turn interrupted by a failed draw resumes without a new action
            if engine.state != RoundState.DEALER_TURN:
                if request.action == "hit":
                    await engine.player_hit()
                else:
                    engine.stand()
            error = await _advance(engine)
        finally:
            await _save_engine(session_id, engine)

        return _state_response(engine, error)


@router.post("/next")
async def next_round(
    session_token: Annotated[str, Header(alias="X-Session-ID")],
) -> GameStateResponse:
    """Reshuffle if the cut card came out, then wait for the next bet."""
    session_id = _session_id(session_token)
    async with _session_lock(session_id):
        engine = await _get_engine(session_id)
        try:
            await engine.check_reshuffle()
            if engine.state == RoundState.ROUND_END:
                engine.reset_round()
        finally:
            await _save_engine(session_id, engine)

        return _state_response(engine)


@router.post("/deposit")
async def deposit(
    request: DepositRequest,
    session_token: Annotated[str, Header(alias="X-Session-ID")],
) -> GameStateResponse:
    """Add funds to the player's balance between rounds."""
    session_id = _session_id(session_token)
    async with _session_lock(session_id):
        engine = await _get_engine(session_id)
        if engine.state != RoundState.AWAITING_BET:
            raise InvalidStateError(Phase.ROUND_FLOW, "funds can only be added between rounds")

        engine.player.credit(Decimal(request.amount))
        try:
            await engine.player.save(await get_player_store())
        finally:
            await _save_engine(session_id, engine)

        return _state_response(engine)
