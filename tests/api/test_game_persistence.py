"""Tests for round snapshots kept in the session store."""

import pytest
from decimal import Decimal

import api.routes.game as game_module
from api.routes.game import _deserialize_round, _serialize_round
from api.storage import InMemoryStore, PlayerStore
from core.game import Outcome, RoundState


class TestRoundSnapshot:
    """Tests for _serialize_round and _deserialize_round."""

    @pytest.mark.asyncio
    async def test_mid_round_snapshot(self, make_engine, scripted_source):
        engine = make_engine("10S", "6H", "7C", "9D")
        engine.place_bet(25)
        await engine.deal_initial()

        data = _serialize_round(engine)

        assert data["state"] == "PLAYER_TURN"
        assert data["balance"] == "75"
        assert data["bet"] == "25"
        assert [c["code"] for c in data["player_cards"]] == ["10S", "6H"]
        assert data["outcome"] is None
        assert data["shoe"] == {"id": "scripted", "remaining": 308, "cut_card": 70}

        source = scripted_source("5C", remaining=308)
        restored = _deserialize_round(data, source, PlayerStore(InMemoryStore()))

        assert restored.state == RoundState.PLAYER_TURN
        assert restored.player.balance == Decimal("75")
        assert restored.bet == Decimal("25")
        assert restored.player.hand.value == 16
        assert restored.dealer_upcard.code == "7C"
        assert restored.shoe.cut_card_position == 70

        # The restored round keeps playing from the new source
        await restored.player_hit()
        assert restored.player.hand.value == 21
        assert restored.state == RoundState.DEALER_TURN

    @pytest.mark.asyncio
    async def test_settled_round_snapshot(self, make_engine, scripted_source):
        """Test that a settled round is not paid again after restoring."""
        engine = make_engine("10S", "9H", "AC", "QD")
        engine.place_bet(10)
        await engine.deal_initial()
        await engine.resolve_round()

        data = _serialize_round(engine)
        assert data["outcome"] == "dealer_won_blackjack"
        assert data["payout"] == "0"

        restored = _deserialize_round(data, scripted_source(), PlayerStore(InMemoryStore()))

        assert restored.outcome == Outcome.DEALER_BLACKJACK
        assert restored.payout == Decimal("0")
        assert restored.result is not None

    @pytest.mark.asyncio
    async def test_cached_engine_restored_after_eviction(self, make_engine, memory_store, monkeypatch):
        """Test that a session's round survives losing the in-process engine cache."""
        engine = make_engine("10S", "6H", "7C", "9D")
        engine.place_bet(25)
        await engine.deal_initial()
        monkeypatch.setattr(game_module, "_engines", {"session-1": engine})
        monkeypatch.setattr(game_module, "_locks", {})
        monkeypatch.setattr(game_module, "_card_source", engine.shoe._source)

        await game_module._save_engine("session-1", engine)
        game_module._engines.clear()
        restored = await game_module._get_engine("session-1")

        assert restored is not engine
        assert restored.state == RoundState.PLAYER_TURN
        assert [c.code for c in restored.dealer.hand] == ["7C", "9D"]
        assert await game_module._get_engine("session-1") is restored

    @pytest.mark.asyncio
    async def test_closed_session_not_saved(self, make_engine, memory_store, monkeypatch):
        """Test that a request finishing after its session closed does not bring it back."""
        engine = make_engine()
        monkeypatch.setattr(game_module, "_engines", {})

        await game_module._save_engine("session-1", engine)

        assert await memory_store.get("session:session-1") is None
