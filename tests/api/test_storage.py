"""Tests for the key-value stores and player balances."""

import pytest
import time
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import api.storage as storage_module
from redis.exceptions import ConnectionError as RedisConnectionError
from api.storage import InMemoryStore, PlayerStore, RedisStore, get_store
from core.errors import StorageError


class TestInMemoryStore:
    """Tests for InMemoryStore class."""

    @pytest.fixture
    def store(self):
        return InMemoryStore()

    @pytest.mark.asyncio
    async def test_set_and_get(self, store):
        await store.set("key", {"user": "alice"}, ttl=3600)
        assert await store.get("key") == {"user": "alice"}

    @pytest.mark.asyncio
    async def test_missing_key(self, store):
        assert await store.get("nope") is None

    @pytest.mark.asyncio
    async def test_delete_missing_key_no_error(self, store):
        await store.delete("nope")

    @pytest.mark.asyncio
    async def test_no_ttl_never_expires(self, store):
        await store.set("key", {"v": 1})
        assert await store.cleanup_expired() == 0
        assert await store.get("key") == {"v": 1}

    @pytest.mark.asyncio
    async def test_expiration_and_cleanup(self, store):
        await store.set("session-1", {"data": 1}, ttl=1)
        await store.set("session-2", {"data": 2}, ttl=1)
        await store.set("session-3", {"data": 3}, ttl=3600)

        time.sleep(1.5)

        assert await store.get("session-1") is None
        assert await store.cleanup_expired() == 1
        assert await store.get("session-3") == {"data": 3}


class TestRedisStore:
    """Tests for RedisStore against a mocked client."""

    @pytest.mark.asyncio
    async def test_keys_are_prefixed(self):
        client = MagicMock()
        client.get = AsyncMock(return_value='{"balance": "100"}')
        client.set = AsyncMock()
        store = RedisStore(client)

        await store.set("player:alice", {"balance": "100"})
        data = await store.get("player:alice")

        client.set.assert_awaited_once_with("blackjack:player:alice", '{"balance": "100"}', ex=None)
        client.get.assert_awaited_once_with("blackjack:player:alice")
        assert data == {"balance": "100"}

    @pytest.mark.asyncio
    async def test_redis_error_becomes_storage_error(self):
        client = MagicMock()
        client.set = AsyncMock(side_effect=RedisConnectionError("connection refused"))

        with pytest.raises(StorageError) as exc_info:
            await RedisStore(client).set("player:alice", {})

        assert isinstance(exc_info.value.__cause__, RedisConnectionError)

    @pytest.mark.asyncio
    async def test_corrupt_value_becomes_storage_error(self):
        client = MagicMock()
        client.get = AsyncMock(return_value="{not json")

        with pytest.raises(StorageError, match="Corrupt value"):
            await RedisStore(client).get("player:alice")


class TestPlayerStore:
    """Tests for PlayerStore class."""

    @pytest.mark.asyncio
    async def test_unknown_player(self):
        assert await PlayerStore(InMemoryStore()).load("alice") is None

    @pytest.mark.asyncio
    async def test_save_and_load(self):
        players = PlayerStore(InMemoryStore())

        await players.save("alice", Decimal("137.5"))

        assert await players.load("alice") == Decimal("137.5")

    @pytest.mark.asyncio
    async def test_corrupt_record(self):
        backing = InMemoryStore()
        await backing.set("player:alice", {"balance": "lots"})

        with pytest.raises(StorageError):
            await PlayerStore(backing).load("alice")

    @pytest.mark.asyncio
    async def test_save_without_username(self):
        with pytest.raises(StorageError):
            await PlayerStore(InMemoryStore()).save("", Decimal("1"))


class TestGetStore:
    """Tests for the shared store selection."""

    @pytest.mark.asyncio
    async def test_falls_back_to_memory(self, monkeypatch):
        client = MagicMock()
        client.ping = AsyncMock(side_effect=RedisConnectionError("connection refused"))
        monkeypatch.setattr(storage_module.redis, "from_url", lambda url: client)
        monkeypatch.setattr(storage_module, "_store", None)

        store = await get_store()

        assert isinstance(store, InMemoryStore)
        assert await get_store() is store

    @pytest.mark.asyncio
    async def test_uses_redis_when_it_answers(self, monkeypatch):
        client = MagicMock()
        client.ping = AsyncMock(return_value=True)
        monkeypatch.setattr(storage_module.redis, "from_url", lambda url: client)
        monkeypatch.setattr(storage_module, "_store", None)

        assert isinstance(await get_store(), RedisStore)
