"""Key-value storage with a Redis backend and an in-memory fallback.

Holds player balances and round sessions.
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError

from config import config
from core.errors import StorageError

logger = logging.getLogger(__name__)

KEY_PREFIX = "blackjack:"


class KeyValueStore(ABC):
    """Abstract JSON document store with optional expiry."""

    @abstractmethod
    async def get(self, key: str) -> dict[str, Any] | None:
        """Get a document, or None if missing or expired."""
        ...

    @abstractmethod
    async def set(self, key: str, data: dict[str, Any], ttl: int | None = None) -> None:
        """Store a document; ttl in seconds, None to keep it forever."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    async def cleanup_expired(self) -> int:
        """Remove expired documents the backend does not expire by itself."""
        return 0


class InMemoryStore(KeyValueStore):
    """In-memory store for local development and tests."""

    def __init__(self) -> None:
        self._data: dict[str, tuple[dict[str, Any], datetime | None]] = {}

    async def get(self, key: str) -> dict[str, Any] | None:
        if key not in self._data:
            return None

        data, expiry = self._data[key]
        if expiry is not None and expiry < datetime.now():
            await self.delete(key)
            return None

        return data

    async def set(self, key: str, data: dict[str, Any], ttl: int | None = None) -> None:
        expiry = datetime.now() + timedelta(seconds=ttl) if ttl else None
        self._data[key] = (data, expiry)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def cleanup_expired(self) -> int:
        """Remove expired documents."""
        now = datetime.now()
        expired = [
            key for key, (_, expiry) in self._data.items()
            if expiry is not None and expiry < now
        ]
        for key in expired:
            del self._data[key]
        return len(expired)


class RedisStore(KeyValueStore):
    """Redis-backed store. Redis failures are raised as StorageError."""

    def __init__(self, redis_client: redis.Redis) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> dict[str, Any] | None:
        try:
            data = await self._redis.get(f"{KEY_PREFIX}{key}")
        except RedisError as err:
            raise StorageError(f"Failed to read {key}") from err
        if data is None:
            return None
        try:
            return json.loads(data)
        except json.JSONDecodeError as err:
            raise StorageError(f"Corrupt value stored for {key}") from err

    async def set(self, key: str, data: dict[str, Any], ttl: int | None = None) -> None:
        try:
            await self._redis.set(f"{KEY_PREFIX}{key}", json.dumps(data), ex=ttl)
        except RedisError as err:
            raise StorageError(f"Failed to write {key}") from err

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(f"{KEY_PREFIX}{key}")
        except RedisError as err:
            raise StorageError(f"Failed to delete {key}") from err


class PlayerStore:
    """
    Player balances keyed by username.

    Satisfies the engine's BalanceStore contract.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    @staticmethod
    def _key(username: str) -> str:
        return f"player:{username}"

    async def load(self, username: str) -> Decimal | None:
        """
        Load a player's balance.

        Returns:
            The stored balance, or None for a player never saved before

        Raises:
            StorageError: if the store fails or the record is corrupt
        """
        data = await self._store.get(self._key(username))
        if data is None:
            return None
        try:
            return Decimal(data["balance"])
        except (KeyError, TypeError, InvalidOperation) as err:
            raise StorageError(f"Corrupt player record for {username}") from err

    async def save(self, username: str, balance: Decimal) -> None:
        if not username:
            raise StorageError("Username is invalid")
        await self._store.set(
            self._key(username),
            {"username": username, "balance": str(balance)},
        )


# Global store instance
_store: KeyValueStore | None = None


async def get_store() -> KeyValueStore:
    """Get or create the shared store, preferring Redis when it answers."""
    global _store

    if _store is not None:
        return _store

    redis_client = redis.from_url(config.redis.url)
    try:
        await redis_client.ping()
    except (RedisError, OSError) as err:
        logger.warning("Redis unavailable at %s (%s), using in-memory store", config.redis.url, err)
        _store = InMemoryStore()
    else:
        _store = RedisStore(redis_client)
    return _store


async def get_player_store() -> PlayerStore:
    return PlayerStore(await get_store())
