"""Signed session tokens and per-session round snapshots."""

import time
from typing import Any
from uuid import uuid4

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from api.storage import get_store
from config import config


class SessionSigner:
    """Sign and verify session IDs using itsdangerous."""

    def __init__(self, secret_key: str | None = None) -> None:
        self._serializer = URLSafeTimedSerializer(
            secret_key or config.security.secret_key,
            salt="blackjack-session",
        )

    def sign(self, session_id: str) -> str:
        """Create a signed token from a session ID."""
        return self._serializer.dumps(session_id)

    def unsign(self, token: str, max_age: int | None = None) -> str | None:
        """
        Verify and extract the session ID from a signed token.

        Args:
            token: The signed token to verify
            max_age: Maximum age in seconds (defaults to session_ttl)

        Returns:
            The session ID if valid, None otherwise
        """
        try:
            return self._serializer.loads(token, max_age=max_age or config.session_ttl)
        except (BadSignature, SignatureExpired):
            return None


_session_signer: SessionSigner | None = None


def get_session_signer() -> SessionSigner:
    """Get or create the session signer."""
    global _session_signer
    if _session_signer is None:
        _session_signer = SessionSigner()
    return _session_signer


def _key(session_id: str) -> str:
    return f"session:{session_id}"


async def create_session(data: dict[str, Any] | None = None) -> str:
    """Create a session and return its signed token."""
    session_id = str(uuid4())
    now = int(time.time())
    store = await get_store()
    await store.set(
        _key(session_id),
        {"created_at": now, "last_activity": now, **(data or {})},
        ttl=config.session_ttl,
    )
    return get_session_signer().sign(session_id)


def extract_session_id(token: str) -> str | None:
    """Return the raw session ID for a signed token, or None if invalid."""
    return get_session_signer().unsign(token)


async def get_session(session_id: str) -> dict[str, Any] | None:
    store = await get_store()
    return await store.get(_key(session_id))


async def update_session(session_id: str, data: dict[str, Any]) -> None:
    """Merge data into the session and refresh its expiry."""
    store = await get_store()
    session = await store.get(_key(session_id)) or {"created_at": int(time.time())}
    session.update(data)
    session["last_activity"] = int(time.time())
    await store.set(_key(session_id), session, ttl=config.session_ttl)


async def delete_session(session_id: str) -> None:
    store = await get_store()
    await store.delete(_key(session_id))


def _user_key(username: str) -> str:
    return f"user_session:{username}"


async def get_user_session(username: str) -> str | None:
    """Return the raw ID of the user's latest session, if one was opened."""
    store = await get_store()
    data = await store.get(_user_key(username))
    return data["session_id"] if data else None


async def set_user_session(username: str, session_id: str) -> None:
    store = await get_store()
    await store.set(_user_key(username), {"session_id": session_id})
