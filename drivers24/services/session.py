"""
Session & role store — bearer token, cached user snapshot, in-flight guards.

Persisted per chat in Redis under fixed keys:
  session:{chat_id}:jwt_token
  session:{chat_id}:user_data
  session:{chat_id}:pending_driver_email

The cached user (and its role) is for display only; authorisation always
re-fetches the profile (see ``services.auth``).
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis

from drivers24.exceptions import ActionInProgress
from drivers24.schemas import Role, UserData

logger = logging.getLogger(__name__)

TOKEN_KEY = "session:{chat_id}:jwt_token"
USER_KEY = "session:{chat_id}:user_data"
PENDING_EMAIL_KEY = "session:{chat_id}:pending_driver_email"


def _keys(chat_id: int) -> tuple[str, str, str]:
    return (
        TOKEN_KEY.format(chat_id=chat_id),
        USER_KEY.format(chat_id=chat_id),
        PENDING_EMAIL_KEY.format(chat_id=chat_id),
    )


class Session:
    """Per-chat session handed to handlers by the session middleware."""

    def __init__(
        self,
        chat_id: int,
        token: str | None = None,
        user: UserData | None = None,
        pending_driver_email: str | None = None,
        store: SessionStore | None = None,
        in_flight: set[str] | None = None,
    ):
        self.chat_id = chat_id
        self.token = token
        self.user = user
        self.pending_driver_email = pending_driver_email
        self._store = store
        self._in_flight = in_flight if in_flight is not None else set()

    @property
    def role(self) -> Role | None:
        """Cached role — display only, never for authorisation."""
        return self.user.role if self.user else None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token and self.user and self.user.role)

    async def set_auth(self, token: str, user: UserData) -> None:
        """Overwrite token and user snapshot together (last write wins)."""
        self.token = token
        self.user = user
        if self._store is not None:
            await self._store.save_auth(self.chat_id, token, user)

    async def set_pending_email(self, email: str) -> None:
        self.pending_driver_email = email
        if self._store is not None:
            await self._store.save_pending_email(self.chat_id, email)

    async def clear_pending_email(self) -> None:
        self.pending_driver_email = None
        if self._store is not None:
            await self._store.clear_pending_email(self.chat_id)

    async def clear(self) -> None:
        self.token = None
        self.user = None
        self.pending_driver_email = None
        if self._store is not None:
            await self._store.clear(self.chat_id)

    def is_busy(self, action: str) -> bool:
        return action in self._in_flight

    @asynccontextmanager
    async def busy(self, action: str) -> AsyncIterator[None]:
        """Hold *action* for the duration of one request; a second entry raises."""
        if action in self._in_flight:
            raise ActionInProgress(action)
        self._in_flight.add(action)
        try:
            yield
        finally:
            self._in_flight.discard(action)


class SessionStore:
    """Loads and persists sessions; owns the per-chat in-flight action sets."""

    def __init__(self, redis: aioredis.Redis):
        self._redis = redis
        self._in_flight: dict[int, set[str]] = {}

    async def load(self, chat_id: int) -> Session:
        token_key, user_key, pending_key = _keys(chat_id)
        token = await self._redis.get(token_key)
        raw_user = await self._redis.get(user_key)
        pending = await self._redis.get(pending_key)

        user = None
        if raw_user:
            try:
                user = UserData.model_validate_json(raw_user)
            except ValueError:
                logger.warning("Discarding unreadable cached user for chat %s", chat_id)

        return Session(
            chat_id,
            token=token,
            user=user,
            pending_driver_email=pending,
            store=self,
            in_flight=self._in_flight.setdefault(chat_id, set()),
        )

    async def save_auth(self, chat_id: int, token: str, user: UserData) -> None:
        token_key, user_key, _ = _keys(chat_id)
        await self._redis.mset({
            token_key: token,
            user_key: user.model_dump_json(by_alias=True),
        })

    async def save_pending_email(self, chat_id: int, email: str) -> None:
        _, _, pending_key = _keys(chat_id)
        await self._redis.set(pending_key, email)

    async def clear_pending_email(self, chat_id: int) -> None:
        _, _, pending_key = _keys(chat_id)
        await self._redis.delete(pending_key)

    async def clear(self, chat_id: int) -> None:
        await self._redis.delete(*_keys(chat_id))
