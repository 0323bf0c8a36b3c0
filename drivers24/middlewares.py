"""aiogram middlewares."""

from typing import Any, Awaitable, Callable

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject

from drivers24.services.session import SessionStore


class SessionMiddleware(BaseMiddleware):
    """Load the sender's session and pass it to handlers as ``session``."""

    def __init__(self, store: SessionStore):
        self.store = store

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        user = data.get("event_from_user")
        if user is not None:
            data["session"] = await self.store.load(user.id)
        return await handler(event, data)
