"""
Drivers24 — Telegram bot entry point.

Driver booking marketplace client: users find drivers by city and send
booking requests, drivers answer them, admins verify drivers.
"""

import asyncio
import logging

import redis.asyncio as aioredis
from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.fsm.storage.redis import RedisStorage

from drivers24.config import settings
from drivers24.handlers import admin, driver, guest_driver, start, user
from drivers24.middlewares import SessionMiddleware
from drivers24.services.api_client import BackendClient
from drivers24.services.identity import IdentityProvider
from drivers24.services.session import SessionStore

logger = logging.getLogger(__name__)


def build_dispatcher(redis: aioredis.Redis, api: BackendClient, identity: IdentityProvider) -> Dispatcher:
    dp = Dispatcher(storage=RedisStorage(redis))
    dp["api"] = api
    dp["identity"] = identity

    middleware = SessionMiddleware(SessionStore(redis))
    dp.message.middleware(middleware)
    dp.callback_query.middleware(middleware)

    # commands first: the wizard and form routers take any text in their states
    dp.include_routers(
        start.router,
        guest_driver.router,
        user.router,
        driver.router,
        admin.router,
    )
    return dp


async def run() -> None:
    if not settings.TELEGRAM_BOT_TOKEN:
        raise RuntimeError("TELEGRAM_BOT_TOKEN is not set")

    bot = Bot(
        token=settings.TELEGRAM_BOT_TOKEN,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    api = BackendClient()
    identity = IdentityProvider()
    dp = build_dispatcher(redis, api, identity)

    logger.info("🚀 Drivers24 bot starting (API: %s)", settings.API_BASE_URL)
    try:
        await dp.start_polling(bot)
    finally:
        await api.aclose()
        await identity.aclose()
        await redis.aclose()
        await bot.session.close()
        logger.info("🛑 Drivers24 bot shut down.")


def main() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(run())


if __name__ == "__main__":
    main()
