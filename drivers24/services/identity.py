"""
Identity provider collaborator.

The sign-in provider is external: for a Telegram user it hands back the
provider id (the backend's ``clerkId``), the verified primary email and a
short-lived session token. This module only consumes that contract.
"""

import logging
from dataclasses import dataclass

import httpx

from drivers24.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    clerk_id: str
    email: str | None = None
    token: str | None = None


def clerk_id_for(telegram_id: int) -> str:
    """External identity key the backend knows a Telegram user by."""
    return str(telegram_id)


class IdentityProvider:
    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.IDENTITY_URL,
            timeout=timeout if timeout is not None else settings.HTTP_TIMEOUT,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_identity(self, telegram_id: int) -> Identity | None:
        """Current identity of *telegram_id*, or None if the provider has none."""
        try:
            resp = await self._client.get(f"/identities/telegram/{telegram_id}")
        except httpx.HTTPError as e:
            logger.error("Identity provider error for %s: %s", telegram_id, e)
            return None

        if resp.status_code != 200:
            logger.warning("Identity lookup for %s → %s", telegram_id, resp.status_code)
            return None

        try:
            data = resp.json()
        except ValueError:
            logger.error("Identity provider returned invalid JSON for %s", telegram_id)
            return None

        return Identity(
            clerk_id=data.get("clerkId") or clerk_id_for(telegram_id),
            email=data.get("email"),
            token=data.get("token"),
        )
