"""
Backend API client — one method per endpoint of the Drivers24 REST contract.

Every call returns a tagged result instead of raising:
  - ``Ok(value, message, pagination)`` when the envelope says ``success``
  - ``Err(reason, kind)`` otherwise, where *kind* is one of
      ``backend``   — ``success: false``; *reason* is the backend's message verbatim
      ``auth``      — missing/rejected token (HTTP 401/403)
      ``transport`` — request raised, or the body was not a valid envelope

Callers branch on ``result.ok`` rather than on HTTP status.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, ClassVar, Generic, TypeVar
from urllib.parse import quote

import httpx

from drivers24.config import settings
from drivers24.schemas import (
    ApiEnvelope,
    AuthPayload,
    Booking,
    BookingCreate,
    BookingStatus,
    DriverProfile,
    DriverProfileCreate,
    GuestDriverRegistration,
    Pagination,
    Role,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

GENERIC_ERROR = "An error occurred. Please try again."


class ErrorKind(str, Enum):
    BACKEND = "backend"
    AUTH = "auth"
    TRANSPORT = "transport"


@dataclass
class Ok(Generic[T]):
    value: T
    message: str | None = None
    pagination: Pagination | None = None

    ok: ClassVar[bool] = True


@dataclass
class Err:
    reason: str
    kind: ErrorKind = ErrorKind.BACKEND

    ok: ClassVar[bool] = False


Result = Ok | Err


@dataclass
class Upload:
    """A file attached to a multipart request."""
    filename: str
    content: bytes
    content_type: str = "image/jpeg"


def _model(cls) -> Callable[[Any], Any]:
    return cls.model_validate


def _model_list(cls) -> Callable[[Any], list]:
    def parse(data: Any) -> list:
        return [cls.model_validate(item) for item in data or []]
    return parse


def _bearer(token: str | None) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"} if token else {}


class BackendClient:
    """Thin async wrapper around one ``httpx.AsyncClient``."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            timeout=timeout if timeout is not None else settings.HTTP_TIMEOUT,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        token: str | None = None,
        params: dict | None = None,
        json: dict | None = None,
        data: dict | None = None,
        files: dict | None = None,
        parse: Callable[[Any], Any] | None = None,
    ) -> Result:
        try:
            resp = await self._client.request(
                method, endpoint,
                params=params, json=json, data=data, files=files,
                headers=_bearer(token),
            )
        except httpx.HTTPError as e:
            logger.error("API call error: %s %s: %s", method, endpoint, e)
            return Err(GENERIC_ERROR, ErrorKind.TRANSPORT)

        try:
            envelope = ApiEnvelope.model_validate(resp.json())
        except ValueError:
            logger.error(
                "API returned a non-envelope body: %s %s → %s %s",
                method, endpoint, resp.status_code, resp.text[:200],
            )
            if resp.status_code in (401, 403):
                return Err("Session expired. Please sign in again.", ErrorKind.AUTH)
            return Err(GENERIC_ERROR, ErrorKind.TRANSPORT)

        if resp.status_code in (401, 403):
            reason = envelope.error or envelope.message or "Session expired. Please sign in again."
            logger.warning("API auth error: %s %s → %s", method, endpoint, resp.status_code)
            return Err(reason, ErrorKind.AUTH)

        if not envelope.success:
            reason = envelope.error or envelope.message or f"Request failed ({resp.status_code})"
            logger.warning("API error: %s %s → %s %s", method, endpoint, resp.status_code, reason)
            return Err(reason, ErrorKind.BACKEND)

        value = envelope.data
        if parse is not None:
            try:
                value = parse(envelope.data)
            except ValueError as e:
                logger.error("Unexpected payload from %s %s: %s", method, endpoint, e)
                return Err(GENERIC_ERROR, ErrorKind.TRANSPORT)

        return Ok(value, envelope.message, envelope.pagination)

    # ── Auth ──────────────────────────────────────────────

    async def select_role(self, clerk_id: str, role: Role, city: str) -> Result:
        return await self._request(
            "POST", "/api/auth/select-role",
            json={"clerkId": clerk_id, "role": Role(role).value, "city": city},
            parse=_model(AuthPayload),
        )

    async def get_profile(self, clerk_id: str) -> Result:
        """Fetch the user by external identity; ``token`` is None until a role is chosen."""
        return await self._request(
            "GET", "/api/auth/profile",
            params={"clerkId": clerk_id},
            parse=_model(AuthPayload),
        )

    async def complete_driver_registration(self, identity_token: str, email: str) -> Result:
        return await self._request(
            "POST", "/api/auth/complete-driver-registration",
            token=identity_token,
            json={"email": email},
            parse=_model(AuthPayload),
        )

    # ── Drivers ───────────────────────────────────────────

    async def create_driver_profile(self, token: str, profile: DriverProfileCreate) -> Result:
        return await self._request(
            "POST", "/api/drivers/profile",
            token=token, json=profile.to_api(), parse=_model(DriverProfile),
        )

    async def get_my_driver_profile(self, token: str) -> Result:
        return await self._request(
            "GET", "/api/drivers/profile/me", token=token, parse=_model(DriverProfile),
        )

    async def update_availability(self, token: str, availability: bool) -> Result:
        return await self._request(
            "PATCH", "/api/drivers/availability",
            token=token, json={"availability": availability}, parse=_model(DriverProfile),
        )

    async def get_drivers_by_city(self, token: str, city: str, params: dict) -> Result:
        """``params`` is sent verbatim; build it with ``SearchQueryBuilder``."""
        return await self._request(
            "GET", f"/api/drivers/city/{quote(city, safe='')}",
            token=token, params=params, parse=_model_list(DriverProfile),
        )

    async def register_guest_driver(self, fields: dict, files: dict[str, Upload]) -> Result:
        """Multipart guest pre-registration; no token required."""
        form = {key: str(value) for key, value in fields.items() if value is not None}
        multipart = {
            key: (upload.filename, upload.content, upload.content_type)
            for key, upload in files.items()
            if upload is not None
        }
        return await self._request(
            "POST", "/api/drivers/register-guest",
            data=form, files=multipart, parse=_model(GuestDriverRegistration),
        )

    # ── Bookings ──────────────────────────────────────────

    async def create_booking(self, token: str, booking: BookingCreate) -> Result:
        return await self._request(
            "POST", "/api/bookings", token=token, json=booking.to_api(), parse=_model(Booking),
        )

    async def get_user_bookings(self, token: str) -> Result:
        return await self._request(
            "GET", "/api/bookings/my-bookings", token=token, parse=_model_list(Booking),
        )

    async def get_driver_bookings(self, token: str) -> Result:
        return await self._request(
            "GET", "/api/bookings/driver-requests", token=token, parse=_model_list(Booking),
        )

    async def respond_to_booking(
        self, token: str, booking_id: str, status: BookingStatus, driver_response: str | None = None,
    ) -> Result:
        body = {"status": BookingStatus(status).value}
        if driver_response:
            body["driverResponse"] = driver_response
        return await self._request(
            "PATCH", f"/api/bookings/{booking_id}/respond", token=token, json=body,
        )

    async def cancel_booking(self, token: str, booking_id: str) -> Result:
        return await self._request("PATCH", f"/api/bookings/{booking_id}/cancel", token=token)

    async def get_driver_full_info(self, token: str, driver_id: str) -> Result:
        return await self._request(
            "GET", f"/api/bookings/driver/{driver_id}/full-info",
            token=token, parse=_model(DriverProfile),
        )

    # ── Admin ─────────────────────────────────────────────

    async def get_all_drivers(self, token: str, verified: bool | None = None, city: str | None = None) -> Result:
        params = {}
        if verified is not None:
            params["verified"] = str(verified).lower()
        if city:
            params["city"] = city
        return await self._request(
            "GET", "/api/drivers/all", token=token, params=params, parse=_model_list(DriverProfile),
        )

    async def get_pending_drivers(self, token: str) -> Result:
        return await self._request(
            "GET", "/api/drivers/pending", token=token, parse=_model_list(DriverProfile),
        )

    async def get_verified_drivers(self, token: str) -> Result:
        return await self._request(
            "GET", "/api/drivers/verified", token=token, parse=_model_list(DriverProfile),
        )

    async def verify_driver(self, token: str, driver_id: str) -> Result:
        return await self._request("PATCH", f"/api/drivers/{driver_id}/verify", token=token)

    async def bulk_verify_drivers(self, token: str, driver_ids: list[str]) -> Result:
        return await self._request(
            "POST", "/api/drivers/bulk-verify", token=token, json={"driverIds": driver_ids},
        )

    async def get_dashboard_overview(self, token: str) -> Result:
        return await self._request("GET", "/api/admin/dashboard/overview", token=token)

    async def get_booking_analytics(self, token: str) -> Result:
        return await self._request("GET", "/api/admin/analytics/bookings", token=token)

    async def get_user_analytics(self, token: str) -> Result:
        return await self._request("GET", "/api/admin/analytics/users", token=token)

    async def get_driver_analytics(self, token: str) -> Result:
        return await self._request("GET", "/api/admin/analytics/drivers", token=token)

    async def get_all_bookings(
        self,
        token: str,
        page: int | None = None,
        limit: int | None = None,
        status: BookingStatus | None = None,
        driver_id: str | None = None,
        user_id: str | None = None,
    ) -> Result:
        params = {}
        if page:
            params["page"] = page
        if limit:
            params["limit"] = limit
        if status:
            params["status"] = BookingStatus(status).value
        if driver_id:
            params["driverId"] = driver_id
        if user_id:
            params["userId"] = user_id
        return await self._request(
            "GET", "/api/admin/bookings", token=token, params=params, parse=_model_list(Booking),
        )

    async def get_driver_booking_history(self, token: str, driver_id: str) -> Result:
        return await self._request(
            "GET", f"/api/admin/bookings/driver/{driver_id}", token=token, parse=_model_list(Booking),
        )

    async def get_user_booking_history(self, token: str, user_id: str) -> Result:
        return await self._request(
            "GET", f"/api/admin/bookings/user/{user_id}", token=token, parse=_model_list(Booking),
        )
