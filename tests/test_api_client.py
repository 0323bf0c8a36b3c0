"""Tests for the backend API client (httpx.MockTransport)."""

import json

import httpx
import pytest

from drivers24.schemas import BookingStatus, Role
from drivers24.services.api_client import GENERIC_ERROR, BackendClient, Err, ErrorKind, Ok, Upload


def _client(handler) -> BackendClient:
    return BackendClient(base_url="http://backend.test", transport=httpx.MockTransport(handler))


DRIVER = {
    "id": "d1",
    "name": "Ravi Kumar",
    "phoneNumber": "9876543210",
    "dlNumber": "MH1220200012345",
    "permanentAddress": "12 Park Street, Pune",
    "operatingAddress": "Koregaon Park",
    "city": "Mumbai",
    "availability": True,
    "isVerified": True,
    "experience": 5,
}


@pytest.mark.asyncio
async def test_search_sends_city_and_params():
    """City goes in the path, page/limit/filters in the query string."""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.raw_path.decode()
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(200, json={
            "success": True,
            "data": [DRIVER],
            "pagination": {"page": 1, "limit": 10, "totalCount": 1, "totalPages": 1,
                           "hasNextPage": False, "hasPrevPage": False},
        })

    async with _client(handler) as api:
        result = await api.get_drivers_by_city("tok", "Navi Mumbai", {"page": 1, "limit": 10, "minSalary": 5000})

    assert isinstance(result, Ok)
    assert seen["path"].startswith("/api/drivers/city/Navi%20Mumbai?")
    assert "minSalary=5000" in seen["path"]
    assert seen["auth"] == "Bearer tok"
    assert result.value[0].name == "Ravi Kumar"
    assert result.value[0].is_verified is True
    assert result.pagination.total_count == 1


@pytest.mark.asyncio
async def test_success_false_is_backend_error_verbatim():
    def handler(request):
        return httpx.Response(400, json={"success": False, "error": "Driver profile not found"})

    async with _client(handler) as api:
        result = await api.get_my_driver_profile("tok")

    assert result == Err("Driver profile not found", ErrorKind.BACKEND)
    assert not result.ok


@pytest.mark.asyncio
async def test_success_false_with_200_is_still_an_error():
    """The envelope decides, not the HTTP status."""
    def handler(request):
        return httpx.Response(200, json={"success": False, "message": "Booking already answered"})

    async with _client(handler) as api:
        result = await api.respond_to_booking("tok", "b1", BookingStatus.ACCEPTED)

    assert result.reason == "Booking already answered"


@pytest.mark.asyncio
async def test_unauthorized_is_auth_error():
    def handler(request):
        return httpx.Response(401, json={"success": False, "error": "Invalid token"})

    async with _client(handler) as api:
        result = await api.get_user_bookings("expired")

    assert result.kind == ErrorKind.AUTH


@pytest.mark.asyncio
async def test_network_failure_is_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    async with _client(handler) as api:
        result = await api.get_pending_drivers("tok")

    assert result == Err(GENERIC_ERROR, ErrorKind.TRANSPORT)


@pytest.mark.asyncio
async def test_non_json_body_is_transport_error():
    def handler(request):
        return httpx.Response(502, text="<html>Bad Gateway</html>")

    async with _client(handler) as api:
        result = await api.get_dashboard_overview("tok")

    assert result.kind == ErrorKind.TRANSPORT


@pytest.mark.asyncio
async def test_respond_omits_empty_note():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"success": True, "data": {"id": "b1"}})

    async with _client(handler) as api:
        await api.respond_to_booking("tok", "b1", BookingStatus.REJECTED)
        await api.respond_to_booking("tok", "b1", BookingStatus.ACCEPTED, "On my way")

    assert bodies == [
        {"status": "REJECTED"},
        {"status": "ACCEPTED", "driverResponse": "On my way"},
    ]


@pytest.mark.asyncio
async def test_select_role_body_and_payload():
    def handler(request):
        assert request.url.path == "/api/auth/select-role"
        assert json.loads(request.content) == {"clerkId": "42", "role": "USER", "city": "Pune"}
        return httpx.Response(200, json={
            "success": True,
            "data": {"user": {"id": "u1", "email": "a@b.co", "role": "USER", "city": "Pune"}, "token": "jwt"},
        })

    async with _client(handler) as api:
        result = await api.select_role("42", Role.USER, "Pune")

    assert result.value.token == "jwt"
    assert result.value.user.role == Role.USER


@pytest.mark.asyncio
async def test_guest_registration_is_multipart():
    captured = {}

    def handler(request):
        captured["type"] = request.headers["content-type"]
        captured["body"] = request.content
        return httpx.Response(201, json={"success": True, "data": {"email": "r@x.in", "phoneNumber": "9876543210"}})

    async with _client(handler) as api:
        result = await api.register_guest_driver(
            {"email": "r@x.in", "experience": 5, "rcNumber": None},
            {"dlImage": Upload("dl.jpg", b"JPEGDATA")},
        )

    assert result.ok
    assert captured["type"].startswith("multipart/form-data")
    assert b'name="experience"' in captured["body"]
    assert b'name="rcNumber"' not in captured["body"]
    assert b'filename="dl.jpg"' in captured["body"]


@pytest.mark.asyncio
async def test_bulk_verify_body():
    def handler(request):
        assert json.loads(request.content) == {"driverIds": ["d1", "d2"]}
        return httpx.Response(200, json={"success": True, "message": "2 drivers verified"})

    async with _client(handler) as api:
        result = await api.bulk_verify_drivers("tok", ["d1", "d2"])

    assert result.message == "2 drivers verified"


@pytest.mark.asyncio
async def test_all_bookings_filters_only_set_params():
    def handler(request):
        assert dict(request.url.params) == {"page": "2", "status": "PENDING"}
        return httpx.Response(200, json={"success": True, "data": []})

    async with _client(handler) as api:
        result = await api.get_all_bookings("tok", page=2, status=BookingStatus.PENDING)

    assert result.value == []


@pytest.mark.asyncio
async def test_identity_provider_lookup():
    from drivers24.services.identity import IdentityProvider

    def handler(request):
        assert request.url.path == "/identities/telegram/42"
        return httpx.Response(200, json={"clerkId": "user_42", "email": "ravi@example.com", "token": "idt"})

    provider = IdentityProvider(base_url="http://identity.test", transport=httpx.MockTransport(handler))
    identity = await provider.get_identity(42)
    await provider.aclose()

    assert identity.clerk_id == "user_42"
    assert identity.email == "ravi@example.com"
    assert identity.token == "idt"


@pytest.mark.asyncio
async def test_identity_provider_unknown_user():
    from drivers24.services.identity import IdentityProvider

    provider = IdentityProvider(
        base_url="http://identity.test",
        transport=httpx.MockTransport(lambda request: httpx.Response(404)),
    )
    assert await provider.get_identity(42) is None
    await provider.aclose()


@pytest.mark.asyncio
async def test_all_drivers_verified_filter():
    def handler(request):
        assert request.url.path == "/api/drivers/all"
        assert dict(request.url.params) == {"verified": "false", "city": "Pune"}
        return httpx.Response(200, json={"success": True, "data": [DRIVER], "count": 1})

    async with _client(handler) as api:
        result = await api.get_all_drivers("tok", verified=False, city="Pune")

    assert [d.id for d in result.value] == ["d1"]


@pytest.mark.asyncio
async def test_verified_drivers_listing():
    def handler(request):
        assert request.method == "GET"
        assert request.url.path == "/api/drivers/verified"
        assert request.headers["authorization"] == "Bearer tok"
        return httpx.Response(200, json={"success": True, "data": [DRIVER]})

    async with _client(handler) as api:
        result = await api.get_verified_drivers("tok")

    assert isinstance(result, Ok)
    assert result.value[0].is_verified is True
    assert result.value[0].city == "Mumbai"


BOOKING = {
    "id": "b1",
    "status": "ACCEPTED",
    "pickupLocation": "Andheri",
    "dropLocation": "Bandra",
    "scheduledDate": "2026-11-02",
    "driverResponse": "On my way",
    "driver": DRIVER,
}


@pytest.mark.asyncio
async def test_driver_booking_history():
    def handler(request):
        assert request.url.path == "/api/admin/bookings/driver/d1"
        return httpx.Response(200, json={"success": True, "data": [BOOKING]})

    async with _client(handler) as api:
        result = await api.get_driver_booking_history("tok", "d1")

    booking = result.value[0]
    assert booking.status == BookingStatus.ACCEPTED
    assert booking.pickup_location == "Andheri"
    assert booking.driver.name == "Ravi Kumar"


@pytest.mark.asyncio
async def test_user_booking_history():
    def handler(request):
        assert request.url.path == "/api/admin/bookings/user/u7"
        return httpx.Response(200, json={"success": True, "data": [dict(BOOKING, status="CANCELLED")]})

    async with _client(handler) as api:
        result = await api.get_user_booking_history("tok", "u7")

    assert [b.status for b in result.value] == [BookingStatus.CANCELLED]


@pytest.mark.asyncio
async def test_booking_history_backend_error():
    def handler(request):
        return httpx.Response(404, json={"success": False, "error": "User not found"})

    async with _client(handler) as api:
        result = await api.get_user_booking_history("tok", "missing")

    assert result == Err("User not found", ErrorKind.BACKEND)
