"""Tests for the per-chat session store (mocked Redis)."""

import json

import pytest
from unittest.mock import AsyncMock

from drivers24.exceptions import ActionInProgress
from drivers24.schemas import Role, UserData
from drivers24.services.session import Session, SessionStore

USER = UserData(id="u1", email="asha@example.com", first_name="Asha", role=Role.USER, city="Pune")


def _redis(values: dict | None = None) -> AsyncMock:
    values = values or {}
    conn = AsyncMock()
    conn.get.side_effect = lambda key: values.get(key)
    return conn


@pytest.mark.asyncio
async def test_load_restores_session():
    conn = _redis({
        "session:7:jwt_token": "jwt",
        "session:7:user_data": USER.model_dump_json(by_alias=True),
        "session:7:pending_driver_email": "ravi@example.com",
    })
    session = await SessionStore(conn).load(7)

    assert session.token == "jwt"
    assert session.user.first_name == "Asha"
    assert session.role == Role.USER
    assert session.pending_driver_email == "ravi@example.com"
    assert session.is_authenticated


@pytest.mark.asyncio
async def test_load_discards_unreadable_user():
    conn = _redis({"session:7:jwt_token": "jwt", "session:7:user_data": "{not json"})
    session = await SessionStore(conn).load(7)
    assert session.user is None
    assert not session.is_authenticated


@pytest.mark.asyncio
async def test_set_auth_writes_token_and_user_together():
    """Token and user snapshot are persisted in one write."""
    conn = _redis()
    session = await SessionStore(conn).load(7)
    await session.set_auth("jwt2", USER)

    conn.mset.assert_called_once()
    written = conn.mset.call_args.args[0]
    assert written["session:7:jwt_token"] == "jwt2"
    assert json.loads(written["session:7:user_data"])["firstName"] == "Asha"


@pytest.mark.asyncio
async def test_clear_removes_all_keys():
    conn = _redis()
    session = await SessionStore(conn).load(7)
    await session.set_pending_email("ravi@example.com")
    await session.clear()

    conn.set.assert_called_once_with("session:7:pending_driver_email", "ravi@example.com")
    conn.delete.assert_called_once_with(
        "session:7:jwt_token", "session:7:user_data", "session:7:pending_driver_email",
    )
    assert session.token is None
    assert session.pending_driver_email is None


@pytest.mark.asyncio
async def test_busy_guard_rejects_duplicate_action():
    session = Session(7)
    async with session.busy("search"):
        assert session.is_busy("search")
        with pytest.raises(ActionInProgress):
            async with session.busy("search"):
                pass
        async with session.busy("create_booking"):
            pass
    assert not session.is_busy("search")


@pytest.mark.asyncio
async def test_busy_guard_released_on_error():
    session = Session(7)
    with pytest.raises(RuntimeError):
        async with session.busy("search"):
            raise RuntimeError("boom")
    assert not session.is_busy("search")


@pytest.mark.asyncio
async def test_in_flight_actions_shared_across_loads():
    """Two updates from the same chat see each other's in-flight actions."""
    store = SessionStore(_redis())
    first = await store.load(7)
    second = await store.load(7)
    other_chat = await store.load(8)

    async with first.busy("search"):
        assert second.is_busy("search")
        assert not other_chat.is_busy("search")
