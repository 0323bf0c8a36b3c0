"""
Entry Bot Handler — /start routing, one-time role selection, pending driver
registration completion.

Flow:
  /start → profile re-fetch → role menu (USER / DRIVER / ADMIN)
                            └→ no role yet → choose role → enter city
  /complete → finish a guest driver registration after signing in
"""

import logging
from html import escape

from aiogram import Router, F
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from drivers24.exceptions import ActionInProgress, ValidationFailed
from drivers24.handlers.common import (
    PLEASE_WAIT, error_text, handle_err, header, show_home, show_menu_for, show_role_selection,
)
from drivers24.schemas import Role
from drivers24.services import auth
from drivers24.services.api_client import BackendClient, ErrorKind, Ok
from drivers24.services.identity import IdentityProvider, clerk_id_for
from drivers24.services.session import Session
from drivers24.states.user_states import RoleSelection

router = Router()
logger = logging.getLogger(__name__)


@router.message(Command("start"))
async def cmd_start(message: Message, state: FSMContext, api: BackendClient, session: Session):
    """Handle /start — always re-check the role with the backend."""
    await state.clear()
    await show_home(message, api, session)


@router.callback_query(F.data == "menu_home")
async def back_to_menu(callback: CallbackQuery, state: FSMContext, api: BackendClient, session: Session):
    await state.clear()
    await callback.answer()
    await show_home(callback, api, session)


@router.callback_query(F.data == "noop")
async def noop(callback: CallbackQuery):
    await callback.answer()


@router.message(Command("help"))
async def cmd_help(message: Message):
    await message.answer(
        header("ℹ️ <b>How Drivers24 Works</b>")
        + "🙋 <b>Users</b> search drivers by city, filter by salary and\n"
        "experience, and send booking requests.\n\n"
        "🚗 <b>Drivers</b> keep a profile, toggle availability and\n"
        "accept or reject requests.\n\n"
        "<b>Commands:</b>\n"
        "/start — Main menu\n"
        "/register_driver — Register as a driver before signing in\n"
        "/complete — Finish your driver registration\n"
        "/logout — Forget this chat's session\n"
        "/help — This message",
    )


@router.message(Command("logout"))
async def cmd_logout(message: Message, state: FSMContext, session: Session):
    await state.clear()
    await session.clear()
    await message.answer("👋 You have been signed out of this chat. Send /start to sign in again.")


# ── Role selection ────────────────────────────────────────

@router.callback_query(F.data.startswith("role_"))
async def choose_role(callback: CallbackQuery, state: FSMContext):
    role = callback.data.replace("role_", "")
    if role not in (Role.USER.value, Role.DRIVER.value):
        await callback.answer("Unknown role", show_alert=True)
        return
    await callback.answer()
    await state.set_state(RoleSelection.waiting_city)
    await state.update_data(role=role)
    label = "User" if role == Role.USER.value else "Driver"
    await callback.message.edit_text(
        f"✅ Role: <b>{label}</b>\n\n"
        "🏙️ Which <b>city</b> are you in?\n"
        "<i>Your role cannot be changed later.</i>",
    )


@router.message(RoleSelection.waiting_city)
async def receive_city(message: Message, state: FSMContext, api: BackendClient, session: Session):
    data = await state.get_data()
    clerk_id = clerk_id_for(message.from_user.id)

    try:
        async with session.busy("select_role"):
            result = await auth.select_role(api, session, clerk_id, data.get("role"), message.text)
    except ValidationFailed as e:
        await message.answer(f"⚠️ {escape(e.detail)}")
        return
    except ActionInProgress:
        await message.answer(PLEASE_WAIT)
        return

    if isinstance(result, Ok):
        await state.clear()
        await show_menu_for(message, api, session, result.value.user)
    else:
        await handle_err(message, api, session, result)


# ── Pending driver registration ───────────────────────────

@router.message(Command("complete"))
async def cmd_complete(
    message: Message, state: FSMContext, api: BackendClient, session: Session, identity: IdentityProvider,
):
    """Convert a guest registration into a driver profile once signed in."""
    await state.clear()
    progress = await message.answer("⏳ Completing your driver registration...")

    try:
        async with session.busy("complete_registration"):
            who = await identity.get_identity(message.from_user.id)
            result = await auth.complete_pending_registration(api, session, who)
    except ActionInProgress:
        await progress.edit_text(PLEASE_WAIT)
        return

    if isinstance(result, Ok):
        await progress.edit_text("🎉 Registration completed successfully!")
        await show_menu_for(message, api, session, result.value.user)
        return

    logger.error("Registration completion failed for %s: %s", message.from_user.id, result.reason)
    if result.kind == ErrorKind.AUTH:
        await progress.edit_text(f"❌ {escape(result.reason)}")
        await show_role_selection(message)
    else:
        await progress.edit_text(error_text(result))
