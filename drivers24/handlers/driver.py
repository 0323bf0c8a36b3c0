"""
Driver Bot Handler — profile, availability, incoming booking requests.

FSM Flow (profile):
  Create/Edit Profile → one field per message (Keep/Skip where allowed) → review → Save

FSM Flow (requests):
  Booking Requests → request card → Accept/Reject → optional note → send
"""

import logging
from html import escape

from aiogram import Router, F
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, InlineKeyboardButton, InlineKeyboardMarkup, Message

from drivers24.exceptions import ActionInProgress, InvalidTransition
from drivers24.handlers.common import (
    PLEASE_WAIT, format_booking, gate, handle_err, header, reply, show_menu_for,
)
from drivers24.keyboards.driver_kb import (
    driver_main_menu_keyboard, profile_confirm_keyboard, request_actions_keyboard,
    request_list_keyboard, response_note_keyboard,
)
from drivers24.keyboards.user_kb import home_row
from drivers24.schemas import Booking, BookingStatus, DriverProfileCreate, Role
from drivers24.services import booking_state
from drivers24.services.api_client import BackendClient, Err, Ok
from drivers24.services.session import Session
from drivers24.services.validators import (
    FIELD_LABELS, FIELD_VALIDATORS, is_blank, normalize_document, normalize_int, normalize_phone,
    optional, validate_text,
)
from drivers24.states.driver_states import DriverProfileFlow, RespondFlow

router = Router()
logger = logging.getLogger(__name__)

# (field, prompt, required)
PROFILE_FIELDS = [
    ("name", "👤 Your full name as on your licence", True),
    ("phoneNumber", "📞 Mobile number (10 digits)", True),
    ("dlNumber", "🪪 Driving licence number\n<i>Example: MH-12-2020-0012345</i>", True),
    ("rcNumber", "📄 Vehicle RC number", False),
    ("permanentAddress", "🏠 Permanent address", True),
    ("operatingAddress", "📍 Area you operate in", True),
    ("city", "🏙️ City", True),
    ("state", "🗺️ State", False),
    ("pincode", "📮 Pincode (6 digits)", False),
    ("vehicleType", "🚗 Vehicle type (e.g. Sedan, SUV)", False),
    ("vehicleModel", "🚘 Vehicle model", False),
    ("vehicleNumber", "🔢 Vehicle number plate", False),
    ("experience", "🧭 Driving experience in years", False),
    ("salaryExpectation", "💰 Expected salary (₹/month)", False),
]


def _profile_validator(name: str, required: bool):
    validator = FIELD_VALIDATORS.get(name) or validate_text(name)
    return validator if required else optional(name, validator)


def _clean(name: str, value: str):
    if name == "phoneNumber":
        return normalize_phone(value)
    if name in ("dlNumber", "rcNumber", "vehicleNumber"):
        return normalize_document(value)
    if name in ("experience", "salaryExpectation"):
        return normalize_int(value)
    return value.strip()


def _field_keyboard(has_value: bool, required: bool) -> InlineKeyboardMarkup:
    buttons = []
    if has_value:
        buttons.append([InlineKeyboardButton(text="✔️ Keep current", callback_data="drv_keep")])
    elif not required:
        buttons.append([InlineKeyboardButton(text="⏩ Skip", callback_data="drv_keep")])
    buttons.append([InlineKeyboardButton(text="❌ Cancel", callback_data="menu_home")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


async def _ask_field(target: Message | CallbackQuery, state: FSMContext, error: str | None = None):
    data = await state.get_data()
    index = data["profile_index"]
    name, prompt, required = PROFILE_FIELDS[index]
    current = data["profile"].get(name)

    text = f"<b>Step {index + 1}/{len(PROFILE_FIELDS)}</b>\n\n{prompt}"
    if not required:
        text += " <i>(optional)</i>"
    if not is_blank(current):
        text += f"\n\nCurrent: <code>{escape(str(current))}</code>"
    if error:
        text = f"⚠️ {escape(error)}\n\n" + text
    await reply(target, text, _field_keyboard(not is_blank(current), required))


async def _next_field(target: Message | CallbackQuery, state: FSMContext):
    data = await state.get_data()
    index = data["profile_index"] + 1
    if index < len(PROFILE_FIELDS):
        await state.update_data(profile_index=index)
        await _ask_field(target, state)
        return

    await state.set_state(DriverProfileFlow.confirm)
    profile = data["profile"]
    lines = [header("📋 <b>Review Your Profile</b>")]
    for name, _, _ in PROFILE_FIELDS:
        value = profile.get(name)
        lines.append(f"<b>{FIELD_LABELS[name]}:</b> {escape(str(value)) if not is_blank(value) else '—'}")
    await reply(target, "\n".join(lines), profile_confirm_keyboard())


# ── Availability ──────────────────────────────────────────

@router.callback_query(F.data.in_({"drv_on", "drv_off"}))
async def toggle_availability(callback: CallbackQuery, api: BackendClient, session: Session):
    available = callback.data == "drv_on"
    try:
        async with session.busy("update_availability"):
            await callback.answer("Updating...")
            user = await gate(callback, api, session, Role.DRIVER)
            if user is None:
                return
            result = await api.update_availability(session.token, available)
    except ActionInProgress:
        await callback.answer(PLEASE_WAIT, show_alert=True)
        return

    if isinstance(result, Err):
        await handle_err(callback, api, session, result, driver_main_menu_keyboard(not available))
        return

    logger.info("Driver %s availability → %s", callback.from_user.id, available)
    await show_menu_for(callback, api, session, user)


# ── Profile ───────────────────────────────────────────────

@router.callback_query(F.data == "drv_profile")
async def start_profile(callback: CallbackQuery, state: FSMContext, api: BackendClient, session: Session):
    """Walk through the profile fields, pre-filled from the saved profile when there is one."""
    await callback.answer("Loading...")
    user = await gate(callback, api, session, Role.DRIVER)
    if user is None:
        return

    existing = await api.get_my_driver_profile(session.token)
    if isinstance(existing, Ok):
        profile = existing.value.model_dump(by_alias=True, mode="json")
        profile = {name: profile.get(name) for name, _, _ in PROFILE_FIELDS}
    else:
        profile = {"city": user.city} if user.city else {}

    await state.set_state(DriverProfileFlow.entering_field)
    await state.update_data(profile=profile, profile_index=0)
    await _ask_field(callback, state)


@router.message(DriverProfileFlow.entering_field)
async def receive_profile_field(message: Message, state: FSMContext):
    data = await state.get_data()
    name, _, required = PROFILE_FIELDS[data["profile_index"]]
    value = (message.text or "").strip()

    result = _profile_validator(name, required)(value)
    if not result.valid:
        await _ask_field(message, state, result.reason)
        return

    profile = dict(data["profile"])
    profile[name] = _clean(name, value) if value else None
    await state.update_data(profile=profile)
    await _next_field(message, state)


@router.callback_query(F.data == "drv_keep", DriverProfileFlow.entering_field)
async def keep_profile_field(callback: CallbackQuery, state: FSMContext):
    data = await state.get_data()
    name, _, required = PROFILE_FIELDS[data["profile_index"]]
    if required and is_blank(data["profile"].get(name)):
        await callback.answer(f"{FIELD_LABELS[name]} is required", show_alert=True)
        return
    await callback.answer()
    await _next_field(callback, state)


@router.callback_query(F.data == "drv_profile_save", DriverProfileFlow.confirm)
async def save_profile(callback: CallbackQuery, state: FSMContext, api: BackendClient, session: Session):
    data = await state.get_data()
    profile = DriverProfileCreate.model_validate(
        {k: v for k, v in data["profile"].items() if not is_blank(v)}
    )

    try:
        async with session.busy("save_profile"):
            await callback.answer("Saving...")
            result = await api.create_driver_profile(session.token, profile)
    except ActionInProgress:
        await callback.answer(PLEASE_WAIT, show_alert=True)
        return

    if isinstance(result, Err):
        await handle_err(callback, api, session, result, profile_confirm_keyboard())
        return

    await state.clear()
    logger.info("Driver profile saved: user=%s", callback.from_user.id)
    await callback.message.edit_text(
        "✅ <b>Profile saved successfully!</b>\n\n"
        + ("" if result.value.is_verified else "🕓 An admin will verify your profile soon."),
        reply_markup=driver_main_menu_keyboard(result.value.availability),
    )


# ── Booking requests ──────────────────────────────────────

async def _find_request(state: FSMContext, booking_id: str) -> Booking | None:
    data = await state.get_data()
    raw = (data.get("requests") or {}).get(booking_id)
    return Booking.model_validate(raw) if raw else None


@router.callback_query(F.data == "drv_requests")
async def show_requests(callback: CallbackQuery, state: FSMContext, api: BackendClient, session: Session):
    await state.set_state(None)
    await callback.answer("Loading...")
    if await gate(callback, api, session, Role.DRIVER) is None:
        return

    result = await api.get_driver_bookings(session.token)
    if isinstance(result, Err):
        await handle_err(callback, api, session, result)
        return

    requests = result.value
    await state.update_data(requests={b.id: b.model_dump(mode="json") for b in requests})
    pending = sum(1 for b in requests if b.status == BookingStatus.PENDING)
    text = header("📨 <b>Booking Requests</b>")
    text += f"{len(requests)} request(s), {pending} waiting for your answer." if requests else "No requests yet."
    await callback.message.edit_text(text, reply_markup=request_list_keyboard(requests))


@router.callback_query(F.data.startswith("drv_booking_"))
async def show_request(callback: CallbackQuery, state: FSMContext):
    await callback.answer()
    booking = await _find_request(state, callback.data.replace("drv_booking_", ""))
    if booking is None:
        await callback.message.edit_text("❌ Request not found.",
                                         reply_markup=InlineKeyboardMarkup(inline_keyboard=[home_row()]))
        return
    await callback.message.edit_text(format_booking(booking), reply_markup=request_actions_keyboard(booking))


@router.callback_query(F.data.startswith("drv_accept_") | F.data.startswith("drv_reject_"))
async def start_response(callback: CallbackQuery, state: FSMContext):
    """Check the transition locally before asking for the optional note."""
    accept = callback.data.startswith("drv_accept_")
    booking_id = callback.data.replace("drv_accept_" if accept else "drv_reject_", "")
    status = BookingStatus.ACCEPTED if accept else BookingStatus.REJECTED

    booking = await _find_request(state, booking_id)
    if booking is None:
        await callback.answer("Request not found.", show_alert=True)
        return
    try:
        booking_state.apply_response(booking, status)
    except InvalidTransition as e:
        logger.warning("Refused response to booking %s: %s", booking_id, e.detail)
        await callback.answer("This request has already been answered.", show_alert=True)
        return

    await callback.answer()
    await state.set_state(RespondFlow.waiting_note)
    await state.update_data(respond={"id": booking_id, "status": status.value})
    verb = "Accept" if accept else "Reject"
    await callback.message.edit_text(
        f"{'✅' if accept else '❌'} <b>{verb} request</b>\n\n"
        "Send a short note for the user (e.g. <i>On my way</i>), or send without one.",
        reply_markup=response_note_keyboard(),
    )


async def _send_response(
    target: Message | CallbackQuery, state: FSMContext, api: BackendClient, session: Session, note: str | None,
):
    data = await state.get_data()
    respond = data.get("respond") or {}
    booking = await _find_request(state, respond.get("id", ""))
    if booking is None:
        await reply(target, "❌ Request not found.", InlineKeyboardMarkup(inline_keyboard=[home_row()]))
        return
    status = BookingStatus(respond["status"])

    try:
        updated = booking_state.apply_response(booking, status, note)
    except InvalidTransition:
        await reply(target, "⚠️ This request has already been answered.", request_actions_keyboard(booking))
        return

    try:
        async with session.busy("respond_booking"):
            if isinstance(target, CallbackQuery):
                await target.answer("Sending...")
            result = await api.respond_to_booking(session.token, booking.id, status, note)
    except ActionInProgress:
        await reply(target, PLEASE_WAIT)
        return

    if isinstance(result, Err):
        await handle_err(target, api, session, result, request_actions_keyboard(booking))
        return

    requests = dict(data.get("requests") or {})
    requests[updated.id] = updated.model_dump(mode="json")
    await state.update_data(requests=requests, respond=None)
    await state.set_state(None)
    logger.info("Booking %s %s by driver %s", booking.id, status.value, target.from_user.id)
    await reply(
        target,
        f"{'✅ Request accepted!' if status == BookingStatus.ACCEPTED else '❌ Request rejected.'}\n\n"
        + format_booking(updated),
        request_actions_keyboard(updated),
    )


@router.message(RespondFlow.waiting_note)
async def receive_note(message: Message, state: FSMContext, api: BackendClient, session: Session):
    note = (message.text or "").strip() or None
    await _send_response(message, state, api, session, note)


@router.callback_query(F.data == "drv_note_skip", RespondFlow.waiting_note)
async def skip_note(callback: CallbackQuery, state: FSMContext, api: BackendClient, session: Session):
    await _send_response(callback, state, api, session, None)
