"""
User Bot Handler — driver search, booking requests, booking history.

FSM Flow:
  Find Drivers → (city) → results page ⇄ Previous/Next
               → Filters → set values → Apply (back to page 1)
               → driver card → Request → pickup → drop → date → notes → Send
  My Bookings → booking card → Cancel (PENDING) / Contact Info (ACCEPTED)
"""

import logging
from datetime import datetime
from html import escape

from aiogram import Router, F
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, InlineKeyboardMarkup, Message

from drivers24.exceptions import ActionInProgress, InvalidTransition, SearchError
from drivers24.handlers.common import (
    PLEASE_WAIT, format_booking, format_driver, gate, handle_err, header, reply,
)
from drivers24.keyboards.user_kb import (
    FILTER_LABELS, booking_confirm_keyboard, booking_list_keyboard, driver_detail_keyboard,
    filters_keyboard, home_row, search_results_keyboard, skip_keyboard,
    user_booking_actions_keyboard,
)
from drivers24.schemas import Booking, BookingCreate, Role
from drivers24.services import booking_state
from drivers24.services.api_client import BackendClient, Err, ErrorKind, Ok
from drivers24.services.search import SearchQuery, SearchState
from drivers24.services.session import Session
from drivers24.states.user_states import BookingRequest, SearchFlow

router = Router()
logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"


async def _load_search(state: FSMContext) -> SearchState:
    data = await state.get_data()
    return SearchState.from_dict(data.get("search"))


async def _save_search(state: FSMContext, search: SearchState) -> None:
    await state.update_data(search=search.to_dict())


def _results_text(search: SearchState) -> str:
    text = header(f"🔍 <b>Drivers in {escape(search.city)}</b>")
    if not search.filters.is_empty():
        active = ", ".join(
            f"{FILTER_LABELS[name]} {getattr(search.filters, name)}"
            for name in FILTER_LABELS
            if getattr(search.filters, name) is not None
        )
        text += f"🎚️ Filters: {escape(active)}\n"
    if search.drivers:
        text += f"Found <b>{search.total_count}</b> drivers · page {search.current_page} of {search.total_pages}\n"
    if search.feedback:
        icon = "⚠️" if search.is_error else "🤷"
        text += f"\n{icon} {escape(search.feedback)}"
    return text


async def _run_search(
    target: Message | CallbackQuery,
    state: FSMContext,
    api: BackendClient,
    session: Session,
    search: SearchState,
    query: SearchQuery,
):
    """Issue *query*, replace the result list and render the page."""
    try:
        async with session.busy("search"):
            if isinstance(target, Message):
                await target.answer("🔍 Searching...")
            result = await api.get_drivers_by_city(session.token, query.city, query.params)
    except ActionInProgress:
        await reply(target, PLEASE_WAIT)
        return

    if isinstance(result, Err) and result.kind == ErrorKind.AUTH:
        await handle_err(target, api, session, result)
        return

    search.apply_result(query, result)
    await _save_search(state, search)
    await reply(target, _results_text(search), search_results_keyboard(search))


# ── Search ────────────────────────────────────────────────

@router.callback_query(F.data == "user_search")
async def start_search(callback: CallbackQuery, state: FSMContext, api: BackendClient, session: Session):
    """Search straight away in the user's own city, or ask for one."""
    await callback.answer()
    user = await gate(callback, api, session, Role.USER)
    if user is None:
        return

    search = await _load_search(state)
    if user.city:
        query = search.new_search(user.city)
        await _run_search(callback, state, api, session, search, query)
        return

    await state.set_state(SearchFlow.waiting_city)
    await callback.message.edit_text("🏙️ Enter a <b>city</b> to find available drivers:")


@router.callback_query(F.data == "search_change_city")
async def change_city(callback: CallbackQuery, state: FSMContext):
    await callback.answer()
    await state.set_state(SearchFlow.waiting_city)
    await callback.message.edit_text("🏙️ Enter a <b>city</b> to find available drivers:")


@router.message(SearchFlow.waiting_city)
async def receive_search_city(message: Message, state: FSMContext, api: BackendClient, session: Session):
    search = await _load_search(state)
    try:
        query = search.new_search(message.text or "")
    except SearchError as e:
        await message.answer(f"⚠️ {escape(e.detail)}")
        return

    await state.set_state(None)
    await _run_search(message, state, api, session, search, query)


@router.callback_query(F.data.startswith("search_page_"))
async def change_page(callback: CallbackQuery, state: FSMContext, api: BackendClient, session: Session):
    """Re-issue the full query (city + filters) for another page."""
    search = await _load_search(state)
    try:
        page = int(callback.data.replace("search_page_", ""))
        query = search.page_query(page)
    except (ValueError, SearchError):
        await callback.answer("That page is not available.", show_alert=True)
        return

    await callback.answer("Loading...")
    await _run_search(callback, state, api, session, search, query)


@router.callback_query(F.data == "search_back")
async def back_to_results(callback: CallbackQuery, state: FSMContext):
    await callback.answer()
    search = await _load_search(state)
    if not search.city:
        await callback.message.edit_text("🏙️ Enter a <b>city</b> to find available drivers:")
        await state.set_state(SearchFlow.waiting_city)
        return
    await callback.message.edit_text(_results_text(search), reply_markup=search_results_keyboard(search))


# ── Filters ───────────────────────────────────────────────

@router.callback_query(F.data == "user_filters")
async def show_filters(callback: CallbackQuery, state: FSMContext):
    await callback.answer()
    search = await _load_search(state)
    await state.set_state(None)
    await callback.message.edit_text(
        header("🎚️ <b>Search Filters</b>")
        + "Tap a filter to set it, then <b>Apply</b>.\n"
        "<i>Salary in ₹/month, experience in years.</i>",
        reply_markup=filters_keyboard(search),
    )


@router.callback_query(F.data.startswith("filter_set_"))
async def ask_filter_value(callback: CallbackQuery, state: FSMContext):
    name = callback.data.replace("filter_set_", "")
    if name not in FILTER_LABELS:
        await callback.answer("Unknown filter", show_alert=True)
        return
    await callback.answer()
    await state.set_state(SearchFlow.waiting_filter_value)
    await state.update_data(filter_name=name)
    await callback.message.edit_text(
        f"✏️ Send a value for <b>{FILTER_LABELS[name]}</b>\n"
        "or send <code>-</code> to remove it.",
    )


@router.message(SearchFlow.waiting_filter_value)
async def receive_filter_value(message: Message, state: FSMContext):
    data = await state.get_data()
    name = data.get("filter_name")
    search = SearchState.from_dict(data.get("search"))
    value = (message.text or "").strip()
    try:
        search.update_filter(name, None if value == "-" else value)
    except SearchError as e:
        await message.answer(f"⚠️ {escape(e.detail)}. Try again or send <code>-</code>.")
        return

    await _save_search(state, search)
    await state.set_state(None)
    await message.answer("🎚️ <b>Search Filters</b>", reply_markup=filters_keyboard(search))


@router.callback_query(F.data == "filter_apply")
async def apply_filters(callback: CallbackQuery, state: FSMContext, api: BackendClient, session: Session):
    search = await _load_search(state)
    if not search.city:
        await callback.answer("Search a city first.", show_alert=True)
        return
    await callback.answer("Searching...")
    await _run_search(callback, state, api, session, search, search.query(1))


@router.callback_query(F.data == "filter_clear")
async def clear_filters(callback: CallbackQuery, state: FSMContext, api: BackendClient, session: Session):
    search = await _load_search(state)
    if not search.city:
        search.clear_filters()
        await _save_search(state, search)
        await callback.answer("Filters cleared.")
        await callback.message.edit_reply_markup(reply_markup=filters_keyboard(search))
        return
    await callback.answer("Searching...")
    await _run_search(callback, state, api, session, search, search.clear_filters())


# ── Driver card & booking request ─────────────────────────

@router.callback_query(F.data.startswith("driver_"))
async def show_driver(callback: CallbackQuery, state: FSMContext):
    await callback.answer()
    driver_id = callback.data.replace("driver_", "")
    search = await _load_search(state)
    driver = search.find_driver(driver_id)
    if driver is None:
        await callback.message.edit_text("❌ Driver not found. Please search again.",
                                         reply_markup=InlineKeyboardMarkup(inline_keyboard=[home_row()]))
        return
    await callback.message.edit_text(format_driver(driver), reply_markup=driver_detail_keyboard(driver.id))


@router.callback_query(F.data.startswith("book_"))
async def start_booking(callback: CallbackQuery, state: FSMContext):
    await callback.answer()
    driver_id = callback.data.replace("book_", "")
    search = await _load_search(state)
    driver = search.find_driver(driver_id)
    await state.set_state(BookingRequest.waiting_pickup)
    await state.update_data(booking={"driver_id": driver_id}, booking_driver=driver.name if driver else "")
    await callback.message.edit_text(
        f"📨 <b>Request {escape(driver.name) if driver else 'driver'}</b>\n\n"
        "<b>Step 1/4:</b> 📍 Pickup location? (optional)",
        reply_markup=skip_keyboard("bk_skip"),
    )


_BOOKING_STEPS = {
    BookingRequest.waiting_pickup.state: ("pickup_location", BookingRequest.waiting_drop,
                                          "<b>Step 2/4:</b> 🏁 Drop location? (optional)"),
    BookingRequest.waiting_drop.state: ("drop_location", BookingRequest.waiting_date,
                                        "<b>Step 3/4:</b> 📅 Date? Send as YYYY-MM-DD (optional)"),
    BookingRequest.waiting_date.state: ("scheduled_date", BookingRequest.waiting_notes,
                                        "<b>Step 4/4:</b> 📝 Any notes for the driver? (optional)"),
    BookingRequest.waiting_notes.state: ("notes", BookingRequest.confirm, None),
}


async def _booking_step(target: Message | CallbackQuery, state: FSMContext, value: str | None):
    current = await state.get_state()
    field, next_state, prompt = _BOOKING_STEPS[current]
    data = await state.get_data()
    booking = dict(data.get("booking") or {})
    booking[field] = value
    await state.update_data(booking=booking)
    await state.set_state(next_state)

    if prompt is not None:
        await reply(target, prompt, skip_keyboard("bk_skip"))
        return

    draft = BookingCreate.model_validate(booking)
    summary = header("📋 <b>Booking Request</b>") + f"🚗 Driver: {escape(data.get('booking_driver') or '—')}\n"
    summary += f"📍 Pickup: {escape(draft.pickup_location or '—')}\n"
    summary += f"🏁 Drop: {escape(draft.drop_location or '—')}\n"
    summary += f"📅 Date: {escape(draft.scheduled_date or '—')}\n"
    summary += f"📝 Notes: {escape(draft.notes or '—')}\n\nSend this request?"
    await reply(target, summary, booking_confirm_keyboard())


@router.callback_query(F.data == "bk_skip")
async def skip_booking_field(callback: CallbackQuery, state: FSMContext):
    if await state.get_state() not in _BOOKING_STEPS:
        await callback.answer()
        return
    await callback.answer()
    await _booking_step(callback, state, None)


@router.message(BookingRequest.waiting_date)
async def receive_booking_date(message: Message, state: FSMContext):
    text = (message.text or "").strip()
    try:
        datetime.strptime(text, DATE_FORMAT)
    except ValueError:
        await message.answer("⚠️ Please send the date as YYYY-MM-DD, or tap Skip.",
                             reply_markup=skip_keyboard("bk_skip"))
        return
    await _booking_step(message, state, text)


@router.message(BookingRequest.waiting_pickup)
@router.message(BookingRequest.waiting_drop)
@router.message(BookingRequest.waiting_notes)
async def receive_booking_text(message: Message, state: FSMContext):
    text = (message.text or "").strip()
    await _booking_step(message, state, text or None)


@router.callback_query(F.data == "booking_send", BookingRequest.confirm)
async def send_booking(callback: CallbackQuery, state: FSMContext, api: BackendClient, session: Session):
    data = await state.get_data()
    draft = BookingCreate.model_validate(data.get("booking") or {})

    try:
        async with session.busy("create_booking"):
            await callback.answer("Sending...")
            result = await api.create_booking(session.token, draft)
    except ActionInProgress:
        await callback.answer(PLEASE_WAIT, show_alert=True)
        return

    if isinstance(result, Ok):
        await state.clear()
        logger.info("Booking requested: user=%s driver=%s", callback.from_user.id, draft.driver_id)
        await callback.message.edit_text(
            "✅ <b>Booking request sent successfully!</b>\n\n"
            "You'll see the driver's answer under <b>My Bookings</b>.",
            reply_markup=InlineKeyboardMarkup(inline_keyboard=[home_row()]),
        )
    else:
        await handle_err(callback, api, session, result, booking_confirm_keyboard())


# ── My bookings ───────────────────────────────────────────

async def _find_booking(state: FSMContext, booking_id: str) -> Booking | None:
    data = await state.get_data()
    raw = (data.get("bookings") or {}).get(booking_id)
    return Booking.model_validate(raw) if raw else None


async def _remember_booking(state: FSMContext, booking: Booking) -> None:
    data = await state.get_data()
    bookings = dict(data.get("bookings") or {})
    bookings[booking.id] = booking.model_dump(mode="json")
    await state.update_data(bookings=bookings)


@router.callback_query(F.data == "user_bookings")
async def show_bookings(callback: CallbackQuery, state: FSMContext, api: BackendClient, session: Session):
    await callback.answer()
    if await gate(callback, api, session, Role.USER) is None:
        return

    result = await api.get_user_bookings(session.token)
    if isinstance(result, Err):
        await handle_err(callback, api, session, result)
        return

    bookings = result.value
    await state.update_data(bookings={b.id: b.model_dump(mode="json") for b in bookings})
    if not bookings:
        text = header("📋 <b>My Bookings</b>") + "You haven't requested any drivers yet."
    else:
        text = header("📋 <b>My Bookings</b>") + f"{len(bookings)} booking(s). Tap one for details."
    await callback.message.edit_text(text, reply_markup=booking_list_keyboard(bookings))


@router.callback_query(F.data.startswith("booking_"), F.data != "booking_send")
async def show_booking(callback: CallbackQuery, state: FSMContext):
    await callback.answer()
    booking = await _find_booking(state, callback.data.replace("booking_", ""))
    if booking is None:
        await callback.message.edit_text("❌ Booking not found.",
                                         reply_markup=InlineKeyboardMarkup(inline_keyboard=[home_row()]))
        return
    await callback.message.edit_text(format_booking(booking), reply_markup=user_booking_actions_keyboard(booking))


@router.callback_query(F.data.startswith("cancel_"))
async def cancel_booking(callback: CallbackQuery, state: FSMContext, api: BackendClient, session: Session):
    """Cancel a PENDING request; anything else is refused before calling the API."""
    booking = await _find_booking(state, callback.data.replace("cancel_", ""))
    if booking is None:
        await callback.answer("Booking not found.", show_alert=True)
        return

    try:
        cancelled = booking_state.apply_cancel(booking)
    except InvalidTransition as e:
        logger.warning("Refused cancel of booking %s: %s", booking.id, e.detail)
        await callback.answer("Only pending requests can be cancelled.", show_alert=True)
        return

    try:
        async with session.busy("cancel_booking"):
            await callback.answer("Cancelling...")
            result = await api.cancel_booking(session.token, booking.id)
    except ActionInProgress:
        await callback.answer(PLEASE_WAIT, show_alert=True)
        return

    if isinstance(result, Err):
        await handle_err(callback, api, session, result, user_booking_actions_keyboard(booking))
        return

    await _remember_booking(state, cancelled)
    await callback.message.edit_text(
        "🚫 <b>Booking cancelled.</b>\n\n" + format_booking(cancelled),
        reply_markup=user_booking_actions_keyboard(cancelled),
    )


@router.callback_query(F.data.startswith("contact_"))
async def show_contact(callback: CallbackQuery, state: FSMContext, api: BackendClient, session: Session):
    """Full driver details are only requested for ACCEPTED bookings."""
    booking = await _find_booking(state, callback.data.replace("contact_", ""))
    if booking is None or booking.driver is None:
        await callback.answer("Booking not found.", show_alert=True)
        return
    if not booking_state.can_view_full_info(booking.status):
        await callback.answer("Contact details are shared once the driver accepts.", show_alert=True)
        return

    await callback.answer("Loading...")
    result = await api.get_driver_full_info(session.token, booking.driver.id)
    if isinstance(result, Err):
        await handle_err(callback, api, session, result, user_booking_actions_keyboard(booking))
        return

    await callback.message.edit_text(
        header("📞 <b>Driver Contact</b>") + format_driver(result.value, full=True),
        reply_markup=user_booking_actions_keyboard(booking),
    )
