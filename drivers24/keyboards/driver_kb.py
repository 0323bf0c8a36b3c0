"""Inline keyboard builders for driver bot interactions."""

from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton

from drivers24.keyboards.user_kb import STATUS_EMOJI, home_row
from drivers24.schemas import Booking
from drivers24.services.booking_state import Actor, available_actions


def driver_main_menu_keyboard(availability: bool | None = None, has_profile: bool = True) -> InlineKeyboardMarkup:
    """Driver main menu — shows only the relevant availability toggle."""
    buttons = []
    if has_profile:
        if availability:
            buttons.append([InlineKeyboardButton(text="🔴 Go Unavailable", callback_data="drv_off")])
        else:
            buttons.append([InlineKeyboardButton(text="🟢 Go Available", callback_data="drv_on")])
        buttons.append([InlineKeyboardButton(text="📨 Booking Requests", callback_data="drv_requests")])
        buttons.append([InlineKeyboardButton(text="⚙️ Edit Profile", callback_data="drv_profile")])
    else:
        buttons.append([InlineKeyboardButton(text="📝 Create Driver Profile", callback_data="drv_profile")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def request_list_keyboard(bookings: list[Booking]) -> InlineKeyboardMarkup:
    buttons = []
    for booking in bookings[:10]:
        who = booking.user.email if booking.user and booking.user.email else "User"
        emoji = STATUS_EMOJI.get(booking.status, "📦")
        buttons.append([InlineKeyboardButton(
            text=f"{emoji} {who} — {booking.status.value.title()}",
            callback_data=f"drv_booking_{booking.id}",
        )])
    buttons.append(home_row())
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def request_actions_keyboard(booking: Booking) -> InlineKeyboardMarkup:
    """Accept/Reject only while the request is PENDING."""
    buttons = []
    actions = available_actions(booking, Actor.DRIVER)
    row = []
    if "accept" in actions:
        row.append(InlineKeyboardButton(text="✅ Accept", callback_data=f"drv_accept_{booking.id}"))
    if "reject" in actions:
        row.append(InlineKeyboardButton(text="❌ Reject", callback_data=f"drv_reject_{booking.id}"))
    if row:
        buttons.append(row)
    buttons.append([InlineKeyboardButton(text="🔙 Requests", callback_data="drv_requests")])
    buttons.append(home_row())
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def response_note_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="⏩ Send without a note", callback_data="drv_note_skip")],
        [InlineKeyboardButton(text="❌ Cancel", callback_data="drv_requests")],
    ])


def profile_confirm_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [
            InlineKeyboardButton(text="💾 Save Profile", callback_data="drv_profile_save"),
            InlineKeyboardButton(text="✏️ Start Over", callback_data="drv_profile"),
        ],
        home_row(),
    ])
