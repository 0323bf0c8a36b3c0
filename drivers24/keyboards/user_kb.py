"""Inline keyboard builders for user (requester) bot interactions."""

from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton

from drivers24.schemas import Booking, BookingStatus
from drivers24.services.booking_state import Actor, available_actions
from drivers24.services.search import SearchState

STATUS_EMOJI = {
    BookingStatus.PENDING: "⏳",
    BookingStatus.ACCEPTED: "✅",
    BookingStatus.REJECTED: "❌",
    BookingStatus.CANCELLED: "🚫",
    BookingStatus.COMPLETED: "🏁",
}


def home_row() -> list[InlineKeyboardButton]:
    return [InlineKeyboardButton(text="🏠 Main Menu", callback_data="menu_home")]


def role_keyboard() -> InlineKeyboardMarkup:
    """One-time role selection."""
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="🙋 I'm a User — find drivers", callback_data="role_USER")],
        [InlineKeyboardButton(text="🚗 I'm a Driver — offer my services", callback_data="role_DRIVER")],
        [InlineKeyboardButton(text="📝 Register as a driver first", callback_data="register_driver")],
    ])


def user_main_menu_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="🔍 Find Drivers", callback_data="user_search")],
        [InlineKeyboardButton(text="📋 My Bookings", callback_data="user_bookings")],
    ])


def search_results_keyboard(state: SearchState) -> InlineKeyboardMarkup:
    """Driver list + pagination; Previous/Next only appear when they lead somewhere."""
    buttons = []
    for driver in state.drivers:
        badge = "✅" if driver.is_verified else "🕓"
        label = f"{badge} {driver.name}"
        if driver.experience is not None:
            label += f" · {driver.experience} yrs"
        if driver.salary_expectation is not None:
            label += f" · ₹{driver.salary_expectation}/mo"
        buttons.append([InlineKeyboardButton(text=label, callback_data=f"driver_{driver.id}")])

    nav = []
    if state.has_previous:
        nav.append(InlineKeyboardButton(text="◀️ Previous", callback_data=f"search_page_{state.current_page - 1}"))
    if state.total_pages > 1:
        nav.append(InlineKeyboardButton(
            text=f"{state.current_page}/{state.total_pages}", callback_data="noop",
        ))
    if state.has_next:
        nav.append(InlineKeyboardButton(text="Next ▶️", callback_data=f"search_page_{state.current_page + 1}"))
    if nav:
        buttons.append(nav)

    buttons.append([
        InlineKeyboardButton(text="🎚️ Filters", callback_data="user_filters"),
        InlineKeyboardButton(text="🏙️ Change City", callback_data="search_change_city"),
    ])
    buttons.append(home_row())
    return InlineKeyboardMarkup(inline_keyboard=buttons)


FILTER_LABELS = {
    "min_salary": "Min salary",
    "max_salary": "Max salary",
    "min_experience": "Min experience",
    "max_experience": "Max experience",
}


def filters_keyboard(state: SearchState) -> InlineKeyboardMarkup:
    buttons = []
    for name, label in FILTER_LABELS.items():
        value = getattr(state.filters, name)
        text = f"{label}: {value if value is not None else '—'}"
        buttons.append([InlineKeyboardButton(text=text, callback_data=f"filter_set_{name}")])
    buttons.append([
        InlineKeyboardButton(text="✅ Apply", callback_data="filter_apply"),
        InlineKeyboardButton(text="🧹 Clear", callback_data="filter_clear"),
    ])
    buttons.append(home_row())
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def driver_detail_keyboard(driver_id: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="📨 Request this Driver", callback_data=f"book_{driver_id}")],
        [InlineKeyboardButton(text="🔙 Back to Results", callback_data="search_back")],
        home_row(),
    ])


def skip_keyboard(callback_data: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="⏩ Skip", callback_data=callback_data)],
        [InlineKeyboardButton(text="❌ Cancel", callback_data="menu_home")],
    ])


def booking_confirm_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [
            InlineKeyboardButton(text="📨 Send Request", callback_data="booking_send"),
            InlineKeyboardButton(text="❌ Cancel", callback_data="menu_home"),
        ],
    ])


def booking_list_keyboard(bookings: list[Booking]) -> InlineKeyboardMarkup:
    buttons = []
    for booking in bookings[:10]:
        name = booking.driver.name if booking.driver and booking.driver.name else "Driver"
        emoji = STATUS_EMOJI.get(booking.status, "📦")
        buttons.append([InlineKeyboardButton(
            text=f"{emoji} {name} — {booking.status.value.title()}",
            callback_data=f"booking_{booking.id}",
        )])
    buttons.append(home_row())
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def user_booking_actions_keyboard(booking: Booking) -> InlineKeyboardMarkup:
    """Cancel while PENDING; Contact Info only once ACCEPTED."""
    buttons = []
    actions = available_actions(booking, Actor.USER)
    if "cancel" in actions:
        buttons.append([InlineKeyboardButton(text="🚫 Cancel Request", callback_data=f"cancel_{booking.id}")])
    if "contact" in actions:
        buttons.append([InlineKeyboardButton(text="📞 Contact Info", callback_data=f"contact_{booking.id}")])
    buttons.append([InlineKeyboardButton(text="🔙 My Bookings", callback_data="user_bookings")])
    buttons.append(home_row())
    return InlineKeyboardMarkup(inline_keyboard=buttons)
