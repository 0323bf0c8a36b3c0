"""Inline keyboard builders for the admin dashboard."""

from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton

from drivers24.schemas import DriverProfile


def admin_menu_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [
            InlineKeyboardButton(text="📊 Overview", callback_data="admin_overview"),
            InlineKeyboardButton(text="📅 Bookings", callback_data="admin_bookings"),
        ],
        [
            InlineKeyboardButton(text="👥 Users", callback_data="admin_users"),
            InlineKeyboardButton(text="🚗 Drivers", callback_data="admin_drivers"),
        ],
        [InlineKeyboardButton(text="🕓 Pending Verification", callback_data="admin_pending")],
    ])


def pending_drivers_keyboard(drivers: list[DriverProfile]) -> InlineKeyboardMarkup:
    """Verify buttons for unverified drivers only; verification is never undone."""
    unverified = [d for d in drivers if not d.is_verified]
    buttons = [
        [InlineKeyboardButton(
            text=f"✅ Verify {driver.name or driver.id} ({driver.city})",
            callback_data=f"admin_verify_{driver.id}",
        )]
        for driver in unverified[:10]
    ]
    if len(unverified) > 1:
        buttons.append([InlineKeyboardButton(text="✅ Verify All", callback_data="admin_verify_all")])
    buttons.append([InlineKeyboardButton(text="🔙 Admin Menu", callback_data="admin_menu")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def back_to_admin_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="🔙 Admin Menu", callback_data="admin_menu")],
    ])
