"""Inline keyboards for the guest driver registration wizard."""

from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton


def field_keyboard(can_go_back: bool, skippable: bool) -> InlineKeyboardMarkup:
    buttons = []
    if skippable:
        buttons.append([InlineKeyboardButton(text="⏩ Skip", callback_data="reg_skip")])
    if can_go_back:
        buttons.append([InlineKeyboardButton(text="◀️ Back", callback_data="reg_back")])
    buttons.append([InlineKeyboardButton(text="❌ Cancel Registration", callback_data="reg_cancel")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def upload_keyboard(required: bool) -> InlineKeyboardMarkup:
    buttons = []
    if not required:
        buttons.append([InlineKeyboardButton(text="⏩ Skip", callback_data="reg_skip_file")])
    buttons.append([InlineKeyboardButton(text="◀️ Back", callback_data="reg_back")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def review_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [
            InlineKeyboardButton(text="✅ Submit Registration", callback_data="reg_submit"),
            InlineKeyboardButton(text="✏️ Edit Details", callback_data="reg_edit"),
        ],
        [InlineKeyboardButton(text="◀️ Back", callback_data="reg_back")],
    ])


def retry_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="🔄 Try Again", callback_data="reg_submit")],
        [InlineKeyboardButton(text="✏️ Edit Details", callback_data="reg_edit")],
    ])
