"""Shared rendering helpers and role routing for the bot handlers."""

import logging
from html import escape

from aiogram.exceptions import TelegramBadRequest
from aiogram.types import CallbackQuery, InlineKeyboardMarkup, Message

from drivers24.keyboards.admin_kb import admin_menu_keyboard
from drivers24.keyboards.driver_kb import driver_main_menu_keyboard
from drivers24.keyboards.user_kb import role_keyboard, user_main_menu_keyboard
from drivers24.schemas import Booking, DriverProfile, Role, UserData
from drivers24.services.api_client import BackendClient, Err, ErrorKind, Ok
from drivers24.services.auth import require_role, resolve_user
from drivers24.services.identity import clerk_id_for
from drivers24.services.session import Session

logger = logging.getLogger(__name__)

DIVIDER = "━━━━━━━━━━━━━━━━━━━━━━"
PLEASE_WAIT = "⏳ Please wait, still working on your last request..."


async def safe_edit(callback: CallbackQuery, text: str, **kwargs):
    """Edit message, silently ignoring 'message not modified' errors."""
    try:
        await callback.message.edit_text(text, **kwargs)
    except TelegramBadRequest as e:
        if "message is not modified" not in str(e):
            raise


async def reply(target: Message | CallbackQuery, text: str, reply_markup: InlineKeyboardMarkup | None = None):
    """Edit in place for callbacks, send a new message for text input."""
    if isinstance(target, CallbackQuery):
        await safe_edit(target, text, reply_markup=reply_markup)
    else:
        await target.answer(text, reply_markup=reply_markup)


def header(title: str) -> str:
    return f"{DIVIDER}\n{title}\n{DIVIDER}\n\n"


def error_text(err: Err) -> str:
    if err.kind == ErrorKind.TRANSPORT:
        return f"⚠️ {escape(err.reason)}"
    return f"❌ {escape(err.reason)}"


# ── Formatting ────────────────────────────────────────────

def format_driver(driver: DriverProfile, full: bool = False) -> str:
    """Driver card; ``full`` adds contact details released after acceptance."""
    verified = "✅ Verified" if driver.is_verified else "🕓 Not yet verified"
    available = "🟢 Available" if driver.availability else "🔴 Unavailable"
    lines = [
        f"👤 <b>{escape(driver.name)}</b>",
        f"🏙️ {escape(driver.city)}" + (f", {escape(driver.state)}" if driver.state else ""),
        f"{verified} · {available}",
    ]
    if driver.experience is not None:
        lines.append(f"🧭 Experience: {driver.experience} years")
    if driver.salary_expectation is not None:
        lines.append(f"💰 Expects: ₹{driver.salary_expectation}/month")
    if driver.vehicle_type or driver.vehicle_model:
        vehicle = " ".join(v for v in (driver.vehicle_type, driver.vehicle_model) if v)
        lines.append(f"🚗 Vehicle: {escape(vehicle)}")
    lines.append(f"📍 Operates around: {escape(driver.operating_address)}")
    if full:
        lines.append("")
        lines.append("<b>Contact details</b>")
        lines.append(f"📞 {escape(driver.phone_number)}")
        lines.append(f"🏠 {escape(driver.permanent_address)}")
        if driver.pincode:
            lines.append(f"📮 {escape(driver.pincode)}")
        if driver.vehicle_number:
            lines.append(f"🔢 Plate: <code>{escape(driver.vehicle_number)}</code>")
        if driver.user and driver.user.email:
            lines.append(f"📧 {escape(driver.user.email)}")
    return "\n".join(lines)


def format_booking(booking: Booking) -> str:
    lines = [f"📋 Status: <b>{booking.status.value}</b>"]
    if booking.driver and booking.driver.name:
        lines.append(f"🚗 Driver: {escape(booking.driver.name)}")
    if booking.user and booking.user.email:
        name = " ".join(p for p in (booking.user.first_name, booking.user.last_name) if p)
        lines.append(f"🙋 Requested by: {escape(name or booking.user.email)}")
    if booking.pickup_location:
        lines.append(f"📍 Pickup: {escape(booking.pickup_location)}")
    if booking.drop_location:
        lines.append(f"🏁 Drop: {escape(booking.drop_location)}")
    if booking.scheduled_date:
        lines.append(f"📅 Date: {escape(booking.scheduled_date)}")
    if booking.notes:
        lines.append(f"📝 Notes: {escape(booking.notes)}")
    if booking.driver_response:
        lines.append(f"💬 Driver says: {escape(booking.driver_response)}")
    if booking.created_at:
        lines.append(f"🕐 Requested: {booking.created_at.strftime('%d %b %Y, %I:%M %p')}")
    return "\n".join(lines)


# ── Role routing ──────────────────────────────────────────

async def show_role_selection(target: Message | CallbackQuery, reason: str | None = None):
    text = header("🚗 <b>Welcome to Drivers24</b>")
    if reason:
        text += f"{escape(reason)}\n\n"
    text += "How do you want to use Drivers24?"
    await reply(target, text, role_keyboard())


async def show_menu_for(target: Message | CallbackQuery, api: BackendClient, session: Session, user: UserData):
    name = escape(user.display_name)
    if user.role == Role.ADMIN:
        await reply(target, header("🛡️ <b>Admin Dashboard</b>") + f"Welcome, <b>{name}</b>!", admin_menu_keyboard())
        return

    if user.role == Role.DRIVER:
        profile = await api.get_my_driver_profile(session.token)
        if isinstance(profile, Ok):
            status = "🟢 Available" if profile.value.availability else "🔴 Unavailable"
            verified = "✅ Verified" if profile.value.is_verified else "🕓 Pending verification"
            await reply(
                target,
                header("🚗 <b>Driver Dashboard</b>") + f"Welcome, <b>{name}</b>!\n\n{status} · {verified}",
                driver_main_menu_keyboard(profile.value.availability),
            )
        elif profile.kind == ErrorKind.TRANSPORT:
            await reply(target, error_text(profile))
        else:
            await reply(
                target,
                header("🚗 <b>Driver Dashboard</b>") + f"Welcome, <b>{name}</b>!\n\n"
                "You don't have a driver profile yet.",
                driver_main_menu_keyboard(has_profile=False),
            )
        return

    city = f" in <b>{escape(user.city)}</b>" if user.city else ""
    await reply(
        target,
        header("🔍 <b>Drivers24</b>") + f"Welcome, <b>{name}</b>!\n\nFind verified drivers{city}.",
        user_main_menu_keyboard(),
    )


async def show_home(target: Message | CallbackQuery, api: BackendClient, session: Session):
    """Route to the menu for the backend's current view of the user's role."""
    result = await resolve_user(api, session, clerk_id_for(target.from_user.id))
    if isinstance(result, Ok):
        await show_menu_for(target, api, session, result.value)
    elif result.kind == ErrorKind.AUTH:
        await show_role_selection(target)
    else:
        await reply(target, error_text(result))


async def gate(
    target: Message | CallbackQuery, api: BackendClient, session: Session, *roles: Role,
) -> UserData | None:
    """Re-check the role with the backend; on failure render the fallback and return None."""
    result = await require_role(api, session, clerk_id_for(target.from_user.id), *roles)
    if isinstance(result, Ok):
        return result.value
    if result.kind == ErrorKind.AUTH:
        logger.info("Gate refused user %s: %s", target.from_user.id, result.reason)
        await show_home(target, api, session)
    else:
        await reply(target, error_text(result))
    return None


async def handle_err(target: Message | CallbackQuery, api: BackendClient, session: Session, err: Err, markup=None):
    """Render a failed call: session problems re-route, everything else is shown in place."""
    if err.kind == ErrorKind.AUTH:
        logger.warning("Session rejected for %s: %s", target.from_user.id, err.reason)
        await show_home(target, api, session)
        return
    await reply(target, error_text(err), markup)
