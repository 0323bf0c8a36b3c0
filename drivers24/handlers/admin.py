"""
Admin Bot Handler — dashboard overview, analytics and driver verification.

Analytics payloads are rendered as-is from the backend; nothing is computed
locally.
"""

import logging
from html import escape

from aiogram import Router, F
from aiogram.types import CallbackQuery

from drivers24.exceptions import ActionInProgress
from drivers24.handlers.common import PLEASE_WAIT, gate, handle_err, header
from drivers24.keyboards.admin_kb import admin_menu_keyboard, back_to_admin_keyboard, pending_drivers_keyboard
from drivers24.keyboards.user_kb import STATUS_EMOJI
from drivers24.schemas import DriverProfile, Role
from drivers24.services.api_client import BackendClient, Err
from drivers24.services.session import Session

router = Router()
logger = logging.getLogger(__name__)


def _person(user: dict | None) -> str:
    if not user:
        return "Unknown"
    name = " ".join(p for p in (user.get("firstName"), user.get("lastName")) if p)
    return escape(name or user.get("email") or "Unknown")


def _counts(title: str, counts: dict) -> list[str]:
    lines = [f"\n<b>{title}</b>"]
    lines += [f"  {escape(str(key))}: <b>{value}</b>" for key, value in counts.items()]
    return lines


def format_overview(data: dict) -> str:
    stats = data.get("stats") or {}
    lines = [
        header("📊 <b>Dashboard Overview</b>").rstrip(),
        f"👥 Users: <b>{stats.get('totalUsers', 0)}</b>",
        f"🚗 Drivers: <b>{stats.get('totalDrivers', 0)}</b>"
        f" (✅ {stats.get('verifiedDrivers', 0)} · 🕓 {stats.get('pendingVerification', 0)})",
        f"📅 Bookings: <b>{stats.get('totalBookings', 0)}</b>"
        f" (⏳ {stats.get('pendingBookings', 0)} · ✅ {stats.get('acceptedBookings', 0)})",
    ]
    recent = data.get("recentActivity") or {}
    if recent.get("bookings"):
        lines.append("\n<b>Recent bookings</b>")
        for booking in recent["bookings"][:5]:
            driver = (booking.get("driver") or {}).get("name") or "Driver"
            status = booking.get("status", "")
            emoji = STATUS_EMOJI.get(status, "📦")
            lines.append(f"  {emoji} {escape(driver)} ← {_person(booking.get('user'))}")
    if recent.get("users"):
        lines.append("\n<b>Recent users</b>")
        for user in recent["users"][:5]:
            lines.append(f"  {escape(user.get('email') or '')} · {escape(str(user.get('role') or '—'))}")
    return "\n".join(lines)


def format_booking_analytics(data: dict) -> str:
    overview = data.get("overview") or {}
    lines = [
        header("📅 <b>Booking Analytics</b>").rstrip(),
        f"Total: <b>{overview.get('totalBookings', 0)}</b>",
        f"This month: <b>{overview.get('bookingsThisMonth', 0)}</b>",
        f"Today: <b>{overview.get('bookingsToday', 0)}</b>",
    ]
    if overview.get("bookingsByStatus"):
        lines += _counts("By status", overview["bookingsByStatus"])
    if data.get("topDrivers"):
        lines.append("\n<b>Top drivers</b>")
        for i, item in enumerate(data["topDrivers"][:10], 1):
            driver = item.get("driver") or {}
            lines.append(
                f"  {i}. {escape(driver.get('name') or 'Unknown')} ({escape(driver.get('city') or 'N/A')})"
                f" · {item.get('bookingCount', 0)} bookings"
            )
    return "\n".join(lines)


def format_user_analytics(data: dict) -> str:
    overview = data.get("overview") or {}
    lines = [
        header("👥 <b>User Analytics</b>").rstrip(),
        f"Total: <b>{overview.get('totalUsers', 0)}</b>",
        f"This month: <b>{overview.get('usersThisMonth', 0)}</b>",
        f"Today: <b>{overview.get('usersToday', 0)}</b>",
    ]
    if overview.get("usersByRole"):
        lines += _counts("By role", overview["usersByRole"])
    if data.get("activeUsers"):
        lines.append("\n<b>Most active</b>")
        for i, item in enumerate(data["activeUsers"][:10], 1):
            lines.append(f"  {i}. {_person(item.get('user'))} · {item.get('bookingCount', 0)} bookings")
    return "\n".join(lines)


def format_driver_analytics(data: dict) -> str:
    overview = data.get("overview") or {}
    lines = [
        header("🚗 <b>Driver Analytics</b>").rstrip(),
        f"Total: <b>{overview.get('totalDrivers', 0)}</b>",
        f"✅ Verified: <b>{overview.get('verifiedDrivers', 0)}</b>",
        f"🟢 Available: <b>{overview.get('availableDrivers', 0)}</b>",
        f"🕓 Pending verification: <b>{overview.get('pendingVerification', 0)}</b>",
    ]
    if overview.get("averageSalaryExpectation") is not None:
        lines.append(f"💰 Avg. salary expectation: ₹{round(overview['averageSalaryExpectation']):,}")
    if overview.get("averageExperience") is not None:
        lines.append(f"🧭 Avg. experience: {overview['averageExperience']:.1f} years")
    if data.get("driversByCity"):
        lines += _counts("By city", {i.get("city"): i.get("count", 0) for i in data["driversByCity"][:10]})
    if data.get("driversByVehicle"):
        lines += _counts("By vehicle", {i.get("vehicleType"): i.get("count", 0) for i in data["driversByVehicle"]})
    if data.get("topPerformers"):
        lines.append("\n<b>Top performers</b>")
        for i, item in enumerate(data["topPerformers"][:10], 1):
            driver = item.get("driver") or {}
            lines.append(f"  {i}. {escape(driver.get('name') or 'Unknown')} · {item.get('acceptedBookings', 0)} accepted")
    return "\n".join(lines)


REPORTS = {
    "admin_overview": ("get_dashboard_overview", format_overview),
    "admin_bookings": ("get_booking_analytics", format_booking_analytics),
    "admin_users": ("get_user_analytics", format_user_analytics),
    "admin_drivers": ("get_driver_analytics", format_driver_analytics),
}


def format_pending(drivers: list[DriverProfile]) -> str:
    unverified = [d for d in drivers if not d.is_verified]
    text = header("🕓 <b>Pending Verification</b>")
    if not unverified:
        return text + "🎉 No drivers waiting for verification."
    lines = [f"{len(unverified)} driver(s) waiting:\n"]
    for driver in unverified[:10]:
        line = f"• <b>{escape(driver.name or driver.id)}</b> · {escape(driver.city)} · 🪪 <code>{escape(driver.dl_number)}</code>"
        if driver.user and driver.user.email:
            line += f"\n  📧 {escape(driver.user.email)}"
        lines.append(line)
    return text + "\n".join(lines)


@router.callback_query(F.data == "admin_menu")
async def admin_menu(callback: CallbackQuery, api: BackendClient, session: Session):
    await callback.answer()
    user = await gate(callback, api, session, Role.ADMIN)
    if user is None:
        return
    await callback.message.edit_text(
        header("🛡️ <b>Admin Dashboard</b>") + f"Welcome, <b>{escape(user.display_name)}</b>!",
        reply_markup=admin_menu_keyboard(),
    )


@router.callback_query(F.data.in_(REPORTS.keys()))
async def show_report(callback: CallbackQuery, api: BackendClient, session: Session):
    await callback.answer("Loading...")
    if await gate(callback, api, session, Role.ADMIN) is None:
        return

    method, render = REPORTS[callback.data]
    result = await getattr(api, method)(session.token)
    if isinstance(result, Err):
        await handle_err(callback, api, session, result, back_to_admin_keyboard())
        return
    await callback.message.edit_text(render(result.value or {}), reply_markup=back_to_admin_keyboard())


async def _show_pending(callback: CallbackQuery, api: BackendClient, session: Session, notice: str = ""):
    result = await api.get_pending_drivers(session.token)
    if isinstance(result, Err):
        await handle_err(callback, api, session, result, back_to_admin_keyboard())
        return
    await callback.message.edit_text(
        (notice + "\n\n" if notice else "") + format_pending(result.value),
        reply_markup=pending_drivers_keyboard(result.value),
    )


@router.callback_query(F.data == "admin_pending")
async def show_pending(callback: CallbackQuery, api: BackendClient, session: Session):
    await callback.answer("Loading...")
    if await gate(callback, api, session, Role.ADMIN) is None:
        return
    await _show_pending(callback, api, session)


@router.callback_query(F.data == "admin_verify_all")
async def verify_all(callback: CallbackQuery, api: BackendClient, session: Session):
    """Bulk-verify every driver currently listed as pending."""
    try:
        async with session.busy("verify_drivers"):
            await callback.answer("Verifying...")
            if await gate(callback, api, session, Role.ADMIN) is None:
                return
            pending = await api.get_pending_drivers(session.token)
            if isinstance(pending, Err):
                await handle_err(callback, api, session, pending, back_to_admin_keyboard())
                return
            ids = [d.id for d in pending.value if not d.is_verified]
            if not ids:
                await _show_pending(callback, api, session)
                return
            result = await api.bulk_verify_drivers(session.token, ids)
    except ActionInProgress:
        await callback.answer(PLEASE_WAIT, show_alert=True)
        return

    if isinstance(result, Err):
        await handle_err(callback, api, session, result, back_to_admin_keyboard())
        return
    logger.info("Admin %s bulk-verified %d drivers", callback.from_user.id, len(ids))
    await _show_pending(callback, api, session, f"✅ {escape(result.message or f'{len(ids)} drivers verified')}")


@router.callback_query(F.data.startswith("admin_verify_"))
async def verify_driver(callback: CallbackQuery, api: BackendClient, session: Session):
    driver_id = callback.data.replace("admin_verify_", "")
    try:
        async with session.busy("verify_drivers"):
            await callback.answer("Verifying...")
            if await gate(callback, api, session, Role.ADMIN) is None:
                return
            result = await api.verify_driver(session.token, driver_id)
    except ActionInProgress:
        await callback.answer(PLEASE_WAIT, show_alert=True)
        return

    if isinstance(result, Err):
        await handle_err(callback, api, session, result, back_to_admin_keyboard())
        return
    logger.info("Admin %s verified driver %s", callback.from_user.id, driver_id)
    await _show_pending(callback, api, session, "✅ Driver verified successfully")
