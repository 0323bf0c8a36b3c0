"""Tests for inline keyboards and message formatting."""

from drivers24.handlers.admin import format_driver_analytics, format_overview, format_pending
from drivers24.handlers.common import format_booking, format_driver
from drivers24.keyboards.admin_kb import pending_drivers_keyboard
from drivers24.keyboards.driver_kb import driver_main_menu_keyboard, request_actions_keyboard
from drivers24.keyboards.user_kb import search_results_keyboard, user_booking_actions_keyboard
from drivers24.schemas import Booking, BookingStatus, DriverProfile, Pagination
from drivers24.services import booking_state
from drivers24.services.api_client import Ok
from drivers24.services.search import SearchState


def _callbacks(markup) -> list[str]:
    return [button.callback_data for row in markup.inline_keyboard for button in row]


def _driver(driver_id="d1", **kwargs) -> DriverProfile:
    defaults = dict(id=driver_id, name="Ravi Kumar", city="Mumbai", phone_number="9876543210",
                    operating_address="Andheri West", permanent_address="12 Park Street, Pune")
    defaults.update(kwargs)
    return DriverProfile(**defaults)


def test_accept_reject_gone_after_accepting():
    """Accepted request: no Accept/Reject for the driver, Contact Info for the user."""
    pending = Booking(id="b1", driver=_driver())
    assert {"drv_accept_b1", "drv_reject_b1"} <= set(_callbacks(request_actions_keyboard(pending)))
    assert "contact_b1" not in _callbacks(user_booking_actions_keyboard(pending))
    assert "cancel_b1" in _callbacks(user_booking_actions_keyboard(pending))

    accepted = booking_state.apply_response(pending, BookingStatus.ACCEPTED, "On my way")
    driver_buttons = _callbacks(request_actions_keyboard(accepted))
    user_buttons = _callbacks(user_booking_actions_keyboard(accepted))
    assert "drv_accept_b1" not in driver_buttons
    assert "drv_reject_b1" not in driver_buttons
    assert "contact_b1" in user_buttons
    assert "cancel_b1" not in user_buttons


def test_pagination_buttons_only_when_reachable():
    state = SearchState()
    query = state.new_search("Mumbai")
    state.apply_result(query, Ok([_driver("a"), _driver("b")], pagination=Pagination(total_count=25, total_pages=3)))

    first = _callbacks(search_results_keyboard(state))
    assert "search_page_2" in first
    assert "search_page_0" not in first
    assert first[:2] == ["driver_a", "driver_b"]

    state.apply_result(state.page_query(3), Ok([_driver("z")], pagination=Pagination(page=3, total_count=25, total_pages=3)))
    last = _callbacks(search_results_keyboard(state))
    assert "search_page_2" in last
    assert "search_page_4" not in last


def test_single_page_has_no_navigation():
    state = SearchState()
    state.apply_result(state.new_search("Mumbai"), Ok([]))
    assert not any(cb.startswith("search_page_") for cb in _callbacks(search_results_keyboard(state)))


def test_driver_menu_shows_one_availability_toggle():
    assert "drv_off" in _callbacks(driver_main_menu_keyboard(True))
    assert "drv_on" not in _callbacks(driver_main_menu_keyboard(True))
    assert _callbacks(driver_main_menu_keyboard(has_profile=False)) == ["drv_profile"]


def test_pending_keyboard_skips_verified_drivers():
    drivers = [_driver("a"), _driver("b", is_verified=True), _driver("c")]
    callbacks = _callbacks(pending_drivers_keyboard(drivers))
    assert "admin_verify_a" in callbacks
    assert "admin_verify_b" not in callbacks
    assert "admin_verify_all" in callbacks


def test_contact_details_only_in_full_card():
    driver = _driver(vehicle_number="MH01AB1234")
    assert "9876543210" not in format_driver(driver)
    full = format_driver(driver, full=True)
    assert "9876543210" in full
    assert "MH01AB1234" in full


def test_format_escapes_html():
    booking = Booking(id="b1", notes="<b>asap</b>", driver=_driver(name="A & B"))
    text = format_booking(booking)
    assert "&lt;b&gt;asap&lt;/b&gt;" in text
    assert "A &amp; B" in text


def test_admin_reports_render_backend_numbers():
    overview = format_overview({
        "stats": {"totalUsers": 40, "totalDrivers": 12, "verifiedDrivers": 9, "pendingVerification": 3,
                  "totalBookings": 70, "pendingBookings": 5, "acceptedBookings": 50},
        "recentActivity": {"bookings": [{"status": "PENDING", "driver": {"name": "Ravi"},
                                         "user": {"firstName": "Asha"}}], "users": []},
    })
    assert "<b>40</b>" in overview
    assert "Ravi ← Asha" in overview

    drivers = format_driver_analytics({
        "overview": {"totalDrivers": 12, "averageSalaryExpectation": 21500.4, "averageExperience": 4.25},
        "driversByCity": [{"city": "Pune", "count": 7}],
    })
    assert "₹21,500" in drivers
    assert "4.2 years" in drivers or "4.3 years" in drivers
    assert "Pune: <b>7</b>" in drivers


def test_format_pending_empty():
    assert "No drivers waiting" in format_pending([_driver(is_verified=True)])
