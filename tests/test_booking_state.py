"""Tests for the booking status state machine."""

import pytest

from drivers24.exceptions import InvalidTransition
from drivers24.schemas import Booking, BookingStatus
from drivers24.services import booking_state
from drivers24.services.booking_state import Actor, BookingEvent


def _booking(status=BookingStatus.PENDING, **kwargs) -> Booking:
    return Booking(id="b1", status=status, **kwargs)


def test_driver_accepts_pending():
    """PENDING → accept → ACCEPTED."""
    assert booking_state.apply(BookingStatus.PENDING, BookingEvent.ACCEPT, Actor.DRIVER) == BookingStatus.ACCEPTED


def test_no_further_client_transition_after_accept():
    status = booking_state.apply(BookingStatus.PENDING, BookingEvent.ACCEPT, Actor.DRIVER)
    for event in (BookingEvent.ACCEPT, BookingEvent.REJECT, BookingEvent.CANCEL):
        for actor in (Actor.USER, Actor.DRIVER):
            with pytest.raises(InvalidTransition):
                booking_state.apply(status, event, actor)


@pytest.mark.parametrize("status", [BookingStatus.REJECTED, BookingStatus.CANCELLED, BookingStatus.COMPLETED])
def test_nothing_leaves_a_terminal_state(status):
    assert booking_state.is_terminal(status)
    for event in BookingEvent:
        for actor in Actor:
            assert not booking_state.can_apply(status, event, actor)


def test_only_driver_may_accept_and_only_user_may_cancel():
    with pytest.raises(InvalidTransition):
        booking_state.apply(BookingStatus.PENDING, BookingEvent.ACCEPT, Actor.USER)
    with pytest.raises(InvalidTransition):
        booking_state.apply(BookingStatus.PENDING, BookingEvent.CANCEL, Actor.DRIVER)
    assert booking_state.apply("PENDING", "cancel", "USER") == BookingStatus.CANCELLED


def test_complete_is_backend_only():
    assert booking_state.apply(BookingStatus.ACCEPTED, BookingEvent.COMPLETE, Actor.BACKEND) == BookingStatus.COMPLETED
    assert not booking_state.can_apply(BookingStatus.ACCEPTED, BookingEvent.COMPLETE, Actor.DRIVER)


def test_apply_response_updates_status_and_note():
    """Accepting with a note returns an updated copy; the original is untouched."""
    booking = _booking()
    updated = booking_state.apply_response(booking, BookingStatus.ACCEPTED, "On my way")
    assert updated.status == BookingStatus.ACCEPTED
    assert updated.driver_response == "On my way"
    assert booking.status == BookingStatus.PENDING


def test_apply_response_rejects_non_response_status():
    with pytest.raises(InvalidTransition):
        booking_state.apply_response(_booking(), BookingStatus.CANCELLED)


def test_apply_response_twice_is_rejected():
    accepted = booking_state.apply_response(_booking(), BookingStatus.ACCEPTED)
    with pytest.raises(InvalidTransition):
        booking_state.apply_response(accepted, BookingStatus.REJECTED)


def test_apply_cancel_only_from_pending():
    assert booking_state.apply_cancel(_booking()).status == BookingStatus.CANCELLED
    with pytest.raises(InvalidTransition):
        booking_state.apply_cancel(_booking(BookingStatus.ACCEPTED))


def test_available_actions():
    """Accept/Reject only while PENDING; contact only once ACCEPTED."""
    pending = _booking()
    assert booking_state.available_actions(pending, Actor.DRIVER) == ["accept", "reject"]
    assert booking_state.available_actions(pending, Actor.USER) == ["cancel"]

    accepted = booking_state.apply_response(pending, BookingStatus.ACCEPTED, "On my way")
    assert booking_state.available_actions(accepted, Actor.DRIVER) == []
    assert booking_state.available_actions(accepted, Actor.USER) == ["contact"]


def test_full_info_only_when_accepted():
    assert booking_state.can_view_full_info(BookingStatus.ACCEPTED)
    for status in (BookingStatus.PENDING, BookingStatus.REJECTED, BookingStatus.CANCELLED, BookingStatus.COMPLETED):
        assert not booking_state.can_view_full_info(status)
