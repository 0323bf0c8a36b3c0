"""
Booking lifecycle — legal status transitions and who may trigger them.

    PENDING ──accept (driver)──▶ ACCEPTED ──complete (backend)──▶ COMPLETED
       │
       ├────reject (driver)────▶ REJECTED
       └────cancel (user)──────▶ CANCELLED

From this client's point of view every state except PENDING is terminal:
COMPLETED is set server-side and never initiated here.
"""

from enum import Enum

from drivers24.exceptions import InvalidTransition
from drivers24.schemas import Booking, BookingStatus


class Actor(str, Enum):
    USER = "USER"
    DRIVER = "DRIVER"
    BACKEND = "BACKEND"


class BookingEvent(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    CANCEL = "cancel"
    COMPLETE = "complete"


# (from_status, event) -> (to_status, actor allowed to trigger it)
BOOKING_TRANSITIONS: dict[tuple[BookingStatus, BookingEvent], tuple[BookingStatus, Actor]] = {
    (BookingStatus.PENDING, BookingEvent.ACCEPT): (BookingStatus.ACCEPTED, Actor.DRIVER),
    (BookingStatus.PENDING, BookingEvent.REJECT): (BookingStatus.REJECTED, Actor.DRIVER),
    (BookingStatus.PENDING, BookingEvent.CANCEL): (BookingStatus.CANCELLED, Actor.USER),
    (BookingStatus.ACCEPTED, BookingEvent.COMPLETE): (BookingStatus.COMPLETED, Actor.BACKEND),
}

# Events this client is allowed to send; COMPLETE only ever arrives from the backend.
CLIENT_ACTORS = {Actor.USER, Actor.DRIVER}

RESPONSE_EVENTS = {
    BookingStatus.ACCEPTED: BookingEvent.ACCEPT,
    BookingStatus.REJECTED: BookingEvent.REJECT,
}


def allowed_events(status: BookingStatus, actor: Actor) -> list[BookingEvent]:
    """Events *actor* may trigger from *status*."""
    return [
        event
        for (from_status, event), (_, who) in BOOKING_TRANSITIONS.items()
        if from_status == status and who == actor
    ]


def can_apply(status: BookingStatus, event: BookingEvent, actor: Actor) -> bool:
    target = BOOKING_TRANSITIONS.get((status, event))
    return target is not None and target[1] == actor


def apply(status: BookingStatus, event: BookingEvent, actor: Actor) -> BookingStatus:
    """Return the status reached by *event*, or raise ``InvalidTransition``."""
    status, event, actor = BookingStatus(status), BookingEvent(event), Actor(actor)
    target = BOOKING_TRANSITIONS.get((status, event))
    if target is None or target[1] != actor:
        raise InvalidTransition(
            f"Invalid transition: {actor.value} cannot {event.value} "
            f"a {status.value} booking"
        )
    return target[0]


def is_terminal(status: BookingStatus) -> bool:
    """Terminal from the client's perspective: nothing this client may send."""
    return not any(allowed_events(status, actor) for actor in CLIENT_ACTORS)


def response_event(status: BookingStatus) -> BookingEvent:
    """Map a driver's ACCEPTED/REJECTED response onto its event."""
    try:
        return RESPONSE_EVENTS[BookingStatus(status)]
    except (KeyError, ValueError):
        raise InvalidTransition(f"Invalid transition: drivers can only accept or reject, not {status}") from None


def apply_response(booking: Booking, status: BookingStatus, driver_response: str | None = None) -> Booking:
    """Driver accepts/rejects *booking*; returns an updated copy."""
    new_status = apply(booking.status, response_event(status), Actor.DRIVER)
    return booking.model_copy(update={
        "status": new_status,
        "driver_response": driver_response or booking.driver_response,
    })


def apply_cancel(booking: Booking) -> Booking:
    """Requester cancels *booking*; returns an updated copy."""
    new_status = apply(booking.status, BookingEvent.CANCEL, Actor.USER)
    return booking.model_copy(update={"status": new_status})


def can_view_full_info(status: BookingStatus) -> bool:
    """Full driver contact details may only be requested once ACCEPTED."""
    return BookingStatus(status) == BookingStatus.ACCEPTED


def available_actions(booking: Booking, actor: Actor) -> list[str]:
    """Controls to offer for *booking*: event names plus ``contact`` when disclosed."""
    actions = [event.value for event in allowed_events(booking.status, actor)]
    if actor == Actor.USER and can_view_full_info(booking.status):
        actions.append("contact")
    return actions
