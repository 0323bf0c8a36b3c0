"""FSM states for user flows."""

from aiogram.fsm.state import StatesGroup, State


class RoleSelection(StatesGroup):
    choosing_role = State()
    waiting_city = State()


class SearchFlow(StatesGroup):
    waiting_city = State()
    waiting_filter_value = State()


class BookingRequest(StatesGroup):
    """Request-a-driver form; every field is optional."""
    waiting_pickup = State()
    waiting_drop = State()
    waiting_date = State()
    waiting_notes = State()
    confirm = State()
