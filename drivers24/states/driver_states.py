"""FSM states for driver flows."""

from aiogram.fsm.state import StatesGroup, State


class DriverProfileFlow(StatesGroup):
    entering_field = State()
    confirm = State()


class RespondFlow(StatesGroup):
    """Driver typing an optional note while accepting/rejecting a request."""
    waiting_note = State()
