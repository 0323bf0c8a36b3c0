"""FSM states for the guest driver registration flow."""

from aiogram.fsm.state import StatesGroup, State


class GuestRegistration(StatesGroup):
    """Wizard progress itself lives in FSM data; these states only route input."""
    entering_field = State()
    uploading_documents = State()
    confirm_submission = State()
