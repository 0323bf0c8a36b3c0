"""
Guest Driver Registration Bot Handler — 6-step wizard before sign-in.

Flow:
  1. Personal → 2. Documents → 3. Address → 4. Vehicle (optional)
  → 5. Experience → 6. DL photo (required), PAN / Aadhar photos (optional)
  → Review → Submit → sign in → /complete

The wizard itself lives in FSM data (``wizard``); ``field_index`` and
``upload_index`` track the prompt inside the current step.
"""

import logging
from html import escape

from aiogram import Bot, Router, F
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from drivers24.exceptions import ActionInProgress, ValidationFailed
from drivers24.handlers.common import PLEASE_WAIT, header, reply, show_role_selection
from drivers24.keyboards.registration_kb import field_keyboard, retry_keyboard, review_keyboard, upload_keyboard
from drivers24.services.api_client import BackendClient, Ok, Upload
from drivers24.services.registration import OPTIONAL_FILES, REQUIRED_FILES, RegistrationWizard
from drivers24.services.session import Session
from drivers24.services.validators import FIELD_LABELS, is_blank
from drivers24.states.guest_registration import GuestRegistration

router = Router()
logger = logging.getLogger(__name__)

UPLOADS = REQUIRED_FILES + OPTIONAL_FILES
UPLOAD_LABELS = {
    "dlImage": "Driving Licence",
    "panImage": "PAN card",
    "aadharImage": "Aadhar card",
}
FIELD_HINTS = {
    "phoneNumber": "10-digit Indian mobile number",
    "dlNumber": "e.g. MH-12-2020-0012345",
    "panNumber": "e.g. ABCDE1234F",
    "aadharNumber": "12 digits",
    "pincode": "6 digits",
    "experience": "years of driving",
    "salaryExpectation": "₹ per month",
}


async def _load(state: FSMContext) -> tuple[RegistrationWizard, dict]:
    data = await state.get_data()
    return RegistrationWizard.from_dict(data.get("wizard")), data


async def _save(state: FSMContext, wizard: RegistrationWizard, **extra) -> None:
    await state.update_data(wizard=wizard.to_dict(), **extra)


def _skippable(wizard: RegistrationWizard, name: str) -> bool:
    result = wizard.validate_field(name, None)
    return result is None or result.valid


async def _ask_field(target: Message | CallbackQuery, wizard: RegistrationWizard, index: int, error: str | None = None):
    step = wizard.step
    name = step.fields[index]
    text = f"<b>Step {step.number}/{wizard.total_steps}: {step.title}</b>\n\n"
    if error:
        text += f"⚠️ {escape(error)}\n\n"
    text += f"✏️ Enter your <b>{FIELD_LABELS[name].lower()}</b>"
    if name in FIELD_HINTS:
        text += f"\n<i>{FIELD_HINTS[name]}</i>"
    current = wizard.form.get(name)
    if not is_blank(current):
        text += f"\n\nCurrent: <code>{escape(str(current))}</code>"
    can_go_back = index > 0 or step.number > 1
    await reply(target, text, field_keyboard(can_go_back, _skippable(wizard, name)))


async def _ask_upload(target: Message | CallbackQuery, wizard: RegistrationWizard, index: int, error: str | None = None):
    name = UPLOADS[index]
    required = name in REQUIRED_FILES
    text = f"<b>Step {wizard.total_steps}/{wizard.total_steps}: Uploads</b>\n\n"
    if error:
        text += f"⚠️ {escape(error)}\n\n"
    text += f"📸 Send a clear photo of your <b>{UPLOAD_LABELS[name]}</b>"
    text += "" if required else " <i>(optional)</i>"
    if name in wizard.attachments:
        text += "\n\n✅ Already received; send another to replace it."
    await reply(target, text, upload_keyboard(required and name not in wizard.attachments))


async def _show_review(target: Message | CallbackQuery, wizard: RegistrationWizard):
    lines = [header("📋 <b>Review Your Registration</b>")]
    for step in wizard.steps[:-1]:
        lines.append(f"<b>{step.title}</b>")
        for name in step.fields:
            value = wizard.form.get(name)
            lines.append(f"  {FIELD_LABELS[name]}: {escape(str(value)) if not is_blank(value) else '—'}")
    lines.append("<b>Uploads</b>")
    for name in UPLOADS:
        status = "✅ Uploaded" if name in wizard.attachments else ("❌ Missing" if name in REQUIRED_FILES else "Skipped")
        lines.append(f"  {UPLOAD_LABELS[name]}: {status}")
    if wizard.step_error:
        lines.append(f"\n⚠️ {escape(wizard.step_error)}")
    lines.append("\nSubmit your registration?")
    await reply(target, "\n".join(lines), review_keyboard())


async def _finish_field(target: Message | CallbackQuery, state: FSMContext, wizard: RegistrationWizard, index: int):
    """Move to the next field, or try to advance the step once its last field is in."""
    if index + 1 < len(wizard.step.fields):
        await _save(state, wizard, field_index=index + 1)
        await _ask_field(target, wizard, index + 1)
        return

    if not wizard.advance():
        # jump back to the first failing field of this step
        bad = next((i for i, n in enumerate(wizard.step.fields) if n in wizard.field_errors), 0)
        await _save(state, wizard, field_index=bad)
        await _ask_field(target, wizard, bad, wizard.step_error)
        return

    if wizard.is_last_step:
        await state.set_state(GuestRegistration.uploading_documents)
        await _save(state, wizard, field_index=0, upload_index=0)
        await _ask_upload(target, wizard, 0)
        return

    await _save(state, wizard, field_index=0)
    await _ask_field(target, wizard, 0)


async def _next_upload(target: Message | CallbackQuery, state: FSMContext, wizard: RegistrationWizard, index: int):
    if index + 1 < len(UPLOADS):
        await _save(state, wizard, upload_index=index + 1)
        await _ask_upload(target, wizard, index + 1)
        return
    await state.set_state(GuestRegistration.confirm_submission)
    await _save(state, wizard)
    await _show_review(target, wizard)


# ── Entry points ──────────────────────────────────────────

async def _start(target: Message | CallbackQuery, state: FSMContext, session: Session):
    await state.clear()
    wizard = RegistrationWizard()
    await state.set_state(GuestRegistration.entering_field)
    await _save(state, wizard, field_index=0, upload_index=0)

    intro = header("📝 <b>Driver Registration</b>")
    if session.pending_driver_email:
        intro += (
            f"ℹ️ You already have a registration pending for "
            f"<b>{escape(session.pending_driver_email)}</b>.\n"
            "Sign in with that email and send /complete, or register again below.\n\n"
        )
    intro += "Takes about 3 minutes. Keep your licence handy."
    if isinstance(target, CallbackQuery):
        await target.message.edit_text(intro)
        await _ask_field(target.message, wizard, 0)
    else:
        await target.answer(intro)
        await _ask_field(target, wizard, 0)


@router.message(Command("register_driver"))
async def cmd_register_driver(message: Message, state: FSMContext, session: Session):
    await _start(message, state, session)


@router.callback_query(F.data == "register_driver")
async def start_register_driver(callback: CallbackQuery, state: FSMContext, session: Session):
    await callback.answer()
    await _start(callback, state, session)


@router.callback_query(F.data == "reg_cancel")
async def cancel_registration(callback: CallbackQuery, state: FSMContext):
    await state.clear()
    await callback.answer("Registration cancelled")
    await show_role_selection(callback, "Registration cancelled. Nothing was submitted.")


# ── Steps 1–5: text fields ────────────────────────────────

@router.message(GuestRegistration.entering_field)
async def receive_field(message: Message, state: FSMContext):
    wizard, data = await _load(state)
    index = data.get("field_index", 0)
    name = wizard.step.fields[index]
    value = (message.text or "").strip()

    result = wizard.validate_field(name, value)
    if result is not None and not result.valid:
        await _ask_field(message, wizard, index, result.reason)
        return

    wizard.update(name, value)
    await _finish_field(message, state, wizard, index)


@router.callback_query(F.data == "reg_skip", GuestRegistration.entering_field)
async def skip_field(callback: CallbackQuery, state: FSMContext):
    wizard, data = await _load(state)
    index = data.get("field_index", 0)
    name = wizard.step.fields[index]
    if not _skippable(wizard, name):
        await callback.answer(f"{FIELD_LABELS[name]} is required", show_alert=True)
        return
    await callback.answer()
    wizard.update(name, None)
    await _finish_field(callback, state, wizard, index)


# ── Step 6: uploads ───────────────────────────────────────

@router.message(GuestRegistration.uploading_documents, F.photo)
async def receive_photo(message: Message, state: FSMContext):
    """Keep only the Telegram file id; the bytes are fetched at submit time."""
    wizard, data = await _load(state)
    index = data.get("upload_index", 0)
    photo = message.photo[-1]  # Largest size
    wizard.attach(UPLOADS[index], photo.file_id)
    await _next_upload(message, state, wizard, index)


@router.message(GuestRegistration.uploading_documents)
async def upload_invalid(message: Message, state: FSMContext):
    wizard, data = await _load(state)
    await _ask_upload(message, wizard, data.get("upload_index", 0), "Please send a photo.")


@router.callback_query(F.data == "reg_skip_file", GuestRegistration.uploading_documents)
async def skip_upload(callback: CallbackQuery, state: FSMContext):
    wizard, data = await _load(state)
    index = data.get("upload_index", 0)
    name = UPLOADS[index]
    if name in REQUIRED_FILES and name not in wizard.attachments:
        await callback.answer(f"{UPLOAD_LABELS[name]} photo is required", show_alert=True)
        return
    await callback.answer()
    await _next_upload(callback, state, wizard, index)


# ── Navigation ────────────────────────────────────────────

@router.callback_query(F.data == "reg_back")
async def go_back(callback: CallbackQuery, state: FSMContext):
    """One prompt back; crossing a step boundary keeps the entered values."""
    await callback.answer()
    current = await state.get_state()
    wizard, data = await _load(state)

    if current == GuestRegistration.confirm_submission.state:
        await state.set_state(GuestRegistration.uploading_documents)
        index = len(UPLOADS) - 1
        await _save(state, wizard, upload_index=index)
        await _ask_upload(callback, wizard, index)
        return

    if current == GuestRegistration.uploading_documents.state and data.get("upload_index", 0) > 0:
        index = data["upload_index"] - 1
        await _save(state, wizard, upload_index=index)
        await _ask_upload(callback, wizard, index)
        return

    if current == GuestRegistration.uploading_documents.state:
        await state.set_state(GuestRegistration.entering_field)
        wizard.back()
        index = len(wizard.step.fields) - 1
    elif data.get("field_index", 0) > 0:
        index = data["field_index"] - 1
    elif wizard.current_step == 1:
        index = 0
    else:
        wizard.back()
        index = len(wizard.step.fields) - 1

    await _save(state, wizard, field_index=index)
    await _ask_field(callback, wizard, index)


@router.callback_query(F.data == "reg_edit")
async def edit_details(callback: CallbackQuery, state: FSMContext):
    await callback.answer("Starting over — your answers and photos are kept.")
    wizard, _ = await _load(state)
    wizard.current_step = 1
    await state.set_state(GuestRegistration.entering_field)
    await _save(state, wizard, field_index=0, upload_index=0)
    await _ask_field(callback, wizard, 0)


# ── Submit ────────────────────────────────────────────────

async def _download(bot: Bot, wizard: RegistrationWizard) -> dict[str, Upload]:
    files = {}
    for name, file_id in wizard.attachments.items():
        buffer = await bot.download(file_id)
        files[name] = Upload(filename=f"{name}.jpg", content=buffer.getvalue())
    return files


@router.callback_query(F.data == "reg_submit", GuestRegistration.confirm_submission)
async def submit_registration(
    callback: CallbackQuery, state: FSMContext, bot: Bot, api: BackendClient, session: Session,
):
    wizard, _ = await _load(state)

    try:
        async with session.busy("submit_registration"):
            await callback.answer("Submitting...")
            await callback.message.edit_text("⏳ Uploading your documents...")
            files = await _download(bot, wizard)
            result = await wizard.submit(api, files)
    except ActionInProgress:
        await callback.answer(PLEASE_WAIT, show_alert=True)
        return
    except ValidationFailed as e:
        logger.info("Registration blocked locally for %s: %s", callback.from_user.id, e.detail)
        step = wizard.first_invalid_step()
        if step is None:
            # only the required photo is missing
            await state.set_state(GuestRegistration.uploading_documents)
            await _save(state, wizard, upload_index=0)
            await _ask_upload(callback, wizard, 0, e.detail)
            return
        wizard.current_step = step
        bad = next((i for i, n in enumerate(wizard.step.fields) if n in wizard.field_errors), 0)
        await state.set_state(GuestRegistration.entering_field)
        await _save(state, wizard, field_index=bad)
        await _ask_field(callback, wizard, bad, e.detail)
        return

    if isinstance(result, Ok):
        await session.set_pending_email(wizard.pending_email)
        await state.clear()
        await callback.message.edit_text(
            header("🎉 <b>Registration Saved!</b>")
            + f"We saved your details for <b>{escape(wizard.pending_email)}</b>.\n\n"
            "<b>Next:</b> sign in with that same email, then send /complete\n"
            "to turn this registration into your driver profile.",
        )
        return

    await _save(state, wizard)
    await callback.message.edit_text(
        f"❌ <b>Registration failed</b>\n\n{escape(result.reason)}\n\nYour answers are kept.",
        reply_markup=retry_keyboard(),
    )
