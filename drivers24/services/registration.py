"""
Guest driver registration wizard — 6-step guided application.

Flow:
  1. Personal (first/last name, email, phone) → 2. Documents (DL, PAN, Aadhar)
  → 3. Address → 4. Vehicle (optional) → 5. Experience & salary
  → 6. Uploads & review → submit

The wizard is a plain object: it owns the step index, the accumulated field
map and the last validation errors, and knows nothing about rendering. The
bot keeps it in FSM storage via ``to_dict``/``from_dict``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from drivers24.exceptions import ActionInProgress, ValidationFailed
from drivers24.services.api_client import BackendClient, Ok, Result, Upload
from drivers24.services.validators import (
    ValidationResult,
    Validator,
    is_blank,
    normalize_aadhar,
    normalize_document,
    normalize_int,
    normalize_phone,
    optional,
    validate_aadhar_number,
    validate_city,
    validate_dl_number,
    validate_email,
    validate_experience,
    validate_fields,
    validate_first_name,
    validate_last_name,
    validate_operating_address,
    validate_pan_number,
    validate_permanent_address,
    validate_phone,
    validate_pincode,
    validate_rc_number,
    validate_salary_expectation,
    validate_state,
    validate_vehicle_number,
)

logger = logging.getLogger(__name__)

DL_IMAGE_REQUIRED = "DL image is required"


@dataclass(frozen=True)
class WizardStep:
    number: int
    title: str
    fields: tuple[str, ...]
    validators: dict[str, Validator] = field(default_factory=dict)


REGISTRATION_STEPS: tuple[WizardStep, ...] = (
    WizardStep(
        1, "Personal Info",
        ("firstName", "lastName", "email", "phoneNumber"),
        {
            "firstName": validate_first_name,
            "lastName": validate_last_name,
            "email": validate_email,
            "phoneNumber": validate_phone,
        },
    ),
    WizardStep(
        2, "Documents",
        ("dlNumber", "panNumber", "aadharNumber"),
        {
            "dlNumber": validate_dl_number,
            "panNumber": validate_pan_number,
            "aadharNumber": validate_aadhar_number,
        },
    ),
    WizardStep(
        3, "Address",
        ("permanentAddress", "operatingAddress", "city", "state", "pincode"),
        {
            "permanentAddress": validate_permanent_address,
            "operatingAddress": validate_operating_address,
            "city": validate_city,
            "state": validate_state,
            "pincode": validate_pincode,
        },
    ),
    WizardStep(
        4, "Vehicle",
        ("rcNumber", "vehicleType", "vehicleModel", "vehicleNumber"),
        {
            "rcNumber": optional("rcNumber", validate_rc_number),
            "vehicleNumber": optional("vehicleNumber", validate_vehicle_number),
        },
    ),
    WizardStep(
        5, "Experience",
        ("experience", "salaryExpectation"),
        {
            "experience": validate_experience,
            "salaryExpectation": validate_salary_expectation,
        },
    ),
    WizardStep(6, "Uploads & Review", ()),
)

REQUIRED_FILES = ("dlImage",)
OPTIONAL_FILES = ("panImage", "aadharImage")

_DOCUMENT_FIELDS = ("dlNumber", "panNumber", "rcNumber", "vehicleNumber")
_INT_FIELDS = ("experience", "salaryExpectation")


class RegistrationWizard:
    """Step-gated form controller for guest driver pre-registration."""

    steps = REGISTRATION_STEPS

    def __init__(
        self,
        form: dict | None = None,
        current_step: int = 1,
        attachments: dict | None = None,
    ):
        self.form: dict[str, Any] = dict(form or {})
        self.current_step = self._clamp(current_step)
        self.attachments: dict[str, str] = dict(attachments or {})
        self.step_error: str | None = None
        self.field_errors: dict[str, str] = {}
        self.submitting = False
        self.pending_email: str | None = None

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def step(self) -> WizardStep:
        return self.steps[self.current_step - 1]

    @property
    def is_last_step(self) -> bool:
        return self.current_step == self.total_steps

    def _clamp(self, index: int) -> int:
        return min(max(index, 1), len(self.steps))

    # ── Field updates ─────────────────────────────────────

    def update(self, name: str, value: Any) -> None:
        self.form[name] = value
        self.field_errors.pop(name, None)

    def attach(self, name: str, reference: str | None) -> None:
        """Remember an uploaded file reference (e.g. a Telegram file id)."""
        if reference is None:
            self.attachments.pop(name, None)
        else:
            self.attachments[name] = reference
            self.field_errors.pop(name, None)

    def validate_field(self, name: str, value: Any) -> ValidationResult | None:
        """Validate a single field of the current step; None when it has no validator."""
        validator = self.step.validators.get(name)
        if validator is None:
            return None
        return validator(value)

    # ── Navigation ────────────────────────────────────────

    def can_advance(self, step: int | None = None, form_state: dict | None = None) -> list[ValidationResult]:
        """Failures of every validator registered to *step*; empty means advance is allowed."""
        number = self._clamp(step if step is not None else self.current_step)
        values = self.form if form_state is None else form_state
        return validate_fields(values, self.steps[number - 1].validators)

    def _record(self, failures: list[ValidationResult]) -> None:
        self.step_error = failures[0].reason if failures else None
        self.field_errors = {f.field: f.reason for f in failures if f.field and f.reason}

    def advance(self) -> bool:
        """Move forward if the current step validates; returns whether it moved."""
        failures = self.can_advance()
        self._record(failures)
        if failures:
            return False
        self.current_step = self._clamp(self.current_step + 1)
        return True

    def back(self) -> None:
        self.step_error = None
        self.field_errors = {}
        self.current_step = self._clamp(self.current_step - 1)

    def validate_all(self, form_state: dict | None = None) -> list[ValidationResult]:
        failures = []
        for step in self.steps:
            failures.extend(self.can_advance(step.number, form_state))
        return failures

    def first_invalid_step(self) -> int | None:
        for step in self.steps:
            if self.can_advance(step.number):
                return step.number
        return None

    # ── Submission ────────────────────────────────────────

    def build_payload(self) -> dict[str, Any]:
        """Normalised outbound field map; blank optional fields are dropped."""
        payload: dict[str, Any] = {}
        for step in self.steps:
            for name in step.fields:
                value = self.form.get(name)
                if is_blank(value):
                    continue
                if isinstance(value, str):
                    value = value.strip()
                if name == "phoneNumber":
                    value = normalize_phone(value)
                elif name == "aadharNumber":
                    value = normalize_aadhar(value)
                elif name in _DOCUMENT_FIELDS:
                    value = normalize_document(value)
                elif name in _INT_FIELDS:
                    value = normalize_int(value)
                payload[name] = value
        payload["name"] = f"{payload.get('firstName', '')} {payload.get('lastName', '')}".strip()
        return payload

    def check_submittable(self, files: dict[str, Upload | None]) -> None:
        """Raise ``ValidationFailed`` unless the whole form and required files are present."""
        if self.can_advance(self.total_steps):
            raise ValidationFailed("Please complete the final step")

        failures = self.validate_all()
        if failures:
            self._record(failures)
            raise ValidationFailed(failures[0].reason or "Validation failed", failures)

        for name in REQUIRED_FILES:
            if files.get(name) is None:
                missing = ValidationResult(False, DL_IMAGE_REQUIRED, name)
                self._record([missing])
                raise ValidationFailed(DL_IMAGE_REQUIRED, [missing])

    async def submit(self, client: BackendClient, files: dict[str, Upload | None]) -> Result:
        """
        Validate everything and post the registration.

        Local failures raise ``ValidationFailed`` before any request is made.
        A backend or transport failure is returned as ``Err``; the wizard stays
        on the final step with the form intact so the user can retry.
        """
        if self.submitting:
            raise ActionInProgress("submit_registration")
        if not self.is_last_step:
            raise ValidationFailed("Please complete all steps before submitting")

        self.check_submittable(files)

        payload = self.build_payload()
        uploads = {name: upload for name, upload in files.items() if upload is not None}

        self.submitting = True
        self.step_error = None
        try:
            result = await client.register_guest_driver(payload, uploads)
        finally:
            self.submitting = False

        if isinstance(result, Ok):
            self.pending_email = payload["email"]
            logger.info("Guest driver registration saved: email=%s", payload["email"])
        else:
            self.step_error = result.reason
            logger.error("Guest driver registration failed: %s", result.reason)
        return result

    # ── FSM storage ───────────────────────────────────────

    def to_dict(self) -> dict:
        return {
            "form": self.form,
            "current_step": self.current_step,
            "attachments": self.attachments,
            "step_error": self.step_error,
            "field_errors": self.field_errors,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "RegistrationWizard":
        data = data or {}
        wizard = cls(
            form=data.get("form"),
            current_step=data.get("current_step", 1),
            attachments=data.get("attachments"),
        )
        wizard.step_error = data.get("step_error")
        wizard.field_errors = dict(data.get("field_errors") or {})
        return wizard
