"""
Field validators for driver registration and profile forms.

Every validator is a pure function ``(value) -> ValidationResult``; none of
them touch bot or session state. Callers decide whether to surface only the
first failing reason (step banner) or all of them (per-field errors).
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Callable

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[6-9]\d{9}$")
PHONE_STRIP_RE = re.compile(r"[\s\-()]")
AADHAR_STRIP_RE = re.compile(r"[\s\-]")
NAME_RE = re.compile(r"^[a-zA-Z]+$")
FULL_NAME_RE = re.compile(r"^[a-zA-Z\s]+$")
DL_RE = re.compile(r"^[A-Z]{2}[-\s]?\d{2}[-\s]?\d{4}[-\s]?\d{7}$")
PAN_RE = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]{1}$")
AADHAR_RE = re.compile(r"^\d{12}$")
PINCODE_RE = re.compile(r"^\d{6}$")
REGISTRATION_RE = re.compile(r"^[A-Z0-9\- ]+$")

MIN_ADDRESS_LENGTH = 10
MIN_NAME_LENGTH = 2
MIN_REGISTRATION_LENGTH = 5

FIELD_LABELS = {
    "email": "Email",
    "phoneNumber": "Phone number",
    "firstName": "First name",
    "lastName": "Last name",
    "name": "Name",
    "dlNumber": "DL number",
    "panNumber": "PAN number",
    "aadharNumber": "Aadhar number",
    "rcNumber": "RC number",
    "permanentAddress": "Permanent address",
    "operatingAddress": "Operating address",
    "city": "City",
    "state": "State",
    "pincode": "Pincode",
    "vehicleType": "Vehicle type",
    "vehicleModel": "Vehicle model",
    "vehicleNumber": "Vehicle number",
    "experience": "Experience",
    "salaryExpectation": "Salary expectation",
}


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: str | None = None
    field: str | None = None


Validator = Callable[[Any], ValidationResult]


def _ok(field: str) -> ValidationResult:
    return ValidationResult(True, None, field)


def _fail(field: str, reason: str) -> ValidationResult:
    return ValidationResult(False, reason, field)


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _required(field: str) -> ValidationResult:
    return _fail(field, f"{FIELD_LABELS.get(field, field)} is required")


# ── Contact ───────────────────────────────────────────────

def validate_email(value: Any) -> ValidationResult:
    if is_blank(value):
        return _required("email")
    if not EMAIL_RE.match(str(value).strip()):
        return _fail("email", "Please enter a valid email address")
    return _ok("email")


def clean_phone(value: str) -> str:
    """Strip spaces, dashes and parentheses from a phone number."""
    return PHONE_STRIP_RE.sub("", value)


def validate_phone(value: Any) -> ValidationResult:
    """Indian mobile number: 10 digits starting with 6-9, separators allowed."""
    if is_blank(value):
        return _required("phoneNumber")
    if not PHONE_RE.match(clean_phone(str(value))):
        return _fail(
            "phoneNumber",
            "Please enter a valid 10-digit Indian mobile number (starting with 6-9)",
        )
    return _ok("phoneNumber")


def _person_name(field: str, value: Any, pattern: re.Pattern, allowed: str) -> ValidationResult:
    label = FIELD_LABELS[field]
    if is_blank(value):
        return _required(field)
    text = str(value).strip()
    if len(text) < MIN_NAME_LENGTH:
        return _fail(field, f"{label} must be at least {MIN_NAME_LENGTH} characters long")
    if not pattern.match(text):
        return _fail(field, f"{label} should only contain {allowed}")
    return _ok(field)


def validate_first_name(value: Any) -> ValidationResult:
    return _person_name("firstName", value, NAME_RE, "letters")


def validate_last_name(value: Any) -> ValidationResult:
    return _person_name("lastName", value, NAME_RE, "letters")


def validate_name(value: Any) -> ValidationResult:
    return _person_name("name", value, FULL_NAME_RE, "letters and spaces")


# ── Identity documents ────────────────────────────────────

def validate_dl_number(value: Any) -> ValidationResult:
    """
    Indian driving licence number.

    State code (2 letters) + RTO code (2 digits) + year (4 digits) + serial
    (7 digits); each group may be separated by a space or dash.
    """
    if is_blank(value):
        return _required("dlNumber")
    if not DL_RE.match(str(value).strip().upper()):
        return _fail(
            "dlNumber",
            "Please enter a valid DL number (e.g., MH01-20230001234 or MH0120230001234)",
        )
    return _ok("dlNumber")


def validate_pan_number(value: Any) -> ValidationResult:
    if is_blank(value):
        return _required("panNumber")
    if not PAN_RE.match(str(value).strip().upper()):
        return _fail("panNumber", "Please enter a valid PAN number (e.g., ABCDE1234F)")
    return _ok("panNumber")


def validate_aadhar_number(value: Any) -> ValidationResult:
    if is_blank(value):
        return _required("aadharNumber")
    if not AADHAR_RE.match(AADHAR_STRIP_RE.sub("", str(value))):
        return _fail("aadharNumber", "Please enter a valid 12-digit Aadhar number")
    return _ok("aadharNumber")


def _registration(field: str, value: Any) -> ValidationResult:
    if is_blank(value):
        return _required(field)
    reg = str(value).strip().upper()
    if len(reg) < MIN_REGISTRATION_LENGTH or not REGISTRATION_RE.match(reg):
        return _fail(
            field,
            f"{FIELD_LABELS[field]} must be at least {MIN_REGISTRATION_LENGTH} "
            "alphanumeric characters (e.g. MH01AB1234)",
        )
    return _ok(field)


def validate_rc_number(value: Any) -> ValidationResult:
    return _registration("rcNumber", value)


def validate_vehicle_number(value: Any) -> ValidationResult:
    return _registration("vehicleNumber", value)


# ── Address ───────────────────────────────────────────────

def _address(field: str, value: Any) -> ValidationResult:
    if is_blank(value):
        return _required(field)
    if len(str(value).strip()) < MIN_ADDRESS_LENGTH:
        return _fail(
            field,
            f"{FIELD_LABELS[field]} must be at least {MIN_ADDRESS_LENGTH} characters long",
        )
    return _ok(field)


def validate_permanent_address(value: Any) -> ValidationResult:
    return _address("permanentAddress", value)


def validate_operating_address(value: Any) -> ValidationResult:
    return _address("operatingAddress", value)


def validate_city(value: Any) -> ValidationResult:
    if is_blank(value):
        return _required("city")
    city = str(value).strip()
    if len(city) < MIN_NAME_LENGTH:
        return _fail("city", "City name must be at least 2 characters long")
    if not FULL_NAME_RE.match(city):
        return _fail("city", "City name should only contain letters and spaces")
    return _ok("city")


def validate_state(value: Any) -> ValidationResult:
    if is_blank(value):
        return _required("state")
    if len(str(value).strip()) < MIN_NAME_LENGTH:
        return _fail("state", "State name must be at least 2 characters long")
    return _ok("state")


def validate_pincode(value: Any) -> ValidationResult:
    if is_blank(value):
        return _required("pincode")
    if not PINCODE_RE.match(str(value).strip()):
        return _fail("pincode", "Please enter a valid 6-digit pincode")
    return _ok("pincode")


# ── Work info ─────────────────────────────────────────────

def parse_number(value: Any) -> float | None:
    """Parse an int/float or numeric string; None unless it is a finite number."""
    if isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            number = float(value)
        else:
            number = float(str(value).strip())
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def parse_whole_number(value: Any) -> int | None:
    """Like ``parse_number`` but only for whole values (``"3"``, ``3.0``)."""
    number = parse_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def _non_negative(field: str, value: Any) -> ValidationResult:
    label = FIELD_LABELS[field]
    if is_blank(value):
        return _required(field)
    number = parse_number(value)
    if number is None:
        return _fail(field, f"{label} must be a number")
    if not number.is_integer():
        return _fail(field, f"{label} must be a whole number")
    if number < 0:
        return _fail(field, f"{label} cannot be negative")
    return _ok(field)


def validate_experience(value: Any) -> ValidationResult:
    return _non_negative("experience", value)


def validate_salary_expectation(value: Any) -> ValidationResult:
    return _non_negative("salaryExpectation", value)


def validate_text(field: str) -> Validator:
    """Free-text field that only needs to be non-empty."""

    def _validate(value: Any) -> ValidationResult:
        if is_blank(value):
            return _required(field)
        return _ok(field)

    return _validate


def optional(field: str, validator: Validator) -> Validator:
    """Wrap *validator* so a blank value passes."""

    def _validate(value: Any) -> ValidationResult:
        if is_blank(value):
            return _ok(field)
        return validator(value)

    return _validate


FIELD_VALIDATORS: dict[str, Validator] = {
    "email": validate_email,
    "phoneNumber": validate_phone,
    "firstName": validate_first_name,
    "lastName": validate_last_name,
    "name": validate_name,
    "dlNumber": validate_dl_number,
    "panNumber": validate_pan_number,
    "aadharNumber": validate_aadhar_number,
    "rcNumber": validate_rc_number,
    "permanentAddress": validate_permanent_address,
    "operatingAddress": validate_operating_address,
    "city": validate_city,
    "state": validate_state,
    "pincode": validate_pincode,
    "vehicleNumber": validate_vehicle_number,
    "experience": validate_experience,
    "salaryExpectation": validate_salary_expectation,
}


def validate_fields(values: dict, validators: dict[str, Validator]) -> list[ValidationResult]:
    """Run *validators* against *values*; return the failures in declaration order."""
    failures = []
    for field, validator in validators.items():
        result = validator(values.get(field))
        if not result.valid:
            failures.append(result)
    return failures


# ── Normalisers (payload building) ────────────────────────

def normalize_phone(value: str) -> str:
    return clean_phone(value.strip())


def normalize_document(value: str) -> str:
    """Upper-case a DL/PAN/RC number and drop surrounding whitespace."""
    return value.strip().upper()


def normalize_aadhar(value: str) -> str:
    return AADHAR_STRIP_RE.sub("", value)


def normalize_int(value: Any) -> int | None:
    return parse_whole_number(value)
