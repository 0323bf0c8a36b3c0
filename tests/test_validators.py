"""Tests for the field validators."""

import pytest

from drivers24.services.validators import (
    optional,
    validate_aadhar_number,
    validate_city,
    validate_dl_number,
    validate_email,
    validate_experience,
    validate_fields,
    validate_first_name,
    validate_pan_number,
    validate_permanent_address,
    validate_phone,
    validate_pincode,
    validate_rc_number,
    validate_salary_expectation,
    normalize_aadhar,
    normalize_int,
    normalize_phone,
    parse_number,
)


@pytest.mark.parametrize("phone", ["9876543210", "98765 43210", "(987) 654-3210", "6000000000"])
def test_phone_valid_after_stripping_separators(phone):
    """Spaces, dashes and parentheses are ignored."""
    assert validate_phone(phone).valid


@pytest.mark.parametrize("phone", ["5876543210", "987654321", "98765432101", "+919876543210", "98765abcde"])
def test_phone_invalid(phone):
    result = validate_phone(phone)
    assert not result.valid
    assert result.field == "phoneNumber"
    assert "6-9" in result.reason


def test_phone_required():
    assert validate_phone("  ").reason == "Phone number is required"


def test_pan_is_upper_cased_before_matching():
    """Lower-case PAN input is accepted."""
    assert validate_pan_number("abcde1234f").valid
    assert validate_pan_number("ABCDE1234F").valid


@pytest.mark.parametrize("pan", ["ABCD1234F", "ABCDE12345", "12345ABCDE", "ABCDE1234FF"])
def test_pan_invalid(pan):
    assert not validate_pan_number(pan).valid


def test_email():
    assert validate_email("driver@example.com").valid
    assert not validate_email("driver@example").valid
    assert validate_email("").reason == "Email is required"


def test_first_name_letters_only():
    assert validate_first_name("Ravi").valid
    assert not validate_first_name("R").valid
    assert not validate_first_name("Ravi K").valid


def test_dl_number_accepts_separators():
    """State + RTO + year + serial, with optional dash or space separators."""
    assert validate_dl_number("MH1220200012345").valid
    assert validate_dl_number("mh-12-2020-0012345").valid
    assert validate_dl_number("MH 12 2020 0012345").valid
    assert not validate_dl_number("MH12-20-0012345").valid


def test_aadhar_ignores_spaces():
    assert validate_aadhar_number("1234 5678 9012").valid
    assert not validate_aadhar_number("1234 5678 901").valid
    assert normalize_aadhar("1234-5678-9012") == "123456789012"


def test_registration_numbers():
    assert validate_rc_number("MH01AB1234").valid
    assert not validate_rc_number("AB1").valid
    assert not validate_rc_number("MH01*1234").valid


def test_address_and_location():
    assert validate_permanent_address("12 Park Street, Pune").valid
    assert not validate_permanent_address("Pune").valid
    assert validate_city("Navi Mumbai").valid
    assert not validate_city("Pune1").valid
    assert validate_pincode("411001").valid
    assert not validate_pincode("41100").valid


def test_numbers_must_be_non_negative():
    assert validate_experience("0").valid
    assert validate_experience(5).valid
    assert not validate_experience("-1").valid
    assert validate_salary_expectation("abc").reason == "Salary expectation must be a number"
    assert validate_salary_expectation(None).reason == "Salary expectation is required"


@pytest.mark.parametrize("value", ["inf", "-inf", "nan", "Infinity", "1e400", float("inf"), float("nan")])
def test_non_finite_numbers_rejected(value):
    """Overflowing or non-finite input fails validation instead of slipping through."""
    assert parse_number(value) is None
    assert validate_experience(value).reason == "Experience must be a number"
    assert validate_salary_expectation(value).reason == "Salary expectation must be a number"


def test_fractional_numbers_rejected():
    assert validate_experience("2.9").reason == "Experience must be a whole number"
    assert validate_salary_expectation(15000.5).reason == "Salary expectation must be a whole number"
    assert validate_experience("3.0").valid


def test_normalize_int_never_truncates():
    assert normalize_int("25000") == 25000
    assert normalize_int(" 4.0 ") == 4
    assert normalize_int("2.9") is None
    assert normalize_int("nan") is None
    assert normalize_int("1e400") is None


def test_optional_wrapper_passes_blank_values():
    check = optional("rcNumber", validate_rc_number)
    assert check("").valid
    assert check(None).valid
    assert not check("AB1").valid


def test_validate_fields_returns_failures_in_order():
    failures = validate_fields(
        {"email": "bad", "phoneNumber": "9876543210"},
        {"email": validate_email, "phoneNumber": validate_phone, "panNumber": validate_pan_number},
    )
    assert [f.field for f in failures] == ["email", "panNumber"]


def test_normalize_phone():
    assert normalize_phone(" (987) 654-3210 ") == "9876543210"
