"""
Validation rules for user-entered values.

Every rule is a pure predicate returning a `ValidationResult`. Invalid
input never raises; only programmer misuse (passing None) does.
"""
import re
from dataclasses import dataclass
from typing import Optional

import phonenumbers

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 64
PASSWORD_MIN_LENGTH = 2
PASSWORD_MAX_LENGTH = 64
CODE_LENGTH = 6

_CODE_SEPARATORS = re.compile(r"[\s-]")
_CODE_PATTERN = re.compile(r"[0-9]{%d}" % CODE_LENGTH)


@dataclass(frozen=True)
class ValidationError:
    """Field-scoped validation failure."""
    field: str
    message: str


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    error: Optional[ValidationError] = None

    def __bool__(self) -> bool:
        return self.ok


_PASSED = ValidationResult(ok=True)


def _fail(field: str, message: str) -> ValidationResult:
    return ValidationResult(ok=False, error=ValidationError(field=field, message=message))


def _require_str(value, field: str) -> str:
    if value is None:
        raise TypeError(f"{field} must be a string, got None")
    if not isinstance(value, str):
        raise TypeError(f"{field} must be a string, got {type(value).__name__}")
    return value


def _validate_length(value: str, field: str, min_length: int, max_length: int) -> ValidationResult:
    if not value:
        return _fail(field, f"{field} is required")
    if len(value) < min_length:
        return _fail(field, f"{field} must be at least {min_length} characters")
    if len(value) > max_length:
        return _fail(field, f"{field} must be at most {max_length} characters")
    return _PASSED


def validate_username(username: str) -> ValidationResult:
    """Username must be 3-64 characters."""
    value = _require_str(username, "username")
    return _validate_length(value, "username", USERNAME_MIN_LENGTH, USERNAME_MAX_LENGTH)


def validate_password(password: str) -> ValidationResult:
    """Password must be 2-64 characters."""
    value = _require_str(password, "password")
    return _validate_length(value, "password", PASSWORD_MIN_LENGTH, PASSWORD_MAX_LENGTH)


def validate_phone_number(phone_number: str) -> ValidationResult:
    """
    Check that a phone number is a valid number in international format.

    The number must carry its country code (e.g. "+972 54 123 4567");
    numbers that fail structural parsing or have the wrong digit count
    for their region are rejected.

    Args:
        phone_number: Number as typed by the user

    Returns:
        ValidationResult for the "phone_number" field
    """
    value = _require_str(phone_number, "phone_number").strip()
    if not value:
        return _fail("phone_number", "phone_number is required")

    try:
        parsed = phonenumbers.parse(value, None)
    except phonenumbers.NumberParseException:
        return _fail("phone_number", "phone_number is not a valid international phone number")

    if not phonenumbers.is_valid_number(parsed):
        return _fail("phone_number", "phone_number is not a valid international phone number")
    return _PASSED


def normalize_code(code: str) -> str:
    """Remove whitespace and dash separators from a code ("123-456" -> "123456")."""
    return _CODE_SEPARATORS.sub("", _require_str(code, "code"))


def validate_code(code: str) -> ValidationResult:
    """A verification code must be exactly 6 ASCII digits once separators are removed."""
    if not _CODE_PATTERN.fullmatch(normalize_code(code)):
        return _fail("code", f"code must be {CODE_LENGTH} digits")
    return _PASSED
