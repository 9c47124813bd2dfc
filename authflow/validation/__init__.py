"""
Input validation for AUTHFLOW.

This package provides:
- Username and password length rules
- International phone number validation
- Verification code normalization
"""
from .rules import (
    ValidationError,
    ValidationResult,
    normalize_code,
    validate_code,
    validate_password,
    validate_phone_number,
    validate_username,
)

__all__ = [
    "ValidationError",
    "ValidationResult",
    "normalize_code",
    "validate_code",
    "validate_password",
    "validate_phone_number",
    "validate_username",
]
