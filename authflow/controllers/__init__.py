"""
Screen controllers for AUTHFLOW.

This package provides:
- Login (stage 1) credential submission
- MFA (stage 2) verification with TOTP or SMS
- The enrollment wizard for first-time setup
- Screen routing from a session snapshot
"""
from .base import Alert, BaseController
from .enrollment import (
    EnrollmentWizardController,
    IllegalSkipError,
    StepInfo,
    VerificationState,
    WizardState,
    WizardStep,
)
from .login import LoginController, LoginResult, LoginStatus
from .mfa import MfaController, MfaOutcome, MfaSessionState, eligible_modes
from .navigation import Screen, resolve_screen

__all__ = [
    "Alert",
    "BaseController",
    "EnrollmentWizardController",
    "IllegalSkipError",
    "LoginController",
    "LoginResult",
    "LoginStatus",
    "MfaController",
    "MfaOutcome",
    "MfaSessionState",
    "Screen",
    "StepInfo",
    "VerificationState",
    "WizardState",
    "WizardStep",
    "eligible_modes",
    "resolve_screen",
]
