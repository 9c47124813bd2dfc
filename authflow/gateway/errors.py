"""Errors raised by the authentication gateway."""
from typing import Optional

GENERIC_ERROR_MESSAGE = "request failed"
LOGIN_FAILED_MESSAGE = "user login failed"
SMS_FAILED_MESSAGE = "failed to send sms message"
VERIFY_FAILED_MESSAGE = "failed to verify code"
ENROLL_CODE_FAILED_MESSAGE = "failed to validate code"
DEVICE_NAME_FAILED_MESSAGE = "failed to update computer name"
COMMIT_FAILED_MESSAGE = "failed to complete enrollment"


class AuthError(Exception):
    """
    Normalized backend failure.

    `message` is human readable and safe to show to the user. Transport
    exceptions are chained as `__cause__`, never raised directly.
    """

    def __init__(self, message: str = GENERIC_ERROR_MESSAGE, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)
