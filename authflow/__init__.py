"""
AUTHFLOW - Client-side authentication orchestration.

Drives a user from login through multi-factor verification and the
enrollment wizard (device naming + MFA setup) into the protected
destination.

This package provides the session polling loop, credential and phone
validation, a typed gateway to the authentication backend, and the
controllers behind the login, MFA and enrollment screens.
"""

__version__ = "0.1.0"
__author__ = "AUTHFLOW Team"
