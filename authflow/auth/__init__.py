"""
TOTP support for AUTHFLOW.

This package provides:
- Provisioning URI parsing
- QR code rendering for authenticator apps
- Code verification used by the mock backend
"""
from .mfa import (
    ProvisioningInfo,
    generate_qr_code_base64,
    generate_totp_secret,
    get_current_totp,
    get_totp_provisioning_uri,
    parse_provisioning_uri,
    verify_totp,
)

__all__ = [
    "ProvisioningInfo",
    "generate_qr_code_base64",
    "generate_totp_secret",
    "get_current_totp",
    "get_totp_provisioning_uri",
    "parse_provisioning_uri",
    "verify_totp",
]
