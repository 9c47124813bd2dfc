"""
TOTP helpers for AUTHFLOW.

Parses the provisioning URI handed out by the backend during
enrollment, renders it as a QR code for authenticator apps, and
implements RFC 6238 code checks for the mock backend.
"""
import base64
import io
from dataclasses import dataclass

import pyotp
import qrcode


@dataclass(frozen=True)
class ProvisioningInfo:
    """Details encoded in an otpauth:// URI."""
    uri: str
    account_name: str
    issuer: str
    digits: int
    interval: int


def parse_provisioning_uri(uri: str) -> ProvisioningInfo:
    """
    Parse and validate a TOTP provisioning URI.

    Args:
        uri: otpauth://totp/... URI returned by `users/me/totp-key-uri`

    Returns:
        ProvisioningInfo with the account and code parameters

    Raises:
        ValueError: If the URI is not a valid TOTP provisioning URI
    """
    if not uri or not uri.startswith("otpauth://"):
        raise ValueError(f"Not an otpauth URI: {uri!r}")

    otp = pyotp.parse_uri(uri)
    if not isinstance(otp, pyotp.TOTP):
        raise ValueError("Provisioning URI is not time-based")

    return ProvisioningInfo(
        uri=uri,
        account_name=otp.name or "",
        issuer=otp.issuer or "",
        digits=otp.digits,
        interval=otp.interval,
    )


def generate_qr_code(uri: str, box_size: int = 10) -> bytes:
    """
    Generate a QR code image for the provisioning URI.

    Args:
        uri: otpauth:// provisioning URI.
        box_size: Pixels per QR module.

    Returns:
        PNG image bytes.
    """
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_H,
        box_size=box_size,
        border=4,
    )
    qr.add_data(uri)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format='PNG')
    return buffer.getvalue()


def generate_qr_code_base64(uri: str) -> str:
    """Render the provisioning URI as a PNG data URI."""
    b64 = base64.b64encode(generate_qr_code(uri)).decode('utf-8')
    return f"data:image/png;base64,{b64}"


# ============================================
# Code generation / verification (mock backend)
# ============================================

def generate_totp_secret() -> str:
    return pyotp.random_base32()


def get_totp_provisioning_uri(secret: str, account_name: str, issuer: str = "AUTHFLOW") -> str:
    return pyotp.TOTP(secret).provisioning_uri(name=account_name, issuer_name=issuer)


def verify_totp(secret: str, code: str, window: int = 1) -> bool:
    """
    Verify a TOTP code against the secret.

    Args:
        secret: Base32-encoded TOTP secret.
        code: 6-digit code entered by user.
        window: Number of 30-second windows to allow (default 1 = +-30s).

    Returns:
        True if code is valid, False otherwise.
    """
    if not secret or not code:
        return False

    code = ''.join(filter(str.isdigit, code))
    if len(code) != 6:
        return False

    return pyotp.TOTP(secret).verify(code, valid_window=window)


def get_current_totp(secret: str) -> str:
    """Current 6-digit code for a secret (mock backend and tests)."""
    return pyotp.TOTP(secret).now()
