"""
Pydantic models for AUTHFLOW.

Payloads exchanged with the authentication backend plus the small
value types derived from them.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


ANONYMOUS_USER = "anonymous"


class MfaMode(str, Enum):
    """Verification mechanism. Values match the backend's enrollment `kind`."""
    TOTP = "totp"
    SMS = "sms"

    @property
    def other(self) -> "MfaMode":
        return MfaMode.SMS if self is MfaMode.TOTP else MfaMode.TOTP


# ============================================
# Session Models
# ============================================

@dataclass(frozen=True)
class EnrollmentProgress:
    """Which MFA factors are already set up for the current user."""
    sms_ready: bool
    totp_ready: bool

    @property
    def any_factor(self) -> bool:
        return self.sms_ready or self.totp_ready


class UserSession(BaseModel):
    """
    Session descriptor returned by `GET users/me`.

    Server-authoritative and immutable: every poll replaces the whole
    snapshot. Field names follow the backend's JSON; the timestamps are
    exposed as `created_at` / `modified_at`.
    """
    id: str
    kind: str
    name: str
    system: bool
    enabled: bool
    phone_number: str = ""
    created_at: str = Field(..., alias="ctime")
    modified_at: str = Field(..., alias="mtime")
    supervisor: str = ""
    auth_level: int = 0
    personal_desktop: str = ""
    enrolled: bool
    totp_enabled: bool
    totp_enrolled: bool

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    @field_validator("supervisor", mode="before")
    @classmethod
    def _flatten_supervisor(cls, value: Any) -> str:
        # The backend serializes the supervisor as a nested user object (or null).
        if value is None:
            return ""
        if isinstance(value, dict):
            return str(value.get("name") or value.get("id") or "")
        return str(value)

    @property
    def is_anonymous(self) -> bool:
        return self.name == ANONYMOUS_USER

    @property
    def has_supervisor(self) -> bool:
        return bool(self.supervisor)

    @property
    def mfa_satisfied(self) -> bool:
        """True once this session has passed multi-factor verification."""
        return not self.is_anonymous and self.auth_level > 1

    @property
    def progress(self) -> EnrollmentProgress:
        return EnrollmentProgress(
            sms_ready=bool(self.phone_number),
            totp_ready=self.totp_enrolled,
        )


# ============================================
# Authentication Responses
# ============================================

class LoginResponse(BaseModel):
    """Response of `POST auth/stage/1`."""
    redirect_uri: str
    user: Optional[UserSession] = None

    model_config = ConfigDict(extra="ignore")


class TotpKeyUriResponse(BaseModel):
    """Response of `GET users/me/totp-key-uri`."""
    uri: str


class EnrollmentCodeRequest(BaseModel):
    """Body of `POST users/me/verify`."""
    kind: MfaMode
    code: str = Field(..., min_length=1)


class ErrorResponse(BaseModel):
    """Error body produced by the backend: `{"code": N, "error": "..."}`."""
    code: Optional[int] = None
    error: Optional[str] = None

    model_config = ConfigDict(extra="ignore")
