"""
In-memory stand-in for the authentication backend.

Implements the same coroutines as `AuthGateway` against a single seeded
user, so front ends can be exercised without a server. TOTP codes are
checked for real against a generated secret; SMS codes are logged
instead of sent.
"""
import logging
import secrets
from datetime import datetime, timezone
from typing import Optional

from ..auth.mfa import generate_totp_secret, get_totp_provisioning_uri, verify_totp
from ..config import MockSettings
from ..models import LoginResponse, MfaMode, UserSession
from .errors import (
    ENROLL_CODE_FAILED_MESSAGE,
    LOGIN_FAILED_MESSAGE,
    SMS_FAILED_MESSAGE,
    VERIFY_FAILED_MESSAGE,
    AuthError,
)

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class MockAuthGateway:
    """
    Mock backend for a single user.

    Usage:
        gateway = MockAuthGateway(MockSettings(username="demo", password="1234"))
        await gateway.login("demo", "1234")
    """

    def __init__(self, settings: Optional[MockSettings] = None, redirect_url: str = "/v1/redirect"):
        self.settings = settings or MockSettings()
        self.redirect_url = redirect_url
        self.totp_secret = generate_totp_secret()
        self.logged_in = False
        self.pending_sms_code: Optional[str] = None
        self.pending_phone_number: Optional[str] = None
        self.login_sms_sent = False

        created = _now()
        self._user = {
            "id": secrets.token_hex(8),
            "kind": "user",
            "name": self.settings.username,
            "system": False,
            "enabled": True,
            "phone_number": self.settings.phone_number,
            "ctime": created,
            "mtime": created,
            "supervisor": self.settings.supervisor,
            "auth_level": 0,
            "personal_desktop": self.settings.computer_name if self.settings.computer_already_set else "",
            "enrolled": self.settings.enrolled,
            "totp_enabled": True,
            "totp_enrolled": self.settings.totp_enrolled,
        }

    async def aclose(self) -> None:
        pass

    async def __aenter__(self) -> "MockAuthGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _update(self, **fields) -> None:
        self._user.update(fields, mtime=_now())

    def _require_login(self) -> None:
        if not self.logged_in:
            raise AuthError("forbidden", status_code=403)

    @property
    def session(self) -> UserSession:
        return UserSession.model_validate(self._user)

    # ============================================
    # User
    # ============================================

    async def get_session(self) -> Optional[UserSession]:
        if not self.logged_in:
            return None
        return self.session

    async def update_device_name(self, computer_name: str) -> None:
        self._require_login()
        self._update(personal_desktop=computer_name)

    async def commit_enrollment(self) -> None:
        self._require_login()
        if not self.session.progress.any_factor:
            raise AuthError("no mfa factor enrolled", status_code=400)
        self._update(enrolled=True)

    # ============================================
    # Login
    # ============================================

    async def login(self, username: str, password: str) -> LoginResponse:
        if username != self.settings.username or password != self.settings.password:
            raise AuthError(LOGIN_FAILED_MESSAGE, status_code=401)
        self.logged_in = True
        self._update(auth_level=1)
        logger.info("Mock login succeeded")
        return LoginResponse(redirect_uri=self.redirect_url, user=self.session)

    async def confirm_mfa(self, code: str) -> None:
        self._require_login()
        if self.session.has_supervisor or not verify_totp(self.totp_secret, code):
            raise AuthError(VERIFY_FAILED_MESSAGE, status_code=401)
        self._update(auth_level=2)

    async def initiate_mfa_sms(self) -> None:
        self._require_login()
        session = self.session
        if not session.phone_number and not session.has_supervisor:
            raise AuthError(SMS_FAILED_MESSAGE, status_code=400)
        self.login_sms_sent = True
        target = session.supervisor or "user"
        logger.info(f"Mock login SMS sent to {target}")

    def approve_sms_link(self) -> None:
        """Simulate the SMS recipient following the approval link."""
        if not self.login_sms_sent:
            raise AuthError("no sms link pending", status_code=400)
        self.login_sms_sent = False
        self._update(auth_level=2)

    # ============================================
    # Enrollment
    # ============================================

    async def initiate_enrollment_sms(self, phone_number: str) -> None:
        self._require_login()
        self.pending_phone_number = phone_number.replace(" ", "")
        self.pending_sms_code = f"{secrets.randbelow(10 ** 6):06d}"
        logger.info(f"Mock enrollment SMS code: {self.pending_sms_code}")

    async def get_totp_provisioning_uri(self) -> str:
        self._require_login()
        return get_totp_provisioning_uri(self.totp_secret, self.settings.username)

    async def submit_enrollment_code(self, kind: MfaMode, code: str) -> None:
        self._require_login()
        if MfaMode(kind) is MfaMode.TOTP:
            if not verify_totp(self.totp_secret, code):
                raise AuthError(ENROLL_CODE_FAILED_MESSAGE, status_code=400)
            self._update(totp_enrolled=True)
            return

        if self.pending_sms_code is None or code != self.pending_sms_code:
            raise AuthError(ENROLL_CODE_FAILED_MESSAGE, status_code=400)
        self._update(phone_number=self.pending_phone_number)
        self.pending_sms_code = None
        self.pending_phone_number = None
