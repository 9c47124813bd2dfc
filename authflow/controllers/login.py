"""Login screen controller (stage 1: username + password)."""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from ..gateway.errors import AuthError
from ..utils.secrets import mask_secret
from ..validation import validate_password, validate_username
from .base import Alert, BaseController

logger = logging.getLogger(__name__)


class LoginStatus(str, Enum):
    SUCCESS = "success"
    INVALID = "invalid"  # local validation failed, nothing sent
    FAILED = "failed"    # backend rejected the attempt
    BUSY = "busy"        # another attempt is still in flight


@dataclass
class LoginResult:
    status: LoginStatus
    redirect_uri: Optional[str] = None
    field_errors: Dict[str, str] = field(default_factory=dict)
    alert: Optional[Alert] = None


class LoginController(BaseController):
    """
    Validates credentials and performs the stage 1 login.

    A successful login is final for this controller: the backend has set
    the session cookie and the caller should navigate to `redirect_uri`.
    """

    def __init__(self, gateway, **kwargs):
        super().__init__(gateway, **kwargs)
        self.field_errors: Dict[str, str] = {}
        self.redirect_uri: Optional[str] = None

    def clear_field_error(self, field_name: str) -> None:
        """Forget the validation error of a field the user is editing."""
        self.field_errors.pop(field_name, None)

    async def submit(self, username: str, password: str) -> LoginResult:
        """
        Validate and submit credentials.

        Args:
            username: 3-64 characters
            password: 2-64 characters

        Returns:
            LoginResult; field errors for INVALID, an error alert for FAILED
        """
        if not self._begin("login"):
            return LoginResult(status=LoginStatus.BUSY)

        try:
            errors = {}
            for result in (validate_username(username), validate_password(password)):
                if not result.ok:
                    errors[result.error.field] = result.error.message
            if errors:
                self.field_errors = errors
                return LoginResult(status=LoginStatus.INVALID, field_errors=dict(errors))

            self.field_errors = {}
            logger.info(f"Logging in as {mask_secret(username, visible_chars=2)}")
            try:
                response = await self.gateway.login(username, password)
            except AuthError as e:
                if self.closed:
                    return LoginResult(status=LoginStatus.FAILED)
                self._alert("error", e.message)
                return LoginResult(status=LoginStatus.FAILED, alert=self.alert)

            if not self.closed:
                self.redirect_uri = response.redirect_uri
            return LoginResult(status=LoginStatus.SUCCESS, redirect_uri=response.redirect_uri)
        finally:
            self._settle()
