"""
HTTP gateway to the authentication backend.

One coroutine per backend capability. Responses are schema-validated
with pydantic; every transport or HTTP failure surfaces as `AuthError`.

Usage:
    async with AuthGateway.from_settings(get_settings()) as gateway:
        response = await gateway.login("alice", "secret")
        session = await gateway.get_session()
"""
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..models import (
    EnrollmentCodeRequest,
    ErrorResponse,
    LoginResponse,
    MfaMode,
    TotpKeyUriResponse,
    UserSession,
)
from .errors import (
    COMMIT_FAILED_MESSAGE,
    DEVICE_NAME_FAILED_MESSAGE,
    ENROLL_CODE_FAILED_MESSAGE,
    GENERIC_ERROR_MESSAGE,
    LOGIN_FAILED_MESSAGE,
    SMS_FAILED_MESSAGE,
    VERIFY_FAILED_MESSAGE,
    AuthError,
)

logger = logging.getLogger(__name__)

# Status codes meaning "nobody is logged in" for users/me
NO_SESSION_STATUS_CODES = (401, 403)


class Endpoint:
    """Backend paths, relative to the versioned API root."""
    LOGIN = "auth/stage/1"
    MFA_CONFIRMATION = "auth/stage/2"
    INITIATE_MFA_SMS = "auth/stage/2"
    GET_USER_DATA = "users/me"
    UPDATE_COMPUTER_NAME = "users/me"
    COMMIT_ENROLLMENT = "users/me/commit"
    ENROLL_WITH_CODE = "users/me/verify"
    TOTP_KEY_URI = "users/me/totp-key-uri"
    INITIATE_ENROLLMENT_SMS = "users/me/initiate-sms"


class AuthGateway:
    """
    Client for the authentication backend.

    The underlying httpx client keeps the session cookies the backend
    sets at login, so every later request is credential-bearing.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the gateway.

        Args:
            base_url: Versioned API root, e.g. "https://idp.example.com/v1/"
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        if not base_url.endswith("/"):
            base_url += "/"
        self.base_url = base_url
        self.timeout = timeout
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "AuthGateway":
        return cls(settings.api_root, timeout=settings.request_timeout, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AuthGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ============================================
    # Transport
    # ============================================

    async def _request(
        self,
        method: str,
        endpoint: str,
        fallback_message: str = GENERIC_ERROR_MESSAGE,
        data: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        Make a request and raise AuthError for any failure.

        Args:
            method: HTTP method
            endpoint: Path relative to the API root
            fallback_message: Message used when the error body has none
            data: Form-encoded body
            json: JSON body

        Returns:
            Successful response

        Raises:
            AuthError: On transport failure or an error status
        """
        try:
            response = await self._client.request(method, endpoint, data=data, json=json)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {endpoint} failed: {e!r}")
            raise AuthError(fallback_message) from e

        if response.is_error:
            message = self._extract_error(response, fallback_message)
            logger.info(f"{method} {endpoint} returned {response.status_code}: {message}")
            raise AuthError(message, status_code=response.status_code)

        return response

    @staticmethod
    def _extract_error(response: httpx.Response, fallback_message: str) -> str:
        """Pull the `error` string out of an error body, if there is one."""
        try:
            body = ErrorResponse.model_validate(response.json())
        except (ValueError, ValidationError):
            return fallback_message
        return body.error or fallback_message

    @staticmethod
    def _parse(response: httpx.Response, model, fallback_message: str):
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.warning(f"Unexpected {model.__name__} payload: {e}")
            raise AuthError(fallback_message, status_code=response.status_code) from e

    # ============================================
    # User
    # ============================================

    async def get_session(self) -> Optional[UserSession]:
        """
        Fetch the current session descriptor.

        Returns:
            UserSession, or None when nobody is logged in or the payload
            does not match the schema

        Raises:
            AuthError: If the backend is unreachable or fails otherwise
        """
        try:
            response = await self._client.get(Endpoint.GET_USER_DATA)
        except httpx.HTTPError as e:
            logger.debug(f"GET {Endpoint.GET_USER_DATA} failed: {e!r}")
            raise AuthError(GENERIC_ERROR_MESSAGE) from e

        if response.status_code in NO_SESSION_STATUS_CODES:
            return None
        if response.is_error:
            raise AuthError(
                self._extract_error(response, GENERIC_ERROR_MESSAGE),
                status_code=response.status_code,
            )

        try:
            return UserSession.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.warning(f"Discarding invalid session payload: {e}")
            return None

    async def update_device_name(self, computer_name: str) -> None:
        await self._request(
            "PUT",
            Endpoint.UPDATE_COMPUTER_NAME,
            fallback_message=DEVICE_NAME_FAILED_MESSAGE,
            json={"personal_desktop": computer_name},
        )

    async def commit_enrollment(self) -> None:
        """Mark server-side enrollment complete."""
        await self._request(
            "POST", Endpoint.COMMIT_ENROLLMENT, fallback_message=COMMIT_FAILED_MESSAGE, json={}
        )

    # ============================================
    # Login
    # ============================================

    async def login(self, username: str, password: str) -> LoginResponse:
        """
        Authenticate with username and password (stage 1).

        Returns:
            LoginResponse with the redirect target
        """
        response = await self._request(
            "POST",
            Endpoint.LOGIN,
            fallback_message=LOGIN_FAILED_MESSAGE,
            data={"username": username, "password": password},
        )
        return self._parse(response, LoginResponse, LOGIN_FAILED_MESSAGE)

    async def confirm_mfa(self, code: str) -> None:
        """Confirm the login with a time-based code (stage 2)."""
        await self._request(
            "POST",
            Endpoint.MFA_CONFIRMATION,
            fallback_message=VERIFY_FAILED_MESSAGE,
            data={"totp": code},
        )

    async def initiate_mfa_sms(self) -> None:
        """Ask the backend to send the login SMS (to the user or their supervisor)."""
        await self._request("POST", Endpoint.INITIATE_MFA_SMS, fallback_message=SMS_FAILED_MESSAGE)

    # ============================================
    # Enrollment
    # ============================================

    async def initiate_enrollment_sms(self, phone_number: str) -> None:
        await self._request(
            "POST",
            Endpoint.INITIATE_ENROLLMENT_SMS,
            fallback_message=SMS_FAILED_MESSAGE,
            json={"phone_number": phone_number.replace(" ", "")},
        )

    async def get_totp_provisioning_uri(self) -> str:
        """Fetch the otpauth:// URI for authenticator app enrollment."""
        response = await self._request("GET", Endpoint.TOTP_KEY_URI)
        return self._parse(response, TotpKeyUriResponse, GENERIC_ERROR_MESSAGE).uri

    async def submit_enrollment_code(self, kind: MfaMode, code: str) -> None:
        """Verify an enrollment code for the given factor."""
        body = EnrollmentCodeRequest(kind=kind, code=code)
        await self._request(
            "POST",
            Endpoint.ENROLL_WITH_CODE,
            fallback_message=ENROLL_CODE_FAILED_MESSAGE,
            json=body.model_dump(mode="json"),
        )
