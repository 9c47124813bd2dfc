"""
Multi-factor verification screen controller (stage 2).

The user proves a second factor either with a time-based code from an
authenticator app or by following an SMS link. Users with a supervisor
are approved through the supervisor's SMS only.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..gateway.errors import AuthError
from ..models import MfaMode, UserSession
from ..validation import normalize_code, validate_code
from .base import BaseController
from .navigation import Screen

logger = logging.getLogger(__name__)

SMS_REVERT_DELAY = 1.5
SMS_RESEND_COOLDOWN = 3.0

SUPERVISOR_SUBMIT_MESSAGE = "users with a supervisor set, must connect with sms"
SMS_SENT_MESSAGE = "an sms message was sent"
SUPERVISOR_SMS_SENT_MESSAGE = "an sms has been sent to your supervisor with a link"
CODE_VERIFIED_MESSAGE = "code verified successfully"


class MfaOutcome(str, Enum):
    NONE = "none"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class MfaSessionState:
    """State of one verification visit."""
    mode: MfaMode = MfaMode.TOTP
    resend_cooldown_active: bool = False
    last_outcome: MfaOutcome = MfaOutcome.NONE


def eligible_modes(session: Optional[UserSession]) -> List[MfaMode]:
    """
    MFA modes a session can verify with, preferred mode first.

    TOTP needs an enrolled authenticator and no supervisor; a supervisor
    always forces SMS.
    """
    if session is None:
        return []
    modes = []
    if session.totp_enrolled and not session.has_supervisor:
        modes.append(MfaMode.TOTP)
    if session.phone_number or session.has_supervisor:
        modes.append(MfaMode.SMS)
    return modes


class MfaController(BaseController):
    """
    Drives the MFA screen.

    Usage:
        controller = MfaController(gateway, on_navigate=router.go)
        controller.attach(poller.store)
        await controller.start()
        outcome = await controller.submit("123456")
    """

    def __init__(
        self,
        gateway,
        sms_revert_delay: float = SMS_REVERT_DELAY,
        sms_cooldown: float = SMS_RESEND_COOLDOWN,
        allow_anonymous: bool = True,
        **kwargs,
    ):
        super().__init__(gateway, **kwargs)
        self.sms_revert_delay = sms_revert_delay
        self.sms_cooldown = sms_cooldown
        self.allow_anonymous = allow_anonymous
        self.state = MfaSessionState()
        self._mode_chosen = False
        self._revert_task: Optional[asyncio.Task] = None
        self._cooldown_task: Optional[asyncio.Task] = None

    # ============================================
    # Derived state
    # ============================================

    @property
    def mode(self) -> MfaMode:
        return self.state.mode

    @property
    def eligible_modes(self) -> List[MfaMode]:
        return eligible_modes(self.session)

    @property
    def mode_eligible(self) -> bool:
        return self.state.mode in self.eligible_modes

    @property
    def switch_target(self) -> Optional[MfaMode]:
        """The other mode, when the session allows it."""
        other = self.state.mode.other
        return other if other in self.eligible_modes else None

    @property
    def redirect_requested(self) -> bool:
        return self.navigation is Screen.REDIRECT

    # ============================================
    # Session snapshots
    # ============================================

    async def start(self) -> None:
        """Entry check: only enrolled, logged-in users belong on this screen."""
        try:
            session = await self.gateway.get_session()
        except AuthError as e:
            logger.warning(f"Could not load session on MFA entry: {e}")
            return

        if session is None or not session.enrolled:
            self._navigate(Screen.LOGIN)
            return
        self.on_session(session)

    def _apply_session(self, session: Optional[UserSession]) -> None:
        super()._apply_session(session)

        if session is None:
            if not self.allow_anonymous:
                self._navigate(Screen.LOGIN)
            return

        if session.mfa_satisfied:
            self._navigate(Screen.REDIRECT)
            return

        modes = eligible_modes(session)
        if not self._mode_chosen and modes:
            self.state.mode = modes[0]
            self._mode_chosen = True
        elif modes and self.state.mode not in modes:
            logger.info(f"MFA mode {self.state.mode.value} no longer eligible, offering {modes[0].value}")

    # ============================================
    # Mode switching and SMS
    # ============================================

    async def switch_mode(self, mode: Optional[MfaMode] = None) -> bool:
        """
        Change the verification mode (toggles when `mode` is omitted).

        Switching to SMS sends the login SMS. A manual switch cancels any
        pending fallback to TOTP. Modes the session is not eligible for
        are refused.

        Returns:
            True if the mode changed
        """
        if self.closed:
            return False
        target = mode or self.state.mode.other
        if target is self.state.mode:
            self._cancel_revert()
            return False
        if target not in self.eligible_modes:
            logger.info(f"Switch to {target.value} refused, mode not eligible for this session")
            return False

        self._cancel_revert()

        self.state.mode = target
        self._mode_chosen = True
        if target is MfaMode.SMS:
            await self._send_sms()
        return True

    async def resend_sms(self) -> bool:
        """Send the login SMS again, unless the cooldown is active."""
        if self.closed:
            return False
        return await self._send_sms()

    async def _send_sms(self) -> bool:
        if self.state.resend_cooldown_active:
            logger.info("SMS send suppressed by cooldown")
            return False
        self._start_cooldown()

        try:
            await self.gateway.initiate_mfa_sms()
        except AuthError as e:
            if self.closed:
                return False
            self._alert("error", e.message)
            self._cancel_revert()
            self._revert_task = self._call_later(self.sms_revert_delay, self._revert_to_totp)
            return False

        if self.closed:
            return False
        has_supervisor = self.session is not None and self.session.has_supervisor
        self._alert("info", SUPERVISOR_SMS_SENT_MESSAGE if has_supervisor else SMS_SENT_MESSAGE)
        return True

    def _start_cooldown(self) -> None:
        self.state.resend_cooldown_active = True
        self._cooldown_task = self._call_later(self.sms_cooldown, self._end_cooldown)

    def _end_cooldown(self) -> None:
        self.state.resend_cooldown_active = False
        self._cooldown_task = None

    def _revert_to_totp(self) -> None:
        self._revert_task = None
        if self.state.mode is MfaMode.SMS and MfaMode.TOTP in self.eligible_modes:
            logger.info("Falling back to TOTP after failed SMS send")
            self.state.mode = MfaMode.TOTP

    def _cancel_revert(self) -> None:
        if self._revert_task is not None:
            self._revert_task.cancel()
            self._revert_task = None

    # ============================================
    # Code submission
    # ============================================

    async def submit(self, code: str) -> MfaOutcome:
        """
        Confirm the login with a time-based code.

        Users with a supervisor are told to use the SMS link instead and
        nothing is sent. A malformed code is rejected locally.

        Returns:
            SUCCESS or FAILURE for a confirmed attempt, NONE when nothing
            was sent
        """
        if not self._begin("mfa submit"):
            return MfaOutcome.NONE

        try:
            if self.session is not None and self.session.has_supervisor:
                self._alert("info", SUPERVISOR_SUBMIT_MESSAGE)
                return MfaOutcome.NONE

            check = validate_code(code)
            if not check.ok:
                self._alert("error", check.error.message)
                return MfaOutcome.NONE

            try:
                await self.gateway.confirm_mfa(normalize_code(code))
            except AuthError as e:
                if not self.closed:
                    self.state.last_outcome = MfaOutcome.FAILURE
                    self._alert("error", e.message)
                return MfaOutcome.FAILURE

            if not self.closed:
                self.state.last_outcome = MfaOutcome.SUCCESS
                self._alert("success", CODE_VERIFIED_MESSAGE)
            return MfaOutcome.SUCCESS
        finally:
            self._settle()
