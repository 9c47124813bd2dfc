"""
Enrollment wizard controller.

Walks a user who has passed stage 1 but is not yet enrolled through two
steps:

0. Computer name setup (optional, auto-skipped when already set)
1. MFA setup: authenticator app (TOTP) or phone number (SMS)

Finishing the last step commits the enrollment on the server.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import List, Optional, Set

from ..auth.mfa import ProvisioningInfo, generate_qr_code_base64, parse_provisioning_uri
from ..gateway.errors import AuthError
from ..models import EnrollmentProgress, MfaMode, UserSession
from ..validation import normalize_code, validate_code, validate_phone_number
from .base import BaseController
from .navigation import Screen

logger = logging.getLogger(__name__)

PHONE_SUBMISSION_COOLDOWN = 3.0

COMPUTER_NAME_UPDATED_MESSAGE = "Computer name was updated"
INVALID_PHONE_MESSAGE = "The phone number field is invalid"
ENROLLMENT_SMS_SENT_MESSAGE = "An sms has been sent to you"
CODE_VERIFIED_MESSAGE = "successfully verified code"


class WizardStep(IntEnum):
    COMPUTER_NAME = 0
    MFA_SETUP = 1


STEP_LABELS = {
    WizardStep.COMPUTER_NAME: "Computer name setup",
    WizardStep.MFA_SETUP: "MFA Setup",
}
STEP_COUNT = len(WizardStep)
LAST_STEP = STEP_COUNT - 1
OPTIONAL_STEPS = frozenset({WizardStep.COMPUTER_NAME})


class IllegalSkipError(AssertionError):
    """A mandatory step was skipped. Indicates a wiring bug, not user error."""


class VerificationState(str, Enum):
    NOT_VISIBLE = "not_visible"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class WizardState:
    """State of one wizard visit. `active_step == STEP_COUNT` means completed."""
    active_step: int = WizardStep.COMPUTER_NAME
    skipped_steps: Set[int] = field(default_factory=set)
    mfa_mode: MfaMode = MfaMode.TOTP
    pending_computer_name: str = ""
    phone_number: str = ""


@dataclass(frozen=True)
class StepInfo:
    index: int
    label: str
    optional: bool
    skipped: bool


class EnrollmentWizardController(BaseController):
    """
    Step machine behind the enrollment screen.

    Enrollment progress (which factors are set up) always comes from the
    latest session snapshot; a successful code submission only shows up
    once the next poll observes it.
    """

    def __init__(
        self,
        gateway,
        phone_cooldown: float = PHONE_SUBMISSION_COOLDOWN,
        allow_anonymous: bool = True,
        **kwargs,
    ):
        super().__init__(gateway, **kwargs)
        self.phone_cooldown = phone_cooldown
        self.allow_anonymous = allow_anonymous
        self.state = WizardState()
        self.progress = EnrollmentProgress(sms_ready=False, totp_ready=False)
        self.verification = VerificationState.NOT_VISIBLE
        self.provisioning: Optional[ProvisioningInfo] = None
        self.initial_load_settled = False
        self.device_name_settled = True
        self.phone_cooldown_active = False

    # ============================================
    # Derived state
    # ============================================

    @property
    def active_step(self) -> int:
        return self.state.active_step

    @property
    def is_completed(self) -> bool:
        return self.state.active_step >= STEP_COUNT

    @staticmethod
    def is_step_optional(step: int) -> bool:
        return step in OPTIONAL_STEPS

    def is_step_skipped(self, step: int) -> bool:
        return step in self.state.skipped_steps

    @property
    def steps(self) -> List[StepInfo]:
        return [
            StepInfo(
                index=step,
                label=STEP_LABELS[step],
                optional=self.is_step_optional(step),
                skipped=self.is_step_skipped(step),
            )
            for step in WizardStep
        ]

    @property
    def can_advance(self) -> bool:
        """Whether the "Next"/"Finish" action should be offered."""
        step = self.state.active_step
        if step == WizardStep.COMPUTER_NAME:
            return bool(self.state.pending_computer_name.strip())
        if step == LAST_STEP:
            return self.progress.any_factor and self.initial_load_settled and self.device_name_settled
        return False

    @property
    def active_factor_enrolled(self) -> bool:
        if self.state.mfa_mode is MfaMode.TOTP:
            return self.progress.totp_ready
        return self.progress.sms_ready

    @property
    def mode_switch_available(self) -> bool:
        """Switching is offered only while the other factor is not yet set up."""
        if self.state.mfa_mode is MfaMode.SMS and self.progress.totp_ready:
            return False
        if self.state.mfa_mode is MfaMode.TOTP and self.progress.sms_ready:
            return False
        return True

    @property
    def provisioning_uri(self) -> Optional[str]:
        return self.provisioning.uri if self.provisioning else None

    # ============================================
    # Session snapshots
    # ============================================

    async def start(self) -> None:
        """
        Enter the wizard.

        Loads a fresh session to pre-fill the form. An enrolled user is sent
        straight to the destination; an existing computer name skips step 0.
        Skip eligibility is derived from this snapshot on every entry.
        """
        if not self._begin("wizard start"):
            return
        try:
            await self._load_user_data()
        finally:
            self.initial_load_settled = True
            self._settle()

        if self.navigation is None and not self.closed:
            await self.load_provisioning_uri()

    async def _load_user_data(self) -> None:
        try:
            session = await self.gateway.get_session()
        except AuthError as e:
            logger.warning(f"Failed loading user data: {e}")
            return
        if self.closed:
            return
        if session is None:
            self._navigate(Screen.LOGIN)
            return

        self._apply_session(session)
        if session.enrolled:
            return

        if session.phone_number:
            self.state.phone_number = session.phone_number
        if session.personal_desktop:
            self.state.pending_computer_name = session.personal_desktop
            if self.state.active_step == WizardStep.COMPUTER_NAME:
                self._skip(WizardStep.COMPUTER_NAME)

    def _apply_session(self, session: Optional[UserSession]) -> None:
        super()._apply_session(session)

        if session is None:
            if not self.allow_anonymous:
                self._navigate(Screen.LOGIN)
            return

        self.progress = session.progress
        if session.enrolled:
            self.state.active_step = STEP_COUNT
            self._navigate(Screen.REDIRECT)

    # ============================================
    # Step transitions
    # ============================================

    async def next(self) -> bool:
        """
        Advance from the active step.

        Step 0 persists a non-empty computer name (a failure only raises an
        alert) or skips when the name is empty. The MFA step requires at
        least one enrolled factor and commits the enrollment.

        Returns:
            True if the wizard moved forward
        """
        if self.is_completed or not self._begin("next"):
            return False
        try:
            step = self.state.active_step
            if step == WizardStep.COMPUTER_NAME:
                name = self.state.pending_computer_name.strip()
                if not name:
                    self._skip(step)
                    return True
                await self._persist_computer_name(name)
                if self.closed:
                    return False
                self._advance(step)
                return True

            if not self.progress.any_factor:
                logger.debug("Next ignored, no MFA factor enrolled yet")
                return False

            try:
                await self.gateway.commit_enrollment()
            except AuthError as e:
                if not self.closed:
                    self._alert("error", e.message)
                return False
            if self.closed:
                return False

            logger.info("Enrollment committed")
            self._advance(step)
            return True
        finally:
            self._settle()

    def back(self) -> bool:
        """Return to the previous step. Not allowed below step 0 or once completed."""
        if self.busy or self.is_completed or self.state.active_step <= WizardStep.COMPUTER_NAME:
            return False
        self.state.active_step -= 1
        return True

    def skip(self, step: Optional[int] = None) -> bool:
        """
        Skip the active step when it is optional.

        Ignored while another operation is in flight, once the wizard is
        completed, or when `step` is not the active step.

        Returns:
            True if the wizard moved forward

        Raises:
            IllegalSkipError: If the step is mandatory
        """
        step = self.state.active_step if step is None else step
        if step < STEP_COUNT and not self.is_step_optional(step):
            raise IllegalSkipError(f"You can't skip a step that isn't optional (step {step})")
        if self.busy or self.is_completed or step != self.state.active_step:
            return False
        self._skip(step)
        return True

    def _skip(self, step: int) -> None:
        self.state.skipped_steps.add(step)
        self.state.active_step = step + 1

    def _advance(self, step: int) -> None:
        self.state.skipped_steps.discard(step)
        self.state.active_step = step + 1

    async def _persist_computer_name(self, name: str) -> None:
        self.device_name_settled = False
        try:
            await self.gateway.update_device_name(name)
        except AuthError as e:
            self._alert("error", e.message)
        else:
            self._alert("success", COMPUTER_NAME_UPDATED_MESSAGE)
        finally:
            self.device_name_settled = True

    # ============================================
    # Form input
    # ============================================

    def set_computer_name(self, name: str) -> None:
        self.state.pending_computer_name = name

    def set_phone_number(self, phone_number: str) -> None:
        self.state.phone_number = phone_number

    def toggle_mfa_mode(self) -> MfaMode:
        """Switch between authenticator and phone enrollment when offered."""
        if self.mode_switch_available:
            self.state.mfa_mode = self.state.mfa_mode.other
            self.verification = VerificationState.NOT_VISIBLE
        return self.state.mfa_mode

    # ============================================
    # MFA setup
    # ============================================

    async def load_provisioning_uri(self) -> Optional[str]:
        """Fetch and validate the authenticator provisioning URI."""
        try:
            uri = await self.gateway.get_totp_provisioning_uri()
        except AuthError as e:
            logger.warning(f"Could not load TOTP provisioning URI: {e}")
            return None

        try:
            provisioning = parse_provisioning_uri(uri)
        except ValueError as e:
            logger.warning(f"Backend returned an unusable provisioning URI: {e}")
            return None

        if self.closed:
            return None
        self.provisioning = provisioning
        return uri

    def qr_code_data_uri(self) -> Optional[str]:
        """PNG data URI of the provisioning QR code, once the URI is loaded."""
        if self.provisioning is None:
            return None
        return generate_qr_code_base64(self.provisioning.uri)

    async def submit_phone(self, phone_number: Optional[str] = None) -> bool:
        """
        Start SMS enrollment for a phone number.

        Submissions are throttled: after one is sent, further ones are
        ignored until the cooldown ends.

        Returns:
            True if the enrollment SMS was sent
        """
        if self.closed:
            return False
        if phone_number is not None:
            self.state.phone_number = phone_number
        number = self.state.phone_number

        if not validate_phone_number(number).ok:
            self._alert("error", INVALID_PHONE_MESSAGE)
            return False
        if self.phone_cooldown_active:
            logger.info("Phone submission suppressed by cooldown")
            return False

        self.phone_cooldown_active = True
        self._call_later(self.phone_cooldown, self._end_phone_cooldown)

        try:
            await self.gateway.initiate_enrollment_sms(number)
        except AuthError as e:
            self._alert("error", e.message)
            return False

        self._alert("info", ENROLLMENT_SMS_SENT_MESSAGE)
        return True

    def _end_phone_cooldown(self) -> None:
        self.phone_cooldown_active = False

    async def submit_code(self, code: str) -> bool:
        """
        Verify an enrollment code for the active MFA mode.

        Returns:
            True if the backend accepted the code
        """
        if not self._begin("enrollment code"):
            return False
        try:
            check = validate_code(code)
            if not check.ok:
                self._alert("error", check.error.message)
                return False

            try:
                await self.gateway.submit_enrollment_code(self.state.mfa_mode, normalize_code(code))
            except AuthError as e:
                if not self.closed:
                    self.verification = VerificationState.ERROR
                    self._alert("error", e.message)
                return False

            if not self.closed:
                self.verification = VerificationState.SUCCESS
                self._alert("success", CODE_VERIFIED_MESSAGE)
            return True
        finally:
            self._settle()
