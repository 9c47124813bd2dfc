"""
Tests for the enrollment wizard controller.

Covers:
- Computer name step: persist, skip, auto-skip on entry
- MFA setup step: factor requirement and enrollment commit
- Illegal skips of mandatory steps
- Completion for already enrolled users
- Phone submission throttling and code verification
"""
import asyncio

import pytest

from authflow.controllers import (
    EnrollmentWizardController,
    IllegalSkipError,
    Screen,
    VerificationState,
    WizardStep,
)
from authflow.controllers.enrollment import (
    COMPUTER_NAME_UPDATED_MESSAGE,
    ENROLLMENT_SMS_SENT_MESSAGE,
    INVALID_PHONE_MESSAGE,
    STEP_COUNT,
)
from authflow.gateway import AuthError
from authflow.models import MfaMode

from conftest import TOTP_URI, make_session


def fresh_user(**overrides):
    fields = {"enrolled": False, "personal_desktop": "", "totp_enrolled": False, "phone_number": ""}
    fields.update(overrides)
    return make_session(**fields)


@pytest.fixture
def gateway(mock_gateway):
    mock_gateway.get_session.return_value = fresh_user()
    return mock_gateway


@pytest.fixture
def wizard(gateway, store, alerts):
    controller = EnrollmentWizardController(gateway, phone_cooldown=10, on_alert=alerts.append)
    controller.attach(store)
    return controller


# ============================================
# Computer Name Step Tests
# ============================================

class TestComputerNameStep:
    """Test step 0."""

    @pytest.mark.asyncio
    async def test_name_required_to_advance(self, wizard, gateway, alerts):
        await wizard.start()
        assert wizard.active_step == WizardStep.COMPUTER_NAME
        assert not wizard.can_advance

        wizard.set_computer_name("ts-comp")
        assert wizard.can_advance

        assert await wizard.next()
        gateway.update_device_name.assert_awaited_once_with("ts-comp")
        assert wizard.active_step == WizardStep.MFA_SETUP
        assert alerts[-1].description == COMPUTER_NAME_UPDATED_MESSAGE

    @pytest.mark.asyncio
    async def test_existing_name_auto_skips(self, wizard, gateway):
        gateway.get_session.return_value = fresh_user(personal_desktop="ts-comp")

        await wizard.start()

        assert wizard.active_step == WizardStep.MFA_SETUP
        assert wizard.is_step_skipped(WizardStep.COMPUTER_NAME)
        assert wizard.state.pending_computer_name == "ts-comp"
        gateway.update_device_name.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_auto_skip_derived_on_every_entry(self, gateway, store):
        gateway.get_session.return_value = fresh_user(personal_desktop="ts-comp")

        for _ in range(2):
            wizard = EnrollmentWizardController(gateway)
            wizard.attach(store)
            await wizard.start()
            assert wizard.active_step == WizardStep.MFA_SETUP
            wizard.close()

    @pytest.mark.asyncio
    async def test_empty_name_skips_without_persisting(self, wizard, gateway):
        await wizard.start()

        assert await wizard.next()
        assert wizard.active_step == WizardStep.MFA_SETUP
        assert wizard.is_step_skipped(WizardStep.COMPUTER_NAME)
        gateway.update_device_name.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_persist_failure_alerts_and_still_advances(self, wizard, gateway, alerts):
        gateway.update_device_name.side_effect = AuthError("failed to update computer name")
        await wizard.start()
        wizard.set_computer_name("ts-comp")

        assert await wizard.next()
        assert wizard.active_step == WizardStep.MFA_SETUP
        assert alerts[-1].severity == "error"
        assert wizard.device_name_settled

    @pytest.mark.asyncio
    async def test_next_clears_skip_after_going_back(self, wizard, gateway):
        await wizard.start()
        wizard.skip()
        assert wizard.back()

        wizard.set_computer_name("ts-comp")
        await wizard.next()

        assert not wizard.is_step_skipped(WizardStep.COMPUTER_NAME)

    @pytest.mark.asyncio
    async def test_start_prefills_phone_number(self, wizard, gateway):
        gateway.get_session.return_value = fresh_user(phone_number="+16502530000")
        await wizard.start()
        assert wizard.state.phone_number == "+16502530000"

    @pytest.mark.asyncio
    async def test_start_without_session_goes_to_login(self, wizard, gateway):
        gateway.get_session.return_value = None
        await wizard.start()
        assert wizard.navigation is Screen.LOGIN


# ============================================
# Step Transition Tests
# ============================================

class TestTransitions:
    """Test back, skip and mandatory steps."""

    def test_back_not_below_first_step(self, wizard):
        assert not wizard.back()
        assert wizard.active_step == WizardStep.COMPUTER_NAME

    def test_skip_mandatory_step_raises(self, wizard):
        with pytest.raises(IllegalSkipError):
            wizard.skip(WizardStep.MFA_SETUP)

    def test_illegal_skip_is_an_assertion(self):
        assert issubclass(IllegalSkipError, AssertionError)

    def test_skip_optional_step(self, wizard):
        assert wizard.skip(WizardStep.COMPUTER_NAME)
        assert wizard.active_step == WizardStep.MFA_SETUP

    def test_skip_inactive_step_ignored(self, wizard):
        assert wizard.skip()
        assert not wizard.skip(WizardStep.COMPUTER_NAME)
        assert wizard.active_step == WizardStep.MFA_SETUP

    @pytest.mark.asyncio
    async def test_skip_ignored_once_completed(self, wizard, store):
        await wizard.start()
        wizard.skip()
        store.publish(fresh_user(totp_enrolled=True))
        await wizard.next()

        assert not wizard.skip(WizardStep.COMPUTER_NAME)
        assert not wizard.skip()
        assert wizard.is_completed

    @pytest.mark.asyncio
    async def test_skip_ignored_while_busy(self, wizard, gateway):
        release = asyncio.Event()

        async def slow_verify(kind, code):
            await release.wait()

        gateway.submit_enrollment_code.side_effect = slow_verify
        pending = asyncio.create_task(wizard.submit_code("123456"))
        await asyncio.sleep(0)

        assert not wizard.skip()
        assert wizard.active_step == WizardStep.COMPUTER_NAME

        release.set()
        await pending

    def test_steps_describe_wizard(self, wizard):
        steps = wizard.steps
        assert [step.label for step in steps] == ["Computer name setup", "MFA Setup"]
        assert [step.optional for step in steps] == [True, False]


# ============================================
# MFA Setup Step Tests
# ============================================

class TestMfaSetupStep:
    """Test step 1 and the enrollment commit."""

    @pytest.mark.asyncio
    async def test_next_without_factor_is_a_noop(self, wizard, gateway):
        await wizard.start()
        wizard.skip()

        assert not wizard.can_advance
        assert not await wizard.next()
        assert wizard.active_step == WizardStep.MFA_SETUP
        gateway.commit_enrollment.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_factor_seen_by_poll_enables_finish(self, wizard, gateway, store):
        await wizard.start()
        wizard.skip()

        store.publish(fresh_user(totp_enrolled=True))
        assert wizard.can_advance

        assert await wizard.next()
        gateway.commit_enrollment.assert_awaited_once()
        assert wizard.is_completed
        assert wizard.active_step == STEP_COUNT

    @pytest.mark.asyncio
    async def test_commit_failure_stays_on_step(self, wizard, gateway, store, alerts):
        gateway.commit_enrollment.side_effect = AuthError("failed to complete enrollment")
        await wizard.start()
        wizard.skip()
        store.publish(fresh_user(phone_number="+16502530000"))

        assert not await wizard.next()
        assert wizard.active_step == WizardStep.MFA_SETUP
        assert alerts[-1].description == "failed to complete enrollment"

    @pytest.mark.asyncio
    async def test_local_code_success_does_not_unlock_finish(self, wizard, gateway):
        await wizard.start()
        wizard.skip()

        assert await wizard.submit_code("123456")
        assert not wizard.can_advance

    @pytest.mark.asyncio
    async def test_back_ignored_once_completed(self, wizard, store):
        await wizard.start()
        wizard.skip()
        store.publish(fresh_user(totp_enrolled=True))
        await wizard.next()

        assert not wizard.back()
        assert wizard.is_completed


# ============================================
# Completion Tests
# ============================================

class TestCompletion:
    """Test users who are already enrolled."""

    @pytest.mark.asyncio
    async def test_enrolled_on_entry_completes(self, wizard, gateway):
        gateway.get_session.return_value = fresh_user(enrolled=True)

        await wizard.start()

        assert wizard.is_completed
        assert wizard.navigation is Screen.REDIRECT

    def test_enrolled_snapshot_completes(self, wizard, store):
        store.publish(fresh_user(enrolled=True))

        assert wizard.is_completed
        assert wizard.navigation is Screen.REDIRECT
        assert not wizard.can_advance


# ============================================
# Phone And Code Tests
# ============================================

class TestPhoneAndCode:
    """Test SMS enrollment and code verification."""

    @pytest.mark.asyncio
    async def test_invalid_phone_rejected_locally(self, wizard, gateway, alerts):
        assert not await wizard.submit_phone("1234")

        assert alerts[-1].description == INVALID_PHONE_MESSAGE
        gateway.initiate_enrollment_sms.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_phone_submission_throttled(self, wizard, gateway, alerts):
        assert await wizard.submit_phone("+1 650 253 0000")
        assert alerts[-1].description == ENROLLMENT_SMS_SENT_MESSAGE

        assert not await wizard.submit_phone("+1 650 253 0000")
        assert gateway.initiate_enrollment_sms.await_count == 1

    @pytest.mark.asyncio
    async def test_phone_cooldown_expires(self, gateway):
        wizard = EnrollmentWizardController(gateway, phone_cooldown=0.01)
        await wizard.submit_phone("+16502530000")
        await asyncio.sleep(0.05)
        await wizard.submit_phone("+16502530000")

        assert gateway.initiate_enrollment_sms.await_count == 2
        wizard.close()

    @pytest.mark.asyncio
    async def test_phone_send_failure_alerts(self, wizard, gateway, alerts):
        gateway.initiate_enrollment_sms.side_effect = AuthError("failed to send sms message")

        assert not await wizard.submit_phone("+16502530000")
        assert alerts[-1].severity == "error"

    @pytest.mark.asyncio
    async def test_code_submitted_for_active_mode(self, wizard, gateway):
        wizard.toggle_mfa_mode()
        assert wizard.state.mfa_mode is MfaMode.SMS

        assert await wizard.submit_code("654 321")
        gateway.submit_enrollment_code.assert_awaited_once_with(MfaMode.SMS, "654321")
        assert wizard.verification is VerificationState.SUCCESS

    @pytest.mark.asyncio
    async def test_code_failure(self, wizard, gateway, alerts):
        gateway.submit_enrollment_code.side_effect = AuthError("failed to validate code")

        assert not await wizard.submit_code("123456")
        assert wizard.verification is VerificationState.ERROR
        assert alerts[-1].description == "failed to validate code"

    def test_switch_hidden_once_other_factor_ready(self, wizard, store):
        store.publish(fresh_user(phone_number="+16502530000"))

        assert wizard.state.mfa_mode is MfaMode.TOTP
        assert not wizard.mode_switch_available
        assert wizard.toggle_mfa_mode() is MfaMode.TOTP

    @pytest.mark.asyncio
    async def test_provisioning_uri_loaded_on_start(self, wizard):
        await wizard.start()

        assert wizard.provisioning_uri == TOTP_URI
        assert wizard.provisioning.issuer == "AUTHFLOW"
        assert wizard.qr_code_data_uri().startswith("data:image/png;base64,")

    @pytest.mark.asyncio
    async def test_unusable_provisioning_uri_ignored(self, wizard, gateway):
        gateway.get_totp_provisioning_uri.return_value = "https://not-otp"

        await wizard.start()
        assert wizard.provisioning_uri is None
        assert wizard.qr_code_data_uri() is None
