"""
Interactive terminal front end for the login flow.

Runs login, MFA and enrollment against a backend (or the built-in mock)
and prints the protected destination once the session is fully
authenticated.

Usage:
    python -m authflow --base-url https://idp.example.com
    python -m authflow --mock --log-level DEBUG
"""
import argparse
import asyncio
import getpass
import logging
import sys
from typing import Optional

from .config import Settings, get_settings
from .controllers import (
    Alert,
    EnrollmentWizardController,
    LoginController,
    LoginStatus,
    MfaController,
    MfaOutcome,
    Screen,
    WizardStep,
    resolve_screen,
)
from .gateway import AuthError, AuthGateway, MockAuthGateway
from .logging_config import configure_logging, current_screen
from .models import MfaMode
from .session import SessionPoller
from .utils.secrets import get_login_password, get_login_username

logger = logging.getLogger(__name__)


async def _prompt(text: str, secret: bool = False) -> str:
    reader = getpass.getpass if secret else input
    return (await asyncio.to_thread(reader, text)).strip()


def _print_alert(alert: Alert) -> None:
    print(f"[{alert.severity}] {alert.description}")


# ============================================
# Screens
# ============================================

async def run_login(gateway, username: Optional[str], password: Optional[str]) -> bool:
    """Prompt for credentials until stage 1 succeeds. False if given credentials were rejected."""
    controller = LoginController(gateway, on_alert=_print_alert)
    interactive = username is None or password is None
    try:
        while True:
            if username is None:
                username = await _prompt("Username: ")
            if password is None:
                password = await _prompt("Password: ", secret=True)

            result = await controller.submit(username, password)
            if result.status is LoginStatus.SUCCESS:
                return True
            for field_name, message in result.field_errors.items():
                print(f"  {field_name}: {message}")
            if not interactive:
                return False
            username = password = None
    finally:
        controller.close()


async def run_mfa(gateway, poller: SessionPoller, settings: Settings) -> Optional[Screen]:
    controller = MfaController(
        gateway,
        sms_revert_delay=settings.sms_revert_delay,
        sms_cooldown=settings.sms_cooldown,
        allow_anonymous=settings.allow_anonymous_page_access,
        on_alert=_print_alert,
    )
    controller.attach(poller.store)
    try:
        await controller.start()
        if controller.navigation is None and controller.mode is MfaMode.SMS:
            await controller.resend_sms()

        while controller.navigation is None:
            if controller.mode is MfaMode.TOTP:
                reply = await _prompt("Authenticator code ('s' for SMS): ")
                if reply.lower() == "s" and controller.switch_target:
                    await controller.switch_mode(MfaMode.SMS)
                elif await controller.submit(reply) is MfaOutcome.SUCCESS:
                    await poller.poll_once()
                continue

            hint = "'r' resend, 't' authenticator" if controller.switch_target else "'r' resend"
            reply = await _prompt(f"Follow the SMS link, then press Enter ({hint}): ")
            if reply.lower() == "r":
                await controller.resend_sms()
            elif reply.lower() == "t" and controller.switch_target:
                await controller.switch_mode(MfaMode.TOTP)
            else:
                if isinstance(gateway, MockAuthGateway):
                    try:
                        gateway.approve_sms_link()
                    except AuthError as e:
                        print(f"[error] {e.message}")
                await poller.poll_once()
        return controller.navigation
    finally:
        controller.close()


async def run_enrollment(gateway, poller: SessionPoller, settings: Settings) -> Optional[Screen]:
    controller = EnrollmentWizardController(
        gateway,
        phone_cooldown=settings.sms_cooldown,
        allow_anonymous=settings.allow_anonymous_page_access,
        on_alert=_print_alert,
    )
    controller.attach(poller.store)
    try:
        await controller.start()
        while controller.navigation is None:
            if controller.is_completed:
                print("All steps completed, waiting for the server")
                await asyncio.sleep(settings.polling_interval)
                continue

            if controller.active_step == WizardStep.COMPUTER_NAME:
                default = controller.state.pending_computer_name
                name = await _prompt(f"Computer name [{default}] (empty to skip): ")
                if name:
                    controller.set_computer_name(name)
                await controller.next()
                continue

            await _enrollment_mfa_step(controller, poller)
        return controller.navigation
    finally:
        controller.close()


async def _enrollment_mfa_step(controller: EnrollmentWizardController, poller: SessionPoller) -> None:
    if controller.state.mfa_mode is MfaMode.TOTP:
        if controller.provisioning_uri:
            print(f"Add this key to your authenticator app: {controller.provisioning_uri}")
        actions = "code <123456>"
    else:
        actions = "phone <+number>, code <123456>"
    if controller.mode_switch_available:
        actions += ", switch"
    actions += ", back"
    if controller.can_advance:
        actions += ", finish"

    command, _, value = (await _prompt(f"[{controller.state.mfa_mode.value}] {actions}: ")).partition(" ")
    command = command.lower()
    if command == "code":
        if await controller.submit_code(value):
            await poller.poll_once()
    elif command == "phone" and controller.state.mfa_mode is MfaMode.SMS:
        await controller.submit_phone(value)
    elif command == "switch":
        controller.toggle_mfa_mode()
    elif command == "back":
        controller.back()
    elif command == "finish":
        if await controller.next():
            await poller.poll_once()
    else:
        print(f"Unknown command: {command}")


# ============================================
# Flow
# ============================================

async def run_flow(settings: Settings, username: Optional[str] = None, password: Optional[str] = None) -> int:
    """
    Drive the user from whatever state the backend reports to the destination.

    Returns:
        Process exit code
    """
    if settings.mock:
        gateway = MockAuthGateway(settings.mock_settings, redirect_url=settings.redirect_url)
    else:
        gateway = AuthGateway.from_settings(settings)

    async with gateway:
        poller = SessionPoller(gateway, interval=settings.polling_interval, fetch_immediately=False)
        await poller.poll_once()
        poller.start()
        try:
            screen = resolve_screen(poller.store.snapshot)
            while screen is not Screen.REDIRECT:
                current_screen.set(screen.value)
                logger.info(f"Showing {screen.value} screen")

                if screen is Screen.LOGIN:
                    if not await run_login(gateway, username, password):
                        return 1
                    username = password = None
                    await poller.poll_once()
                    screen = resolve_screen(poller.store.snapshot)
                elif screen is Screen.MFA:
                    screen = await run_mfa(gateway, poller, settings) or Screen.LOGIN
                else:
                    screen = await run_enrollment(gateway, poller, settings) or Screen.LOGIN

                # Enrollment hands over to MFA verification when stage 2 is still open
                if screen is Screen.REDIRECT and not _mfa_satisfied(poller):
                    screen = resolve_screen(poller.store.snapshot)
        finally:
            await poller.stop()

    current_screen.set(Screen.REDIRECT.value)
    print(f"Authenticated. Continue at {settings.redirect_url}")
    return 0


def _mfa_satisfied(poller: SessionPoller) -> bool:
    session = poller.store.snapshot
    return session is not None and session.mfa_satisfied


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Log in through the AUTHFLOW login, MFA and enrollment screens",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m authflow --base-url https://idp.example.com
  python -m authflow --mock                      # In-memory backend (demo / 1234)
  AUTHFLOW_USERNAME=alice AUTHFLOW_PASSWORD_FILE=/run/secrets/pw python -m authflow
        """
    )
    parser.add_argument('--base-url', help='Backend base URL (default: AUTHFLOW_API_BASE_URL)')
    parser.add_argument('--api-version', help='API version segment (default: AUTHFLOW_API_VERSION)')
    parser.add_argument('--username', help='Username (default: AUTHFLOW_USERNAME, else prompt)')
    parser.add_argument('--password', help='Password (default: AUTHFLOW_PASSWORD, else prompt)')
    parser.add_argument('--mock', action='store_true', help='Use the in-memory mock backend')
    parser.add_argument('--log-level', help='Log level (default: LOG_LEVEL or INFO)')

    args = parser.parse_args(argv)

    overrides = {}
    if args.base_url:
        overrides["api_base_url"] = args.base_url
    if args.api_version:
        overrides["api_version"] = args.api_version
    if args.mock:
        overrides["mock"] = True
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()
    settings = get_settings().model_copy(update=overrides)

    configure_logging(settings.log_level, settings.log_format)

    try:
        return asyncio.run(run_flow(
            settings,
            username=args.username or get_login_username(),
            password=args.password or get_login_password(),
        ))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
