"""
Pytest configuration and shared fixtures for AUTHFLOW tests.

This module provides common test fixtures for:
- Session payloads and snapshots
- A mocked authentication gateway
- Snapshot stores
"""
import pytest
from pathlib import Path
from unittest.mock import MagicMock

# Add the project root to Python path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from authflow.gateway import AuthGateway
from authflow.models import UserSession
from authflow.session import SessionSnapshotStore


TOTP_URI = "otpauth://totp/AUTHFLOW:alice?secret=JBSWY3DPEHPK3PXP&issuer=AUTHFLOW"


# ============================================
# Session Fixtures
# ============================================

def session_payload(**overrides) -> dict:
    """`users/me` body for a logged-in, enrolled user at stage 1."""
    payload = {
        "id": "u-1",
        "kind": "user",
        "name": "alice",
        "system": False,
        "enabled": True,
        "phone_number": "",
        "ctime": "2024-01-01T00:00:00Z",
        "mtime": "2024-01-01T00:00:00Z",
        "supervisor": None,
        "auth_level": 1,
        "personal_desktop": "",
        "enrolled": True,
        "totp_enabled": True,
        "totp_enrolled": True,
    }
    payload.update(overrides)
    return payload


def make_session(**overrides) -> UserSession:
    return UserSession.model_validate(session_payload(**overrides))


@pytest.fixture
def session_factory():
    """Build UserSession snapshots with field overrides."""
    return make_session


# ============================================
# Gateway Fixtures
# ============================================

@pytest.fixture
def mock_gateway():
    """
    Mock AuthGateway.

    Every coroutine is an AsyncMock that succeeds by default; tests set
    `side_effect` to an AuthError to simulate backend failures.
    """
    gateway = MagicMock(spec=AuthGateway)
    gateway.get_session.return_value = make_session()
    gateway.login.return_value = MagicMock(redirect_uri="/v1/redirect")
    gateway.confirm_mfa.return_value = None
    gateway.initiate_mfa_sms.return_value = None
    gateway.update_device_name.return_value = None
    gateway.commit_enrollment.return_value = None
    gateway.initiate_enrollment_sms.return_value = None
    gateway.submit_enrollment_code.return_value = None
    gateway.get_totp_provisioning_uri.return_value = TOTP_URI
    return gateway


@pytest.fixture
def store():
    return SessionSnapshotStore()


@pytest.fixture
def alerts():
    """Collects alerts raised through a controller's on_alert callback."""
    return []
