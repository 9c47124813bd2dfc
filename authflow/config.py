"""
Configuration for AUTHFLOW.

All values come from environment variables; see `Settings.from_env`.

Usage:
    from authflow.config import get_settings

    settings = get_settings()
    poller = SessionPoller(gateway, store, interval=settings.polling_interval)
"""
import os
from functools import lru_cache

from pydantic import BaseModel, Field


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_ms(name: str, default_ms: int) -> float:
    """Read a millisecond value and return it in seconds."""
    return int(os.getenv(name, str(default_ms))) / 1000.0


class MockSettings(BaseModel):
    """Seed state for the in-memory mock backend."""
    username: str = "demo"
    password: str = "1234"
    computer_name: str = "ts-comp"
    computer_already_set: bool = False
    phone_number: str = ""
    enrolled: bool = False
    totp_enrolled: bool = True
    supervisor: str = ""


class Settings(BaseModel):
    api_base_url: str = "http://localhost:8080"
    api_version: str = "v1"
    polling_interval: float = Field(2.0, gt=0, description="Seconds between session polls")
    request_timeout: float = Field(10.0, gt=0)
    sms_revert_delay: float = Field(1.5, ge=0, description="Seconds before falling back to TOTP after a failed SMS send")
    sms_cooldown: float = Field(3.0, ge=0, description="Minimum seconds between SMS sends")
    allow_anonymous_page_access: bool = True
    mock: bool = False
    mock_settings: MockSettings = Field(default_factory=MockSettings)
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - [%(screen)s] %(message)s"

    @property
    def api_root(self) -> str:
        """Base URL every endpoint path is resolved against."""
        return f"{self.api_base_url.rstrip('/')}/{self.api_version.strip('/')}/"

    @property
    def redirect_url(self) -> str:
        """Protected destination the user is sent to once fully authenticated."""
        return f"{self.api_root}redirect"

    @classmethod
    def from_env(cls) -> "Settings":
        mock_settings = MockSettings(
            username=os.getenv("AUTHFLOW_MOCK_USERNAME", "demo"),
            password=os.getenv("AUTHFLOW_MOCK_PASSWORD", "1234"),
            computer_name=os.getenv("AUTHFLOW_MOCK_COMPUTER_NAME", "ts-comp"),
            computer_already_set=_env_bool("AUTHFLOW_MOCK_COMPUTER_ALREADY_SET", False),
            phone_number=os.getenv("AUTHFLOW_MOCK_PHONE_NUMBER", ""),
            enrolled=_env_bool("AUTHFLOW_MOCK_ENROLLED", False),
            totp_enrolled=_env_bool("AUTHFLOW_MOCK_TOTP_ENROLLED", True),
            supervisor=os.getenv("AUTHFLOW_MOCK_SUPERVISOR", ""),
        )

        defaults = cls.model_fields
        return cls(
            api_base_url=os.getenv("AUTHFLOW_API_BASE_URL", defaults["api_base_url"].default),
            api_version=os.getenv("AUTHFLOW_API_VERSION", defaults["api_version"].default),
            polling_interval=_env_ms("AUTHFLOW_POLLING_INTERVAL_MS", 2000),
            request_timeout=float(os.getenv("AUTHFLOW_REQUEST_TIMEOUT", "10")),
            sms_revert_delay=_env_ms("AUTHFLOW_SMS_REVERT_DELAY_MS", 1500),
            sms_cooldown=_env_ms("AUTHFLOW_SMS_COOLDOWN_MS", 3000),
            allow_anonymous_page_access=_env_bool("AUTHFLOW_ALLOW_ANONYMOUS_PAGE_ACCESS", True),
            mock=_env_bool("AUTHFLOW_MOCK", False),
            mock_settings=mock_settings,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("LOG_FORMAT", defaults["log_format"].default),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the process-wide settings (read once from the environment)."""
    return Settings.from_env()
