"""
Credential lookup for AUTHFLOW front ends.

Supports two sources for login credentials used by unattended runs:
1. Files referenced by {NAME}_FILE (Docker secrets, CI secret mounts)
2. Environment variables

Usage:
    from authflow.utils.secrets import get_login_username

    username = get_login_username()  # AUTHFLOW_USERNAME_FILE, then AUTHFLOW_USERNAME
"""
import os
import logging
from typing import Optional
from functools import lru_cache

logger = logging.getLogger(__name__)


@lru_cache(maxsize=32)
def get_secret(name: str, default: Optional[str] = None) -> Optional[str]:
    """
    Get a secret value.

    Priority:
    1. {NAME}_FILE environment variable (path to file containing secret)
    2. {NAME} environment variable (direct value)
    3. Default value

    Args:
        name: Secret name (e.g., "AUTHFLOW_PASSWORD")
        default: Default value if secret not found

    Returns:
        Secret value or default
    """
    file_path = os.environ.get(f"{name}_FILE")
    if file_path:
        try:
            with open(file_path, 'r') as f:
                logger.debug(f"Loaded secret {name} from file")
                return f.read().strip()
        except OSError as e:
            logger.warning(f"Failed to read secret file {file_path}: {e}")

    env_value = os.environ.get(name)
    if env_value:
        logger.debug(f"Loaded secret {name} from environment")
        return env_value

    return default


def get_login_username() -> Optional[str]:
    return get_secret("AUTHFLOW_USERNAME")


def get_login_password() -> Optional[str]:
    return get_secret("AUTHFLOW_PASSWORD")


def mask_secret(secret: str, visible_chars: int = 4) -> str:
    """
    Mask a value for safe logging.

    Args:
        secret: The value to mask
        visible_chars: Number of characters to show at start and end

    Returns:
        Masked string like "al...ce", or "***" for short values
    """
    if not secret or len(secret) <= visible_chars * 2:
        return "***"
    return f"{secret[:visible_chars]}...{secret[-visible_chars:]}"
