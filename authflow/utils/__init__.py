"""Shared helpers."""
from .secrets import get_login_password, get_login_username, get_secret, mask_secret

__all__ = ["get_login_password", "get_login_username", "get_secret", "mask_secret"]
