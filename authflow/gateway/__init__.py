"""
Backend access for AUTHFLOW.

This package provides:
- AuthGateway: httpx client for the authentication backend
- MockAuthGateway: in-memory backend with the same interface
- AuthError: the single error type both raise
"""
from .client import AuthGateway, Endpoint
from .errors import AuthError
from .mock import MockAuthGateway

__all__ = ["AuthGateway", "AuthError", "Endpoint", "MockAuthGateway"]
