"""Screens of the login flow and how a session maps onto them."""
from enum import Enum
from typing import Optional

from ..models import UserSession


class Screen(str, Enum):
    LOGIN = "login"
    MFA = "mfa"
    ENROLL = "enroll"
    REDIRECT = "redirect"


def resolve_screen(session: Optional[UserSession]) -> Screen:
    """
    Decide which screen a session belongs on.

    - no session, anonymous, or not yet past stage 1 -> LOGIN
    - stage 1 passed but enrollment incomplete -> ENROLL
    - MFA already satisfied -> REDIRECT
    - otherwise -> MFA
    """
    if session is None or session.is_anonymous or session.auth_level < 1:
        return Screen.LOGIN
    if not session.enrolled:
        return Screen.ENROLL
    if session.mfa_satisfied:
        return Screen.REDIRECT
    return Screen.MFA
