"""
Plumbing shared by the screen controllers.

Covers alerts, navigation requests, the session subscription, timer
tasks and the one-operation-at-a-time guard.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Set

from ..models import UserSession
from ..session.store import SessionSnapshotStore, Subscription
from .navigation import Screen

logger = logging.getLogger(__name__)

_NO_SNAPSHOT = object()


@dataclass(frozen=True)
class Alert:
    """Transient, user-visible message."""
    severity: str  # "info" | "success" | "error"
    description: str


AlertCallback = Callable[[Alert], None]
NavigateCallback = Callable[[Screen], None]


class BaseController:
    """
    Base for controllers bound to one screen visit.

    Subclasses implement `_apply_session`. Snapshots that arrive while an
    operation is in flight are held back and applied once it settles, so
    a poll tick never races a user action.
    """

    def __init__(
        self,
        gateway,
        on_alert: Optional[AlertCallback] = None,
        on_navigate: Optional[NavigateCallback] = None,
    ):
        self.gateway = gateway
        self.on_alert = on_alert
        self.on_navigate = on_navigate
        self.alert: Optional[Alert] = None
        self.navigation: Optional[Screen] = None
        self.session: Optional[UserSession] = None
        self._subscription: Optional[Subscription] = None
        self._timers: Set[asyncio.Task] = set()
        self._busy = False
        self._deferred = _NO_SNAPSHOT
        self._closed = False

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def closed(self) -> bool:
        return self._closed

    # ============================================
    # Session snapshots
    # ============================================

    def attach(self, store: SessionSnapshotStore) -> Subscription:
        """Subscribe to a snapshot store (replaying its current snapshot)."""
        if self._subscription is not None:
            self._subscription.cancel()
        self._subscription = store.subscribe(self.on_session, replay=True)
        return self._subscription

    def on_session(self, session: Optional[UserSession]) -> None:
        if self._closed:
            return
        if self._busy:
            self._deferred = session
            return
        self._apply_session(session)

    def _apply_session(self, session: Optional[UserSession]) -> None:
        self.session = session

    # ============================================
    # Operations
    # ============================================

    def _begin(self, operation: str) -> bool:
        """Claim the controller for an operation; False if one is already running."""
        if self._closed:
            logger.debug(f"{operation} ignored, controller closed")
            return False
        if self._busy:
            logger.debug(f"{operation} ignored, another operation is in flight")
            return False
        self._busy = True
        return True

    def _settle(self) -> None:
        self._busy = False
        deferred, self._deferred = self._deferred, _NO_SNAPSHOT
        if deferred is not _NO_SNAPSHOT and not self._closed:
            self._apply_session(deferred)

    def _call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.Task:
        """Run `callback` after `delay` seconds unless cancelled or closed first."""
        async def _fire():
            await asyncio.sleep(delay)
            if not self._closed:
                callback()

        task = asyncio.create_task(_fire())
        self._timers.add(task)
        task.add_done_callback(self._timers.discard)
        return task

    # ============================================
    # Outputs
    # ============================================

    def _alert(self, severity: str, description: str) -> None:
        if self._closed:
            return
        self.alert = Alert(severity=severity, description=description)
        logger.debug(f"Alert ({severity}): {description}")
        if self.on_alert is not None:
            self.on_alert(self.alert)

    def dismiss_alert(self) -> None:
        self.alert = None

    def _navigate(self, screen: Screen) -> None:
        """Request navigation. Repeated requests for the same screen are dropped."""
        if self._closed or self.navigation is screen:
            return
        self.navigation = screen
        logger.info(f"Navigating to {screen.value}")
        if self.on_navigate is not None:
            self.on_navigate(screen)

    def close(self) -> None:
        """Tear down: drop the subscription and cancel pending timers. Idempotent."""
        if self._closed:
            return
        self._closed = True
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        for task in list(self._timers):
            task.cancel()
        self._timers.clear()
