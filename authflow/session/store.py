"""Last-write-wins cache of the current session snapshot."""
import logging
from typing import Callable, Dict, Optional

from ..models import UserSession

logger = logging.getLogger(__name__)

SessionCallback = Callable[[Optional[UserSession]], None]


class Subscription:
    """Handle returned by `SessionSnapshotStore.subscribe`."""

    def __init__(self, store: "SessionSnapshotStore", token: int):
        self._store = store
        self._token = token

    @property
    def active(self) -> bool:
        return self._token in self._store._subscribers

    def cancel(self) -> None:
        """Detach the callback. Safe to call more than once."""
        self._store._subscribers.pop(self._token, None)


class SessionSnapshotStore:
    """
    Holds the most recently fetched session and fans it out to subscribers.

    `snapshot` is None both before the first publish and when the last
    fetch found nobody logged in; `has_snapshot` tells the two apart.
    """

    def __init__(self):
        self._snapshot: Optional[UserSession] = None
        self._has_snapshot = False
        self._subscribers: Dict[int, SessionCallback] = {}
        self._next_token = 0

    @property
    def snapshot(self) -> Optional[UserSession]:
        return self._snapshot

    @property
    def has_snapshot(self) -> bool:
        return self._has_snapshot

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: SessionCallback, replay: bool = False) -> Subscription:
        """
        Register a callback for future snapshots.

        Args:
            callback: Called with each published snapshot (or None)
            replay: Immediately deliver the current snapshot, if any

        Returns:
            Subscription handle for detaching
        """
        token = self._next_token
        self._next_token += 1
        self._subscribers[token] = callback

        if replay and self._has_snapshot:
            callback(self._snapshot)
        return Subscription(self, token)

    def publish(self, session: Optional[UserSession]) -> None:
        """Replace the snapshot and notify every subscriber."""
        self._snapshot = session
        self._has_snapshot = True

        # Callbacks may unsubscribe while we iterate
        for token, callback in list(self._subscribers.items()):
            if token not in self._subscribers:
                continue
            try:
                callback(session)
            except AssertionError:
                raise
            except Exception:
                logger.exception("Session subscriber failed")
