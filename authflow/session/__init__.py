"""Session snapshot cache and polling loop."""
from .poller import SessionPoller
from .store import SessionSnapshotStore, Subscription

__all__ = ["SessionPoller", "SessionSnapshotStore", "Subscription"]
