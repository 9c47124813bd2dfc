"""
Session polling loop.

A single asyncio task fetches `users/me` on a fixed interval and
publishes the result into a `SessionSnapshotStore`. Any number of
consumers subscribe to the store; attaching or detaching them never
touches the timer.
"""
import asyncio
import logging
from typing import Optional, Set

from ..gateway.errors import AuthError
from .store import SessionCallback, SessionSnapshotStore, Subscription

logger = logging.getLogger(__name__)

DEFAULT_POLLING_INTERVAL = 2.0


class SessionPoller:
    """
    Repeating session fetch with stale-but-available semantics.

    A failed fetch is logged and the previous snapshot is kept. Cancelling
    stops future ticks; a fetch already on the wire is allowed to finish
    but its result is dropped.

    Usage:
        poller = SessionPoller(gateway, store, interval=2.0)
        poller.subscribe(controller.on_session)
        poller.start()
        ...
        await poller.stop()
    """

    def __init__(
        self,
        gateway,
        store: Optional[SessionSnapshotStore] = None,
        interval: float = DEFAULT_POLLING_INTERVAL,
        fetch_immediately: bool = True,
    ):
        """
        Initialize the poller.

        Args:
            gateway: AuthGateway (or compatible) providing `get_session`
            store: Store to publish into (a private one is created if omitted)
            interval: Seconds between fetches
            fetch_immediately: Fetch on start instead of after the first interval
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.gateway = gateway
        self.store = store if store is not None else SessionSnapshotStore()
        self.interval = interval
        self.fetch_immediately = fetch_immediately
        self._task: Optional[asyncio.Task] = None
        self._sleeping_task: Optional[asyncio.Task] = None
        self._retired: Set[asyncio.Task] = set()
        self._generation = 0
        self._cancelled = False
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, callback: SessionCallback, replay: bool = False) -> Subscription:
        return self.store.subscribe(callback, replay=replay)

    def start(self) -> None:
        """
        Start the timer. Calling start on a running poller does nothing.

        A timer cancelled while its fetch is still on the wire is replaced
        by a fresh one; the old task finishes that fetch and exits.
        """
        if self.running and not self._cancelled:
            return
        if self.running:
            self._retired.add(self._task)
            self._task.add_done_callback(self._retired.discard)
        self._cancelled = False
        self._generation += 1
        self._task = asyncio.create_task(self._run(self._generation), name="session-poller")

    def cancel(self) -> None:
        """Stop all future ticks. Idempotent. A fetch in flight is never interrupted."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._task is not None and self._task is self._sleeping_task:
            self._task.cancel()

    async def stop(self) -> None:
        """Cancel and wait for the timer task to finish."""
        self.cancel()
        task, self._task = self._task, None
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def poll_once(self) -> bool:
        """
        Fetch the session once and publish it.

        Returns:
            True if a snapshot was published
        """
        return await self._poll(self._generation)

    def _is_current(self, generation: int) -> bool:
        return not self._cancelled and generation == self._generation

    async def _poll(self, generation: int) -> bool:
        try:
            session = await self.gateway.get_session()
        except AuthError as e:
            self.failures += 1
            logger.warning(f"Session poll failed, keeping previous snapshot: {e}")
            return False

        if not self._is_current(generation):
            logger.debug("Poller cancelled during fetch, dropping result")
            return False

        self.store.publish(session)
        return True

    async def _sleep(self, task: asyncio.Task) -> None:
        self._sleeping_task = task
        try:
            await asyncio.sleep(self.interval)
        finally:
            if self._sleeping_task is task:
                self._sleeping_task = None

    async def _run(self, generation: int) -> None:
        task = asyncio.current_task()
        if not self.fetch_immediately and self._is_current(generation):
            await self._sleep(task)
        while self._is_current(generation):
            await self._poll(generation)
            if not self._is_current(generation):
                break
            await self._sleep(task)

    async def __aenter__(self) -> "SessionPoller":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
