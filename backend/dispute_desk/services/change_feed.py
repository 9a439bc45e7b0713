"""
Live query plumbing.

Every committed write publishes its collection topic on the `ChangeFeed`.
A `Subscription` listens on one topic and, for every notification, reloads
and yields the FULL current snapshot (never a diff). The first snapshot is
yielded immediately on iteration.

    async with disputes.subscribe() as subscription:
        async for snapshot in subscription:
            ...

`cancel()` is the release handle: it detaches the listener, wakes a pending
iteration and guarantees no snapshot is delivered afterwards.
"""

import asyncio
from collections import defaultdict
from typing import Awaitable, Callable, Dict, Generic, List, Optional, Set, TypeVar

import structlog

from dispute_desk.core.exceptions import DisputeDeskError, ListenerError
from dispute_desk.db.session import STORE_ERRORS

logger = structlog.get_logger()

T = TypeVar("T")

DISPUTES_TOPIC = "disputeReports"


def messages_topic(dispute_id: str) -> str:
    return f"disputeChats/{dispute_id}/messages"


_INITIAL = object()
_CANCELLED = object()


class ChangeFeed:
    """
    In-process fan-out of change notifications, keyed by topic.
    Owned by the ClientContext; one per process.
    """

    def __init__(self):
        self._listeners: Dict[str, Set[asyncio.Queue]] = defaultdict(set)

    def listen(self, topic: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._listeners[topic].add(queue)
        return queue

    def unlisten(self, topic: str, queue: asyncio.Queue) -> None:
        listeners = self._listeners.get(topic)
        if not listeners:
            return
        listeners.discard(queue)
        if not listeners:
            del self._listeners[topic]

    def publish(self, topic: str) -> None:
        for queue in list(self._listeners.get(topic, ())):
            queue.put_nowait(topic)

    def listener_count(self, topic: str) -> int:
        return len(self._listeners.get(topic, ()))


class Subscription(Generic[T]):
    """
    Async stream of full snapshots for one live query.
    """

    def __init__(
        self,
        feed: ChangeFeed,
        topic: str,
        loader: Callable[[], Awaitable[List[T]]],
    ):
        self.topic = topic
        self._feed = feed
        self._loader = loader
        self._queue = feed.listen(topic)
        self._queue.put_nowait(_INITIAL)
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop delivery and release the listener. Safe to call repeatedly."""
        if self._cancelled:
            return
        self._cancelled = True
        self._feed.unlisten(self.topic, self._queue)
        self._queue.put_nowait(_CANCELLED)
        logger.debug("subscription_released", topic=self.topic)

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> List[T]:
        if self._cancelled:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CANCELLED or self._cancelled:
            raise StopAsyncIteration
        try:
            snapshot = await self._loader()
        except (*STORE_ERRORS, DisputeDeskError) as e:
            logger.error("subscription_snapshot_failed", topic=self.topic, error=str(e))
            raise ListenerError(f"Failed to load snapshot for {self.topic}") from e
        # Cancelled while the snapshot was loading
        if self._cancelled:
            raise StopAsyncIteration
        return snapshot

    async def __aenter__(self) -> "Subscription[T]":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.cancel()


async def pump(
    subscription: Subscription[T],
    on_change: Callable[[List[T]], None],
    on_error: Optional[Callable[[ListenerError], None]] = None,
) -> None:
    """
    Callback adapter over a subscription: on_change per snapshot, on_error
    once if the channel fails. Returns when the subscription is cancelled.
    """
    try:
        async for snapshot in subscription:
            on_change(snapshot)
    except ListenerError as e:
        subscription.cancel()
        if on_error is None:
            raise
        on_error(e)
