"""Preview preparation: one background task per item, streamed into a channel.

    channel = ItemChannel()
    group = spawn_preparation(items, prepare, channel.sender())
    for item in channel:        # selector thread; ends when every task has sent
        ...
    channel.close_receiver()    # later sends are dropped, not errors

The channel is unbounded, so producers never wait. Dropping the receiving
side is the only cancellation: tasks still running finish and their items are
discarded.
"""

from __future__ import annotations

import asyncio
import logging
import queue
import threading
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Iterator

logger = logging.getLogger("notewalk.pipeline")

T = TypeVar("T")

_END = object()

# Strong references to in-flight tasks; the event loop only keeps weak ones.
_inflight: set[asyncio.Task[None]] = set()


class ItemChannel(Generic[T]):
    """Unbounded multi-producer single-consumer channel, safe across threads."""

    def __init__(self) -> None:
        self._queue: queue.SimpleQueue[object] = queue.SimpleQueue()
        self._lock = threading.Lock()
        self._senders = 0
        self._receiver_open = True

    def sender(self) -> Sender[T]:
        return Sender(self)

    @property
    def receiver_open(self) -> bool:
        return self._receiver_open

    def _attach(self) -> None:
        with self._lock:
            self._senders += 1

    def _detach(self) -> None:
        with self._lock:
            self._senders -= 1
            if self._senders == 0:
                self._queue.put(_END)

    def _send(self, item: T) -> bool:
        with self._lock:
            if not self._receiver_open:
                return False
            self._queue.put(item)
            return True

    def close_receiver(self) -> None:
        """Drop the consuming side. Wakes a consumer blocked on an empty queue."""
        with self._lock:
            if not self._receiver_open:
                return
            self._receiver_open = False
            self._queue.put(_END)

    def __iter__(self) -> Iterator[T]:
        while True:
            item = self._queue.get()
            if item is _END or not self._receiver_open:
                return
            yield item  # type: ignore[misc]


class Sender(Generic[T]):
    """One producing handle. Closing the last one ends the stream."""

    def __init__(self, channel: ItemChannel[T]) -> None:
        self._channel = channel
        self._closed = False
        channel._attach()

    def clone(self) -> Sender[T]:
        return Sender(self._channel)

    def send(self, item: T) -> bool:
        """Queue item; False when the receiver is gone or this handle is closed."""
        if self._closed:
            return False
        return self._channel._send(item)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._channel._detach()


class PreparationGroup:
    """The tasks spawned for one iteration. Joined implicitly by channel closure."""

    def __init__(self) -> None:
        self.tasks: list[asyncio.Task[None]] = []

    def spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self.tasks.append(task)
        _inflight.add(task)
        task.add_done_callback(_inflight.discard)

    async def wait(self) -> None:
        if self.tasks:
            await asyncio.gather(*self.tasks, return_exceptions=True)


async def _prepare_and_send(item: T, prepare: Callable[[T], Awaitable[None]], sender: Sender[T]) -> None:
    try:
        try:
            await prepare(item)
        except Exception:
            # best effort: the item is still shown, just without a preview
            logger.debug("preview preparation failed for %r", item, exc_info=True)
        if not sender.send(item):
            logger.debug("receiver closed, dropping %r", item)
    finally:
        sender.close()


def spawn_preparation(
    items: Iterable[T],
    prepare: Callable[[T], Awaitable[None]],
    sender: Sender[T],
) -> PreparationGroup:
    """Spawn one prepare-then-send task per item, then close the caller's sender.

    Must be called with a running event loop. Item arrival order is not
    guaranteed.
    """
    group = PreparationGroup()
    try:
        for item in items:
            group.spawn(_prepare_and_send(item, prepare, sender.clone()))
    finally:
        sender.close()
    return group
