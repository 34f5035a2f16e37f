"""
Real-time feeds pushed to WebSockets.

A `Subscription` wraps `query.on_snapshot` and turns the watch thread's
callbacks into an async iterator on the event loop. A `LocalFeed` does the
same for state held in memory (anonymous clients) and is refreshed
explicitly. Whoever opens a feed owns it: call `cancel()` when the
consumer goes away or the identity it was opened for changes. After
cancel the iterator ends and nothing further is delivered.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Callable

logger = logging.getLogger(__name__)

_CLOSED = object()


class _Feed:
    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop or asyncio.get_running_loop()
        self._queue: asyncio.Queue = asyncio.Queue()
        self.cancelled = False

    def _push(self, payload: Any) -> None:
        # Safe from any thread.
        self._loop.call_soon_threadsafe(self._queue.put_nowait, payload)

    def _stop(self) -> None:
        pass

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        self._stop()
        self._push(_CLOSED)

    async def updates(self) -> AsyncIterator[Any]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item


class Subscription(_Feed):
    def __init__(self, query, transform: Callable[[list], Any], loop: asyncio.AbstractEventLoop | None = None):
        super().__init__(loop)
        self._query = query
        self._transform = transform
        self._watch = None

    def start(self) -> "Subscription":
        self._watch = self._query.on_snapshot(self._on_snapshot)
        return self

    def _on_snapshot(self, docs, changes, read_time) -> None:
        # Called from the Firestore watch thread.
        if self.cancelled:
            return
        try:
            payload = self._transform(docs)
        except Exception as e:
            logger.error(f"[REALTIME] Failed to transform snapshot: {e}")
            return
        self._push(payload)

    def _stop(self) -> None:
        if self._watch is not None:
            try:
                self._watch.unsubscribe()
            except Exception as e:
                logger.warning(f"[REALTIME] Unsubscribe failed: {e}")
            self._watch = None


class LocalFeed(_Feed):
    """Pushes `render()` on start and on every `refresh()`."""

    def __init__(self, topic: str, render: Callable[[], Any], loop: asyncio.AbstractEventLoop | None = None):
        super().__init__(loop)
        self.topic = topic
        self._render = render

    def start(self) -> "LocalFeed":
        self.refresh()
        return self

    def refresh(self) -> None:
        if not self.cancelled:
            self._push(self._render())
