"""Size- and time-bounded in-memory event buffer."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional

from .models import RawEvent

logger = logging.getLogger(__name__)

FlushCallback = Callable[[List[RawEvent]], Awaitable[Any]]


class EventBuffer:
    """Accumulates events and hands them to ``on_flush`` in batches.

    A flush happens when the accumulated serialized size reaches
    ``limit_bytes``, on every ``timeout_seconds`` tick while events are
    buffered, or on demand. The callback runs as a background task so
    ``add`` never waits on the network; its failures are logged and the
    flushed events are not buffered again.
    """

    def __init__(self, limit_bytes: int, timeout_seconds: float, on_flush: FlushCallback) -> None:
        if limit_bytes <= 0:
            raise ValueError("limit_bytes must be positive")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self._limit_bytes = limit_bytes
        self._timeout_seconds = timeout_seconds
        self._on_flush = on_flush
        self._events: list[RawEvent] = []
        self._size_bytes = 0
        self._lock = asyncio.Lock()
        self._shutdown = asyncio.Event()
        self._timer: Optional[asyncio.Task[None]] = None
        self._in_flight: set[asyncio.Task[Any]] = set()
        self.flush_count = 0

    def __len__(self) -> int:
        return len(self._events)

    @property
    def size_bytes(self) -> int:
        return self._size_bytes

    @property
    def events(self) -> tuple[RawEvent, ...]:
        return tuple(self._events)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def start(self) -> None:
        """Start the recurring flush timer."""
        if self._timer is not None:
            return
        self._shutdown.clear()
        self._timer = asyncio.create_task(self._timer_loop(), name="buffer-timer")
        logger.info(
            "Buffer started: limit=%s bytes interval=%ss", self._limit_bytes, self._timeout_seconds
        )

    async def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the timer, drain remaining events and wait for in-flight flushes."""
        self._shutdown.set()
        if self._timer is not None:
            await self._timer
            self._timer = None
        await self.flush()
        await self.wait_in_flight(timeout)

    async def add(self, event: RawEvent) -> Optional[asyncio.Task[Any]]:
        """Buffer an event; returns the flush task if the size limit was reached."""
        async with self._lock:
            self._events.append(event)
            self._size_bytes += event.serialized_size()
            if self._size_bytes < self._limit_bytes:
                return None
            return self._drain("size limit")

    async def flush(self) -> Optional[asyncio.Task[Any]]:
        """Flush whatever is buffered; no-op on an empty buffer."""
        async with self._lock:
            return self._drain("manual")

    async def wait_in_flight(self, timeout: Optional[float] = None) -> None:
        if not self._in_flight:
            return
        _, pending = await asyncio.wait(set(self._in_flight), timeout=timeout)
        if pending:
            logger.warning("%s flush(es) still in flight after %ss", len(pending), timeout)

    def _drain(self, reason: str) -> Optional[asyncio.Task[Any]]:
        # Caller holds the lock.
        if not self._events:
            return None
        batch, size_bytes = self._events, self._size_bytes
        self._events, self._size_bytes = [], 0
        self.flush_count += 1
        logger.info("Buffer flushed (%s): %s events, %s bytes", reason, len(batch), size_bytes)
        task = asyncio.create_task(self._on_flush(batch), name=f"flush-{self.flush_count}")
        self._in_flight.add(task)
        task.add_done_callback(self._flush_done)
        return task

    def _flush_done(self, task: asyncio.Task[Any]) -> None:
        self._in_flight.discard(task)
        if task.cancelled():
            logger.warning("Flush task %s was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Flush task %s failed: %s", task.get_name(), exc, exc_info=exc)

    async def _timer_loop(self) -> None:
        while not self._shutdown.is_set():
            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=self._timeout_seconds)
            except asyncio.TimeoutError:
                async with self._lock:
                    self._drain("interval")
