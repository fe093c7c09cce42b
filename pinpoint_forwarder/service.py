"""Forwarder service: the context object tying filter, buffer and dispatcher together."""
from __future__ import annotations

import asyncio
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Iterable, List, Optional

from .buffer import EventBuffer
from .config import Settings
from .dispatcher import PinpointDispatcher, create_pinpoint_client
from .filters import EventFilter
from .models import DispatchResult, RawEvent, Stats

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Settings], Any]

RECENT_RESULTS = 100


class ForwarderService:
    """Buffers incoming events and forwards them to Pinpoint in batches.

    ``start`` validates the settings and builds the client, buffer and
    dispatcher; ``stop`` drains the buffer. Nothing is shared between
    instances, so limits apply per service.
    """

    def __init__(
        self,
        settings: Settings,
        client: Any = None,
        client_factory: ClientFactory = create_pinpoint_client,
        shutdown_timeout: float = 10.0,
    ) -> None:
        self._settings = settings
        self._client = client
        self._client_factory = client_factory
        self._shutdown_timeout = shutdown_timeout
        self._filter = EventFilter.from_config(settings.events_to_ignore)
        self._buffer: Optional[EventBuffer] = None
        self._dispatcher: Optional[PinpointDispatcher] = None
        self._running = False
        self._start_time = datetime.now(timezone.utc)
        self._stats_lock = asyncio.Lock()
        self._received = 0
        self._ignored = 0
        self._events_sent = 0
        self._events_failed = 0
        self._batches_failed = 0
        self.recent_results: Deque[DispatchResult] = deque(maxlen=RECENT_RESULTS)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def buffer(self) -> EventBuffer:
        if self._buffer is None or not self._running:
            raise RuntimeError("forwarder is not running")
        return self._buffer

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Validate configuration and start buffering."""
        if self._running:
            return
        self._settings.validate()
        if self._client is None:
            self._client = self._client_factory(self._settings)
        self._dispatcher = PinpointDispatcher(
            self._client,
            self._settings.application_id,
            max_attempts=self._settings.max_attempts,
        )
        self._buffer = EventBuffer(
            limit_bytes=self._settings.upload_limit_bytes,
            timeout_seconds=self._settings.upload_seconds,
            on_flush=self._send,
        )
        await self._buffer.start()
        self._running = True
        logger.info(
            "Forwarding to application %s (ignoring %s)",
            self._settings.application_id,
            sorted(self._filter.ignored) or "nothing",
        )

    async def stop(self) -> None:
        """Flush what is left and wait a bounded time for in-flight uploads."""
        if not self._running or self._buffer is None:
            return
        self._running = False
        logger.info("Stopping forwarder, flushing %s buffered events", len(self._buffer))
        await self._buffer.stop(timeout=self._shutdown_timeout)

    def should_ignore(self, event: RawEvent) -> bool:
        return self._filter.should_ignore(event)

    async def on_event(self, event: RawEvent) -> bool:
        """Accept one event; returns False if it was ignored."""
        buffer = self.buffer
        async with self._stats_lock:
            self._received += 1
            if self.should_ignore(event):
                self._ignored += 1
                logger.debug("Ignoring event %s (%s)", event.event, event.uuid)
                return False
        await buffer.add(event)
        return True

    async def on_events(self, events: Iterable[RawEvent]) -> int:
        accepted = 0
        for event in events:
            if await self.on_event(event):
                accepted += 1
        return accepted

    async def flush(self) -> int:
        """Flush buffered events now; returns how many were handed to the dispatcher."""
        buffer = self.buffer
        count = len(buffer)
        await buffer.flush()
        return count

    async def get_stats(self) -> Stats:
        buffer = self._buffer
        async with self._stats_lock:
            received = self._received
            ignored = self._ignored
            events_sent = self._events_sent
            events_failed = self._events_failed
            batches_failed = self._batches_failed
        uptime = (datetime.now(timezone.utc) - self._start_time).total_seconds()
        return Stats(
            received=received,
            ignored=ignored,
            buffered=len(buffer) if buffer is not None else 0,
            buffered_bytes=buffer.size_bytes if buffer is not None else 0,
            flushes=buffer.flush_count if buffer is not None else 0,
            events_sent=events_sent,
            events_failed=events_failed,
            batches_failed=batches_failed,
            uptime_seconds=uptime,
        )

    async def _send(self, events: List[RawEvent]) -> DispatchResult:
        assert self._dispatcher is not None
        result = await self._dispatcher.send(events)
        async with self._stats_lock:
            self.recent_results.append(result)
            if result.ok:
                self._events_sent += result.count
            else:
                self._events_failed += result.count
                self._batches_failed += 1
        return result
