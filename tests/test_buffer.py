import asyncio
from typing import List

import pytest

from pinpoint_forwarder.buffer import EventBuffer
from pinpoint_forwarder.models import RawEvent

from .conftest import make_event


class Recorder:
    def __init__(self, fail: bool = False) -> None:
        self.batches: List[List[RawEvent]] = []
        self.fail = fail

    async def __call__(self, events: List[RawEvent]) -> None:
        self.batches.append(list(events))
        if self.fail:
            raise RuntimeError("network down")


def _events(count: int) -> List[RawEvent]:
    return [make_event("click", uuid=f"evt-{idx}") for idx in range(count)]


@pytest.mark.asyncio
async def test_below_limits_no_flush() -> None:
    recorder = Recorder()
    buffer = EventBuffer(limit_bytes=100_000, timeout_seconds=60, on_flush=recorder)
    events = _events(3)
    for event in events:
        assert await buffer.add(event) is None

    assert recorder.batches == []
    assert buffer.events == tuple(events)
    assert buffer.size_bytes == sum(event.serialized_size() for event in events)


@pytest.mark.asyncio
async def test_size_limit_triggers_flush() -> None:
    recorder = Recorder()
    events = _events(3)
    limit = events[0].serialized_size() + events[1].serialized_size()
    buffer = EventBuffer(limit_bytes=limit, timeout_seconds=60, on_flush=recorder)

    assert await buffer.add(events[0]) is None
    task = await buffer.add(events[1])
    assert task is not None
    await task

    assert recorder.batches == [events[:2]]
    assert len(buffer) == 0
    assert buffer.size_bytes == 0

    assert await buffer.add(events[2]) is None
    assert buffer.events == (events[2],)
    assert buffer.flush_count == 1


@pytest.mark.asyncio
async def test_flush_empty_buffer_is_noop() -> None:
    recorder = Recorder()
    buffer = EventBuffer(limit_bytes=100_000, timeout_seconds=60, on_flush=recorder)

    assert await buffer.flush() is None
    await buffer.add(make_event())
    await (await buffer.flush())
    assert await buffer.flush() is None

    assert len(recorder.batches) == 1
    assert buffer.flush_count == 1


@pytest.mark.asyncio
async def test_timer_flushes_once_when_events_buffered() -> None:
    recorder = Recorder()
    buffer = EventBuffer(limit_bytes=100_000, timeout_seconds=0.1, on_flush=recorder)
    await buffer.start()
    try:
        events = _events(2)
        for event in events:
            await buffer.add(event)
        await asyncio.sleep(0.45)
    finally:
        await buffer.stop(timeout=1.0)

    assert recorder.batches == [events]


@pytest.mark.asyncio
async def test_timer_skips_empty_buffer() -> None:
    recorder = Recorder()
    buffer = EventBuffer(limit_bytes=100_000, timeout_seconds=0.05, on_flush=recorder)
    await buffer.start()
    await asyncio.sleep(0.3)
    await buffer.stop(timeout=1.0)

    assert recorder.batches == []
    assert buffer.flush_count == 0


@pytest.mark.asyncio
async def test_stop_drains_remaining_events() -> None:
    recorder = Recorder()
    buffer = EventBuffer(limit_bytes=100_000, timeout_seconds=60, on_flush=recorder)
    await buffer.start()
    event = make_event()
    await buffer.add(event)
    await buffer.stop(timeout=1.0)

    assert recorder.batches == [[event]]
    assert buffer.in_flight == 0


@pytest.mark.asyncio
async def test_failed_flush_does_not_block_buffer(caplog) -> None:
    recorder = Recorder(fail=True)
    buffer = EventBuffer(limit_bytes=1, timeout_seconds=60, on_flush=recorder)

    first = await buffer.add(make_event(uuid="a"))
    await asyncio.wait([first])
    second = await buffer.add(make_event(uuid="b"))
    await asyncio.wait([second])

    assert [batch[0].uuid for batch in recorder.batches] == ["a", "b"]
    assert len(buffer) == 0
    assert "network down" in caplog.text


@pytest.mark.asyncio
async def test_concurrent_adds_lose_nothing() -> None:
    recorder = Recorder()
    events = _events(50)
    limit = events[0].serialized_size() * 7
    buffer = EventBuffer(limit_bytes=limit, timeout_seconds=0.05, on_flush=recorder)
    await buffer.start()
    await asyncio.gather(*(buffer.add(event) for event in events))
    await buffer.stop(timeout=1.0)

    flushed = [event.uuid for batch in recorder.batches for event in batch]
    assert sorted(flushed) == sorted(event.uuid for event in events)
    assert len(flushed) == len(set(flushed))


def test_rejects_non_positive_limits() -> None:
    with pytest.raises(ValueError):
        EventBuffer(limit_bytes=0, timeout_seconds=1, on_flush=Recorder())
    with pytest.raises(ValueError):
        EventBuffer(limit_bytes=1, timeout_seconds=0, on_flush=Recorder())
