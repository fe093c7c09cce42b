"""Grouping of transformed events into Pinpoint batch items."""
from __future__ import annotations

import uuid
from typing import Iterable, Optional

from .models import EventsBatch, PinpointEndpoint, RawEvent
from .transform import resolve_endpoint, transform_event


def resolve_batch_key(endpoint: Optional[PinpointEndpoint]) -> str:
    """Endpoint address, or a fresh id so address-less events never share an entry."""
    if endpoint is not None and endpoint.address:
        return endpoint.address
    return str(uuid.uuid4())


def build_batch_request(events: Iterable[RawEvent]) -> dict[str, EventsBatch]:
    """Group events by batch key, in arrival order.

    Events sharing a key are merged into one entry. On a colliding event id
    the newer event wins, and the entry takes the newest event's endpoint.
    """
    batch: dict[str, EventsBatch] = {}
    for event in events:
        event_id, pinpoint_event = transform_event(event)
        endpoint = resolve_endpoint(event)
        key = resolve_batch_key(endpoint)

        existing = batch.get(key)
        merged = dict(existing.events) if existing is not None else {}
        merged[event_id] = pinpoint_event
        batch[key] = EventsBatch(endpoint=endpoint, events=merged)
    return batch


def to_events_request(batch: dict[str, EventsBatch]) -> dict[str, dict]:
    """Render a batch request as the ``EventsRequest`` parameter of put_events."""
    return {"BatchItem": {key: item.to_request() for key, item in batch.items()}}
