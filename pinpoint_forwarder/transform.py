"""Mapping of raw analytics events onto Pinpoint events and endpoints."""
from __future__ import annotations

import json
import logging
import math
import re
import uuid
from typing import Any, Iterable, Mapping, Optional

from .models import (
    EndpointDemographic,
    EndpointLocation,
    EndpointUser,
    PinpointEndpoint,
    PinpointEvent,
    RawEvent,
)

logger = logging.getLogger(__name__)

RESERVED_PREFIX = "$"
DEVICE_LINK_EVENT = "APP - Device Link"
DEVICE_TOKEN_PROPERTY = "deviceToken"
# Pinpoint accepts at most 40 attributes per event.
MAX_RECOMMENDED_ATTRIBUTES = 40

_DISALLOWED_EVENT_TYPE_CHARS = re.compile(r"[#:?/]")

_SCREEN_ATTRIBUTES = (
    "screen_density",
    "screen_height",
    "screen_name",
    "screen_width",
    "viewport_height",
    "viewport_width",
)


def _format_number(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def coerce_attribute(value: Any) -> str:
    """Return the string form of a property value.

    Strings pass through, numbers and booleans use their literal form and
    anything else is rendered as compact JSON. Never raises.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_number(value)
    try:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError):
        return str(value)


def sanitize_event_type(name: str) -> str:
    """Replace characters Pinpoint rejects in event types with ``|``."""
    return _DISALLOWED_EVENT_TYPE_CHARS.sub("|", name)


def _first_present(properties: Mapping[str, Any], *keys: str) -> Optional[str]:
    """Coerced value of the first key holding a non-empty value."""
    for key in keys:
        value = properties.get(key)
        if value is not None and value != "":
            return coerce_attribute(value)
    return None


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def transform_event(event: RawEvent) -> tuple[str, PinpointEvent]:
    """Map one raw event to its Pinpoint event record and the key it is stored under."""
    properties = event.properties
    event_id = event.uuid or str(uuid.uuid4())
    attributes = {
        key: coerce_attribute(value)
        for key, value in properties.items()
        if not key.startswith(RESERVED_PREFIX)
    }
    if len(attributes) > MAX_RECOMMENDED_ATTRIBUTES:
        logger.warning(
            "Event %s (%s) carries %s attributes; Pinpoint accepts at most %s",
            event_id,
            event.event,
            len(attributes),
            MAX_RECOMMENDED_ATTRIBUTES,
        )
    pinpoint_event = PinpointEvent(
        app_title=_first_present(properties, "$app_name") or "",
        app_package_name=_first_present(properties, "$app_namespace") or "",
        app_version_code=_first_present(properties, "$app_version") or "",
        attributes=attributes,
        client_sdk_version=_first_present(properties, "$lib_version"),
        event_type=sanitize_event_type(event.event),
        sdk_name=_first_present(properties, "$lib"),
        timestamp=event.timestamp or event.sent_at,
    )
    return event_id, pinpoint_event


def get_events(events: Iterable[RawEvent]) -> dict[str, PinpointEvent]:
    """Transform events into a mapping keyed by event id, preserving order."""
    pinpoint_events: dict[str, PinpointEvent] = {}
    for event in events:
        event_id, pinpoint_event = transform_event(event)
        pinpoint_events[event_id] = pinpoint_event
    return pinpoint_events


def resolve_endpoint(event: RawEvent) -> Optional[PinpointEndpoint]:
    """Build the recipient endpoint for an event, or None without an address.

    Email is the default channel, addressed by the ``email`` profile
    attribute. Device link events use the GCM channel and their device token.
    """
    properties = event.properties
    profile = event.set_properties or {}

    channel_type = "EMAIL"
    address = profile.get("email")
    if event.event == DEVICE_LINK_EVENT:
        channel_type = "GCM"
        address = properties.get(DEVICE_TOKEN_PROPERTY)

    if not address:
        return None

    return PinpointEndpoint(
        channel_type=channel_type,
        address=coerce_attribute(address),
        attributes={
            name: [_first_present(properties, f"${name}") or ""] for name in _SCREEN_ATTRIBUTES
        },
        demographic=EndpointDemographic(
            app_version=_first_present(properties, "$app_version"),
            locale=_first_present(properties, "$locale"),
            make=_first_present(properties, "$device_manufacturer", "$device_type"),
            model=_first_present(properties, "$device_model", "$os"),
            platform=_first_present(properties, "$os_name", "$browser"),
            platform_version=_first_present(properties, "$os_version", "$browser_version"),
            timezone=_first_present(properties, "$geoip_time_zone"),
        ),
        effective_date=event.timestamp or event.sent_at,
        location=EndpointLocation(
            city=_first_present(properties, "$geoip_city_name"),
            country=_first_present(properties, "$geoip_country_code"),
            latitude=_as_float(properties.get("$geoip_latitude")),
            longitude=_as_float(properties.get("$geoip_longitude")),
            postal_code=_first_present(properties, "$geoip_postal_code"),
            region=_first_present(properties, "$geoip_subdivision_1_code"),
        ),
        request_id=event.uuid,
        user=EndpointUser(
            user_id=event.distinct_id,
            # Later keys replace earlier ones on duplicates.
            user_attributes={key: [coerce_attribute(value)] for key, value in profile.items()},
        ),
    )
