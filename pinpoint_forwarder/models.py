"""Domain models and DTOs for the Pinpoint forwarder."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr

PropertyValue = Union[
    StrictStr, StrictBool, StrictInt, StrictFloat, None, Dict[str, Any], List[Any]
]


class RawEvent(BaseModel):
    """Analytics event as delivered by the host pipeline."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "uuid": "0189f7d2-6a51-7c3a-9d6e-3f1f2c0b9a11",
                "event": "Signed Up",
                "distinct_id": "user-42",
                "properties": {"plan": "pro", "$os": "Android"},
                "$set": {"email": "jane@example.com"},
                "timestamp": "2025-01-01T00:00:00Z",
            }
        },
    )

    uuid: Optional[str] = None
    event: str = Field(..., min_length=1)
    distinct_id: Optional[str] = None
    properties: Dict[str, PropertyValue] = Field(default_factory=dict)
    set_properties: Optional[Dict[str, PropertyValue]] = Field(default=None, alias="$set")
    timestamp: Optional[str] = None
    sent_at: Optional[str] = None

    def serialized_size(self) -> int:
        """Size in bytes of the compact JSON encoding of this event."""
        return len(self.model_dump_json(by_alias=True).encode())


class _PinpointModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_request(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class PinpointEvent(_PinpointModel):
    """Event record in the shape the Pinpoint events API expects."""

    app_title: str = Field("", alias="AppTitle")
    app_package_name: str = Field("", alias="AppPackageName")
    app_version_code: str = Field("", alias="AppVersionCode")
    attributes: Dict[str, str] = Field(default_factory=dict, alias="Attributes")
    client_sdk_version: Optional[str] = Field(None, alias="ClientSdkVersion")
    event_type: str = Field(..., alias="EventType")
    sdk_name: Optional[str] = Field(None, alias="SdkName")
    timestamp: Optional[str] = Field(None, alias="Timestamp")


class EndpointDemographic(_PinpointModel):
    app_version: Optional[str] = Field(None, alias="AppVersion")
    locale: Optional[str] = Field(None, alias="Locale")
    make: Optional[str] = Field(None, alias="Make")
    model: Optional[str] = Field(None, alias="Model")
    platform: Optional[str] = Field(None, alias="Platform")
    platform_version: Optional[str] = Field(None, alias="PlatformVersion")
    timezone: Optional[str] = Field(None, alias="Timezone")


class EndpointLocation(_PinpointModel):
    city: Optional[str] = Field(None, alias="City")
    country: Optional[str] = Field(None, alias="Country")
    latitude: Optional[float] = Field(None, alias="Latitude")
    longitude: Optional[float] = Field(None, alias="Longitude")
    postal_code: Optional[str] = Field(None, alias="PostalCode")
    region: Optional[str] = Field(None, alias="Region")


class EndpointUser(_PinpointModel):
    user_id: Optional[str] = Field(None, alias="UserId")
    user_attributes: Dict[str, List[str]] = Field(default_factory=dict, alias="UserAttributes")


class PinpointEndpoint(_PinpointModel):
    """Recipient profile attached to a batch entry."""

    channel_type: str = Field(..., alias="ChannelType")
    address: str = Field(..., alias="Address")
    attributes: Dict[str, List[str]] = Field(default_factory=dict, alias="Attributes")
    demographic: EndpointDemographic = Field(default_factory=EndpointDemographic, alias="Demographic")
    endpoint_status: str = Field("ACTIVE", alias="EndpointStatus")
    opt_out: str = Field("NONE", alias="OptOut")
    effective_date: Optional[str] = Field(None, alias="EffectiveDate")
    location: EndpointLocation = Field(default_factory=EndpointLocation, alias="Location")
    metrics: Dict[str, float] = Field(default_factory=dict, alias="Metrics")
    request_id: Optional[str] = Field(None, alias="RequestId")
    user: EndpointUser = Field(default_factory=EndpointUser, alias="User")


class EventsBatch(_PinpointModel):
    """One BatchItem entry: an optional endpoint plus events keyed by id."""

    endpoint: Optional[PinpointEndpoint] = Field(None, alias="Endpoint")
    events: Dict[str, PinpointEvent] = Field(default_factory=dict, alias="Events")

    def to_request(self) -> dict[str, Any]:
        # The API requires the Endpoint key even when no profile resolved.
        return {
            "Endpoint": self.endpoint.to_request() if self.endpoint else {},
            "Events": {key: event.to_request() for key, event in self.events.items()},
        }


class DispatchResult(BaseModel):
    """Outcome of one flush cycle's put-events call."""

    status: str
    count: int
    application_id: str
    batch_items: int = 0
    attempts: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"


class IngestRequest(BaseModel):
    """Envelope for the ingest endpoint supporting single or batch events."""

    events: List[RawEvent]

    @classmethod
    def from_payload(cls, data: Any) -> "IngestRequest":
        if isinstance(data, dict):
            return cls(events=[RawEvent.model_validate(data)])
        if isinstance(data, list):
            return cls(events=[RawEvent.model_validate(item) for item in data])
        raise ValueError("event payload must be an object or an array of objects")


class Stats(BaseModel):
    """Forwarder statistics model."""

    received: int
    ignored: int
    buffered: int
    buffered_bytes: int
    flushes: int
    events_sent: int
    events_failed: int
    batches_failed: int
    uptime_seconds: float
