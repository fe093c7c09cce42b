import threading
from typing import Any, Dict, List

import pytest

from pinpoint_forwarder.config import Settings
from pinpoint_forwarder.models import RawEvent


class FakePinpointClient:
    """Stands in for a boto3 Pinpoint client; records put_events calls."""

    def __init__(self, failures: List[Exception] | None = None) -> None:
        self.calls: List[Dict[str, Any]] = []
        self._failures = list(failures or [])
        self._lock = threading.Lock()

    def put_events(self, **kwargs: Any) -> Dict[str, Any]:
        with self._lock:
            self.calls.append(kwargs)
            if self._failures:
                raise self._failures.pop(0)
        return {"EventsResponse": {"Results": {}}}

    def sent_events(self) -> List[Dict[str, Any]]:
        events = []
        for call in self.calls:
            for item in call["EventsRequest"]["BatchItem"].values():
                events.extend(item["Events"].values())
        return events


def make_event(name: str = "click", **kwargs: Any) -> RawEvent:
    data: Dict[str, Any] = {"event": name, "distinct_id": "user-1", "timestamp": "2025-01-01T00:00:00Z"}
    data.update(kwargs)
    return RawEvent.model_validate(data)


@pytest.fixture
def fake_client() -> FakePinpointClient:
    return FakePinpointClient()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        aws_access_key="AKIATEST",
        aws_secret_access_key="secret",
        aws_region="us-east-1",
        application_id="app-1",
        upload_kilobytes=1,
        upload_seconds=60,
        events_to_ignore="heartbeat",
        max_attempts=1,
    )
