"""Event name filtering applied before buffering."""
from __future__ import annotations

from typing import Iterable, Optional

from .models import RawEvent


def parse_events_to_ignore(raw: Optional[str]) -> frozenset[str]:
    """Parse a comma-separated list of event names, trimming whitespace."""
    if not raw:
        return frozenset()
    return frozenset(name.strip() for name in raw.split(",") if name.strip())


class EventFilter:
    """Drops events whose name is in the ignore set (exact match)."""

    def __init__(self, ignored: Iterable[str] = ()) -> None:
        self._ignored = frozenset(ignored)

    @classmethod
    def from_config(cls, raw: Optional[str]) -> "EventFilter":
        return cls(parse_events_to_ignore(raw))

    @property
    def ignored(self) -> frozenset[str]:
        return self._ignored

    def should_ignore(self, event: RawEvent) -> bool:
        return event.event in self._ignored
