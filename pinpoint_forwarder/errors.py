"""Exceptions raised by the forwarder."""
from __future__ import annotations


class ConfigurationError(ValueError):
    """A required option is missing; the forwarder cannot start."""


class DispatchError(RuntimeError):
    """A put-events call to the destination application failed."""

    def __init__(self, message: str, application_id: str, event_count: int, attempts: int = 1) -> None:
        super().__init__(message)
        self.application_id = application_id
        self.event_count = event_count
        self.attempts = attempts
