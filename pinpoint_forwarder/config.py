"""Forwarder configuration utilities."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping

from .errors import ConfigurationError

MEBIBYTE = 1024 * 1024

MIN_UPLOAD_UNITS, MAX_UPLOAD_UNITS = 1, 100
MIN_UPLOAD_SECONDS, MAX_UPLOAD_SECONDS = 1, 60
MIN_ATTEMPTS, MAX_ATTEMPTS = 1, 10


def _parse_int(raw: Any, default: int) -> int:
    """Parse an integer option; missing, malformed or zero values give the default."""
    if raw is None:
        return default
    try:
        value = int(str(raw).strip())
    except ValueError:
        return default
    return value or default


def _read_int(name: str, default: int) -> int:
    """Read an integer from the environment, falling back to the default."""
    return _parse_int(os.environ.get(name), default)


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


@dataclass(slots=True)
class Settings:
    """Runtime settings for the Pinpoint forwarder.

    Upload size is given in units of 1 MiB and clamped to [1, 100]; the upload
    interval is clamped to [1, 60] seconds.
    """

    aws_access_key: str = os.environ.get("PINPOINT_AWS_ACCESS_KEY", "")
    aws_secret_access_key: str = os.environ.get("PINPOINT_AWS_SECRET_ACCESS_KEY", "")
    aws_region: str = os.environ.get("PINPOINT_AWS_REGION", "")
    application_id: str = os.environ.get("PINPOINT_APPLICATION_ID", "")
    upload_kilobytes: int = _read_int("PINPOINT_UPLOAD_KILOBYTES", 1)
    upload_seconds: int = _read_int("PINPOINT_UPLOAD_SECONDS", 1)
    events_to_ignore: str = os.environ.get("PINPOINT_EVENTS_TO_IGNORE", "")
    max_attempts: int = _read_int("PINPOINT_MAX_ATTEMPTS", 1)
    log_level: str = os.environ.get("PINPOINT_LOG_LEVEL", "INFO")

    def __post_init__(self) -> None:
        self.upload_kilobytes = _clamp(
            _parse_int(self.upload_kilobytes, 1), MIN_UPLOAD_UNITS, MAX_UPLOAD_UNITS
        )
        self.upload_seconds = _clamp(
            _parse_int(self.upload_seconds, 1), MIN_UPLOAD_SECONDS, MAX_UPLOAD_SECONDS
        )
        self.max_attempts = _clamp(_parse_int(self.max_attempts, 1), MIN_ATTEMPTS, MAX_ATTEMPTS)

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "Settings":
        """Build settings from the camelCase option names used by event pipelines."""
        return cls(
            aws_access_key=config.get("awsAccessKey") or "",
            aws_secret_access_key=config.get("awsSecretAccessKey") or "",
            aws_region=config.get("awsRegion") or "",
            application_id=config.get("applicationId") or "",
            upload_kilobytes=_parse_int(config.get("uploadKilobytes"), 1),
            upload_seconds=_parse_int(config.get("uploadSeconds"), 1),
            events_to_ignore=config.get("eventsToIgnore") or "",
            max_attempts=_parse_int(config.get("maxAttempts"), 1),
        )

    @property
    def upload_limit_bytes(self) -> int:
        return self.upload_kilobytes * MEBIBYTE

    def validate(self) -> None:
        """Raise ConfigurationError for the first missing required option."""
        if not self.aws_access_key:
            raise ConfigurationError("AWS access key missing!")
        if not self.aws_secret_access_key:
            raise ConfigurationError("AWS secret access key missing!")
        if not self.aws_region:
            raise ConfigurationError("AWS region missing!")
        if not self.application_id:
            raise ConfigurationError("ApplicationId missing!")
