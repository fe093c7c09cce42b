"""Delivery of flushed batches to the Pinpoint events API."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional, Sequence

import boto3
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from .batching import build_batch_request, to_events_request
from .config import Settings
from .errors import DispatchError
from .models import DispatchResult, RawEvent

logger = logging.getLogger(__name__)

RETRYABLE_EXCEPTIONS = (
    EndpointConnectionError,
    ConnectionClosedError,
    ConnectTimeoutError,
    ReadTimeoutError,
)
RETRYABLE_ERROR_CODES = frozenset(
    {"ThrottlingException", "TooManyRequestsException", "InternalServerErrorException"}
)


def create_pinpoint_client(settings: Settings) -> Any:
    """Create a boto3 Pinpoint client from validated settings."""
    return boto3.client(
        "pinpoint",
        aws_access_key_id=settings.aws_access_key,
        aws_secret_access_key=settings.aws_secret_access_key,
        region_name=settings.aws_region,
    )


def is_retryable(exc: BaseException) -> bool:
    """Connection failures, throttling and server-side errors are worth another attempt."""
    if isinstance(exc, ClientError):
        code = exc.response.get("Error", {}).get("Code", "")
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
        return code in RETRYABLE_ERROR_CODES or status == 429 or status >= 500
    return isinstance(exc, RETRYABLE_EXCEPTIONS)


class PinpointDispatcher:
    """Sends one put-events request per flush and reports the outcome.

    Failures never propagate: they are logged with the request that failed
    and returned as an error ``DispatchResult``.
    """

    def __init__(
        self,
        client: Any,
        application_id: str,
        max_attempts: int = 1,
        wait: Optional[wait_base] = None,
    ) -> None:
        self._client = client
        self._application_id = application_id
        self._max_attempts = max(1, max_attempts)
        self._wait = wait or wait_exponential(multiplier=0.5, min=0.5, max=10)

    @property
    def application_id(self) -> str:
        return self._application_id

    async def send(self, events: Sequence[RawEvent]) -> DispatchResult:
        count = len(events)
        if not count:
            return DispatchResult(status="no_events", count=0, application_id=self._application_id)

        request: dict[str, Any] = {}
        try:
            batch = build_batch_request(events)
            request = {
                "ApplicationId": self._application_id,
                "EventsRequest": to_events_request(batch),
            }
            logger.info(
                "Sending %s event%s in %s batch item%s",
                count,
                "" if count == 1 else "s",
                len(batch),
                "" if len(batch) == 1 else "s",
            )
            response, attempts = await self._put_events(request, count)
        except DispatchError as exc:
            logger.error(
                "Error sending events to Pinpoint: %s:%s", exc, json.dumps(request, default=str)
            )
            return DispatchResult(
                status="error",
                count=count,
                application_id=self._application_id,
                batch_items=len(request["EventsRequest"]["BatchItem"]),
                attempts=exc.attempts,
                error=str(exc),
            )
        except Exception as exc:
            logger.exception("Unexpected error preparing events for Pinpoint: %s", exc)
            return DispatchResult(
                status="error", count=count, application_id=self._application_id, error=repr(exc)
            )

        logger.info(
            "Uploaded %s event%s to application %s",
            count,
            "" if count == 1 else "s",
            self._application_id,
        )
        logger.debug("Response: %s", json.dumps(response, default=str))
        return DispatchResult(
            status="success",
            count=count,
            application_id=self._application_id,
            batch_items=len(batch),
            attempts=attempts,
        )

    async def _put_events(self, request: dict[str, Any], count: int) -> tuple[Any, int]:
        attempts = 0
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._max_attempts),
                wait=self._wait,
                retry=retry_if_exception(is_retryable),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    response = await asyncio.to_thread(self._client.put_events, **request)
        except (BotoCoreError, ClientError) as exc:
            raise DispatchError(str(exc), self._application_id, count, attempts) from exc
        return response, attempts
