"""Utility script to post batches of demo analytics events to the forwarder."""

from __future__ import annotations

import argparse
import asyncio
import os
import time
import uuid
from datetime import datetime, timezone

import httpx


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Post demo analytics events to the forwarder")
    parser.add_argument(
        "--base-url",
        default=os.environ.get("BASE_URL", "http://localhost:8080"),
        help="Base URL of the forwarder service (default: %(default)s)",
    )
    parser.add_argument(
        "--counts",
        type=int,
        nargs="+",
        default=[5, 500],
        help="Number of events per request. Several values send several requests.",
    )
    parser.add_argument(
        "--users",
        type=int,
        default=int(os.environ.get("DEMO_USERS", 10)),
        help="Number of distinct users (email endpoints) to spread events across.",
    )
    parser.add_argument(
        "--event-name",
        default=os.environ.get("DEMO_EVENT_NAME", "Pageview"),
        help="Event name for the demo events.",
    )
    return parser.parse_args()


def build_events(count: int, users: int, event_name: str) -> list[dict]:
    now = datetime.now(timezone.utc).isoformat()
    events = []
    for idx in range(count):
        user = idx % max(1, users)
        events.append(
            {
                "uuid": str(uuid.uuid4()),
                "event": event_name,
                "distinct_id": f"user-{user}",
                "properties": {"seq": idx, "$os": "Linux", "$browser": "Firefox"},
                "$set": {"email": f"user-{user}@example.com"},
                "timestamp": now,
            }
        )
    return events


async def publish_batch(base_url: str, count: int, users: int, event_name: str) -> None:
    events = build_events(count, users, event_name)
    async with httpx.AsyncClient(timeout=60.0) as client:
        start = time.perf_counter()
        response = await client.post(f"{base_url}/events", json=events)
        response.raise_for_status()
        duration = time.perf_counter() - start
        print(f"Posted {count} events for {users} users to {base_url} in {duration:.2f}s -> {response.json()}")


async def main() -> None:
    args = _parse_args()
    for count in args.counts:
        await publish_batch(args.base_url, count, args.users, args.event_name)


if __name__ == "__main__":
    asyncio.run(main())
