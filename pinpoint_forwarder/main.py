"""FastAPI application entrypoint for the Pinpoint forwarder."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import Body, FastAPI, HTTPException

from .config import Settings
from .models import IngestRequest
from .service import ForwarderService


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def create_app(settings: Settings | None = None, client: Any = None) -> FastAPI:
    settings = settings or Settings()
    configure_logging(settings.log_level)
    forwarder = ForwarderService(settings, client=client)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await forwarder.start()
        try:
            yield
        finally:
            await forwarder.stop()

    app = FastAPI(title="Pinpoint Forwarder", version="1.0.0", lifespan=lifespan)
    app.state.forwarder = forwarder
    app.state.settings = settings

    @app.post("/events")
    async def ingest(payload: Any = Body(...)) -> dict[str, int]:
        try:
            request = IngestRequest.from_payload(payload)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        accepted = await forwarder.on_events(request.events)
        return {"accepted": accepted, "ignored": len(request.events) - accepted}

    @app.post("/flush")
    async def flush() -> dict[str, int]:
        return {"flushed": await forwarder.flush()}

    @app.get("/stats")
    async def get_stats() -> dict[str, Any]:
        stats = await forwarder.get_stats()
        return stats.model_dump()

    return app


app = create_app()


def main() -> None:
    import uvicorn

    uvicorn.run("pinpoint_forwarder.main:app", host="0.0.0.0", port=8080, reload=False)


if __name__ == "__main__":
    main()
