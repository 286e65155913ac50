from __future__ import annotations

import argparse
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from loopjam.api.v1.router import router as v1_router
from loopjam.core import settings
from loopjam.core.logging import setup_logging
from loopjam.runtime.relay import RelayHub


def create_app(hub: RelayHub | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.relay_hub.close_all()

    app = FastAPI(title="loopjam relay", version="0.1.0", lifespan=lifespan)
    app.state.relay_hub = hub if hub is not None else RelayHub()
    app.include_router(v1_router, prefix="/v1")
    return app


app = create_app()


def run() -> None:
    """Entry point for ``loopjam-relay``."""
    parser = argparse.ArgumentParser(description="Run the loopjam relay server.")
    parser.add_argument("--host", default=settings.RELAY_HOST)
    parser.add_argument("--port", type=int, default=settings.RELAY_PORT)
    args = parser.parse_args()

    setup_logging()
    uvicorn.run(app, host=args.host, port=args.port, log_level=settings.LOG_LEVEL.lower())
