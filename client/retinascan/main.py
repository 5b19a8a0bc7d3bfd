# client/retinascan/main.py
from __future__ import annotations

"""
FastAPI application setup for the local session API.

This module depends on:
- retinascan.config.get_settings for configuration
- retinascan.services.client.ClientSession for the user session
- retinascan.api.api_router for route registration

The app owns exactly one ClientSession: it is started (health monitor
running) when the app starts and closed (timer cancelled, preview released,
HTTP client closed) when it shuts down.
"""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from retinascan import __version__
from retinascan.api import api_router
from retinascan.config import Settings, get_settings
from retinascan.services.client.cooldown import Clock, epoch_ms
from retinascan.services.client.session import ClientSession
from retinascan.services.statsig_client import shutdown_statsig


def create_app(
    settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    clock: Clock = epoch_ms,
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        session = ClientSession(settings, transport=transport, clock=clock)
        app.state.session = session
        session.start()
        try:
            yield
        finally:
            await session.aclose()
            shutdown_statsig()

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        lifespan=lifespan,
    )

    # ---- CORS ----

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(o).rstrip("/") for o in settings.allowed_origins],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---- Routes ----

    app.include_router(api_router, prefix="/api")

    # ---- Healthcheck ----

    @app.get("/health", tags=["health"])
    def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
