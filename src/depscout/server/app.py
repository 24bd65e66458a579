"""FastAPI server exposing the discovery REST API.

Provides:
- POST /api/v1/discovery: schedule a discovery session
- GET /api/v1/discovery: list session snapshots
- GET /api/v1/discovery/{session_id}: one session snapshot
- GET /health
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from depscout import __version__
from depscout.api.discovery import router as discovery_router
from depscout.discovery.service import DiscoveryService

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)


def create_app(service: DiscoveryService | None = None) -> FastAPI:
    """Build the application.

    Args:
        service: Discovery service to serve. When None, one is created at
            startup from environment settings and closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        if service is not None:
            yield
            return
        app.state.discovery_service = DiscoveryService()
        logger.info("Discovery service ready")
        yield
        await app.state.discovery_service.aclose()

    app = FastAPI(
        title="depscout",
        description="Autonomous dependency rule discovery and inference",
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(discovery_router)
    if service is not None:
        app.state.discovery_service = service

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()
