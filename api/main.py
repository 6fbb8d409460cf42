"""Application factory for the FastAPI service."""

from __future__ import annotations

import logging

from fastapi import FastAPI

from .dependencies import get_settings
from .routers import provision as provision_router
from models import KeaSettings


logger = logging.getLogger(__name__)


def create_app(settings: KeaSettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or KeaSettings()  # type: ignore[call-arg]

    app = FastAPI(title="Kea Device Provisioning Service", version="0.1.0")
    app.state.settings = settings
    app.dependency_overrides[get_settings] = lambda: settings

    app.include_router(provision_router.router)

    logger.info("Provisioning against %s (default mode %s)", settings.api_url, settings.mode.value)

    @app.get("/health", tags=["meta"])
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
