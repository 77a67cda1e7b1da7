"""FastAPI application setup."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from hookdeploy import __version__
from hookdeploy.api.dependencies import close_worker, init_settings, init_worker
from hookdeploy.api.models import APIResponse
from hookdeploy.api.routes import apps, webhooks
from hookdeploy.config import Settings
from hookdeploy.state_store import AppConfigNotFoundError, StateStoreError

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from hookdeploy.worker import Worker

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    from hookdeploy.server import build_worker  # noqa: PLC0415

    # Startup
    settings: Settings = app.state.settings
    worker: Worker | None = app.state.worker
    if worker is None:
        worker = build_worker(settings)
    init_settings(settings)
    init_worker(worker)
    logger.info("Serving %d app(s)", len(worker.apps))

    yield
    # Shutdown
    close_worker()


def create_app(settings: Settings | None = None, worker: Worker | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Module settings. Defaults are used when None.
        worker: Worker to serve. Built from ``settings`` on startup when None.
    """
    settings = settings or Settings()
    app = FastAPI(
        title="hookdeploy",
        description="Webhook-triggered deployments for pm2 applications",
        version=__version__,
        lifespan=lifespan,
    )

    # Store config for lifespan manager
    app.state.settings = settings
    app.state.worker = worker

    @app.exception_handler(AppConfigNotFoundError)
    async def app_not_found_handler(
        _request: Request, exc: AppConfigNotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=APIResponse[None](data=None, error=str(exc)).model_dump(),
        )

    @app.exception_handler(StateStoreError)
    async def state_store_error_handler(_request: Request, exc: StateStoreError) -> JSONResponse:
        logger.error("Configuration store error: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=APIResponse[None](data=None, error="Internal server error").model_dump(),
        )

    app.include_router(apps.router, prefix="/api/v1")

    reports_dir = Path(settings.data_dir) / "reports"
    app.mount("/reports", StaticFiles(directory=reports_dir, check_dir=False), name="reports")

    # Catch-all webhook route goes last
    app.include_router(webhooks.router)

    return app
