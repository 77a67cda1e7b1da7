"""Pydantic models for the REST API."""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from hookdeploy.config import ApplicationConfig
from hookdeploy.pipeline import DeployRequest
from hookdeploy.worker import WorkerStatus

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    """Standard API response wrapper."""

    data: T | None = None
    error: str | None = None


class AppConfigResponse(BaseModel):
    """An application config with secrets masked."""

    name: str
    config: dict[str, Any]


class TriggerResponse(BaseModel):
    """Result of a manual trigger."""

    queued: bool
    target: str | None = None
    commit: str | None = None
    dry_run: bool = False


class StatusResponse(BaseModel):
    """Deploy queue status."""

    queue_size: int
    active: bool
    current_target: str | None
    apps: int


class MessageResponse(BaseModel):
    message: str


def app_to_response(app: ApplicationConfig) -> AppConfigResponse:
    return AppConfigResponse(name=app.name, config=app.masked())


def trigger_to_response(request: DeployRequest | None) -> TriggerResponse:
    if request is None:
        return TriggerResponse(queued=False)
    return TriggerResponse(
        queued=True,
        target=request.target_name,
        commit=request.git.head,
        dry_run=request.options.dry_run,
    )


def status_to_response(status: WorkerStatus) -> StatusResponse:
    return StatusResponse(
        queue_size=status.queue_size,
        active=status.active,
        current_target=status.current_target,
        apps=status.apps,
    )
