"""Management endpoints for application configs and the deploy queue."""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import ValidationError

from hookdeploy.api.dependencies import WorkerDep, require_auth
from hookdeploy.api.models import (
    APIResponse,
    AppConfigResponse,
    MessageResponse,
    StatusResponse,
    TriggerResponse,
    app_to_response,
    status_to_response,
    trigger_to_response,
)
from hookdeploy.state_store import AppConfigNotFoundError

router = APIRouter(tags=["apps"], dependencies=[Depends(require_auth)])


@router.get("/apps", response_model=APIResponse[list[AppConfigResponse]])
def list_apps(worker: WorkerDep) -> APIResponse[list[AppConfigResponse]]:
    """List configured apps in configuration order."""
    return APIResponse(data=[app_to_response(app) for app in worker.apps.values()])


@router.get("/apps/{name}", response_model=APIResponse[AppConfigResponse])
def get_app(name: str, worker: WorkerDep) -> APIResponse[AppConfigResponse]:
    app = worker.apps.get(name)
    if app is None:
        raise AppConfigNotFoundError(f"App config '{name}' not found")
    return APIResponse(data=app_to_response(app))


@router.put("/apps/{name}", response_model=APIResponse[AppConfigResponse])
def put_app(
    name: str,
    worker: WorkerDep,
    config: dict[str, Any] = Body(...),  # noqa: B008
) -> APIResponse[AppConfigResponse]:
    """Insert or replace an app config."""
    try:
        app = worker.upsert_app_config(name, config)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return APIResponse(data=app_to_response(app))


@router.post("/apps/reload", response_model=APIResponse[MessageResponse])
def reload_apps(worker: WorkerDep) -> APIResponse[MessageResponse]:
    """Reload every app config from the store."""
    worker.reload_apps()
    return APIResponse(data=MessageResponse(message=f"Loaded {len(worker.apps)} app(s)"))


@router.post("/apps/{name}/trigger", response_model=APIResponse[TriggerResponse])
def trigger_app(
    name: str,
    worker: WorkerDep,
    commit: str | None = None,
    deploy: bool = False,
    notify: bool = False,
) -> APIResponse[TriggerResponse]:
    """Queue a manual run: tests only, unless ``deploy`` is set."""
    if name not in worker.apps:
        raise AppConfigNotFoundError(f"App config '{name}' not found")
    request = worker.handle_request(name, manual=True, deploy=deploy, notify=notify, commit=commit)
    return APIResponse(data=trigger_to_response(request))


@router.get("/status", response_model=APIResponse[StatusResponse])
def get_status(worker: WorkerDep) -> APIResponse[StatusResponse]:
    return APIResponse(data=status_to_response(worker.status()))
