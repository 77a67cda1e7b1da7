"""Inbound webhook endpoint."""

from fastapi import APIRouter, BackgroundTasks, Request
from fastapi.responses import PlainTextResponse

from hookdeploy.api.dependencies import WorkerDep
from hookdeploy.auth import WebhookRequest

router = APIRouter(tags=["webhooks"])


def client_ip(request: Request) -> str:
    """Caller address: the forwarded-for header, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded
    return request.client.host if request.client else ""


@router.post("/{app_name}", response_class=PlainTextResponse)
async def receive_webhook(
    app_name: str,
    request: Request,
    background_tasks: BackgroundTasks,
    worker: WorkerDep,
) -> str:
    """Acknowledge a provider notification and process it after responding.

    The provider always gets "OK": authentication and resolution failures
    are only logged, so it never retries.
    """
    body = await request.body()
    hook = WebhookRequest.create(body, dict(request.headers), client_ip(request))
    background_tasks.add_task(worker.handle_request, app_name, hook)
    return "OK"


@router.api_route(
    "/{app_name}", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False
)
async def ignore_webhook(app_name: str) -> PlainTextResponse:
    return PlainTextResponse("OK")
