"""Server lifecycle - socket binding, wiring and the uvicorn loop."""

from __future__ import annotations

import errno
import logging
import socket
import time
from collections.abc import Callable
from pathlib import Path

import uvicorn

from hookdeploy.adapters import GitPuller, HookRunner, Pm2Supervisor, ShellTestEngine
from hookdeploy.config import Settings
from hookdeploy.notifier import Notifier, SlackTransport
from hookdeploy.pipeline import DeployPipeline
from hookdeploy.state_store import AppConfigStore
from hookdeploy.worker import Observer, Worker

logger = logging.getLogger(__name__)


class BindError(Exception):
    """The listening socket could not be bound."""


def bind_socket(
    host: str,
    port: int,
    retries: int = 2,
    delay: float = 3.0,
    sleep: Callable[[float], None] = time.sleep,
    socket_factory: Callable[..., socket.socket] = socket.socket,
) -> socket.socket:
    """Bind a listening TCP socket, retrying while the address is in use.

    Args:
        host: Interface to bind.
        port: Port to bind.
        retries: Extra attempts after the first one fails with EADDRINUSE.
        delay: Seconds to wait between attempts.
        sleep: Sleep function, replaceable in tests.
        socket_factory: Socket constructor, replaceable in tests.

    Returns:
        The bound, listening socket.

    Raises:
        BindError: If the port is still in use after every retry, or binding
            fails for any other reason.
    """
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    attempt = 0
    while True:
        sock = socket_factory(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
            sock.listen(128)
        except OSError as e:
            sock.close()
            if e.errno != errno.EADDRINUSE:
                raise BindError(f"Cannot bind {host}:{port}: {e}") from e
            if attempt >= retries:
                raise BindError(f"Port {port} still in use after {retries} retries") from e
            attempt += 1
            logger.warning(
                "Port %d in use, retrying in %ss (%d/%d)", port, delay, attempt, retries
            )
            sleep(delay)
            continue
        logger.info("Listening on %s:%d", host, port)
        return sock


def build_worker(
    settings: Settings,
    store: AppConfigStore | None = None,
    observer: Observer | None = None,
) -> Worker:
    """Wire the default adapters, pipeline and store into a Worker.

    Apps from the settings file seed an empty store; the store is the
    source of truth afterwards.
    """
    if store is None:
        store = AppConfigStore(settings.database_path)
    store.seed(settings.apps.values())

    transport = SlackTransport(settings.slack_webhook, settings.slack_channel)
    pipeline = DeployPipeline(
        supervisor=Pm2Supervisor(),
        vcs=GitPuller(),
        test_engine=ShellTestEngine(Path(settings.data_dir), public_url=public_url(settings)),
        hooks=HookRunner(),
        notifier=Notifier(transport, settings.coverage_threshold),
    )
    apps = {app.name: app for app in store.find()}
    return Worker(settings, apps, pipeline, store=store, observer=observer)


def public_url(settings: Settings) -> str:
    """Base URL the server is reachable at, used for report links."""
    return f"{settings.host.rstrip('/')}:{settings.port}"


def serve(settings: Settings, log_level: str = "info") -> None:
    """Bind the configured port and serve until interrupted.

    Raises:
        BindError: If the port cannot be bound.
    """
    from hookdeploy.api import create_app  # noqa: PLC0415

    sock = bind_socket(
        settings.bind_host,
        settings.port,
        retries=settings.bind_retries,
        delay=settings.bind_retry_delay,
    )
    app = create_app(settings, build_worker(settings))
    config = uvicorn.Config(app, log_level=log_level, log_config=None)
    server = uvicorn.Server(config)
    try:
        server.run(sockets=[sock])
    finally:
        sock.close()
