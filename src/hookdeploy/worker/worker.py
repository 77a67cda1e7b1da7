"""Worker - accepts notifications and drains the deploy queue.

The worker owns the application configs and a FIFO queue of
DeployRequests. Notifications are authenticated and resolved inline and only
ever enqueued; a single run loop thread pops requests one at a time and runs
the deployment pipeline for each, so two deployments never overlap, even for
different applications.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from hookdeploy.auth import Authenticator, AuthenticationError, VersioningInfo
from hookdeploy.config import ApplicationConfig, Provider
from hookdeploy.pipeline import DeployOptions, DeployRequest
from hookdeploy.resolver import ResolutionError, lookup_target
from hookdeploy.worker.models import WorkerStatus

if TYPE_CHECKING:
    from hookdeploy.auth import WebhookRequest
    from hookdeploy.config import Settings
    from hookdeploy.pipeline import DeployPipeline
    from hookdeploy.state_store import AppConfigStore

logger = logging.getLogger(__name__)

Observer = Callable[["Worker"], None]


class Worker:
    """Composition root for request handling and the deploy run loop."""

    def __init__(
        self,
        settings: Settings,
        apps: Mapping[str, ApplicationConfig],
        pipeline: DeployPipeline,
        store: AppConfigStore | None = None,
        observer: Observer | None = None,
        authenticator: Authenticator | None = None,
    ) -> None:
        """Initialize the worker.

        Args:
            settings: Module settings.
            apps: Application configs by name, in configuration order.
            pipeline: Pipeline run for every dequeued request.
            store: Configuration store used by reload and upsert.
            observer: Called with the worker after every config replacement
                and after every finished deployment.
            authenticator: Request authenticator. Defaults to one with every
                built-in provider strategy.
        """
        self.settings = settings
        self.pipeline = pipeline
        self.store = store
        self.observer = observer
        self.authenticator = authenticator or Authenticator()
        self._apps: dict[str, ApplicationConfig] = dict(apps)

        self._queue: deque[DeployRequest] = deque()
        self._lock = threading.Condition()
        self._active = False
        self._current: str | None = None
        self._thread: threading.Thread | None = None

    @property
    def apps(self) -> Mapping[str, ApplicationConfig]:
        """Current application config snapshot."""
        return self._apps

    def handle_request(
        self,
        app_name: str,
        request: WebhookRequest | None = None,
        manual: bool = False,
        deploy: bool = False,
        notify: bool = False,
        commit: str | None = None,
    ) -> DeployRequest | None:
        """Authenticate, resolve and enqueue a deployment for ``app_name``.

        Manual triggers skip authentication and deploy ``commit``.

        Args:
            app_name: Application name from the request path.
            request: Raw webhook request. Required unless ``manual``.
            manual: Triggered by hand rather than by a provider.
            deploy: For manual triggers, run the full deploy instead of a
                dry run.
            notify: For manual triggers, send the outcome notification.
            commit: Commit to test for manual triggers.

        Returns:
            The enqueued request, or None when the notification was dropped.
        """
        apps = self._apps
        try:
            if manual:
                git = VersioningInfo(head=commit)
                default = self.settings.default_branch
                target_name, app = lookup_target(apps, app_name, default, default)
            else:
                if request is None:
                    raise AuthenticationError(Provider.GITHUB, "No request to authenticate")
                provider = self._provider_for(app_name)
                branch = self.authenticator.parse(provider, request).branch
                target_name, app = lookup_target(
                    apps, app_name, branch, self.settings.default_branch
                )
                git = self.authenticator.authenticate(app, request)
        except AuthenticationError as e:
            logger.warning("[%s] Dropping notification: %s", app_name, e)
            return None
        except ResolutionError as e:
            logger.warning("[%s] Dropping notification: %s", app_name, e)
            return None

        deploy_request = DeployRequest(
            app=app.model_copy(deep=True),
            target_name=target_name,
            git=git,
            options=DeployOptions(manual=manual, deploy=deploy, notify=not manual or notify),
        )
        self.enqueue(deploy_request)
        return deploy_request

    def _provider_for(self, app_name: str) -> Provider:
        """Provider of the requested app, or of the first variant sharing its prefix."""
        app = self._apps.get(app_name)
        if app is None:
            app = next(
                (cfg for name, cfg in self._apps.items() if name.startswith(app_name)), None
            )
        return app.provider if app is not None else Provider.GITHUB

    def enqueue(self, request: DeployRequest) -> None:
        """Queue ``request`` and start the run loop if it is idle."""
        with self._lock:
            self._queue.append(request)
            logger.info(
                "[%s] [%s] Queued deployment (%d waiting)",
                request.target_name,
                request.git.head,
                len(self._queue),
            )
            if self._active:
                return
            self._active = True
            self._thread = threading.Thread(
                target=self._run_loop, name="hookdeploy-run-loop", daemon=True
            )
        self._thread.start()

    def _run_loop(self) -> None:
        while True:
            with self._lock:
                if not self._queue:
                    self._active = False
                    self._current = None
                    self._lock.notify_all()
                    return
                request = self._queue.popleft()
                self._current = request.target_name

            try:
                self.pipeline.run(request)
            except Exception:
                logger.exception("[%s] Deployment crashed", request.target_name)
            self._notify_observer()

    def reload_apps(self, apps: Mapping[str, ApplicationConfig] | None = None) -> None:
        """Replace the app configs wholesale.

        Args:
            apps: New configs. When None they are read from the store, or
                from the settings when there is no store.
        """
        if apps is None:
            if self.store is not None:
                apps = {app.name: app for app in self.store.find({})}
            else:
                apps = self.settings.apps
        self._apps = dict(apps)
        logger.info("Loaded %d application config(s)", len(self._apps))
        self._notify_observer()

    def upsert_app_config(
        self, name: str, config: ApplicationConfig | Mapping[str, Any]
    ) -> ApplicationConfig:
        """Insert or replace the config of ``name``, persisting it when a store is set.

        Returns:
            The validated config now in effect.
        """
        if isinstance(config, ApplicationConfig):
            app = config.model_copy(update={"name": name})
        else:
            app = ApplicationConfig.model_validate({**config, "name": name})

        if self.store is not None:
            self.store.update({"name": name}, app, upsert=True)

        apps = dict(self._apps)
        apps[name] = app
        self._apps = apps
        logger.info("[%s] Application config updated", name)
        self._notify_observer()
        return app

    def status(self) -> WorkerStatus:
        with self._lock:
            return WorkerStatus(
                queue_size=len(self._queue),
                active=self._active,
                current_target=self._current,
                apps=len(self._apps),
            )

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        """Block until the queue is drained.

        Returns:
            True if the worker went idle, False on timeout.
        """
        with self._lock:
            return self._lock.wait_for(lambda: not self._active, timeout=timeout)

    def _notify_observer(self) -> None:
        if self.observer is None:
            return
        try:
            self.observer(self)
        except Exception:
            logger.exception("State observer failed")
