"""Deployment Pipeline - ordered phases for one deployment attempt."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Protocol

from hookdeploy.adapters.models import TestRunOptions
from hookdeploy.pipeline.exceptions import (
    ApplicationNotRunningError,
    HookError,
    PipelineFatalError,
    PullError,
    ReloadError,
    TestsFailedError,
)
from hookdeploy.pipeline.models import PipelineContext

if TYPE_CHECKING:
    from hookdeploy.adapters.models import HookResult, ProcessInfo
    from hookdeploy.auth import VersioningInfo
    from hookdeploy.config import TestConfig
    from hookdeploy.pipeline.models import DeployRequest, TestResult

logger = logging.getLogger(__name__)

PRE_HOOK = "preHook"
POST_HOOK = "postHook"


class SupervisorProtocol(Protocol):
    def describe(self, name: str) -> list[ProcessInfo]: ...

    def graceful_reload(self, name: str) -> None: ...


class VCSProtocol(Protocol):
    def update(self, cwd: str) -> None: ...


class TestEngineProtocol(Protocol):
    __test__ = False

    def run(
        self, versioning: VersioningInfo, test_config: TestConfig, options: TestRunOptions
    ) -> TestResult: ...


class HookRunnerProtocol(Protocol):
    def run(
        self, app_name: str, hook_name: str, command: str, cwd: str | None, debug: bool = False
    ) -> HookResult: ...


class NotifierProtocol(Protocol):
    def notify(self, ctx: PipelineContext) -> str: ...


class DeployPipeline:
    """Runs the deployment phases for a single DeployRequest.

    Phases run strictly in order: resolve the working directory, run tests,
    then (unless the request is a dry run) pull, pre hook, reload and post
    hook. The first fatal phase skips the rest. The notify phase runs last
    in its own failure domain and never changes the recorded outcome.
    """

    def __init__(
        self,
        supervisor: SupervisorProtocol,
        vcs: VCSProtocol,
        test_engine: TestEngineProtocol,
        hooks: HookRunnerProtocol,
        notifier: NotifierProtocol | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            supervisor: Process supervisor used to describe and reload apps.
            vcs: Puller that updates working copies.
            test_engine: Runs test suites and bisects failures.
            hooks: Runs pre/post hook commands.
            notifier: Sends the outcome report. Notifications are skipped
                when None.
        """
        self.supervisor = supervisor
        self.vcs = vcs
        self.test_engine = test_engine
        self.hooks = hooks
        self.notifier = notifier

    def run(self, request: DeployRequest) -> PipelineContext:
        """Run every phase for ``request``.

        Never raises: phase failures are recorded on ``ctx.outcome.error``
        and notification failures are logged.

        Returns:
            The finished pipeline context.
        """
        ctx = PipelineContext(request=request)
        target = ctx.target_name
        logger.info("[%s] [%s] Starting deployment", target, request.git.head)

        try:
            ctx.cwd, ctx.process = self._resolve_cwd(ctx)
            ctx.test_result = self._run_tests(ctx)

            if request.options.dry_run:
                logger.info("[%s] Only running tests. Manual hook", target)
            else:
                self._pull(ctx)
                ctx.outcome.pulled = True
                ctx.outcome.pre_output = self._hook(ctx, PRE_HOOK, ctx.app.prehook)
                ctx.outcome.reloaded = self._reload(ctx)
                ctx.outcome.post_output = self._hook(ctx, POST_HOOK, ctx.app.posthook)
        except TestsFailedError as e:
            ctx.test_result = e.result
            ctx.outcome.error = e
            logger.error("[%s] Deployment stopped: %s", target, e)
        except PipelineFatalError as e:
            ctx.outcome.error = e
            logger.error("[%s] Deployment stopped: %s", target, e)
        except Exception as e:
            ctx.outcome.error = e
            logger.exception("[%s] Unexpected error during deployment", target)

        if ctx.succeeded:
            logger.info("[%s] Deployment finished", target)

        if request.options.notify:
            ctx.notification_status = self._notify(ctx)
        return ctx

    def _resolve_cwd(self, ctx: PipelineContext) -> tuple[str, ProcessInfo | None]:
        """Working directory of the target, plus the running instance when looked up."""
        app = ctx.app
        if app.cwd:
            return app.cwd, None

        process_name = app.process_name or ctx.target_name
        try:
            instances = self.supervisor.describe(process_name)
        except Exception as e:
            raise ApplicationNotRunningError(
                f"Could not describe {process_name}: {e}"
            ) from e

        if not instances or not instances[0].cwd:
            raise ApplicationNotRunningError("Application not running in pm2")
        process = instances[0]
        logger.debug("[%s] Using working directory %s", ctx.target_name, process.cwd)
        return process.cwd, process

    def _run_tests(self, ctx: PipelineContext) -> TestResult | None:
        app = ctx.app
        if not app.has_tests or app.tests is None:
            return None

        git = ctx.request.git
        if not git.remote_url and ctx.process is not None:
            git = replace(git, remote_url=ctx.process.versioning.get("url"))

        options = TestRunOptions(
            target_name=ctx.target_name,
            cwd=ctx.cwd,
            manual=ctx.request.options.manual,
            deploy=ctx.request.options.deploy,
        )
        try:
            result = self.test_engine.run(git, app.tests, options)
        except Exception as e:
            raise PipelineFatalError(f"Test run failed to complete: {e}") from e

        if result.passed:
            logger.info("[%s] Tests passed on %s", ctx.target_name, result.commit.short)
            return result

        bad_commit = result.bisect.commit.short if result.bisect is not None else None
        if app.tests.deploy_on_failure:
            logger.error(
                "[%s] Tests failed on %s, deploying anyway", ctx.target_name, result.commit.short
            )
            return result

        raise TestsFailedError(result.commit.short, bad_commit, result)

    def _pull(self, ctx: PipelineContext) -> None:
        try:
            self.vcs.update(ctx.cwd or "")
        except Exception as e:
            raise PullError(f"Could not pull {ctx.target_name}: {e}") from e
        logger.info("[%s] Pulled %s", ctx.target_name, ctx.cwd)

    def _hook(self, ctx: PipelineContext, hook_name: str, command: str | None) -> str | None:
        """Run a hook, returning its output, or None when it is not configured."""
        if not command:
            return None
        try:
            result = self.hooks.run(ctx.target_name, hook_name, command, ctx.cwd, ctx.app.debug)
        except OSError as e:
            raise HookError(hook_name, -1, str(e)) from e

        if result.returncode != 0:
            raise HookError(hook_name, result.returncode, result.output)
        logger.info("[%s] %s finished", ctx.target_name, hook_name)
        return result.output

    def _reload(self, ctx: PipelineContext) -> bool:
        if ctx.app.skip_reload:
            logger.info("[%s] Skipping reload", ctx.target_name)
            return False
        try:
            self.supervisor.graceful_reload(ctx.app.process_name or ctx.target_name)
        except Exception as e:
            raise ReloadError(f"Could not reload {ctx.target_name}: {e}") from e
        return True

    def _notify(self, ctx: PipelineContext) -> str | None:
        if self.notifier is None:
            return None
        try:
            return self.notifier.notify(ctx)
        except Exception as e:
            logger.error("[%s] Notification failed: %s", ctx.target_name, e)
            return None
