"""Exceptions for the Deployment Pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hookdeploy.pipeline.models import TestResult


class PipelineFatalError(Exception):
    """A phase failed; the remaining deploy phases are skipped."""


class ApplicationNotRunningError(PipelineFatalError):
    """No running instance to take the working directory from."""


class TestsFailedError(PipelineFatalError):
    """Tests failed and the app is not configured to deploy anyway."""

    __test__ = False

    def __init__(
        self,
        commit: str | None,
        bad_commit: str | None = None,
        result: TestResult | None = None,
    ) -> None:
        super().__init__(
            f"Tests failed for app on commit {commit}, found bad commit: {bad_commit}"
        )
        self.commit = commit
        self.bad_commit = bad_commit
        self.result = result


class PullError(PipelineFatalError):
    """Pulling the working copy failed."""


class HookError(PipelineFatalError):
    """A pre/post hook exited with a non-zero code."""

    def __init__(self, hook: str, returncode: int, output: str = "") -> None:
        super().__init__(f"{hook} exited with code {returncode}")
        self.hook = hook
        self.returncode = returncode
        self.output = output


class ReloadError(PipelineFatalError):
    """The process supervisor could not reload the application."""
