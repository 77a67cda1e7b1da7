"""Data models for the Deployment Pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hookdeploy.adapters.models import ProcessInfo
    from hookdeploy.auth import VersioningInfo
    from hookdeploy.config import ApplicationConfig


@dataclass(frozen=True)
class DeployOptions:
    """How a deployment was triggered.

    Attributes:
        manual: Triggered by hand rather than by a provider hook.
        deploy: For manual triggers, run the full deploy instead of tests only.
        notify: Send the outcome notification.
    """

    manual: bool = False
    deploy: bool = False
    notify: bool = True

    @property
    def dry_run(self) -> bool:
        """Only resolve the working directory and run tests."""
        return self.manual and not self.deploy


@dataclass(frozen=True)
class DeployRequest:
    """One queued deployment.

    Holds a snapshot of the target config taken when the request was
    accepted; later config reloads do not affect it.
    """

    app: ApplicationConfig
    target_name: str
    git: VersioningInfo
    options: DeployOptions = field(default_factory=DeployOptions)


@dataclass(frozen=True)
class CommitInfo:
    """Commit a test run was performed on."""

    short: str | None = None
    url: str | None = None
    branch: str | None = None
    message: str | None = None
    author: str | None = None


@dataclass(frozen=True)
class TestReport:
    """Counts from a test report. ``passes`` is None when no report was produced."""

    __test__ = False

    url: str | None = None
    passes: int | None = None
    failures: int | None = None
    pending: int | None = None
    skipped: int | None = None
    tests_registered: int | None = None

    @property
    def available(self) -> bool:
        return self.passes is not None

    @property
    def timed_out(self) -> bool:
        # Every registered test skipped means the run was cut short
        return (
            self.tests_registered is not None
            and self.skipped is not None
            and self.tests_registered == self.skipped
        )


@dataclass(frozen=True)
class Coverage:
    """Coverage summary."""

    pct: float | None = None
    url: str | None = None


@dataclass(frozen=True)
class TestResult:
    """Outcome of a test engine run.

    Attributes:
        passed: Whether the suite passed.
        commit: The commit tested.
        report: Test counts and report link.
        coverage: Coverage summary.
        changes_url: Diff view for the tested changes.
        bisect: On failure, the run on the first bad commit, if one was found.
    """

    __test__ = False

    passed: bool
    commit: CommitInfo = field(default_factory=CommitInfo)
    report: TestReport = field(default_factory=TestReport)
    coverage: Coverage = field(default_factory=Coverage)
    changes_url: str | None = None
    bisect: TestResult | None = None


@dataclass
class DeployOutcome:
    """What the deploy phases actually did."""

    pulled: bool = False
    pre_output: str | None = None
    reloaded: bool = False
    post_output: str | None = None
    error: Exception | None = None


@dataclass
class PipelineContext:
    """State threaded through the phases of one pipeline run.

    Phases return their results; only the pipeline's run method stores them
    here.
    """

    request: DeployRequest
    cwd: str | None = None
    process: ProcessInfo | None = None
    test_result: TestResult | None = None
    outcome: DeployOutcome = field(default_factory=DeployOutcome)
    notification_status: str | None = None

    @property
    def target_name(self) -> str:
        return self.request.target_name

    @property
    def app(self) -> ApplicationConfig:
        return self.request.app

    @property
    def succeeded(self) -> bool:
        return self.outcome.error is None
