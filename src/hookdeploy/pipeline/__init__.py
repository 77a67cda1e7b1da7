"""Deployment Pipeline - phase sequence for one deployment attempt."""

from hookdeploy.pipeline.exceptions import (
    ApplicationNotRunningError,
    HookError,
    PipelineFatalError,
    PullError,
    ReloadError,
    TestsFailedError,
)
from hookdeploy.pipeline.models import (
    CommitInfo,
    Coverage,
    DeployOptions,
    DeployOutcome,
    DeployRequest,
    PipelineContext,
    TestReport,
    TestResult,
)
from hookdeploy.pipeline.pipeline import DeployPipeline

__all__ = [
    "ApplicationNotRunningError",
    "CommitInfo",
    "Coverage",
    "DeployOptions",
    "DeployOutcome",
    "DeployPipeline",
    "DeployRequest",
    "HookError",
    "PipelineContext",
    "PipelineFatalError",
    "PullError",
    "ReloadError",
    "TestReport",
    "TestResult",
    "TestsFailedError",
]
