"""Adapters for the external collaborators: pm2, git, hooks and the test engine."""

from hookdeploy.adapters.exceptions import (
    AdapterError,
    SupervisorError,
    TestEngineError,
    VCSError,
)
from hookdeploy.adapters.hooks import HookRunner
from hookdeploy.adapters.models import HookResult, ProcessInfo, TestRunOptions
from hookdeploy.adapters.supervisor import Pm2Supervisor
from hookdeploy.adapters.testing import ShellTestEngine, repo_web_url
from hookdeploy.adapters.vcs import GitPuller, run_git

__all__ = [
    "AdapterError",
    "GitPuller",
    "HookResult",
    "HookRunner",
    "Pm2Supervisor",
    "ProcessInfo",
    "ShellTestEngine",
    "SupervisorError",
    "TestEngineError",
    "TestRunOptions",
    "VCSError",
    "repo_web_url",
    "run_git",
]
