"""Data models for the external collaborator adapters."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ProcessInfo:
    """A running instance as described by the process supervisor.

    Attributes:
        name: Process name.
        cwd: Working directory the process was started in.
        versioning: Source metadata the supervisor tracks (url, branch, revision).
    """

    name: str
    cwd: str | None = None
    versioning: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class HookResult:
    """Result of running a hook command."""

    returncode: int
    output: str


@dataclass(frozen=True)
class TestRunOptions:
    """Context handed to the test engine.

    Attributes:
        target_name: Application being tested.
        cwd: Working directory of the running application.
        manual: Whether the run was triggered by hand.
        deploy: Whether a manual run will go on to deploy.
    """

    __test__ = False

    target_name: str
    cwd: str | None = None
    manual: bool = False
    deploy: bool = False
