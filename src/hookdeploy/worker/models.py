"""Data models for the Worker."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class WorkerStatus:
    """Snapshot of the deploy queue.

    Attributes:
        queue_size: Requests waiting behind the current one.
        active: Whether the run loop is draining the queue.
        current_target: Target being deployed right now, if any.
        apps: Number of configured applications.
    """

    queue_size: int
    active: bool
    current_target: str | None = None
    apps: int = 0
