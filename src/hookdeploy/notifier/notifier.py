"""Notifier - turns a finished pipeline run into a message and sends it."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

from hookdeploy.notifier.report import build_report

if TYPE_CHECKING:
    from hookdeploy.pipeline.models import PipelineContext

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Outbound chat transport."""

    def send(
        self, headline: str, attachments: list[dict[str, Any]], channel: str | None = None
    ) -> str:
        """Deliver a message and return a status string."""
        ...


class Notifier:
    """Formats pipeline results and dispatches them to the app's channel."""

    def __init__(self, transport: Transport, coverage_threshold: float = 90.0) -> None:
        self.transport = transport
        self.coverage_threshold = coverage_threshold

    def notify(self, ctx: PipelineContext) -> str:
        """Send the report for ``ctx``.

        Raises:
            NotificationError: If the transport fails.
        """
        headline, attachments = build_report(ctx, self.coverage_threshold)
        status = self.transport.send(headline, attachments, ctx.app.notify_channel)
        logger.info("[%s] [%s] %s", ctx.target_name, ctx.request.git.head, status)
        return status
