"""Slack transport - posts messages to an incoming webhook."""

from __future__ import annotations

from typing import Any

import httpx

from hookdeploy.logging import get_logger
from hookdeploy.notifier.exceptions import NotificationError

logger = get_logger("notifier.slack")


def link(url: str | None, text: str) -> str:
    """Slack link markup, or plain text when there is no URL."""
    if not url:
        return text
    return f"<{url}|{text}>"


def code(text: str | None) -> str:
    return f"`{text}`"


class SlackTransport:
    """Sends messages with attachments to a Slack incoming webhook."""

    def __init__(
        self,
        webhook_url: str | None,
        default_channel: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the transport.

        Args:
            webhook_url: Incoming webhook URL. Sending is skipped when empty.
            default_channel: Channel used when a message names none.
            timeout: HTTP timeout in seconds.
        """
        self.webhook_url = webhook_url
        self.default_channel = default_channel
        self.timeout = timeout
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def send(
        self,
        headline: str,
        attachments: list[dict[str, Any]],
        channel: str | None = None,
    ) -> str:
        """Post a message.

        Returns:
            Delivery status for the log.

        Raises:
            NotificationError: If the webhook call fails.
        """
        channel = channel or self.default_channel
        if not self.webhook_url:
            logger.info("No Slack webhook configured, skipping message: %s", headline)
            return "skipped (no webhook configured)"

        payload: dict[str, Any] = {"text": headline, "attachments": attachments}
        if channel:
            payload["channel"] = channel

        try:
            response = self.client.post(self.webhook_url, json=payload)
        except httpx.HTTPError as e:
            raise NotificationError(f"Slack request failed: {e}") from e

        if response.status_code != 200:
            raise NotificationError(
                f"Slack rejected message: {response.status_code} - {response.text}"
            )
        return f"Slack message sent to {channel or 'default channel'}"
