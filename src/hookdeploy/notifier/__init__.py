"""Notifier - formats and sends deployment reports."""

from hookdeploy.notifier.exceptions import NotificationError
from hookdeploy.notifier.notifier import Notifier, Transport
from hookdeploy.notifier.report import build_report, summarize_tests
from hookdeploy.notifier.slack import SlackTransport

__all__ = [
    "NotificationError",
    "Notifier",
    "SlackTransport",
    "Transport",
    "build_report",
    "summarize_tests",
]
