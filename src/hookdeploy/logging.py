"""Process logging for hookdeploy.

Every component logs under the ``hookdeploy`` logger into one rotating file
(and the console). Handlers carry a :class:`RedactingFilter`, so hook
secrets, tokens and Slack webhook URLs never reach a log sink even when a
message was formatted from raw provider data.
"""

from __future__ import annotations

import logging
import os
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE = "hookdeploy.log"
DEFAULT_LOG_DIR = "logs"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10MB
DEFAULT_BACKUP_COUNT = 5

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_SENSITIVE_PATTERNS = [
    (re.compile(r"ghp_[a-zA-Z0-9]{36}"), "[GITHUB_TOKEN]"),
    (re.compile(r"gho_[a-zA-Z0-9]{36}"), "[GITHUB_TOKEN]"),
    (re.compile(r"github_pat_[a-zA-Z0-9_]{82}"), "[GITHUB_TOKEN]"),
    (re.compile(r"Bearer [a-zA-Z0-9._-]+"), "Bearer [REDACTED]"),
    (re.compile(r"token=[a-zA-Z0-9._-]+"), "token=[REDACTED]"),
    (re.compile(r"https://hooks\.slack\.com/services/[A-Za-z0-9/]+"), "[SLACK_WEBHOOK]"),
    (re.compile(r"sha1=[0-9a-f]{40}"), "sha1=[SIGNATURE]"),
    (re.compile(r"https://[^\s/@]+@"), "https://[REDACTED]@"),
]


def sanitize_for_log(text: str) -> str:
    """Mask tokens, webhook URLs, signatures and URL credentials in ``text``."""
    for pattern, replacement in _SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class RedactingFilter(logging.Filter):
    """Rewrites each record's message through :func:`sanitize_for_log`."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = sanitize_for_log(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(
    log_dir: str | Path | None = None,
    level: str | None = None,
    console: bool = True,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
) -> logging.Logger:
    """Attach the file and console handlers to the ``hookdeploy`` logger.

    Args:
        log_dir: Directory for ``hookdeploy.log``. Falls back to
            HOOKDEPLOY_LOG_DIR, then ``logs``.
        level: DEBUG, INFO, WARNING or ERROR. Falls back to
            HOOKDEPLOY_LOG_LEVEL, then INFO.
        console: Also log to stderr.
        max_bytes: Size at which the file is rotated.
        backup_count: Rotated files to keep.

    Returns:
        The ``hookdeploy`` logger.
    """
    log_dir = Path(log_dir or os.environ.get("HOOKDEPLOY_LOG_DIR", DEFAULT_LOG_DIR))
    log_dir.mkdir(parents=True, exist_ok=True)
    level = level or os.environ.get("HOOKDEPLOY_LOG_LEVEL", DEFAULT_LOG_LEVEL)
    log_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger("hookdeploy")
    logger.setLevel(log_level)
    # Repeated setup replaces the handlers
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    handlers: list[logging.Handler] = [
        RotatingFileHandler(
            log_dir / LOG_FILE,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
    ]
    if console:
        handlers.append(logging.StreamHandler())

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    redacting = RedactingFilter()
    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        handler.addFilter(redacting)
        logger.addHandler(handler)

    logger.info("Logging to %s (level=%s)", log_dir / LOG_FILE, level.upper())
    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger for a component, e.g. ``get_logger("adapters.hooks")``."""
    if not name.startswith("hookdeploy."):
        name = f"hookdeploy.{name}"
    return logging.getLogger(name)
