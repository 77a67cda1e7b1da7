"""Shared pytest fixtures and configuration."""

import hashlib
import hmac
import json
from typing import Any

import pytest

from hookdeploy.auth import WebhookRequest
from hookdeploy.config import ApplicationConfig


# Register custom markers
def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: fast tests with no external dependencies")
    config.addinivalue_line("markers", "integration: component interaction tests")


# Shared helpers


def sign(secret: str, body: bytes) -> str:
    """GitHub-style signature header value for ``body``."""
    return "sha1=" + hmac.new(secret.encode(), body, hashlib.sha1).hexdigest()


def github_push(
    secret: str = "s3cret",
    ref: str = "refs/heads/master",
    commit: str = "abc123",
    extra: dict[str, Any] | None = None,
) -> WebhookRequest:
    """A correctly signed GitHub push notification."""
    payload = {
        "ref": ref,
        "after": commit,
        "compare": "https://github.com/acme/svc/compare/000...abc123",
        "head_commit": {"id": commit, "tree_id": "tree456"},
        "repository": {"clone_url": "https://github.com/acme/svc.git"},
        **(extra or {}),
    }
    body = json.dumps(payload).encode()
    return WebhookRequest.create(
        body,
        {
            "Content-Type": "application/json",
            "X-GitHub-Event": "push",
            "X-Hub-Signature": sign(secret, body),
        },
        client_ip="127.0.0.1",
    )


@pytest.fixture
def make_app():
    """Factory for application configs."""

    def _make(name: str = "svc", **fields: Any) -> ApplicationConfig:
        fields.setdefault("secret", "s3cret")
        return ApplicationConfig(name=name, **fields)

    return _make


@pytest.fixture
def signer():
    """The GitHub signature helper."""
    return sign


@pytest.fixture
def push_request():
    """Factory for signed GitHub push notifications."""
    return github_push
