"""Request Authenticator - per-provider webhook verification.

Each provider is handled by a strategy object registered in a table keyed by
:class:`~hookdeploy.config.Provider`. A strategy knows how to verify a raw
request against an application's secret and how to pull the
:class:`VersioningInfo` out of the provider's payload. Adding a provider means
adding a strategy to the table, the dispatch itself never changes.

Secret comparisons are plain equality checks, the same as the webhooks
senders have always been verified with. They are not constant-time.
"""

from __future__ import annotations

import hashlib
import hmac
import ipaddress
import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Protocol

from hookdeploy.auth.exceptions import AuthenticationError
from hookdeploy.auth.models import VersioningInfo, WebhookRequest
from hookdeploy.config import Provider

if TYPE_CHECKING:
    from hookdeploy.config import ApplicationConfig

logger = logging.getLogger(__name__)

DEFAULT_BITBUCKET_CIDR = "104.192.143.0/24"
BUILD_SUCCESS = "SUCCESS"


class ProviderStrategy(Protocol):
    """Interface of a provider authentication strategy."""

    provider: Provider

    def verify(self, config: ApplicationConfig, request: WebhookRequest) -> None:
        """Raise AuthenticationError unless the request is genuine for ``config``."""
        ...

    def parse(self, request: WebhookRequest) -> VersioningInfo:
        """Extract versioning info from the payload, raising AuthenticationError if malformed."""
        ...


def branch_from_ref(ref: str | None) -> str | None:
    """Branch name from a ref string: the third slash-delimited segment.

    ``refs/heads/feature-x`` gives ``feature-x``.
    """
    if not ref:
        return None
    parts = ref.split("/")
    if len(parts) < 3:
        return None
    return parts[2]


def ip_matches(ip: str, allowed: str) -> bool:
    """Check a caller IP against a CIDR block or a plain substring."""
    if "/" in allowed:
        try:
            return ipaddress.ip_address(ip) in ipaddress.ip_network(allowed, strict=False)
        except ValueError:
            return False
    return allowed in ip


class _BaseStrategy:
    provider: Provider

    def _fail(self, message: str) -> AuthenticationError:
        return AuthenticationError(self.provider.value, message)

    def _load(self, request: WebhookRequest) -> dict[str, Any]:
        try:
            body = request.json()
        except (ValueError, UnicodeDecodeError) as e:
            raise self._fail(f"Malformed payload: {e}") from e
        if not isinstance(body, dict):
            raise self._fail("Malformed payload: expected a JSON object")
        return body

    def _check_branch(self, config: ApplicationConfig, branch: str | None) -> None:
        if config.branch and (branch is None or config.branch not in branch):
            raise self._fail(
                f"Received valid hook but with a branch {branch} than configured "
                f"for app {config.name}"
            )


class GithubStrategy(_BaseStrategy):
    """HMAC-SHA1 signed hooks (``x-hub-signature``)."""

    provider = Provider.GITHUB

    def verify(self, config: ApplicationConfig, request: WebhookRequest) -> None:
        signature = request.header("x-hub-signature")
        if not request.header("x-github-event") or not signature:
            raise self._fail(f"Received invalid request for app {config.name} (no headers found)")

        digest = hmac.new(config.secret.encode("utf-8"), request.body, hashlib.sha1).hexdigest()
        if "sha1=" + digest != signature:
            raise self._fail(f"Received invalid request for app {config.name} (bad signature)")

    def parse(self, request: WebhookRequest) -> VersioningInfo:
        body = self._load(request)
        head_commit = body.get("head_commit") or {}
        repository = body.get("repository") or {}
        return VersioningInfo(
            head=head_commit.get("id") or body.get("after"),
            branch=branch_from_ref(body.get("ref")),
            tree=head_commit.get("tree_id"),
            compare_url=body.get("compare"),
            remote_url=repository.get("clone_url"),
        )


class GitlabStrategy(_BaseStrategy):
    """Shared token in ``x-gitlab-token``."""

    provider = Provider.GITLAB

    def verify(self, config: ApplicationConfig, request: WebhookRequest) -> None:
        token = request.header("x-gitlab-token")
        if not token:
            raise self._fail(f"Received invalid request for app {config.name} (no headers found)")
        if token != config.secret:
            raise self._fail(
                f"Received invalid request for app {config.name} (not matching secret)"
            )

    def parse(self, request: WebhookRequest) -> VersioningInfo:
        body = self._load(request)
        project = body.get("project") or {}
        repository = body.get("repository") or {}
        compare_url = None
        if project.get("web_url") and body.get("before") and body.get("after"):
            compare_url = f"{project['web_url']}/compare/{body['before']}...{body['after']}"
        return VersioningInfo(
            head=body.get("checkout_sha") or body.get("after"),
            branch=branch_from_ref(body.get("ref")),
            compare_url=compare_url,
            remote_url=repository.get("git_http_url") or project.get("git_http_url"),
        )


class JenkinsStrategy(_BaseStrategy):
    """Source IP allow-list plus a successful build status.

    The application secret holds the allowed IP substring or CIDR range.
    """

    provider = Provider.JENKINS

    def verify(self, config: ApplicationConfig, request: WebhookRequest) -> None:
        if not ip_matches(request.client_ip, config.secret):
            raise self._fail(
                f"Received request from {request.client_ip} for app {config.name} "
                f"but ip configured was {config.secret}"
            )
        build = self._load(request).get("build") or {}
        if str(build.get("status", "")).upper() != BUILD_SUCCESS:
            raise self._fail(f"Received valid hook but with failure build for app {config.name}")
        self._check_branch(config, (build.get("scm") or {}).get("branch"))

    def parse(self, request: WebhookRequest) -> VersioningInfo:
        scm = (self._load(request).get("build") or {}).get("scm") or {}
        branch = scm.get("branch")
        if branch:
            branch = branch.removeprefix("origin/")
        return VersioningInfo(head=scm.get("commit"), branch=branch, remote_url=scm.get("url"))


class DroneStrategy(_BaseStrategy):
    """Shared secret in the ``Authorization`` header plus a successful build."""

    provider = Provider.DRONECI

    def verify(self, config: ApplicationConfig, request: WebhookRequest) -> None:
        token = request.header("authorization")
        if not token:
            raise self._fail(f"Received invalid request for app {config.name} (no headers found)")
        if token != config.secret:
            raise self._fail(
                f"Received request from {request.client_ip} for app {config.name} "
                "but incorrect secret"
            )
        build = self._load(request).get("build") or {}
        if str(build.get("status", "")).upper() != BUILD_SUCCESS:
            raise self._fail(f"Received valid hook but with failure build for app {config.name}")
        self._check_branch(config, build.get("branch"))

    def parse(self, request: WebhookRequest) -> VersioningInfo:
        body = self._load(request)
        build = body.get("build") or {}
        repo = body.get("repo") or {}
        return VersioningInfo(
            head=build.get("commit"),
            branch=build.get("branch"),
            compare_url=build.get("link_url"),
            remote_url=repo.get("clone_url") or repo.get("link_url"),
        )


class BitbucketStrategy(_BaseStrategy):
    """Source IP inside a CIDR block plus a ``push`` payload."""

    provider = Provider.BITBUCKET

    def verify(self, config: ApplicationConfig, request: WebhookRequest) -> None:
        cidr = config.secret or DEFAULT_BITBUCKET_CIDR
        try:
            network = ipaddress.ip_network(cidr, strict=False)
            source = ipaddress.ip_address(request.client_ip)
        except ValueError as e:
            raise self._fail(f"Cannot match source ip for app {config.name}: {e}") from e
        if source.version != network.version or source not in network:
            raise self._fail(
                f"Received request from {request.client_ip} for app {config.name} "
                f"but ip configured was {cidr}"
            )

        push = self._load(request).get("push")
        if not push:
            raise self._fail(f"Received valid hook but without 'push' data for app {config.name}")
        change = self._first_change(push)
        if change is not None:
            self._check_branch(config, (change.get("new") or {}).get("name"))

    def parse(self, request: WebhookRequest) -> VersioningInfo:
        body = self._load(request)
        change = self._first_change(body.get("push") or {}) or {}
        new = change.get("new") or {}
        repository = body.get("repository") or {}
        return VersioningInfo(
            head=(new.get("target") or {}).get("hash"),
            branch=new.get("name"),
            compare_url=((change.get("links") or {}).get("html") or {}).get("href"),
            remote_url=((repository.get("links") or {}).get("html") or {}).get("href"),
        )

    @staticmethod
    def _first_change(push: dict[str, Any]) -> dict[str, Any] | None:
        changes = push.get("changes") or []
        return changes[0] if changes else None


@contextmanager
def _payload_shape(provider: Provider) -> Iterator[None]:
    """Report payload fields of an unexpected type as malformed payloads."""
    try:
        yield
    except (AttributeError, TypeError, KeyError, IndexError) as e:
        raise AuthenticationError(str(provider), f"Malformed payload: {e}") from e


def default_strategies() -> dict[Provider, ProviderStrategy]:
    """The built-in strategy table."""
    strategies: list[ProviderStrategy] = [
        GithubStrategy(),
        GitlabStrategy(),
        JenkinsStrategy(),
        DroneStrategy(),
        BitbucketStrategy(),
    ]
    return {s.provider: s for s in strategies}


class Authenticator:
    """Dispatches authentication to the strategy registered for a provider.

    Unregistered providers fall back to the GitHub strategy.
    """

    def __init__(self, strategies: Mapping[Provider, ProviderStrategy] | None = None) -> None:
        self._strategies: dict[Provider, ProviderStrategy] = dict(
            strategies if strategies is not None else default_strategies()
        )

    def register(self, strategy: ProviderStrategy) -> None:
        """Add or replace the strategy for ``strategy.provider``."""
        self._strategies[strategy.provider] = strategy

    def strategy_for(self, provider: Provider) -> ProviderStrategy:
        strategy = self._strategies.get(provider) or self._strategies.get(Provider.GITHUB)
        if strategy is None:
            raise AuthenticationError(str(provider), "No authentication strategy registered")
        return strategy

    def parse(self, provider: Provider, request: WebhookRequest) -> VersioningInfo:
        """Read versioning info without verifying the request.

        Used to learn the branch before the target application is resolved.
        """
        strategy = self.strategy_for(provider)
        with _payload_shape(strategy.provider):
            return strategy.parse(request)

    def authenticate(self, config: ApplicationConfig, request: WebhookRequest) -> VersioningInfo:
        """Verify ``request`` for ``config`` and return its versioning info.

        Raises:
            AuthenticationError: If the request is not genuine or is malformed.
        """
        strategy = self.strategy_for(config.provider)
        with _payload_shape(strategy.provider):
            strategy.verify(config, request)
            git = strategy.parse(request)
        logger.debug(
            "[%s] Authenticated %s hook (branch=%s)", config.name, strategy.provider, git.branch
        )
        return git
