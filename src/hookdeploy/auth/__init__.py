"""Request Authenticator - per-provider webhook verification."""

from hookdeploy.auth.authenticator import (
    Authenticator,
    BitbucketStrategy,
    DroneStrategy,
    GithubStrategy,
    GitlabStrategy,
    JenkinsStrategy,
    ProviderStrategy,
    branch_from_ref,
    default_strategies,
)
from hookdeploy.auth.exceptions import AuthenticationError
from hookdeploy.auth.models import VersioningInfo, WebhookRequest

__all__ = [
    "AuthenticationError",
    "Authenticator",
    "BitbucketStrategy",
    "DroneStrategy",
    "GithubStrategy",
    "GitlabStrategy",
    "JenkinsStrategy",
    "ProviderStrategy",
    "VersioningInfo",
    "WebhookRequest",
    "branch_from_ref",
    "default_strategies",
]
