"""Target Resolver - branch-aware application selection."""

from hookdeploy.resolver.exceptions import ResolutionError
from hookdeploy.resolver.resolver import DEFAULT_BRANCH, lookup_target, resolve_target

__all__ = [
    "DEFAULT_BRANCH",
    "ResolutionError",
    "lookup_target",
    "resolve_target",
]
