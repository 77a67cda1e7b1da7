"""Target Resolver - picks the branch variant of an application to deploy."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from hookdeploy.resolver.exceptions import ResolutionError

if TYPE_CHECKING:
    from hookdeploy.config import ApplicationConfig

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "master"


def resolve_target(
    apps: Mapping[str, ApplicationConfig],
    requested_name: str,
    branch: str | None,
    default_branch: str = DEFAULT_BRANCH,
) -> str:
    """Resolve the configured application a push to ``branch`` should deploy.

    1. The default branch always targets ``requested_name``.
    2. An entry named ``{requested_name}-{branch}`` wins next.
    3. Otherwise entries whose name starts with ``requested_name`` are scanned
       in configuration order. The first one listing ``branch`` explicitly is
       taken and the scan stops. An entry accepting the wildcard is taken
       tentatively and the scan goes on, so a later wildcard entry replaces
       it and a later explicit entry still wins.
    4. With no match, ``requested_name`` is returned.

    The result is never empty, but it may not exist in ``apps``.
    """
    if branch == default_branch:
        return requested_name

    variant = f"{requested_name}-{branch}"
    if branch and variant in apps:
        return variant

    target: str | None = None
    for name, app in apps.items():
        if not name.startswith(requested_name):
            continue
        if branch in app.branches:
            target = name
            break
        if app.accepts_any_branch:
            target = name

    return target or requested_name


def lookup_target(
    apps: Mapping[str, ApplicationConfig],
    requested_name: str,
    branch: str | None,
    default_branch: str = DEFAULT_BRANCH,
) -> tuple[str, ApplicationConfig]:
    """Resolve and fetch the target config.

    Raises:
        ResolutionError: If the resolved name has no configuration.
    """
    target_name = resolve_target(apps, requested_name, branch, default_branch)
    app = apps.get(target_name)
    if app is None:
        raise ResolutionError(
            f"Target app not configured, requested: {requested_name} - {branch}, "
            f"resolved: {target_name}"
        )
    if target_name != requested_name:
        logger.info("[%s] Branch %s resolved to app %s", requested_name, branch, target_name)
    return target_name, app
