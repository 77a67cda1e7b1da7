"""VCS puller adapter - brings a working copy up to date with git."""

from __future__ import annotations

import subprocess
from pathlib import Path

from hookdeploy.adapters.exceptions import VCSError
from hookdeploy.logging import get_logger

logger = get_logger("adapters.vcs")


def run_git(cwd: str | Path, *args: str) -> str:
    """Run a git command in ``cwd`` and return its stripped stdout.

    Raises:
        VCSError: If git is missing or the command fails.
    """
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            encoding="utf-8",
            errors="replace",
            check=True,
        )
    except FileNotFoundError as e:
        raise VCSError(f"Cannot run git in {cwd}: {e}") from e
    except subprocess.CalledProcessError as e:
        raise VCSError(f"git {args[0]} failed in {cwd}: {e.stderr.strip()}") from e
    return result.stdout.strip()


class GitPuller:
    """Pulls working copies to the head of their tracked branch."""

    def update(self, cwd: str | Path) -> None:
        """Fast-forward the working copy at ``cwd``.

        Raises:
            VCSError: If the pull fails.
        """
        logger.info("Pulling %s", cwd)
        run_git(cwd, "pull", "--ff-only")
