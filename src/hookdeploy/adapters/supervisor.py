"""Process supervisor adapter backed by the pm2 CLI."""

from __future__ import annotations

import json
import subprocess
from typing import Any

from hookdeploy.adapters.exceptions import SupervisorError
from hookdeploy.adapters.models import ProcessInfo
from hookdeploy.logging import get_logger

logger = get_logger("adapters.supervisor")


class Pm2Supervisor:
    """Describes and reloads applications managed by pm2."""

    def __init__(self, pm2_bin: str = "pm2") -> None:
        self.pm2_bin = pm2_bin

    def _run_pm2(self, *args: str) -> str:
        """Run a pm2 command.

        Raises:
            SupervisorError: If pm2 is missing or the command fails.
        """
        try:
            result = subprocess.run(
                [self.pm2_bin, *args],
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                check=True,
            )
        except FileNotFoundError as e:
            raise SupervisorError(f"pm2 not found ({self.pm2_bin})") from e
        except subprocess.CalledProcessError as e:
            raise SupervisorError(f"pm2 {' '.join(args)} failed: {e.stderr.strip()}") from e
        return result.stdout

    def describe(self, name: str) -> list[ProcessInfo]:
        """Describe the running instances of ``name``.

        Returns:
            One entry per instance, empty when the app is not running.
        """
        output = self._run_pm2("jlist")
        try:
            processes: list[dict[str, Any]] = json.loads(output or "[]")
        except json.JSONDecodeError as e:
            raise SupervisorError(f"Unreadable pm2 process list: {e}") from e

        found = []
        for proc in processes:
            if proc.get("name") != name:
                continue
            env = proc.get("pm2_env") or {}
            found.append(
                ProcessInfo(
                    name=name,
                    cwd=proc.get("pm_cwd") or env.get("pm_cwd"),
                    versioning=env.get("versioning") or {},
                )
            )
        logger.debug("pm2 describe %s: %d instance(s)", name, len(found))
        return found

    def graceful_reload(self, name: str) -> None:
        """Reload ``name`` without dropping in-flight work."""
        logger.info("Reloading %s through pm2", name)
        self._run_pm2("reload", name)
