"""Hook runner - executes configured shell hooks."""

from __future__ import annotations

import os
import subprocess

from hookdeploy.adapters.models import HookResult
from hookdeploy.logging import get_logger, sanitize_for_log

logger = get_logger("adapters.hooks")


class HookRunner:
    """Runs pre/post hook commands through the shell.

    Keeps the last child process per application and hook. Starting the same
    hook again for an application kills a superseded child that is still
    running. The map is only touched from the worker's run loop.
    """

    def __init__(self) -> None:
        self._children: dict[str, dict[str, subprocess.Popen[str]]] = {}

    def run(
        self,
        app_name: str,
        hook_name: str,
        command: str,
        cwd: str | None,
        debug: bool = False,
    ) -> HookResult:
        """Run ``command`` in ``cwd`` and capture its combined output.

        Args:
            app_name: Application the hook belongs to.
            hook_name: Hook label, e.g. "preHook".
            command: Shell command line.
            cwd: Working directory.
            debug: Log output lines as they arrive.

        Returns:
            HookResult with the exit code and output.

        Raises:
            OSError: If the process cannot be started.
        """
        self._kill_superseded(app_name, hook_name)

        process = subprocess.Popen(
            command,
            shell=True,
            cwd=cwd,
            env=os.environ.copy(),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            encoding="utf-8",
            errors="replace",
            bufsize=1,
        )
        self._children.setdefault(app_name, {})[hook_name] = process

        output_lines: list[str] = []
        try:
            if process.stdout:
                for raw_line in process.stdout:
                    line = raw_line.rstrip("\n")
                    output_lines.append(line)
                    if debug:
                        logger.info("[%s] [%s] %s", app_name, hook_name, sanitize_for_log(line))
            process.wait()
        finally:
            if process.poll() is None:
                process.kill()
                process.wait()
            if self._children.get(app_name, {}).get(hook_name) is process:
                del self._children[app_name][hook_name]

        return HookResult(returncode=process.returncode or 0, output="\n".join(output_lines))

    def _kill_superseded(self, app_name: str, hook_name: str) -> None:
        old = self._children.get(app_name, {}).pop(hook_name, None)
        if old is not None and old.poll() is None:
            old.kill()
            old.wait()
            logger.info("[%s] Killed old %s process as new request received", app_name, hook_name)
