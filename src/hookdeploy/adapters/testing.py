"""Test engine adapter - runs an application's test command on a fresh checkout.

On failure, when a last known good commit is configured, ``git bisect run``
finds the first bad commit and its test run is attached to the result.
"""

from __future__ import annotations

import json
import re
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

from hookdeploy.adapters.exceptions import TestEngineError, VCSError
from hookdeploy.adapters.vcs import run_git
from hookdeploy.auth import VersioningInfo
from hookdeploy.logging import get_logger, sanitize_for_log
from hookdeploy.pipeline.models import CommitInfo, Coverage, TestReport, TestResult

if TYPE_CHECKING:
    from hookdeploy.adapters.models import TestRunOptions
    from hookdeploy.config import TestConfig

logger = get_logger("adapters.testing")

_FIRST_BAD_RE = re.compile(r"^([0-9a-f]{7,40}) is the first bad commit", re.MULTILINE)
_LOG_SEPARATOR = "\x1f"
MAX_LOGGED_OUTPUT = 5000


def tail_output(output: str, max_length: int = MAX_LOGGED_OUTPUT) -> str:
    """The last ``max_length`` characters of a test run's output."""
    if len(output) <= max_length:
        return output
    dropped = len(output) - max_length
    return f"[... {dropped} earlier chars dropped]\n" + output[-max_length:]


def repo_web_url(remote_url: str | None) -> str | None:
    """Browsable URL of a repository from its clone URL."""
    if not remote_url:
        return None
    url = remote_url.strip()
    if url.startswith("git@"):
        host, _, path = url[4:].partition(":")
        url = f"https://{host}/{path}"
    url = re.sub(r"^https://[^@/]+@", "https://", url)
    return url.removesuffix(".git")


def _with_token(remote_url: str, token: str | None) -> str:
    if token and remote_url.startswith("https://"):
        return remote_url.replace("https://", f"https://{token}@", 1)
    return remote_url


class ShellTestEngine:
    """Runs test commands through the shell on a scratch clone.

    Report files are read from the checkout after the run: a mocha-style
    JSON report (``stats`` object) and an istanbul coverage summary. When
    found they are copied under ``<data_dir>/reports`` so they can be served
    at ``<public_url>/reports``.
    """

    def __init__(
        self,
        data_dir: str | Path,
        public_url: str | None = None,
        report_file: str = "test-report.json",
        coverage_file: str = "coverage/coverage-summary.json",
    ) -> None:
        self.data_dir = Path(data_dir)
        self.public_url = public_url.rstrip("/") if public_url else None
        self.report_file = report_file
        self.coverage_file = coverage_file

    @property
    def reports_dir(self) -> Path:
        return self.data_dir / "reports"

    def run(
        self,
        versioning: VersioningInfo,
        test_config: TestConfig,
        options: TestRunOptions,
    ) -> TestResult:
        """Run the configured tests on ``versioning.head``.

        Raises:
            TestEngineError: If the checkout cannot be prepared.
        """
        if not test_config.command:
            raise TestEngineError(f"No test command configured for {options.target_name}")

        source = versioning.remote_url or options.cwd
        if not source:
            raise TestEngineError(f"No repository to test for {options.target_name}")

        scratch_root = self.data_dir / "checkouts"
        scratch_root.mkdir(parents=True, exist_ok=True)
        workdir = Path(tempfile.mkdtemp(prefix=f"{options.target_name}-", dir=scratch_root))
        try:
            self._checkout(source, versioning.head, test_config.token, workdir)
            result = self._run_and_collect(test_config.command, workdir, versioning, options)

            if not result.passed and test_config.last_good_commit:
                bisect = self._bisect(test_config, workdir, versioning, options)
                if bisect is not None:
                    result = TestResult(
                        passed=result.passed,
                        commit=result.commit,
                        report=result.report,
                        coverage=result.coverage,
                        changes_url=result.changes_url,
                        bisect=bisect,
                    )
            return result
        finally:
            shutil.rmtree(workdir, ignore_errors=True)

    def _checkout(self, source: str, head: str | None, token: str | None, workdir: Path) -> None:
        try:
            run_git(workdir.parent, "clone", "--quiet", _with_token(source, token), str(workdir))
            if head:
                run_git(workdir, "checkout", "--quiet", head)
        except VCSError as e:
            message = f"Could not check out {head or 'HEAD'}: {e}"
            raise TestEngineError(sanitize_for_log(message)) from e

    def _run_and_collect(
        self,
        command: str,
        workdir: Path,
        versioning: VersioningInfo,
        options: TestRunOptions,
    ) -> TestResult:
        logger.info("[%s] Running tests: %s", options.target_name, command)
        proc = subprocess.run(
            command,
            shell=True,
            cwd=workdir,
            capture_output=True,
            encoding="utf-8",
            errors="replace",
        )
        output = tail_output(proc.stdout + proc.stderr)
        logger.debug("[%s] Test output:\n%s", options.target_name, sanitize_for_log(output))

        commit = self._commit_info(workdir, versioning)
        report_url, coverage_url = self._publish(workdir, options.target_name, commit.short)
        return TestResult(
            passed=proc.returncode == 0,
            commit=commit,
            report=self._read_report(workdir, report_url),
            coverage=self._read_coverage(workdir, coverage_url),
            changes_url=versioning.compare_url or commit.url,
        )

    def _bisect(
        self,
        test_config: TestConfig,
        workdir: Path,
        versioning: VersioningInfo,
        options: TestRunOptions,
    ) -> TestResult | None:
        """Find and test the first bad commit between last good and head."""
        command = test_config.command or ""
        head = versioning.head or "HEAD"
        logger.info(
            "[%s] Bisecting %s..%s", options.target_name, test_config.last_good_commit, head
        )
        try:
            run_git(workdir, "bisect", "start", head, test_config.last_good_commit or "")
            proc = subprocess.run(
                ["git", "bisect", "run", "sh", "-c", command],
                cwd=workdir,
                capture_output=True,
                encoding="utf-8",
                errors="replace",
            )
            match = _FIRST_BAD_RE.search(proc.stdout)
        except VCSError as e:
            logger.warning("[%s] Bisect failed: %s", options.target_name, e)
            return None
        finally:
            subprocess.run(["git", "bisect", "reset"], cwd=workdir, capture_output=True)

        if match is None:
            logger.warning("[%s] Bisect found no bad commit", options.target_name)
            return None

        bad = match.group(1)
        try:
            run_git(workdir, "checkout", "--quiet", bad)
        except VCSError as e:
            logger.warning("[%s] Cannot check out bad commit %s: %s", options.target_name, bad, e)
            return None

        bad_versioning = VersioningInfo(
            head=bad, branch=versioning.branch, remote_url=versioning.remote_url
        )
        return self._run_and_collect(command, workdir, bad_versioning, options)

    def _commit_info(self, workdir: Path, versioning: VersioningInfo) -> CommitInfo:
        fmt = _LOG_SEPARATOR.join(["%H", "%h", "%s", "%an"])
        try:
            full, short, message, author = run_git(
                workdir, "log", "-1", f"--format={fmt}"
            ).split(_LOG_SEPARATOR)
        except (VCSError, ValueError):
            return CommitInfo(short=(versioning.head or "")[:7] or None, branch=versioning.branch)

        web = repo_web_url(versioning.remote_url)
        return CommitInfo(
            short=short,
            url=f"{web}/commit/{full}" if web else None,
            branch=versioning.branch,
            message=message,
            author=author,
        )

    def _publish(
        self, workdir: Path, target_name: str, short: str | None
    ) -> tuple[str | None, str | None]:
        """Copy report artifacts under the reports dir and return their URLs."""
        dest = self.reports_dir / target_name / (short or "unknown")
        report_url = coverage_url = None

        report = workdir / self.report_file
        if report.is_file():
            dest.mkdir(parents=True, exist_ok=True)
            shutil.copy2(report, dest / report.name)
            report_url = self._url(target_name, short, report.name)

        coverage_dir = (workdir / self.coverage_file).parent
        if coverage_dir.is_dir():
            shutil.copytree(coverage_dir, dest / "coverage", dirs_exist_ok=True)
            coverage_url = self._url(target_name, short, "coverage/index.html")

        return report_url, coverage_url

    def _url(self, target_name: str, short: str | None, path: str) -> str | None:
        if not self.public_url:
            return None
        return f"{self.public_url}/reports/{target_name}/{short or 'unknown'}/{path}"

    def _read_report(self, workdir: Path, url: str | None) -> TestReport:
        stats = _load_json(workdir / self.report_file).get("stats")
        if not isinstance(stats, dict):
            return TestReport(url=url)
        registered = stats.get("testsRegistered", stats.get("tests"))
        return TestReport(
            url=url,
            passes=stats.get("passes"),
            failures=stats.get("failures"),
            pending=stats.get("pending"),
            skipped=stats.get("skipped", 0),
            tests_registered=registered,
        )

    def _read_coverage(self, workdir: Path, url: str | None) -> Coverage:
        total = _load_json(workdir / self.coverage_file).get("total") or {}
        pct = (total.get("lines") or {}).get("pct")
        return Coverage(pct=pct, url=url)


def _load_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}
