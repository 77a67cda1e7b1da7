"""Formatting of pipeline results into Slack-style attachments."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from hookdeploy.notifier.slack import code, link

if TYPE_CHECKING:
    from hookdeploy.pipeline.models import Coverage, PipelineContext, TestReport, TestResult

COLOR_GOOD = "good"
COLOR_DANGER = "danger"
COLOR_WARNING = "warning"

NO_REPORT = "*Tests could not be run. No report generated.*"
TIMED_OUT = "*Tests timed out!*"


def summarize_tests(report: TestReport, coverage: Coverage | None = None) -> str:
    """One-line test summary: counts, then coverage when given."""
    if not report.available:
        return NO_REPORT
    if coverage is not None and report.timed_out:
        return TIMED_OUT
    summary = (
        f"*Passed:* {report.passes}\t"
        f"*Failed:* {report.failures}\t"
        f"*Pending:* {report.pending}\t"
        f"*Skipped:* {report.skipped}"
    )
    if coverage is not None and coverage.pct is not None:
        summary += f"\t*Coverage:* {coverage.pct}%"
    return summary


def result_color(result: TestResult, coverage_threshold: float) -> str:
    if not result.passed:
        return COLOR_DANGER
    if result.coverage.pct is not None and result.coverage.pct < coverage_threshold:
        return COLOR_WARNING
    return COLOR_GOOD


def _buttons(*pairs: tuple[str, str | None]) -> list[dict[str, str]]:
    return [{"type": "button", "text": text, "url": url} for text, url in pairs if url]


def _commit_line(result: TestResult) -> str:
    commit = result.commit
    return f"{link(commit.url, code(commit.short))} {commit.message} - {commit.author}"


def report_attachments(result: TestResult, coverage_threshold: float) -> list[dict[str, Any]]:
    """Attachments describing a test run, plus the first bad commit on failure."""
    attachments: list[dict[str, Any]] = [
        {
            "fallback": f"Test report available at {result.report.url}",
            "title": f"Test Report For (Branch: {result.commit.branch}) :",
            "text": _commit_line(result),
            "fields": [{"value": summarize_tests(result.report, result.coverage)}],
            "actions": _buttons(
                ("Changes 🔍", result.changes_url or result.commit.url),
                ("Test Report 📋", result.report.url),
                ("Coverage Report 📋", result.coverage.url),
            ),
            "color": result_color(result, coverage_threshold),
        }
    ]

    bisect = result.bisect
    if not result.passed and bisect is not None:
        attachments.append(
            {
                "fallback": f"Tests started failing at commit {bisect.commit.short}",
                "title": "Tests Started Failing At:",
                "text": _commit_line(bisect),
                "fields": [{"value": summarize_tests(bisect.report)}],
                "actions": _buttons(
                    ("View Commit 🔗", bisect.commit.url),
                    ("Test Report 📋", bisect.report.url),
                ),
                "color": COLOR_DANGER,
            }
        )
    return attachments


def build_report(
    ctx: PipelineContext, coverage_threshold: float = 90.0
) -> tuple[str, list[dict[str, Any]]]:
    """Headline and attachments for a finished pipeline run."""
    target = ctx.target_name
    result = ctx.test_result
    outcome = ctx.outcome
    commit = ctx.request.git.head

    attachments = report_attachments(result, coverage_threshold) if result is not None else []

    deploy_anyway = ctx.app.tests is not None and ctx.app.tests.deploy_on_failure
    if outcome.pulled and outcome.reloaded:
        attachments.append(
            {
                "fallback": f"Deployed app {target}",
                "title": f"Pulled app {target} to the latest commit, {commit}",
            }
        )
    elif result is not None and not result.passed and not deploy_anyway:
        attachments.append(
            {
                "fallback": f"App {target} not deployed because tests failed",
                "text": f"App {target} not deployed because tests failed",
            }
        )
    elif result is not None and outcome.error is not None:
        attachments.append(
            {
                "fallback": f"App {target} encountered an error",
                "title": f"Could not pull app {target} to the latest commit, {commit}",
                "text": str(outcome.error),
            }
        )

    return f"Report for app *{target}* :", attachments
