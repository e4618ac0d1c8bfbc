"""Report assembly and text/minimal/JSON rendering."""

from __future__ import annotations

from pathlib import Path

from pagediff.analysis.classifier import format_percent
from pagediff.models.report import ComparisonReport, ReportFiles
from pagediff.models.session import Analysis, ComparisonResult, Session, utc_now
from pagediff.sessions.store import get_session_paths

_VERDICT_INDICATORS: dict[str, tuple[str, str]] = {
    "MATCH": ("[PASS]", "No visual changes detected"),
    "EXPECTED_CHANGE": ("[OK]  ", "Changes detected, appear intentional"),
    "UNEXPECTED_CHANGE": ("[WARN]", "Unexpected changes - investigate"),
    "LAYOUT_BROKEN": ("[FAIL]", "Layout broken - fix required"),
}


def generate_report(
    session: Session,
    comparison: ComparisonResult,
    analysis: Analysis,
    output_dir: str | Path,
    web_view_port: int | None = None,
) -> ComparisonReport:
    """Combine a session and its results into an immutable report.

    Nested results are deep-copied so later changes to the session do not leak
    into the report.
    """
    paths = get_session_paths(output_dir, session.id)
    web_view_url = None
    if web_view_port:
        web_view_url = f"http://localhost:{web_view_port}/sessions/{session.id}"

    return ComparisonReport(
        session_id=session.id,
        session_name=session.name,
        url=session.url,
        timestamp=utc_now(),
        viewport=session.viewport.model_copy(),
        comparison=comparison.model_copy(deep=True),
        analysis=analysis.model_copy(deep=True),
        files=ReportFiles(
            baseline=str(paths.baseline),
            current=str(paths.current),
            diff=str(paths.diff),
        ),
        web_view_url=web_view_url,
    )


def format_report_text(report: ComparisonReport) -> str:
    """Multi-line human-readable report, verdict first."""
    symbol, label = _VERDICT_INDICATORS.get(report.analysis.verdict, ("[????]", "Unknown verdict"))
    comparison = report.comparison
    lines = [
        "",
        f"{symbol} {report.analysis.verdict} - {label}",
        "",
        f"Diff: {format_percent(comparison.diff_percent)}% ({comparison.diff_pixels:,} pixels)",
        "",
        "---",
        "",
        f"Session: {report.session_name} ({report.session_id})",
        f"URL: {report.url}",
        f"Viewport: {report.viewport.name} ({report.viewport.width}x{report.viewport.height})",
        "",
        f"Summary: {report.analysis.summary}",
    ]

    if report.analysis.recommendation:
        lines += ["", f"Recommendation: {report.analysis.recommendation}"]

    if report.analysis.unexpected_changes:
        lines += ["", "Unexpected Changes:"]
        for change in report.analysis.unexpected_changes:
            lines.append(f"  - {change.location}: {change.description}")

    lines += [
        "",
        "Files:",
        f"  Baseline: {report.files.baseline}",
        f"  Current: {report.files.current}",
        f"  Diff: {report.files.diff}",
    ]

    if report.web_view_url:
        lines += ["", f"View in browser: {report.web_view_url}"]

    return "\n".join(lines)


def format_report_minimal(report: ComparisonReport) -> str:
    """Single line for scripts: PASS/FAIL follows ``comparison.match`` only."""
    status = "PASS" if report.comparison.match else "FAIL"
    return (
        f"{status} {report.session_id} {report.analysis.verdict} "
        f"{format_percent(report.comparison.diff_percent)}%"
    )


def format_report_json(report: ComparisonReport) -> str:
    return report.model_dump_json(indent=2)


def format_session_summary(session: Session) -> str:
    """One row of a session listing."""
    diff_info = ""
    if session.comparison:
        if session.comparison.match:
            diff_info = " (no diff)"
        else:
            diff_info = f" ({format_percent(session.comparison.diff_percent)}% diff)"
    return (
        f"{session.id}  {session.status:<8}  {session.viewport.name:<8}  "
        f"{session.created_at:%Y-%m-%d}  {session.name}{diff_info}"
    )
