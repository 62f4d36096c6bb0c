"""Plain-text rendering of command results.

This module renders summaries as ``key=value`` lines shared by the CLI
and run-spec output, so scripts can parse either the same way.
"""

from __future__ import annotations

from core.types import ProgressReport, RunSummary, SplitResult


def format_run_summary(summary: RunSummary) -> tuple[str, ...]:
    """Render an upload run summary."""
    return (
        f"run_id={summary.run_id}",
        f"total_records={summary.total_records}",
        f"skipped={summary.skipped}",
        f"succeeded={summary.succeeded}",
        f"failed={summary.failed}",
        f"malformed={summary.malformed}",
        f"resume_from_index={summary.resume_from_index}",
        f"retryable_failures={summary.retryable_failures}",
        f"cancelled={str(summary.cancelled).lower()}",
    )


def format_split_result(result: SplitResult) -> tuple[str, ...]:
    """Render a split result, one chunk path per line."""
    lines = [
        f"total_records={result.total_records}",
        f"malformed={result.malformed}",
        f"chunk_count={len(result.chunk_paths)}",
    ]
    lines.extend(f"chunk_path={path}" for path in result.chunk_paths)
    return tuple(lines)


def format_progress_report(report: ProgressReport) -> tuple[str, ...]:
    """Render a progress log status report."""
    unresolved = ",".join(str(index) for index in report.unresolved_failures) or "-"
    return (
        f"progress_log={report.progress_log}",
        f"last_successful_index={report.last_successful_index}",
        f"resume_from_index={report.last_successful_index + 1}",
        f"started={report.started}",
        f"succeeded={report.succeeded}",
        f"failed={report.failed}",
        f"unresolved_failures={unresolved}",
        f"runs={len(report.run_ids)}",
        f"invalid_lines={report.invalid_lines}",
    )
