"""Structured upload progress reporting.

This module emits periodic progress events for long-running uploads,
including per-interval counters and the observed submission rate.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from core.constants import DEFAULT_PROGRESS_LOG_INTERVAL
from core.logging_config import get_logger
from core.types import RunSummary

_LOGGER = get_logger(__name__)


@dataclass
class UploadProgressTracker:
    """Track and emit upload progress events for one run."""

    run_id: str
    source_uri: str
    log_interval_records: int = DEFAULT_PROGRESS_LOG_INTERVAL
    run_started_at: float = field(default_factory=time.monotonic)
    submitted: int = 0

    def log_run_started(self, resume_from_index: int) -> None:
        """Log one event when an upload run starts."""
        _LOGGER.info(
            "upload_started",
            run_id=self.run_id,
            source=self.source_uri,
            resume_from_index=resume_from_index,
        )

    def log_submission(self, index: int, succeeded: int, failed: int) -> None:
        """Count one submission and log periodic progress."""
        self.submitted += 1
        if not _should_log(self.submitted, self.log_interval_records):
            return
        elapsed_seconds = _elapsed_seconds(self.run_started_at, time.monotonic())
        _LOGGER.info(
            "upload_progress",
            run_id=self.run_id,
            index=index,
            submitted=self.submitted,
            succeeded=succeeded,
            failed=failed,
            elapsed_seconds=round(elapsed_seconds, 3),
            records_per_minute=round(_rate_per_minute(self.submitted, elapsed_seconds), 2),
        )

    def log_run_completed(self, summary: RunSummary) -> None:
        """Log the final run summary with elapsed time."""
        elapsed_seconds = _elapsed_seconds(self.run_started_at, time.monotonic())
        _LOGGER.info(
            "upload_completed",
            run_id=summary.run_id,
            total_records=summary.total_records,
            skipped=summary.skipped,
            succeeded=summary.succeeded,
            failed=summary.failed,
            malformed=summary.malformed,
            cancelled=summary.cancelled,
            run_elapsed_seconds=round(elapsed_seconds, 3),
        )


def _should_log(submitted: int, interval: int) -> bool:
    """Return true when the current submission should emit a progress event."""
    if submitted <= 1 or interval <= 1:
        return True
    return submitted % interval == 0


def _rate_per_minute(count: int, elapsed_seconds: float) -> float:
    if elapsed_seconds <= 0:
        return 0.0
    return count * 60.0 / elapsed_seconds


def _elapsed_seconds(start_at: float, end_at: float) -> float:
    return max(0.0, end_at - start_at)
