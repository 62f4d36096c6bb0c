"""Upload run coordination.

This module drives one upload run: it pulls records from the tokenizer,
skips everything below the resume point, hands the rest to the submission
pacer, and persists every outcome before the next record is pulled.
"""

from __future__ import annotations

import signal
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator
from uuid import uuid4

from core.logging_config import get_logger
from core.types import Record, RunState, RunSummary, SubmissionOutcome
from ingest.progress_ledger import ProgressLedger
from ingest.upload_progress import UploadProgressTracker
from ledger.pacer import SubmissionPacer
from ledger.payload import record_preview

_LOGGER = get_logger(__name__)


class RunCoordinator:
    """Single-use coordinator for one upload run."""

    def __init__(
        self,
        records: Iterable[Record],
        progress: ProgressLedger,
        pacer: SubmissionPacer,
        submitter: str,
        resume: bool = False,
        run_id: str | None = None,
        limit: int | None = None,
        stop_event: threading.Event | None = None,
        tracker: UploadProgressTracker | None = None,
    ) -> None:
        self._records = records
        self._progress = progress
        self._pacer = pacer
        self._submitter = submitter
        self._resume = resume
        self._run_id = run_id or build_run_id()
        self._limit = limit
        self._stop_event = stop_event or threading.Event()
        self._tracker = tracker or UploadProgressTracker(
            run_id=self._run_id, source_uri=str(progress.log_path)
        )
        self._state: RunState = "idle"

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def state(self) -> RunState:
        return self._state

    def run(self) -> RunSummary:
        """Execute the run to completion or cancellation.

        Returns:
            Aggregated run summary.

        Raises:
            RuntimeError: If the coordinator was already used.
            ChainfeedIngestError: If the input stream fails mid-run.
            ChainfeedProgressError: If an outcome cannot be persisted.
        """
        if self._state != "idle":
            raise RuntimeError("RunCoordinator instances run exactly once.")
        resume_from_index = self._progress.last_successful_index() + 1 if self._resume else 0
        self._tracker.log_run_started(resume_from_index)
        self._state = "streaming"
        counts = {"total": 0, "skipped": 0, "succeeded": 0, "failed": 0, "malformed": 0}
        retryable_failures = 0
        for record in self._records:
            if self._stop_event.is_set():
                break
            counts["total"] += 1
            if record.index < resume_from_index:
                self._state = "skipping"
                counts["skipped"] += 1
                continue
            if record.is_malformed:
                counts["skipped"] += 1
                counts["malformed"] += 1
                _LOGGER.warning(
                    "record_skipped_malformed",
                    run_id=self._run_id,
                    index=record.index,
                    error=record.parse_error,
                )
                continue
            self._state = "submitting"
            outcome = self._submit(record)
            if outcome.succeeded:
                counts["succeeded"] += 1
            else:
                counts["failed"] += 1
                retryable_failures += int(outcome.retryable)
            self._tracker.log_submission(record.index, counts["succeeded"], counts["failed"])
            self._pacer.pause()
            if self._stop_event.is_set():
                break
            if self._limit is not None and counts["succeeded"] + counts["failed"] >= self._limit:
                _LOGGER.info("upload_limit_reached", run_id=self._run_id, limit=self._limit)
                break
        self._state = "draining"
        summary = RunSummary(
            run_id=self._run_id,
            total_records=counts["total"],
            skipped=counts["skipped"],
            succeeded=counts["succeeded"],
            failed=counts["failed"],
            malformed=counts["malformed"],
            resume_from_index=resume_from_index,
            cancelled=self._stop_event.is_set(),
            retryable_failures=retryable_failures,
        )
        self._state = "completed"
        self._tracker.log_run_completed(summary)
        return summary

    def _submit(self, record: Record) -> SubmissionOutcome:
        """Submit one record and persist its start and outcome entries."""
        preview = record_preview(record)
        self._progress.record_start(self._run_id, record.index, preview)
        outcome = self._pacer.submit(record, self._submitter)
        if outcome.succeeded:
            self._progress.record_success(self._run_id, record.index, outcome.tx_hash or "")
            return outcome
        error_message = outcome.error or "unknown submission failure"
        self._progress.record_failure(self._run_id, record.index, error_message)
        _LOGGER.error(
            "record_failed",
            run_id=self._run_id,
            index=record.index,
            preview=preview,
            retryable=outcome.retryable,
            error=error_message,
        )
        return outcome


def build_run_id() -> str:
    """Build a unique, time-ordered run identifier."""
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    return f"run-{timestamp}-{uuid4().hex[:8]}"


@contextmanager
def stop_on_signals(stop_event: threading.Event) -> Iterator[threading.Event]:
    """Set ``stop_event`` on SIGINT or SIGTERM while the block runs.

    Handlers are only installed from the main thread; elsewhere the event
    is yielded unchanged and must be set by the caller.
    """
    if threading.current_thread() is not threading.main_thread():
        yield stop_event
        return

    def _handle(signum: int, frame: Any) -> None:
        _LOGGER.warning("upload_cancel_requested", signal=signal.Signals(signum).name)
        stop_event.set()

    previous = {
        signum: signal.signal(signum, _handle) for signum in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        yield stop_event
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)
