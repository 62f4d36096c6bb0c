"""Upload orchestration.

This module wires the input reader, record tokenizer, progress ledger,
submission pacer, and run coordinator into one resumable upload run.
"""

from __future__ import annotations

import threading
from pathlib import Path

from core.config import ChainfeedConfig
from core.errors import ChainfeedConfigError
from core.logging_config import get_logger
from core.types import RunSummary, UploadOptions
from ingest.coordinator import RunCoordinator, build_run_id, stop_on_signals
from ingest.input_reader import read_source_chunks
from ingest.progress_ledger import ProgressLedger, default_progress_log_path
from ingest.record_tokenizer import iter_records
from ingest.upload_progress import UploadProgressTracker
from ledger.client import LedgerClient, build_ledger_client
from ledger.pacer import SubmissionPacer

_LOGGER = get_logger(__name__)


def upload_records(
    options: UploadOptions,
    config: ChainfeedConfig,
    ledger: LedgerClient | None = None,
    stop_event: threading.Event | None = None,
) -> RunSummary:
    """Stream a JSON array source and submit each record to the ledger.

    Args:
        options: Upload request options.
        config: Runtime configuration.
        ledger: Optional ledger client; built from config when omitted.
        stop_event: Optional cancellation event. When omitted, SIGINT and
            SIGTERM cancel the run.

    Returns:
        Run summary with per-outcome counts.

    Raises:
        ChainfeedConfigError: If options are invalid.
        ChainfeedIngestError: If the source cannot be opened or read.
        ChainfeedProgressError: If the progress log cannot be written.
        ChainfeedDependencyError: If the selected ledger backend is unavailable.
    """
    _validate_upload_options(options)
    progress = ProgressLedger(resolve_progress_log_path(options, config))
    ledger_client = ledger or build_ledger_client(config, options.ledger_backend)
    try:
        summary = _run_upload(options, config, progress, ledger_client, stop_event)
    finally:
        if ledger is None:
            ledger_client.close()
    if summary.retryable_failures:
        _LOGGER.warning(
            "upload_resume_recommended",
            run_id=summary.run_id,
            retryable_failures=summary.retryable_failures,
            progress_log=str(progress.log_path),
        )
    return summary


def _run_upload(
    options: UploadOptions,
    config: ChainfeedConfig,
    progress: ProgressLedger,
    ledger_client: LedgerClient,
    stop_event: threading.Event | None,
) -> RunSummary:
    chunks = read_source_chunks(options.source_uri, config)
    run_id = build_run_id()
    with stop_on_signals(stop_event or threading.Event()) as active_stop_event:
        pacer = SubmissionPacer(
            ledger_client,
            category=options.category,
            delay_seconds=_resolve_delay(options, config),
            stop_event=active_stop_event,
        )
        coordinator = RunCoordinator(
            records=iter_records(chunks),
            progress=progress,
            pacer=pacer,
            submitter=options.submitter,
            resume=options.resume,
            run_id=run_id,
            limit=options.limit,
            stop_event=active_stop_event,
            tracker=UploadProgressTracker(run_id=run_id, source_uri=options.source_uri),
        )
        return coordinator.run()


def resolve_progress_log_path(options: UploadOptions, config: ChainfeedConfig) -> Path:
    """Return the explicit progress log path or the per-source default."""
    if options.progress_log:
        return Path(options.progress_log).expanduser()
    return default_progress_log_path(config.data_root, options.source_uri)


def _resolve_delay(options: UploadOptions, config: ChainfeedConfig) -> float:
    if options.submission_delay_seconds is None:
        return config.submission_delay_seconds
    return options.submission_delay_seconds


def _validate_upload_options(options: UploadOptions) -> None:
    """Validate upload options before any side effect."""
    if not options.submitter.strip():
        raise ChainfeedConfigError(
            "Upload requires a submitter account. Pass --submitter with a key name or address."
        )
    if not options.category.strip():
        raise ChainfeedConfigError("Upload category must not be empty.")
    if options.submission_delay_seconds is not None and options.submission_delay_seconds < 0:
        raise ChainfeedConfigError(
            f"Invalid submission delay {options.submission_delay_seconds}: expected >= 0."
        )
    if options.limit is not None and options.limit <= 0:
        raise ChainfeedConfigError(f"Invalid upload limit {options.limit}: expected > 0.")
