"""Shared typed models.

This module defines immutable data models used by the tokenizer, the
progress ledger, the submission pacer, and the run coordinator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping

from core.constants import DEFAULT_CATEGORY, DEFAULT_SPLIT_CHUNK_SIZE, DEFAULT_SPLIT_OUTPUT_PREFIX

ProgressStatus = Literal["started", "success", "failed"]
RunState = Literal["idle", "streaming", "skipping", "submitting", "draining", "completed"]


@dataclass(frozen=True)
class Record:
    """One object extracted from the top-level input array.

    Attributes:
        index: Zero-based position in stream order.
        raw_text: Exact JSON text of the object as it appeared in the stream.
        parsed: Decoded object, or None when the text is not valid JSON.
        parse_error: Decode failure message for malformed records.
    """

    index: int
    raw_text: str
    parsed: Mapping[str, Any] | None = None
    parse_error: str | None = None

    @property
    def is_malformed(self) -> bool:
        """Return whether the record failed structural JSON parsing."""
        return self.parse_error is not None


@dataclass(frozen=True)
class ProgressEntry:
    """One line of the append-only progress log.

    Attributes:
        run_id: Identifier of the run that wrote the entry.
        index: Record index the entry refers to.
        status: Outcome stage for the record.
        timestamp_ms: Unix epoch milliseconds at write time.
        tx_hash: Ledger transaction hash for successful submissions.
        error_message: Failure description for failed submissions.
        preview: Short record preview written with ``started`` entries.
    """

    run_id: str
    index: int
    status: ProgressStatus
    timestamp_ms: int
    tx_hash: str | None = None
    error_message: str | None = None
    preview: str | None = None


@dataclass(frozen=True)
class EntryPayload:
    """Dataset-entry transaction message derived from one record."""

    entry_id: str
    title: str
    description: str
    checksum_sha256: str
    agency: str
    category: str
    submitter: str
    timestamp: str
    mime_type: str
    file_size: str = "0"
    ipfs_cid: str = ""
    file_name: str = ""
    file_url: str = ""
    fallback_url: str = ""
    pin_count: str = "0"


@dataclass(frozen=True)
class LedgerTxResult:
    """Ledger response for an accepted transaction.

    Attributes:
        tx_hash: Transaction hash assigned by the ledger.
        height: Block height when known, else 0.
        gas_used: Gas consumed when reported.
        gas_wanted: Gas limit requested.
        raw_log: Raw ledger log line.
    """

    tx_hash: str
    height: int = 0
    gas_used: int = 0
    gas_wanted: int = 0
    raw_log: str = ""


@dataclass(frozen=True)
class SubmissionOutcome:
    """Result of one submission attempt.

    Attributes:
        record: Record that was submitted.
        succeeded: Whether the ledger accepted the transaction.
        tx_hash: Transaction hash on success.
        error: Failure description on failure.
        sequence_used: Account sequence pinned for the attempt, if resolved.
        retryable: True when the failure is fixed by re-running with resume.
    """

    record: Record
    succeeded: bool
    tx_hash: str | None = None
    error: str | None = None
    sequence_used: int | None = None
    retryable: bool = False


@dataclass(frozen=True)
class UploadOptions:
    """Upload command options.

    Attributes:
        source_uri: Local file, ``-`` for stdin, or ``s3://bucket/key``.
        submitter: Ledger account (key name or address) signing transactions.
        resume: Continue after the last successful index in the progress log.
        category: Dataset category stamped on every entry.
        progress_log: Optional explicit progress log path.
        submission_delay_seconds: Optional override of the configured delay.
        ledger_backend: Optional override of the configured ledger backend.
        limit: Optional maximum number of records to submit in this run.
    """

    source_uri: str
    submitter: str
    resume: bool = False
    category: str = DEFAULT_CATEGORY
    progress_log: str | None = None
    submission_delay_seconds: float | None = None
    ledger_backend: str | None = None
    limit: int | None = None


@dataclass(frozen=True)
class RunSummary:
    """Final report of one upload run.

    Attributes:
        run_id: Identifier written into every progress entry of the run.
        total_records: Records emitted by the tokenizer.
        skipped: Records not submitted: below the resume point or malformed.
            ``skipped + succeeded + failed == total_records`` always holds.
        succeeded: Records accepted by the ledger.
        failed: Records rejected by the ledger or transport.
        malformed: Records whose text was not valid JSON, also counted as skipped.
        resume_from_index: First index eligible for submission.
        cancelled: Whether the run stopped early on a signal.
        retryable_failures: Failures that a resumed run is expected to fix.
    """

    run_id: str
    total_records: int
    skipped: int
    succeeded: int
    failed: int
    malformed: int = 0
    resume_from_index: int = 0
    cancelled: bool = False
    retryable_failures: int = 0

    @property
    def has_failures(self) -> bool:
        """Return whether any record failed submission."""
        return self.failed > 0


@dataclass(frozen=True)
class SplitOptions:
    """Split command options."""

    source_uri: str
    chunk_size: int = DEFAULT_SPLIT_CHUNK_SIZE
    output_prefix: str = DEFAULT_SPLIT_OUTPUT_PREFIX


@dataclass(frozen=True)
class SplitResult:
    """Split command output.

    Attributes:
        total_records: Records read from the source.
        malformed: Records skipped because they were not valid JSON.
        chunk_paths: Written chunk files in order.
    """

    total_records: int
    malformed: int
    chunk_paths: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ProgressReport:
    """Aggregated view of a progress log.

    Attributes:
        progress_log: Path of the inspected log.
        last_successful_index: Resume anchor, -1 when nothing succeeded.
        started: Count of ``started`` entries.
        succeeded: Count of ``success`` entries.
        failed: Count of ``failed`` entries.
        unresolved_failures: Failed indices with no later success.
        run_ids: Distinct run ids in first-seen order.
        invalid_lines: Lines skipped because they could not be parsed.
    """

    progress_log: str
    last_successful_index: int
    started: int
    succeeded: int
    failed: int
    unresolved_failures: tuple[int, ...]
    run_ids: tuple[str, ...]
    invalid_lines: int = 0
