"""Append-only progress log for resumable uploads.

This module records per-record outcomes as JSON lines and derives the
resume point from them. Entries are never rewritten; a line torn by a
crash is skipped on read instead of failing the scan.
"""

from __future__ import annotations

import json
import os
import time
from pathlib import Path
from typing import BinaryIO, Callable, Iterator

from core.constants import PROGRESS_DIR_NAME, PROGRESS_FILE_SUFFIX
from core.errors import ChainfeedProgressError
from core.types import ProgressEntry, ProgressReport, ProgressStatus
from ingest.input_reader import source_label

_VALID_STATUSES: tuple[ProgressStatus, ...] = ("started", "success", "failed")
_REVERSE_READ_BLOCK_SIZE = 64 * 1024


class ProgressLedger:
    """JSONL-backed progress log with a single writer."""

    def __init__(self, log_path: Path, clock: Callable[[], float] = time.time) -> None:
        self._log_path = log_path
        self._clock = clock
        self._tail_checked = False
        try:
            self._log_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise ChainfeedProgressError(
                f"Failed to create progress log directory {self._log_path.parent}: {error}."
            ) from error

    @property
    def log_path(self) -> Path:
        return self._log_path

    def record_start(self, run_id: str, index: int, preview: str) -> None:
        """Append a ``started`` entry before a record is submitted."""
        self._append(run_id, index, "started", preview=preview)

    def record_success(self, run_id: str, index: int, tx_hash: str) -> None:
        """Append a ``success`` entry with the ledger transaction hash."""
        self._append(run_id, index, "success", tx_hash=tx_hash)

    def record_failure(self, run_id: str, index: int, error: str) -> None:
        """Append a ``failed`` entry with the failure description."""
        self._append(run_id, index, "failed", error_message=error)

    def last_successful_index(self) -> int:
        """Return the index of the last ``success`` entry, scanning from the end.

        Returns:
            Record index, or -1 when the log holds no success.
        """
        if not self._log_path.exists():
            return -1
        for line in _iter_lines_reversed(self._log_path):
            entry = parse_progress_line(line)
            if entry is not None and entry.status == "success":
                return entry.index
        return -1

    def read_entries(self) -> Iterator[ProgressEntry]:
        """Yield valid entries in append order, skipping unparseable lines."""
        for entry in self._iter_all():
            if entry is not None:
                yield entry

    def summarize(self) -> ProgressReport:
        """Aggregate the log into a status report."""
        counts = {status: 0 for status in _VALID_STATUSES}
        run_ids: dict[str, None] = {}
        failed_indices: set[int] = set()
        succeeded_indices: set[int] = set()
        invalid_lines = 0
        for entry in self._iter_all():
            if entry is None:
                invalid_lines += 1
                continue
            counts[entry.status] += 1
            run_ids.setdefault(entry.run_id, None)
            if entry.status == "failed":
                failed_indices.add(entry.index)
            elif entry.status == "success":
                succeeded_indices.add(entry.index)
        return ProgressReport(
            progress_log=str(self._log_path),
            last_successful_index=self.last_successful_index(),
            started=counts["started"],
            succeeded=counts["success"],
            failed=counts["failed"],
            unresolved_failures=tuple(sorted(failed_indices - succeeded_indices)),
            run_ids=tuple(run_ids),
            invalid_lines=invalid_lines,
        )

    def _iter_all(self) -> Iterator[ProgressEntry | None]:
        if not self._log_path.exists():
            return
        try:
            with self._log_path.open("rb") as log_file:
                for line in log_file:
                    if line.strip():
                        yield parse_progress_line(line)
        except OSError as error:
            raise ChainfeedProgressError(
                f"Failed to read progress log {self._log_path}: {error}."
            ) from error

    def _append(
        self,
        run_id: str,
        index: int,
        status: ProgressStatus,
        tx_hash: str | None = None,
        error_message: str | None = None,
        preview: str | None = None,
    ) -> None:
        payload: dict[str, object] = {
            "run_id": run_id,
            "index": index,
            "status": status,
            "timestamp_ms": int(self._clock() * 1000),
        }
        if tx_hash is not None:
            payload["tx_hash"] = tx_hash
        if error_message is not None:
            payload["error_message"] = error_message
        if preview is not None:
            payload["preview"] = preview
        line = json.dumps(payload, sort_keys=True, ensure_ascii=False) + "\n"
        try:
            with self._log_path.open("ab") as log_file:
                if not self._tail_checked:
                    _terminate_torn_tail(log_file)
                    self._tail_checked = True
                log_file.write(line.encode("utf-8"))
                log_file.flush()
                os.fsync(log_file.fileno())
        except OSError as error:
            raise ChainfeedProgressError(
                f"Failed to append to progress log {self._log_path}: {error}. "
                "The run cannot continue without durable progress."
            ) from error


def default_progress_log_path(data_root: Path, source_uri: str) -> Path:
    """Build the default progress log path for a source."""
    file_name = f"{source_label(source_uri)}{PROGRESS_FILE_SUFFIX}"
    return data_root / PROGRESS_DIR_NAME / file_name


def parse_progress_line(line: bytes | str) -> ProgressEntry | None:
    """Parse one progress log line, returning None when it is unusable."""
    try:
        payload = json.loads(line)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if not isinstance(payload, dict):
        return None
    run_id = payload.get("run_id")
    index = payload.get("index")
    status = payload.get("status")
    timestamp_ms = payload.get("timestamp_ms")
    if (
        not isinstance(run_id, str)
        or not _is_int(index)
        or status not in _VALID_STATUSES
        or not _is_int(timestamp_ms)
    ):
        return None
    return ProgressEntry(
        run_id=run_id,
        index=index,
        status=status,
        timestamp_ms=timestamp_ms,
        tx_hash=_optional_str(payload.get("tx_hash")),
        error_message=_optional_str(payload.get("error_message")),
        preview=_optional_str(payload.get("preview")),
    )


def _terminate_torn_tail(log_file: BinaryIO) -> None:
    """Start a fresh line when a previous writer died mid-line."""
    if log_file.tell() == 0:
        return
    with open(log_file.name, "rb") as reader:
        reader.seek(-1, os.SEEK_END)
        if reader.read(1) != b"\n":
            log_file.write(b"\n")


def _iter_lines_reversed(log_path: Path) -> Iterator[bytes]:
    """Yield file lines from last to first without loading the whole file."""
    try:
        with log_path.open("rb") as log_file:
            log_file.seek(0, os.SEEK_END)
            position = log_file.tell()
            remainder = b""
            while position > 0:
                read_size = min(_REVERSE_READ_BLOCK_SIZE, position)
                position -= read_size
                log_file.seek(position)
                lines = (log_file.read(read_size) + remainder).split(b"\n")
                remainder = lines[0]
                for line in reversed(lines[1:]):
                    if line.strip():
                        yield line
            if remainder.strip():
                yield remainder
    except OSError as error:
        raise ChainfeedProgressError(f"Failed to read progress log {log_path}: {error}.") from error


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _optional_str(value: object) -> str | None:
    return value if isinstance(value, str) else None
