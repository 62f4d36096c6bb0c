"""Streaming splitter for large record arrays.

This module cuts one large JSON array into numbered chunk files of at most
``chunk_size`` records each, so every chunk can be uploaded as its own run.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from core.config import ChainfeedConfig
from core.constants import MAX_SPLIT_CHUNK_SIZE
from core.errors import ChainfeedConfigError, ChainfeedIngestError
from core.logging_config import get_logger
from core.types import SplitOptions, SplitResult
from ingest.input_reader import read_source_chunks
from ingest.record_tokenizer import iter_records

_LOGGER = get_logger(__name__)


def split_records(options: SplitOptions, config: ChainfeedConfig) -> SplitResult:
    """Split a JSON array source into numbered chunk files.

    Chunk files are named ``<prefix>-001.json``, ``<prefix>-002.json`` and
    so on. Malformed records are skipped and counted.

    Args:
        options: Split request options.
        config: Runtime configuration.

    Returns:
        Split result with record counts and written chunk paths.

    Raises:
        ChainfeedConfigError: If chunk size or prefix is invalid.
        ChainfeedIngestError: If the source cannot be read or a chunk cannot be written.
    """
    _validate_split_options(options)
    chunks = read_source_chunks(options.source_uri, config)
    pending: list[Mapping[str, Any]] = []
    chunk_paths: list[str] = []
    total_records = 0
    malformed = 0
    for record in iter_records(chunks):
        total_records += 1
        if record.parsed is None:
            malformed += 1
            continue
        pending.append(record.parsed)
        if len(pending) >= options.chunk_size:
            chunk_paths.append(_write_chunk(options.output_prefix, len(chunk_paths) + 1, pending))
            pending = []
    if pending:
        chunk_paths.append(_write_chunk(options.output_prefix, len(chunk_paths) + 1, pending))
    _LOGGER.info(
        "split_completed",
        source=options.source_uri,
        total_records=total_records,
        malformed=malformed,
        chunk_count=len(chunk_paths),
    )
    return SplitResult(
        total_records=total_records,
        malformed=malformed,
        chunk_paths=tuple(chunk_paths),
    )


def chunk_file_path(output_prefix: str, chunk_number: int) -> Path:
    """Return the path of the one-based ``chunk_number`` chunk file."""
    return Path(f"{output_prefix}-{chunk_number:03d}.json").expanduser()


def _write_chunk(output_prefix: str, chunk_number: int, records: list[Mapping[str, Any]]) -> str:
    """Write one chunk file and return its path."""
    chunk_path = chunk_file_path(output_prefix, chunk_number)
    try:
        chunk_path.parent.mkdir(parents=True, exist_ok=True)
        chunk_path.write_text(
            json.dumps(records, indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
    except OSError as error:
        raise ChainfeedIngestError(
            f"Failed to write chunk file {chunk_path}: {error}. "
            "Check the output prefix directory permissions."
        ) from error
    _LOGGER.info("split_chunk_written", path=str(chunk_path), records=len(records))
    return str(chunk_path)


def _validate_split_options(options: SplitOptions) -> None:
    if options.chunk_size < 1 or options.chunk_size > MAX_SPLIT_CHUNK_SIZE:
        raise ChainfeedConfigError(
            f"Invalid chunk size {options.chunk_size}: expected 1 to {MAX_SPLIT_CHUNK_SIZE}."
        )
    if not options.output_prefix.strip():
        raise ChainfeedConfigError("Split output prefix must not be empty.")
