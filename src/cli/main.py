"""Chainfeed CLI entry points.
This module exposes commands for uploading, splitting, and progress status.
It maps argparse commands onto SDK calls.
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Sequence

from cli.run_spec_command import add_run_spec_command, run_run_spec_command
from core.config import ChainfeedConfig
from core.constants import (
    DEFAULT_CATEGORY,
    DEFAULT_SPLIT_CHUNK_SIZE,
    DEFAULT_SPLIT_OUTPUT_PREFIX,
    MAX_SPLIT_CHUNK_SIZE,
    SUPPORTED_LEDGER_BACKENDS,
)
from core.errors import ChainfeedError
from core.output_format import format_progress_report, format_run_summary, format_split_result
from core.types import SplitOptions, UploadOptions
from ingest.upload_sdk import ChainfeedClient

EXIT_OK = 0
EXIT_RECORD_FAILURES = 1
EXIT_FATAL = 2


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(
        prog="chainfeed",
        description="Stream JSON array records onto a ledger, one transaction per record",
    )
    parser.add_argument("--data-root", help="Override CHAINFEED_DATA_ROOT for this command")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_upload_command(subparsers)
    _add_split_command(subparsers)
    _add_status_command(subparsers)
    add_run_spec_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the Chainfeed CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code: 0 when every record succeeded, 1 when any record
        failed, 2 for fatal errors.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        client = _build_client(args.data_root)
        if args.command == "upload":
            return _run_upload_command(client, args)
        if args.command == "split":
            return _run_split_command(client, args)
        if args.command == "status":
            return _run_status_command(client, args)
        if args.command == "run-spec":
            return run_run_spec_command(client, args)
    except ChainfeedError as error:
        print(f"error: {error}", file=sys.stderr)
        return EXIT_FATAL
    parser.error(f"Unsupported command: {args.command}")
    return EXIT_FATAL


def _build_client(data_root: str | None) -> ChainfeedClient:
    """Build SDK client with optional data-root override.

    Args:
        data_root: Optional override path.

    Returns:
        Configured SDK client.
    """
    config = ChainfeedConfig.from_env()
    if data_root:
        config = replace(config, data_root=Path(data_root).expanduser().resolve())
    return ChainfeedClient(config)


def _run_upload_command(client: ChainfeedClient, args: argparse.Namespace) -> int:
    """Handle upload command.

    Args:
        client: SDK client.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    options = UploadOptions(
        source_uri=args.source,
        submitter=args.submitter,
        resume=args.resume,
        category=args.category,
        progress_log=args.progress_log,
        submission_delay_seconds=args.delay,
        ledger_backend=args.backend,
        limit=args.limit,
    )
    summary = client.upload(options)
    for line in format_run_summary(summary):
        print(line)
    if summary.retryable_failures:
        print(
            f"hint: {summary.retryable_failures} record(s) hit a sequence mismatch; "
            "re-run with --resume to continue.",
            file=sys.stderr,
        )
    return EXIT_RECORD_FAILURES if summary.has_failures else EXIT_OK


def _run_split_command(client: ChainfeedClient, args: argparse.Namespace) -> int:
    """Handle split command."""
    options = SplitOptions(
        source_uri=args.source,
        chunk_size=args.chunk_size,
        output_prefix=args.output_prefix,
    )
    result = client.split(options)
    for line in format_split_result(result):
        print(line)
    return EXIT_OK


def _run_status_command(client: ChainfeedClient, args: argparse.Namespace) -> int:
    """Handle status command."""
    report = client.status(progress_log=args.progress_log, source_uri=args.source)
    for line in format_progress_report(report):
        print(line)
    return EXIT_OK


def _add_upload_command(subparsers: Any) -> None:
    """Register upload subcommand."""
    parser = subparsers.add_parser("upload", help="Submit every record of a JSON array")
    parser.add_argument("source", help="JSON array file, '-' for stdin, or s3://bucket/key")
    parser.add_argument("--submitter", required=True, help="Ledger key name or account address")
    parser.add_argument(
        "--resume",
        action="store_true",
        help="Continue after the last successful index in the progress log",
    )
    parser.add_argument("--category", default=DEFAULT_CATEGORY, help="Dataset entry category")
    parser.add_argument("--progress-log", help="Progress log path (default: per-source file)")
    parser.add_argument(
        "--delay",
        type=float,
        help="Seconds to wait after each submission (default: CHAINFEED_SUBMISSION_DELAY)",
    )
    parser.add_argument(
        "--backend",
        choices=SUPPORTED_LEDGER_BACKENDS,
        help="Ledger backend (default: CHAINFEED_LEDGER_BACKEND)",
    )
    parser.add_argument("--limit", type=int, help="Maximum records to submit in this run")


def _add_split_command(subparsers: Any) -> None:
    """Register split subcommand."""
    parser = subparsers.add_parser("split", help="Split a large JSON array into chunk files")
    parser.add_argument("source", help="JSON array file, '-' for stdin, or s3://bucket/key")
    parser.add_argument(
        "--chunk-size",
        type=int,
        default=DEFAULT_SPLIT_CHUNK_SIZE,
        help=f"Records per chunk file, 1 to {MAX_SPLIT_CHUNK_SIZE}",
    )
    parser.add_argument(
        "--output-prefix",
        default=DEFAULT_SPLIT_OUTPUT_PREFIX,
        help="Chunk file prefix; files are named PREFIX-001.json, PREFIX-002.json, ...",
    )


def _add_status_command(subparsers: Any) -> None:
    """Register status subcommand."""
    parser = subparsers.add_parser("status", help="Summarize an upload progress log")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--progress-log", help="Progress log path")
    target.add_argument("--source", help="Source whose default progress log should be read")
