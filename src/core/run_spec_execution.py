"""Shared run-spec execution engine for CLI and SDK workflows.

This module maps validated run-spec steps to client operations so different
entry points can execute one declarative batch without drift.
"""

from __future__ import annotations

import glob
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from core.constants import DEFAULT_CATEGORY, DEFAULT_SPLIT_CHUNK_SIZE, DEFAULT_SPLIT_OUTPUT_PREFIX
from core.errors import ChainfeedRunSpecError
from core.output_format import format_progress_report, format_run_summary, format_split_result
from core.run_spec import RunSpec, RunSpecStep, load_run_spec
from core.run_spec_fields import (
    int_with_default,
    optional_bool,
    optional_float,
    optional_int,
    optional_string,
    required_string,
)
from core.types import ProgressReport, RunSummary, SplitOptions, SplitResult, UploadOptions


class RunSpecClient(Protocol):
    """Client API contract required by run-spec execution."""

    def with_data_root(self, data_root: str) -> Any: ...

    def upload(self, options: UploadOptions) -> RunSummary: ...

    def split(self, options: SplitOptions) -> SplitResult: ...

    def status(
        self,
        progress_log: str | None = None,
        source_uri: str | None = None,
    ) -> ProgressReport: ...


@dataclass(frozen=True)
class RunSpecExecutionContext:
    """In-memory context used to execute run-spec steps."""

    client: RunSpecClient
    default_submitter: str | None
    default_category: str | None


@dataclass(frozen=True)
class RunSpecOutcome:
    """Printable output and failure state of one run-spec execution."""

    output_lines: tuple[str, ...]
    has_failures: bool


def execute_run_spec_file(client: RunSpecClient, spec_file: str) -> RunSpecOutcome:
    """Load and execute a run-spec file."""
    spec = load_run_spec(spec_file)
    return execute_run_spec(client, spec)


def execute_run_spec(client: RunSpecClient, spec: RunSpec) -> RunSpecOutcome:
    """Execute a parsed run-spec object step by step.

    A step whose uploads report failed records does not stop later steps;
    the failure is surfaced through ``RunSpecOutcome.has_failures``.
    """
    execution_client = (
        client.with_data_root(spec.defaults.data_root) if spec.defaults.data_root else client
    )
    context = RunSpecExecutionContext(
        client=execution_client,
        default_submitter=spec.defaults.submitter,
        default_category=spec.defaults.category,
    )
    output_lines: list[str] = []
    has_failures = False
    for step in spec.steps:
        step_lines, step_failed = _execute_step(context, step)
        output_lines.extend(step_lines)
        has_failures = has_failures or step_failed
    return RunSpecOutcome(output_lines=tuple(output_lines), has_failures=has_failures)


def _execute_step(
    context: RunSpecExecutionContext,
    step: RunSpecStep,
) -> tuple[tuple[str, ...], bool]:
    if step.command == "upload":
        return _execute_upload_step(context, step)
    if step.command == "split":
        return _execute_split_step(context, step), False
    if step.command == "status":
        return _execute_status_step(context, step), False
    raise ChainfeedRunSpecError(f"Unsupported run-spec command '{step.command}'.")


def _execute_upload_step(
    context: RunSpecExecutionContext,
    step: RunSpecStep,
) -> tuple[tuple[str, ...], bool]:
    output_lines: list[str] = []
    has_failures = False
    for source_uri in _resolve_upload_sources(step):
        options = UploadOptions(
            source_uri=source_uri,
            submitter=_resolve_submitter(context, step),
            resume=optional_bool(step.args, "resume", default_value=False),
            category=(
                optional_string(step.args, "category")
                or context.default_category
                or DEFAULT_CATEGORY
            ),
            progress_log=optional_string(step.args, "progress_log"),
            submission_delay_seconds=optional_float(step.args, "delay"),
            ledger_backend=optional_string(step.args, "backend"),
            limit=optional_int(step.args, "limit"),
        )
        summary = context.client.upload(options)
        output_lines.append(f"source={source_uri}")
        output_lines.extend(format_run_summary(summary))
        has_failures = has_failures or summary.has_failures
        if summary.cancelled:
            break
    return tuple(output_lines), has_failures


def _execute_split_step(context: RunSpecExecutionContext, step: RunSpecStep) -> tuple[str, ...]:
    options = SplitOptions(
        source_uri=required_string(step.args, "source"),
        chunk_size=int_with_default(step.args, "chunk_size", DEFAULT_SPLIT_CHUNK_SIZE),
        output_prefix=optional_string(step.args, "output_prefix") or DEFAULT_SPLIT_OUTPUT_PREFIX,
    )
    return format_split_result(context.client.split(options))


def _execute_status_step(context: RunSpecExecutionContext, step: RunSpecStep) -> tuple[str, ...]:
    progress_log = optional_string(step.args, "progress_log")
    source_uri = optional_string(step.args, "source")
    if progress_log is None and source_uri is None:
        raise ChainfeedRunSpecError(
            "Run-spec status step requires 'progress_log' or 'source'."
        )
    report = context.client.status(progress_log=progress_log, source_uri=source_uri)
    return format_progress_report(report)


def _resolve_upload_sources(step: RunSpecStep) -> tuple[str, ...]:
    """Expand an upload step to its ordered list of sources."""
    source_uri = optional_string(step.args, "source")
    source_glob = optional_string(step.args, "source_glob")
    if (source_uri is None) == (source_glob is None):
        raise ChainfeedRunSpecError(
            "Run-spec upload step requires exactly one of 'source' or 'source_glob'."
        )
    if source_uri is not None:
        return (source_uri,)
    matches = sorted(glob.glob(str(Path(str(source_glob)).expanduser())))
    if not matches:
        raise ChainfeedRunSpecError(
            f"Run-spec source_glob '{source_glob}' matched no files. Run the split step first."
        )
    return tuple(matches)


def _resolve_submitter(context: RunSpecExecutionContext, step: RunSpecStep) -> str:
    submitter = optional_string(step.args, "submitter") or context.default_submitter
    if submitter is None:
        raise ChainfeedRunSpecError(
            "Run-spec upload step requires 'submitter' or defaults.submitter."
        )
    return submitter
