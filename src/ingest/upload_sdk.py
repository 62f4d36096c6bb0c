"""Python SDK for upload operations.

This module exposes high-level APIs for uploading, splitting, and
inspecting progress logs, backed by the ingest pipeline.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

from core.config import ChainfeedConfig
from core.errors import ChainfeedConfigError
from core.run_spec_execution import RunSpecOutcome, execute_run_spec_file
from core.types import ProgressReport, RunSummary, SplitOptions, SplitResult, UploadOptions
from ingest.pipeline import upload_records
from ingest.progress_ledger import ProgressLedger, default_progress_log_path
from ingest.record_splitter import split_records
from ledger.client import LedgerClient


class ChainfeedClient:
    """Primary SDK entry point for upload workflows."""

    def __init__(
        self,
        config: ChainfeedConfig | None = None,
        ledger: LedgerClient | None = None,
    ) -> None:
        """Create SDK client.

        Args:
            config: Optional runtime configuration.
            ledger: Optional ledger client shared by every upload.
        """
        self._config = config or ChainfeedConfig.from_env()
        self._ledger = ledger

    @property
    def config(self) -> ChainfeedConfig:
        return self._config

    def upload(self, options: UploadOptions) -> RunSummary:
        """Upload every record of a JSON array source to the ledger.

        Args:
            options: Upload options.

        Returns:
            Run summary.

        Raises:
            ChainfeedIngestError: If the source cannot be read.
            ChainfeedProgressError: If progress cannot be persisted.
        """
        return upload_records(options, self._config, ledger=self._ledger)

    def split(self, options: SplitOptions) -> SplitResult:
        """Split a large JSON array into numbered chunk files.

        Args:
            options: Split options.

        Returns:
            Split result.
        """
        return split_records(options, self._config)

    def status(
        self,
        progress_log: str | None = None,
        source_uri: str | None = None,
    ) -> ProgressReport:
        """Summarize a progress log, given directly or derived from a source.

        Args:
            progress_log: Explicit progress log path.
            source_uri: Source whose default progress log should be read.

        Returns:
            Progress report.

        Raises:
            ChainfeedConfigError: If neither argument is given.
        """
        if progress_log:
            log_path = Path(progress_log).expanduser()
        elif source_uri:
            log_path = default_progress_log_path(self._config.data_root, source_uri)
        else:
            raise ChainfeedConfigError("Status requires a progress log path or a source.")
        return ProgressLedger(log_path).summarize()

    def with_data_root(self, data_root: str) -> "ChainfeedClient":
        """Clone the client with a different local data root.

        Args:
            data_root: New data root path.

        Returns:
            New SDK client instance.
        """
        resolved_root = Path(data_root).expanduser().resolve()
        updated_config = replace(self._config, data_root=resolved_root)
        return ChainfeedClient(updated_config, ledger=self._ledger)

    def run_spec(self, spec_file: str) -> RunSpecOutcome:
        """Execute a YAML run-spec through the shared execution engine.

        Args:
            spec_file: Path to YAML run-spec file.

        Returns:
            Ordered command output lines and the failure flag.
        """
        return execute_run_spec_file(self, spec_file)
