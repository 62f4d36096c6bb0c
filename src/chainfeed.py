"""Public SDK surface for Chainfeed.

This module provides a stable import path for SDK users.
It re-exports the primary client and typed option models.
"""

from __future__ import annotations

from core.config import ChainfeedConfig
from core.types import (
    ProgressReport,
    Record,
    RunSummary,
    SplitOptions,
    SplitResult,
    UploadOptions,
)
from ingest.record_tokenizer import RecordTokenizer, iter_records
from ingest.upload_sdk import ChainfeedClient
from ledger.client import LedgerClient, build_ledger_client

__all__ = [
    "ChainfeedClient",
    "ChainfeedConfig",
    "LedgerClient",
    "ProgressReport",
    "Record",
    "RecordTokenizer",
    "RunSummary",
    "SplitOptions",
    "SplitResult",
    "UploadOptions",
    "build_ledger_client",
    "iter_records",
]
