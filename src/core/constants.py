"""Core constants used across Chainfeed modules.

This module centralizes non-domain-specific constants.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_DATA_ROOT = Path(".chainfeed")
PROGRESS_DIR_NAME = "progress"
PROGRESS_FILE_SUFFIX = ".progress.jsonl"
STDIN_SOURCE = "-"
DEFAULT_READ_CHUNK_SIZE = 64 * 1024
HASH_ALGORITHM = "sha256"

DEFAULT_LEDGER_BACKEND = "rest"
SUPPORTED_LEDGER_BACKENDS = ("rest", "cli")
DEFAULT_NODE_URL = "http://localhost:1317"
DEFAULT_CHAIN_ID = "govchain"
DEFAULT_CHAIN_BINARY = "govchaind"
DEFAULT_KEYRING_BACKEND = "test"
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0
DEFAULT_SUBMISSION_DELAY_SECONDS = 1.0
GAS_ADJUSTMENT = 1.5
SEQUENCE_MISMATCH_CODE = 32
BROADCAST_MODE = "BROADCAST_MODE_SYNC"
CREATE_ENTRY_TYPE_URL = "/govchain.datasets.v1.MsgCreateEntry"
CREATE_ENTRY_MEMO = "Dataset entry creation via chainfeed"

DEFAULT_CATEGORY = "GAA"
DEFAULT_MIME_TYPE = "text/plain"
DEFAULT_RECORD_TITLE = "GAA Record"
DEFAULT_AGENCY = "Unknown Agency"
TITLE_FIELDS = ("DSC", "UACS_SOBJ_DSC")
AGENCY_FIELD = "UACS_DPT_DSC"
RECORD_PREVIEW_LENGTH = 120

DEFAULT_SPLIT_CHUNK_SIZE = 1000
MAX_SPLIT_CHUNK_SIZE = 10_000
DEFAULT_SPLIT_OUTPUT_PREFIX = "split-chunk"
DEFAULT_PROGRESS_LOG_INTERVAL = 25
