"""Runtime configuration model for Chainfeed.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from core.constants import (
    DEFAULT_CHAIN_BINARY,
    DEFAULT_CHAIN_ID,
    DEFAULT_DATA_ROOT,
    DEFAULT_KEYRING_BACKEND,
    DEFAULT_LEDGER_BACKEND,
    DEFAULT_NODE_URL,
    DEFAULT_READ_CHUNK_SIZE,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_SUBMISSION_DELAY_SECONDS,
    SUPPORTED_LEDGER_BACKENDS,
)
from core.errors import ChainfeedConfigError


@dataclass(frozen=True)
class ChainfeedConfig:
    """Validated runtime configuration.

    Attributes:
        data_root: Local root directory for progress logs.
        ledger_backend: Ledger client implementation, ``rest`` or ``cli``.
        node_url: Base URL of the ledger node REST API.
        chain_id: Chain identifier used when signing through the CLI.
        chain_binary: Ledger command-line client executable.
        keyring_backend: Keyring backend passed to the CLI client.
        submission_delay_seconds: Pause enforced after every submission.
        request_timeout_seconds: Timeout for each ledger request.
        read_chunk_size: Bytes read from the input stream per chunk.
        s3_region: Optional default AWS region for S3 inputs.
        s3_profile: Optional AWS profile for boto3 session initialization.
    """

    data_root: Path
    ledger_backend: str
    node_url: str
    chain_id: str
    chain_binary: str
    keyring_backend: str
    submission_delay_seconds: float
    request_timeout_seconds: float
    read_chunk_size: int
    s3_region: str | None
    s3_profile: str | None

    @classmethod
    def from_env(cls) -> "ChainfeedConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            ChainfeedConfigError: If environment values are invalid.
        """
        data_root_value = os.getenv("CHAINFEED_DATA_ROOT", str(DEFAULT_DATA_ROOT))
        return cls(
            data_root=Path(data_root_value).expanduser().resolve(),
            ledger_backend=parse_ledger_backend(
                os.getenv("CHAINFEED_LEDGER_BACKEND", DEFAULT_LEDGER_BACKEND)
            ),
            node_url=os.getenv("CHAINFEED_NODE_URL", DEFAULT_NODE_URL).rstrip("/"),
            chain_id=os.getenv("CHAINFEED_CHAIN_ID", DEFAULT_CHAIN_ID),
            chain_binary=os.getenv("CHAINFEED_CHAIN_BINARY", DEFAULT_CHAIN_BINARY),
            keyring_backend=os.getenv("CHAINFEED_KEYRING_BACKEND", DEFAULT_KEYRING_BACKEND),
            submission_delay_seconds=_parse_non_negative_float(
                "CHAINFEED_SUBMISSION_DELAY",
                os.getenv("CHAINFEED_SUBMISSION_DELAY", str(DEFAULT_SUBMISSION_DELAY_SECONDS)),
            ),
            request_timeout_seconds=_parse_non_negative_float(
                "CHAINFEED_REQUEST_TIMEOUT",
                os.getenv("CHAINFEED_REQUEST_TIMEOUT", str(DEFAULT_REQUEST_TIMEOUT_SECONDS)),
            ),
            read_chunk_size=_parse_positive_int(
                "CHAINFEED_READ_CHUNK_SIZE",
                os.getenv("CHAINFEED_READ_CHUNK_SIZE", str(DEFAULT_READ_CHUNK_SIZE)),
            ),
            s3_region=os.getenv("CHAINFEED_S3_REGION"),
            s3_profile=os.getenv("CHAINFEED_S3_PROFILE"),
        )


def parse_ledger_backend(raw_value: str) -> str:
    """Validate a ledger backend name.

    Args:
        raw_value: Backend name from environment or CLI.

    Returns:
        Normalized backend name.

    Raises:
        ChainfeedConfigError: If backend is not supported.
    """
    backend = raw_value.strip().lower()
    if backend not in SUPPORTED_LEDGER_BACKENDS:
        raise ChainfeedConfigError(
            f"Unsupported ledger backend '{raw_value}'. "
            f"Use one of: {', '.join(SUPPORTED_LEDGER_BACKENDS)}."
        )
    return backend


def _parse_non_negative_float(variable_name: str, raw_value: str) -> float:
    """Parse a non-negative float environment value."""
    try:
        value = float(raw_value)
    except ValueError as error:
        raise ChainfeedConfigError(
            f"Invalid {variable_name} value: expected number, got '{raw_value}'. "
            f"Set {variable_name} to a numeric value."
        ) from error
    if value < 0:
        raise ChainfeedConfigError(
            f"Invalid {variable_name} value: expected >= 0, got {value}."
        )
    return value


def _parse_positive_int(variable_name: str, raw_value: str) -> int:
    """Parse a positive integer environment value."""
    try:
        value = int(raw_value)
    except ValueError as error:
        raise ChainfeedConfigError(
            f"Invalid {variable_name} value: expected integer, got '{raw_value}'. "
            f"Set {variable_name} to a positive integer."
        ) from error
    if value <= 0:
        raise ChainfeedConfigError(
            f"Invalid {variable_name} value: expected > 0, got {value}."
        )
    return value
