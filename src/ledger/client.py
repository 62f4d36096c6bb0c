"""Ledger collaborator contract.

This module defines the capability interface the submission pacer depends
on, the shared response classification, and the backend factory.
"""

from __future__ import annotations

import re
import shutil
from typing import Mapping, Protocol

from core.config import ChainfeedConfig, parse_ledger_backend
from core.constants import SEQUENCE_MISMATCH_CODE
from core.errors import (
    ChainfeedDependencyError,
    ChainfeedLedgerError,
    ChainfeedSequenceMismatchError,
    ChainfeedSubmissionError,
)
from core.types import EntryPayload, LedgerTxResult

_SEQUENCE_MISMATCH_PATTERN = re.compile(r"account sequence mismatch|incorrect account sequence")


class LedgerClient(Protocol):
    """Operations required from the external ledger."""

    def get_sequence(self, account: str) -> int:
        """Return the account's next expected sequence number."""
        ...

    def estimate_gas(self, payload: EntryPayload, sequence: int | None) -> int | None:
        """Return simulated gas usage, or None when the backend cannot simulate."""
        ...

    def submit_transaction(
        self,
        payload: EntryPayload,
        sequence: int | None,
        gas_limit: int | None,
    ) -> LedgerTxResult:
        """Broadcast one transaction and return the ledger response."""
        ...

    def close(self) -> None:
        """Release connections held by the client."""
        ...


def build_ledger_client(config: ChainfeedConfig, backend: str | None = None) -> LedgerClient:
    """Create the ledger client selected by config or an explicit override.

    Args:
        config: Runtime configuration.
        backend: Optional backend name overriding ``config.ledger_backend``.

    Returns:
        Ledger client implementation.

    Raises:
        ChainfeedConfigError: If the backend name is unsupported.
        ChainfeedDependencyError: If the CLI backend binary is not installed.
    """
    selected = parse_ledger_backend(backend or config.ledger_backend)
    if selected == "cli":
        if shutil.which(config.chain_binary) is None:
            raise ChainfeedDependencyError(
                f"Ledger CLI '{config.chain_binary}' not found on PATH. "
                "Build the chain binary or set CHAINFEED_CHAIN_BINARY."
            )
        from ledger.cli_client import CliLedgerClient

        return CliLedgerClient(
            binary=config.chain_binary,
            chain_id=config.chain_id,
            keyring_backend=config.keyring_backend,
            timeout_seconds=config.request_timeout_seconds,
        )
    from ledger.rest_client import RestLedgerClient

    return RestLedgerClient(
        base_url=config.node_url,
        timeout_seconds=config.request_timeout_seconds,
    )


def raise_for_tx_code(code: int, raw_log: str) -> None:
    """Raise the matching ledger error for a non-zero transaction code.

    Args:
        code: ABCI response code, 0 on success.
        raw_log: Raw ledger log describing the failure.

    Raises:
        ChainfeedSequenceMismatchError: For stale account sequences.
        ChainfeedSubmissionError: For every other rejection.
    """
    if code == 0:
        return
    if code == SEQUENCE_MISMATCH_CODE or is_sequence_mismatch(raw_log):
        raise ChainfeedSequenceMismatchError(f"Sequence mismatch (code {code}): {raw_log}")
    raise ChainfeedSubmissionError(f"Transaction rejected (code {code}): {raw_log}")


def is_sequence_mismatch(message: str) -> bool:
    """Return whether a ledger message reports a stale account sequence."""
    return _SEQUENCE_MISMATCH_PATTERN.search(message) is not None


def extract_sequence(payload: Mapping[str, object]) -> int:
    """Read the sequence number from an auth account query payload.

    Handles the plain ``{"account": {...}}`` shape, bare account objects,
    and accounts nested under ``base_account`` (vesting and module accounts).

    Raises:
        ChainfeedLedgerError: If no sequence field is present.
    """
    account: object = payload.get("account", payload)
    while isinstance(account, Mapping):
        if "sequence" in account:
            return _parse_int_field(account["sequence"], "sequence")
        account = account.get("base_account") or account.get("base_vesting_account")
    raise ChainfeedLedgerError("Account query response did not include a sequence number.")


def _parse_int_field(value: object, field_name: str) -> int:
    try:
        return int(str(value))
    except ValueError as error:
        raise ChainfeedLedgerError(
            f"Invalid {field_name} value in ledger response: {value!r}."
        ) from error
