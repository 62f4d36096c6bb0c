"""Ledger client that shells out to the chain command-line binary.

This module signs and broadcasts entries through the node's own CLI using
the local keyring. Gas is estimated by the binary itself, so the client
reports no simulation of its own.
"""

from __future__ import annotations

import json
import subprocess
from typing import Any, Callable, Sequence

from core.constants import GAS_ADJUSTMENT, SEQUENCE_MISMATCH_CODE
from core.errors import ChainfeedLedgerError, ChainfeedSubmissionError
from core.logging_config import get_logger
from core.types import EntryPayload, LedgerTxResult
from ledger.client import extract_sequence, is_sequence_mismatch, raise_for_tx_code

_LOGGER = get_logger(__name__)

CommandRunner = Callable[..., subprocess.CompletedProcess]


class CliLedgerClient:
    """Ledger client backed by the chain binary and its keyring."""

    def __init__(
        self,
        binary: str,
        chain_id: str,
        keyring_backend: str,
        timeout_seconds: float,
        runner: CommandRunner = subprocess.run,
    ) -> None:
        self._binary = binary
        self._chain_id = chain_id
        self._keyring_backend = keyring_backend
        self._timeout_seconds = timeout_seconds
        self._runner = runner
        self._addresses: dict[str, str] = {}

    def close(self) -> None:
        """Release nothing; each CLI call runs in its own process."""

    def get_sequence(self, account: str) -> int:
        """Query the sequence for a key name or address.

        Raises:
            ChainfeedLedgerError: If the account query fails.
        """
        address = self._resolve_address(account)
        completed = self._run(
            [self._binary, "query", "auth", "account", address, "--output", "json"]
        )
        if completed.returncode != 0:
            raise ChainfeedLedgerError(
                f"Account query for {account} failed: {_output_text(completed)}"
            )
        return extract_sequence(_parse_json_output(completed.stdout))

    def estimate_gas(self, payload: EntryPayload, sequence: int | None) -> int | None:
        """Return None; the binary estimates gas with ``--gas auto``."""
        return None

    def submit_transaction(
        self,
        payload: EntryPayload,
        sequence: int | None,
        gas_limit: int | None,
    ) -> LedgerTxResult:
        """Sign and broadcast one entry through the CLI.

        Args:
            payload: Entry message fields.
            sequence: Account sequence to pin, or None to let the CLI resolve it.
            gas_limit: Explicit gas limit, or None for automatic estimation.

        Returns:
            Accepted transaction details.

        Raises:
            ChainfeedSequenceMismatchError: If the ledger rejected a stale sequence.
            ChainfeedSubmissionError: For any other rejection or process failure.
        """
        completed = self._run(self.build_submit_command(payload, sequence, gas_limit))
        if completed.returncode != 0:
            message = _output_text(completed)
            raise_for_tx_code(_mismatch_code(message), message)
        response = _parse_json_output(completed.stdout)
        raw_log = str(response.get("raw_log", ""))
        raise_for_tx_code(_as_int(response.get("code")), raw_log)
        tx_hash = str(response.get("txhash", ""))
        if not tx_hash:
            raise ChainfeedSubmissionError(
                f"Ledger CLI returned no transaction hash: {completed.stdout.strip()[:200]}"
            )
        return LedgerTxResult(
            tx_hash=tx_hash,
            height=_as_int(response.get("height")),
            gas_used=_as_int(response.get("gas_used")),
            gas_wanted=_as_int(response.get("gas_wanted")),
            raw_log=raw_log,
        )

    def build_submit_command(
        self,
        payload: EntryPayload,
        sequence: int | None,
        gas_limit: int | None,
    ) -> list[str]:
        """Build the argv for one ``create-entry`` transaction."""
        command = [
            self._binary,
            "tx",
            "datasets",
            "create-entry",
            payload.entry_id,
            payload.title,
            payload.description,
            payload.ipfs_cid,
            payload.mime_type,
            payload.file_name,
            payload.file_url,
            payload.fallback_url,
            payload.file_size,
            payload.checksum_sha256,
            payload.agency,
            payload.category,
            payload.submitter,
            payload.timestamp,
            payload.pin_count,
            "--from",
            payload.submitter,
            "--chain-id",
            self._chain_id,
            "--keyring-backend",
            self._keyring_backend,
        ]
        if gas_limit is None:
            command.extend(["--gas", "auto", "--gas-adjustment", str(GAS_ADJUSTMENT)])
        else:
            command.extend(["--gas", str(gas_limit)])
        if sequence is not None:
            command.extend(["--sequence", str(sequence)])
        command.extend(["--yes", "--output", "json"])
        return command

    def _resolve_address(self, account: str) -> str:
        """Map a keyring key name to its address, passing addresses through."""
        cached = self._addresses.get(account)
        if cached is not None:
            return cached
        completed = self._run(
            [
                self._binary,
                "keys",
                "show",
                account,
                "--address",
                "--keyring-backend",
                self._keyring_backend,
            ]
        )
        address = completed.stdout.strip() if completed.returncode == 0 else ""
        resolved = address or account
        self._addresses[account] = resolved
        return resolved

    def _run(self, command: Sequence[str]) -> subprocess.CompletedProcess:
        _LOGGER.debug("ledger_cli_invoked", command=command[:4])
        try:
            return self._runner(
                list(command),
                capture_output=True,
                text=True,
                timeout=self._timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired as error:
            raise ChainfeedSubmissionError(
                f"Ledger CLI timed out after {self._timeout_seconds}s. "
                "Check node connectivity or raise CHAINFEED_REQUEST_TIMEOUT."
            ) from error
        except OSError as error:
            raise ChainfeedSubmissionError(
                f"Failed to run ledger CLI '{self._binary}': {error}."
            ) from error


def _parse_json_output(stdout: str) -> dict[str, Any]:
    """Decode the last JSON object the CLI printed."""
    for line in reversed(stdout.strip().splitlines()):
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            payload = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(payload, dict):
            return payload
    try:
        payload = json.loads(stdout)
    except json.JSONDecodeError as error:
        raise ChainfeedSubmissionError(
            f"Ledger CLI output was not JSON: {stdout.strip()[:200]}"
        ) from error
    if not isinstance(payload, dict):
        raise ChainfeedSubmissionError("Ledger CLI output was not a JSON object.")
    return payload


def _output_text(completed: subprocess.CompletedProcess) -> str:
    text = (completed.stderr or "").strip() or (completed.stdout or "").strip()
    return text or f"exit status {completed.returncode}"


def _mismatch_code(message: str) -> int:
    return SEQUENCE_MISMATCH_CODE if is_sequence_mismatch(message) else 1


def _as_int(value: object) -> int:
    try:
        return int(str(value))
    except ValueError:
        return 0
