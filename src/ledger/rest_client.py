"""Ledger client over the node REST API.

This module talks to a Cosmos SDK node gateway with httpx. It reads the
account sequence, simulates gas, and broadcasts dataset-entry
transactions in sync mode. Signing happens on the gateway side.
"""

from __future__ import annotations

from typing import Any

import httpx

from core.constants import BROADCAST_MODE, CREATE_ENTRY_MEMO, CREATE_ENTRY_TYPE_URL
from core.errors import (
    ChainfeedLedgerError,
    ChainfeedSequenceMismatchError,
    ChainfeedSubmissionError,
)
from core.logging_config import get_logger
from core.types import EntryPayload, LedgerTxResult
from ledger.client import extract_sequence, is_sequence_mismatch, raise_for_tx_code

_LOGGER = get_logger(__name__)

_ACCOUNT_PATH = "/cosmos/auth/v1beta1/accounts/{account}"
_SIMULATE_PATH = "/cosmos/tx/v1beta1/simulate"
_BROADCAST_PATH = "/cosmos/tx/v1beta1/txs"


class RestLedgerClient:
    """Ledger client backed by the node REST gateway."""

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout_seconds,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "RestLedgerClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def get_sequence(self, account: str) -> int:
        """Query the account's next expected sequence number.

        Raises:
            ChainfeedLedgerError: If the node is unreachable or the account is unknown.
        """
        payload = self._request_json("GET", _ACCOUNT_PATH.format(account=account))
        return extract_sequence(payload)

    def estimate_gas(self, payload: EntryPayload, sequence: int | None) -> int | None:
        """Simulate the transaction and return the gas it consumed.

        Raises:
            ChainfeedLedgerError: If simulation fails.
        """
        response = self._request_json(
            "POST",
            _SIMULATE_PATH,
            json_body={"tx": build_unsigned_tx(payload, sequence, gas_limit=None)},
        )
        gas_info = response.get("gas_info")
        if not isinstance(gas_info, dict) or "gas_used" not in gas_info:
            raise ChainfeedLedgerError("Simulation response did not include gas_info.gas_used.")
        try:
            return int(str(gas_info["gas_used"]))
        except ValueError as error:
            raise ChainfeedLedgerError(
                f"Invalid gas_used in simulation response: {gas_info['gas_used']!r}."
            ) from error

    def submit_transaction(
        self,
        payload: EntryPayload,
        sequence: int | None,
        gas_limit: int | None,
    ) -> LedgerTxResult:
        """Broadcast one dataset-entry transaction.

        Args:
            payload: Entry message fields.
            sequence: Account sequence to pin, or None to let the gateway resolve it.
            gas_limit: Gas limit to request, or None for the gateway default.

        Returns:
            Accepted transaction details.

        Raises:
            ChainfeedSequenceMismatchError: If the ledger rejected a stale sequence.
            ChainfeedSubmissionError: For any other rejection or transport failure.
        """
        response = self._request_json(
            "POST",
            _BROADCAST_PATH,
            json_body={
                "tx": build_unsigned_tx(payload, sequence, gas_limit),
                "mode": BROADCAST_MODE,
            },
        )
        tx_response = response.get("tx_response")
        if not isinstance(tx_response, dict):
            raise ChainfeedSubmissionError("Broadcast response did not include tx_response.")
        raw_log = str(tx_response.get("raw_log", ""))
        raise_for_tx_code(_as_int(tx_response.get("code")), raw_log)
        tx_hash = str(tx_response.get("txhash", ""))
        if not tx_hash:
            raise ChainfeedSubmissionError("Broadcast response did not include a txhash.")
        return LedgerTxResult(
            tx_hash=tx_hash,
            height=_as_int(tx_response.get("height")),
            gas_used=_as_int(tx_response.get("gas_used")),
            gas_wanted=_as_int(tx_response.get("gas_wanted")),
            raw_log=raw_log,
        )

    def _request_json(
        self,
        method: str,
        path: str,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send one request and return the decoded JSON object."""
        try:
            response = self._client.request(method, path, json=json_body)
        except httpx.HTTPError as error:
            raise ChainfeedSubmissionError(
                f"Ledger request {method} {path} failed: {error}. "
                "Check CHAINFEED_NODE_URL and node availability."
            ) from error
        if response.is_error:
            message = _error_message(response)
            _LOGGER.warning(
                "ledger_http_error",
                method=method,
                path=path,
                status_code=response.status_code,
                message=message,
            )
            if is_sequence_mismatch(message):
                raise ChainfeedSequenceMismatchError(f"Sequence mismatch: {message}")
            raise ChainfeedSubmissionError(
                f"Ledger request {method} {path} returned HTTP {response.status_code}: {message}"
            )
        payload = _safe_json(response)
        if not payload:
            raise ChainfeedSubmissionError(
                f"Ledger request {method} {path} returned a non-JSON body."
            )
        return payload


def build_unsigned_tx(
    payload: EntryPayload,
    sequence: int | None,
    gas_limit: int | None,
) -> dict[str, Any]:
    """Build the JSON transaction body for the entry message."""
    signer_infos = [] if sequence is None else [{"sequence": str(sequence)}]
    return {
        "body": {
            "messages": [build_entry_message(payload)],
            "memo": CREATE_ENTRY_MEMO,
            "timeout_height": "0",
            "extension_options": [],
            "non_critical_extension_options": [],
        },
        "auth_info": {
            "signer_infos": signer_infos,
            "fee": {
                "amount": [],
                "gas_limit": str(gas_limit or 0),
                "payer": "",
                "granter": "",
            },
        },
        "signatures": [],
    }


def build_entry_message(payload: EntryPayload) -> dict[str, str]:
    """Convert an entry payload to its proto-JSON message form."""
    return {
        "@type": CREATE_ENTRY_TYPE_URL,
        "creator": payload.submitter,
        "entry_id": payload.entry_id,
        "title": payload.title,
        "description": payload.description,
        "ipfs_cid": payload.ipfs_cid,
        "mime_type": payload.mime_type,
        "file_name": payload.file_name,
        "file_url": payload.file_url,
        "fallback_url": payload.fallback_url,
        "file_size": payload.file_size,
        "checksum_sha256": payload.checksum_sha256,
        "agency": payload.agency,
        "category": payload.category,
        "submitter": payload.submitter,
        "timestamp": payload.timestamp,
        "pin_count": payload.pin_count,
    }


def _error_message(response: httpx.Response) -> str:
    payload = _safe_json(response)
    for key in ("message", "error"):
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return response.text.strip() or response.reason_phrase


def _safe_json(response: httpx.Response) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _as_int(value: object) -> int:
    try:
        return int(str(value))
    except ValueError:
        return 0
