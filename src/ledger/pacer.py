"""Paced, strictly sequential ledger submission.

This module submits one record at a time: it pins the account sequence,
scales the gas estimate and classifies the ledger response. The pacing
delay is a separate step so callers can persist each outcome first.
"""

from __future__ import annotations

import math
import threading
import time
from typing import Callable

from core.constants import DEFAULT_CATEGORY, DEFAULT_SUBMISSION_DELAY_SECONDS, GAS_ADJUSTMENT
from core.errors import ChainfeedLedgerError, ChainfeedSequenceMismatchError
from core.logging_config import get_logger
from core.types import EntryPayload, Record, SubmissionOutcome
from ledger.client import LedgerClient
from ledger.payload import build_entry_payload

_LOGGER = get_logger(__name__)

_RESUME_HINT = "Re-run with --resume to continue after the last committed record."


class SubmissionPacer:
    """Submit records to the ledger one at a time with a fixed pause."""

    def __init__(
        self,
        ledger: LedgerClient,
        category: str = DEFAULT_CATEGORY,
        delay_seconds: float = DEFAULT_SUBMISSION_DELAY_SECONDS,
        gas_adjustment: float = GAS_ADJUSTMENT,
        clock: Callable[[], float] = time.time,
        stop_event: threading.Event | None = None,
        sleeper: Callable[[float], object] | None = None,
    ) -> None:
        self._ledger = ledger
        self._category = category
        self._delay_seconds = delay_seconds
        self._gas_adjustment = gas_adjustment
        self._clock = clock
        self._stop_event = stop_event or threading.Event()
        self._sleeper = sleeper or self._stop_event.wait
        self._next_sequence: dict[str, int] = {}

    def submit(self, record: Record, submitter: str) -> SubmissionOutcome:
        """Submit one well-formed record.

        Callers persist the outcome and then call ``pause`` before the next
        submission.

        Args:
            record: Record to submit.
            submitter: Ledger account signing the transaction.

        Returns:
            Outcome of the attempt. Ledger failures never raise.
        """
        return self._attempt(record, submitter)

    def pause(self) -> None:
        """Wait the pacing delay; a set stop event ends the wait early."""
        if self._delay_seconds > 0:
            self._sleeper(self._delay_seconds)

    def _attempt(self, record: Record, submitter: str) -> SubmissionOutcome:
        payload = build_entry_payload(record, submitter, self._category, int(self._clock()))
        sequence = self._resolve_sequence(submitter)
        gas_limit = self._resolve_gas_limit(payload, sequence)
        try:
            result = self._ledger.submit_transaction(payload, sequence, gas_limit)
        except ChainfeedSequenceMismatchError as error:
            self._next_sequence.pop(submitter, None)
            _LOGGER.warning(
                "submission_sequence_mismatch",
                index=record.index,
                sequence=sequence,
                error=str(error),
            )
            return SubmissionOutcome(
                record=record,
                succeeded=False,
                error=f"{error} {_RESUME_HINT}",
                sequence_used=sequence,
                retryable=True,
            )
        except ChainfeedLedgerError as error:
            _LOGGER.error("submission_failed", index=record.index, error=str(error))
            return SubmissionOutcome(
                record=record,
                succeeded=False,
                error=str(error),
                sequence_used=sequence,
            )
        if sequence is not None:
            self._next_sequence[submitter] = sequence + 1
        _LOGGER.info(
            "record_submitted",
            index=record.index,
            tx_hash=result.tx_hash,
            sequence=sequence,
            gas_limit=gas_limit,
        )
        return SubmissionOutcome(
            record=record,
            succeeded=True,
            tx_hash=result.tx_hash,
            sequence_used=sequence,
        )

    def _resolve_sequence(self, submitter: str) -> int | None:
        """Return the sequence to pin, or None to let the ledger pick it.

        A sequence this pacer already consumed wins over a ledger value that
        has not caught up with the mempool yet.
        """
        local = self._next_sequence.get(submitter)
        try:
            queried: int | None = self._ledger.get_sequence(submitter)
        except ChainfeedLedgerError as error:
            _LOGGER.warning("sequence_unavailable", submitter=submitter, error=str(error))
            queried = None
        candidates = [value for value in (local, queried) if value is not None]
        return max(candidates) if candidates else None

    def _resolve_gas_limit(self, payload: EntryPayload, sequence: int | None) -> int | None:
        try:
            estimate = self._ledger.estimate_gas(payload, sequence)
        except ChainfeedLedgerError as error:
            _LOGGER.warning("gas_estimate_unavailable", entry_id=payload.entry_id, error=str(error))
            return None
        if estimate is None or estimate <= 0:
            return None
        return scale_gas(estimate, self._gas_adjustment)


def scale_gas(estimate: int, adjustment: float = GAS_ADJUSTMENT) -> int:
    """Scale a gas estimate by the safety multiplier, rounding up."""
    return math.ceil(estimate * adjustment)
