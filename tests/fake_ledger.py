"""In-memory ledger double shared by tests."""

from __future__ import annotations

from dataclasses import dataclass, field

from core.errors import ChainfeedSequenceMismatchError, ChainfeedSubmissionError
from core.types import EntryPayload, LedgerTxResult


@dataclass
class FakeLedger:
    """Ledger double that records submissions and can fail chosen entries.

    Attributes:
        sequence: Sequence returned by ``get_sequence``; None raises.
        gas_estimate: Simulated gas usage returned by ``estimate_gas``.
        reject_titles: Entry titles rejected with a generic error.
        mismatch_titles: Entry titles rejected with a sequence mismatch.
    """

    sequence: int | None = 7
    gas_estimate: int | None = 100_000
    reject_titles: set[str] = field(default_factory=set)
    mismatch_titles: set[str] = field(default_factory=set)
    submissions: list[tuple[EntryPayload, int | None, int | None]] = field(default_factory=list)
    closed: bool = False

    def close(self) -> None:
        self.closed = True

    def get_sequence(self, account: str) -> int:
        if self.sequence is None:
            raise ChainfeedSubmissionError("account lookup failed")
        return self.sequence

    def estimate_gas(self, payload: EntryPayload, sequence: int | None) -> int | None:
        return self.gas_estimate

    def submit_transaction(
        self,
        payload: EntryPayload,
        sequence: int | None,
        gas_limit: int | None,
    ) -> LedgerTxResult:
        self.submissions.append((payload, sequence, gas_limit))
        if payload.title in self.mismatch_titles:
            raise ChainfeedSequenceMismatchError("account sequence mismatch, expected 9, got 7")
        if payload.title in self.reject_titles:
            raise ChainfeedSubmissionError("Transaction rejected (code 5): insufficient funds")
        if self.sequence is not None:
            self.sequence += 1
        return LedgerTxResult(tx_hash=f"TX{len(self.submissions):04d}")

    @property
    def submitted_titles(self) -> list[str]:
        return [payload.title for payload, _, _ in self.submissions]
