"""Unit tests for run coordinator."""

from __future__ import annotations

import json
import os
import signal
import threading
from pathlib import Path

import pytest

from core.types import Record
from ingest.coordinator import RunCoordinator, build_run_id, stop_on_signals
from ingest.progress_ledger import ProgressLedger
from ledger.pacer import SubmissionPacer
from tests.fake_ledger import FakeLedger


class _ProcessKilled(Exception):
    """Stands in for the process dying mid-run."""


def _records(count: int) -> list[Record]:
    return [
        Record(index=index, raw_text=f'{{"DSC": "row {index}"}}', parsed={"DSC": f"row {index}"})
        for index in range(count)
    ]


def _coordinator(
    tmp_path: Path,
    ledger: FakeLedger,
    records: list[Record],
    resume: bool = False,
    stop_event: threading.Event | None = None,
    limit: int | None = None,
) -> RunCoordinator:
    pacer = SubmissionPacer(ledger, delay_seconds=0.0)
    return RunCoordinator(
        records=records,
        progress=ProgressLedger(tmp_path / "run.progress.jsonl"),
        pacer=pacer,
        submitter="alice",
        resume=resume,
        stop_event=stop_event,
        limit=limit,
    )


def test_coordinator_submits_every_record_and_reaches_completed(tmp_path: Path) -> None:
    """A fresh run should submit all records in order."""
    ledger = FakeLedger()
    coordinator = _coordinator(tmp_path, ledger, _records(3))

    summary = coordinator.run()

    assert ledger.submitted_titles == ["row 0", "row 1", "row 2"]
    assert summary.succeeded == 3 and summary.failed == 0 and coordinator.state == "completed"


def test_coordinator_resume_skips_up_to_last_success(tmp_path: Path) -> None:
    """Resume should start right after the last successful index."""
    progress = ProgressLedger(tmp_path / "run.progress.jsonl")
    progress.record_success("run-old", 0, "H0")
    progress.record_success("run-old", 1, "H1")
    ledger = FakeLedger()
    coordinator = _coordinator(tmp_path, ledger, _records(4), resume=True)

    summary = coordinator.run()

    assert ledger.submitted_titles == ["row 2", "row 3"]
    assert summary.skipped == 2 and summary.resume_from_index == 2


def test_coordinator_without_resume_ignores_existing_log(tmp_path: Path) -> None:
    """Without resume every record is submitted again."""
    ProgressLedger(tmp_path / "run.progress.jsonl").record_success("run-old", 3, "H3")
    ledger = FakeLedger()

    summary = _coordinator(tmp_path, ledger, _records(2)).run()

    assert summary.skipped == 0 and summary.succeeded == 2


def test_coordinator_continues_after_failed_record(tmp_path: Path) -> None:
    """A rejected record should be logged and the run should continue."""
    ledger = FakeLedger(reject_titles={"row 1"})
    coordinator = _coordinator(tmp_path, ledger, _records(3))

    summary = coordinator.run()
    report = ProgressLedger(tmp_path / "run.progress.jsonl").summarize()

    assert summary.succeeded == 2 and summary.failed == 1
    assert report.unresolved_failures == (1,) and report.started == 3


def test_coordinator_skips_malformed_records(tmp_path: Path) -> None:
    """Malformed records should be counted without a submission."""
    records = [
        Record(index=0, raw_text='{"DSC": "row 0"}', parsed={"DSC": "row 0"}),
        Record(index=1, raw_text='{"DSC": }', parse_error="Expecting value at position 8"),
        Record(index=2, raw_text='{"DSC": "row 2"}', parsed={"DSC": "row 2"}),
    ]
    ledger = FakeLedger()

    summary = _coordinator(tmp_path, ledger, records).run()

    assert summary.malformed == 1 and ledger.submitted_titles == ["row 0", "row 2"]
    assert summary.skipped == 1
    assert summary.skipped + summary.succeeded + summary.failed == summary.total_records


def test_coordinator_counts_retryable_sequence_mismatch(tmp_path: Path) -> None:
    """Sequence mismatches should be failures flagged as retryable."""
    ledger = FakeLedger(mismatch_titles={"row 0"})

    summary = _coordinator(tmp_path, ledger, _records(2)).run()

    assert summary.failed == 1 and summary.retryable_failures == 1 and summary.succeeded == 1


def test_coordinator_stops_after_in_flight_record_when_cancelled(tmp_path: Path) -> None:
    """Setting the stop event should finish the current record and stop pulling."""
    stop_event = threading.Event()
    ledger = FakeLedger()

    def _records_then_cancel():
        yield from _records(2)
        stop_event.set()
        yield from _records(4)[2:]

    coordinator = RunCoordinator(
        records=_records_then_cancel(),
        progress=ProgressLedger(tmp_path / "run.progress.jsonl"),
        pacer=SubmissionPacer(ledger, delay_seconds=0.0),
        submitter="alice",
        stop_event=stop_event,
    )

    summary = coordinator.run()

    assert summary.cancelled is True and summary.succeeded == 2 and summary.total_records == 2


def test_coordinator_honours_limit(tmp_path: Path) -> None:
    """A limit should cap the number of submissions in one run."""
    ledger = FakeLedger()

    summary = _coordinator(tmp_path, ledger, _records(5), limit=2).run()

    assert summary.succeeded == 2 and summary.cancelled is False


def test_coordinator_runs_only_once(tmp_path: Path) -> None:
    """A coordinator instance should refuse a second run."""
    coordinator = _coordinator(tmp_path, FakeLedger(), _records(1))
    coordinator.run()

    with pytest.raises(RuntimeError):
        coordinator.run()

    assert True


def test_build_run_id_is_unique() -> None:
    """Run ids should not repeat."""
    assert build_run_id() != build_run_id()


def test_coordinator_persists_outcome_before_pacing_delay(tmp_path: Path) -> None:
    """A run killed during the delay should already have the outcome on disk."""
    log_path = tmp_path / "run.progress.jsonl"

    def _sleeper(seconds: float) -> None:
        statuses = [json.loads(line)["status"] for line in log_path.read_text().splitlines()]
        raise _ProcessKilled(statuses)

    coordinator = RunCoordinator(
        records=_records(2),
        progress=ProgressLedger(log_path),
        pacer=SubmissionPacer(FakeLedger(), delay_seconds=1.0, sleeper=_sleeper),
        submitter="alice",
    )

    with pytest.raises(_ProcessKilled) as error_info:
        coordinator.run()

    assert error_info.value.args[0] == ["started", "success"]
    assert ProgressLedger(log_path).last_successful_index() == 0


def test_coordinator_pauses_after_every_submission(tmp_path: Path) -> None:
    """The pacing delay should follow successes and failures alike."""
    sleeps: list[float] = []
    pacer = SubmissionPacer(
        FakeLedger(reject_titles={"row 1"}),
        delay_seconds=1.0,
        sleeper=sleeps.append,
    )
    coordinator = RunCoordinator(
        records=_records(3),
        progress=ProgressLedger(tmp_path / "run.progress.jsonl"),
        pacer=pacer,
        submitter="alice",
    )

    coordinator.run()

    assert sleeps == [1.0, 1.0, 1.0]


def test_stop_on_signals_sets_event_and_restores_handler() -> None:
    """SIGTERM inside the block should set the event; the old handler returns after."""
    previous_handler = signal.getsignal(signal.SIGTERM)
    stop_event = threading.Event()

    with stop_on_signals(stop_event) as active_event:
        installed_handler = signal.getsignal(signal.SIGTERM)
        os.kill(os.getpid(), signal.SIGTERM)
        stop_event.wait(timeout=1.0)

    assert active_event is stop_event and stop_event.is_set()
    assert installed_handler is not previous_handler
    assert signal.getsignal(signal.SIGTERM) is previous_handler


def test_stop_on_signals_installs_nothing_off_main_thread() -> None:
    """Worker threads should get the event back without handler changes."""
    observed: dict[str, object] = {}
    previous_handler = signal.getsignal(signal.SIGINT)

    def _worker() -> None:
        with stop_on_signals(threading.Event()) as active_event:
            observed["handler"] = signal.getsignal(signal.SIGINT)
            observed["is_set"] = active_event.is_set()

    worker = threading.Thread(target=_worker)
    worker.start()
    worker.join()

    assert observed == {"handler": previous_handler, "is_set": False}
