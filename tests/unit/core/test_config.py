"""Unit tests for core config parsing."""

from __future__ import annotations

import os

import pytest

from core.config import ChainfeedConfig, parse_ledger_backend
from core.errors import ChainfeedConfigError


def test_from_env_reads_data_root(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should resolve data root from environment."""
    monkeypatch.setenv("CHAINFEED_DATA_ROOT", "./.tmp-chainfeed")

    config = ChainfeedConfig.from_env()

    assert config.data_root.name == ".tmp-chainfeed"


def test_from_env_uses_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    """Unset variables should fall back to documented defaults."""
    for name in ("CHAINFEED_LEDGER_BACKEND", "CHAINFEED_NODE_URL", "CHAINFEED_SUBMISSION_DELAY"):
        monkeypatch.delenv(name, raising=False)

    config = ChainfeedConfig.from_env()

    assert config.ledger_backend == "rest" and config.submission_delay_seconds == 1.0
    assert config.node_url == "http://localhost:1317"


def test_from_env_strips_trailing_slash_from_node_url(monkeypatch: pytest.MonkeyPatch) -> None:
    """Node URL should be normalized without a trailing slash."""
    monkeypatch.setenv("CHAINFEED_NODE_URL", "http://node.example:1317/")

    config = ChainfeedConfig.from_env()

    assert config.node_url == "http://node.example:1317"


def test_from_env_raises_for_invalid_delay(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should fail for non-numeric submission delay."""
    monkeypatch.setenv("CHAINFEED_SUBMISSION_DELAY", "soon")

    with pytest.raises(ChainfeedConfigError):
        ChainfeedConfig.from_env()

    assert os.getenv("CHAINFEED_SUBMISSION_DELAY") == "soon"


def test_from_env_raises_for_negative_delay(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should fail for negative submission delay."""
    monkeypatch.setenv("CHAINFEED_SUBMISSION_DELAY", "-1")

    with pytest.raises(ChainfeedConfigError):
        ChainfeedConfig.from_env()

    assert True


def test_from_env_raises_for_zero_chunk_size(monkeypatch: pytest.MonkeyPatch) -> None:
    """Read chunk size must be positive."""
    monkeypatch.setenv("CHAINFEED_READ_CHUNK_SIZE", "0")

    with pytest.raises(ChainfeedConfigError):
        ChainfeedConfig.from_env()

    assert True


def test_parse_ledger_backend_normalizes_and_validates() -> None:
    """Backend names should be case-insensitive and restricted."""
    assert parse_ledger_backend(" CLI ") == "cli"

    with pytest.raises(ChainfeedConfigError):
        parse_ledger_backend("grpc")
