"""Unit tests for run-spec parsing."""

from __future__ import annotations

import pytest

from core.errors import ChainfeedRunSpecError
from core.run_spec import load_run_spec, parse_run_spec
from tests.fixture_paths import fixture_path


def test_load_run_spec_valid_batch_parses_steps() -> None:
    """Valid run-spec should parse expected command order and defaults."""
    spec = load_run_spec(str(fixture_path("run_spec/valid_batch.yaml")))

    assert tuple(step.command for step in spec.steps) == ("split", "upload", "status")
    assert spec.defaults.submitter == "alice" and spec.defaults.category == "GAA"


def test_load_run_spec_invalid_command_raises_error() -> None:
    """Unsupported command name should raise run-spec error."""
    with pytest.raises(ChainfeedRunSpecError):
        load_run_spec(str(fixture_path("run_spec/invalid_command.yaml")))
    assert True


def test_load_run_spec_invalid_defaults_key_raises_error() -> None:
    """Unknown defaults field should be rejected."""
    with pytest.raises(ChainfeedRunSpecError):
        load_run_spec(str(fixture_path("run_spec/invalid_defaults_key.yaml")))
    assert True


def test_load_run_spec_unknown_step_field_raises_error() -> None:
    """Step fields outside the command's schema should be rejected."""
    with pytest.raises(ChainfeedRunSpecError):
        load_run_spec(str(fixture_path("run_spec/unknown_step_field.yaml")))
    assert True


def test_load_run_spec_missing_file_raises_error(tmp_path) -> None:
    """A missing run-spec path should raise run-spec error."""
    with pytest.raises(ChainfeedRunSpecError):
        load_run_spec(str(tmp_path / "missing.yaml"))
    assert True


def test_parse_run_spec_rejects_unsupported_version() -> None:
    """Only schema version 1 should be accepted."""
    with pytest.raises(ChainfeedRunSpecError):
        parse_run_spec({"version": 2, "steps": [{"command": "status", "source": "a.json"}]})
    assert True


def test_parse_run_spec_accepts_args_mapping() -> None:
    """Step arguments may be nested under an args mapping."""
    spec = parse_run_spec(
        {"version": 1, "steps": [{"command": "split", "args": {"source": "a.json"}}]}
    )

    assert spec.steps[0].args == {"source": "a.json"}
