"""Type-safe field parsing helpers for run-spec execution.

This module centralizes primitive parsing so run-spec executors can stay
concise and produce consistent validation errors across CLI and SDK flows.
"""

from __future__ import annotations

from typing import Mapping

from core.errors import ChainfeedRunSpecError


def required_string(args: Mapping[str, object], field_name: str) -> str:
    """Read a required string field from a run-spec step."""
    value = optional_string(args, field_name)
    if value is None:
        raise ChainfeedRunSpecError(f"Run-spec step is missing required field '{field_name}'.")
    return value


def optional_string(args: Mapping[str, object], field_name: str) -> str | None:
    """Read an optional string field from a run-spec step."""
    value = args.get(field_name)
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped if stripped else None
    raise ChainfeedRunSpecError(f"Run-spec field '{field_name}' must be a string when provided.")


def optional_int(args: Mapping[str, object], field_name: str) -> int | None:
    """Read an optional integer field from a run-spec step."""
    value = args.get(field_name)
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    raise ChainfeedRunSpecError(f"Run-spec field '{field_name}' must be an integer.")


def int_with_default(args: Mapping[str, object], field_name: str, default_value: int) -> int:
    """Read an integer field while preserving explicit zero values."""
    value = optional_int(args, field_name)
    return default_value if value is None else value


def optional_float(args: Mapping[str, object], field_name: str) -> float | None:
    """Read an optional numeric field from a run-spec step."""
    value = args.get(field_name)
    if value is None:
        return None
    if isinstance(value, bool):
        raise ChainfeedRunSpecError(f"Run-spec field '{field_name}' must be numeric.")
    if isinstance(value, (int, float)):
        return float(value)
    raise ChainfeedRunSpecError(f"Run-spec field '{field_name}' must be numeric.")


def optional_bool(
    args: Mapping[str, object],
    field_name: str,
    default_value: bool,
) -> bool:
    """Read an optional boolean field from a run-spec step."""
    value = args.get(field_name)
    if value is None:
        return default_value
    if isinstance(value, bool):
        return value
    raise ChainfeedRunSpecError(f"Run-spec field '{field_name}' must be true/false.")
