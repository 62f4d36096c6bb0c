"""Dataset-entry payload derivation.

This module turns one parsed record into the ledger transaction message.
Derivation is a pure function of the record, submitter, category, and
timestamp; the checksum covers the canonical serialization of the record.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Mapping

from core.constants import (
    AGENCY_FIELD,
    DEFAULT_AGENCY,
    DEFAULT_MIME_TYPE,
    DEFAULT_RECORD_TITLE,
    HASH_ALGORITHM,
    RECORD_PREVIEW_LENGTH,
    TITLE_FIELDS,
)
from core.types import EntryPayload, Record


def build_entry_payload(
    record: Record,
    submitter: str,
    category: str,
    timestamp: int,
) -> EntryPayload:
    """Build the dataset-entry message for a parsed record.

    Args:
        record: Well-formed record emitted by the tokenizer.
        submitter: Ledger account submitting the entry.
        category: Dataset category stamped on the entry.
        timestamp: Unix epoch seconds recorded on the entry.

    Returns:
        Transaction payload ready for a ledger client.

    Raises:
        ValueError: If the record is malformed.
    """
    if record.parsed is None:
        raise ValueError(f"Record {record.index} is malformed and cannot be submitted.")
    description = canonical_json(record.parsed)
    checksum = compute_checksum(description)
    return EntryPayload(
        entry_id=f"{category.lower()}-entry-{record.index}-{checksum[:12]}",
        title=extract_title(record.parsed),
        description=description,
        checksum_sha256=checksum,
        agency=extract_agency(record.parsed),
        category=category,
        submitter=submitter,
        timestamp=str(timestamp),
        mime_type=DEFAULT_MIME_TYPE,
    )


def canonical_json(payload: Mapping[str, Any]) -> str:
    """Serialize a record with sorted keys and compact separators."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def compute_checksum(text: str) -> str:
    """Return the hex digest of UTF-8 encoded text."""
    hasher = hashlib.new(HASH_ALGORITHM)
    hasher.update(text.encode("utf-8"))
    return hasher.hexdigest()


def extract_title(fields: Mapping[str, Any]) -> str:
    """Join the description fields into a title, falling back to a default."""
    parts = [_field_text(fields.get(name)) for name in TITLE_FIELDS]
    title = " ".join(part for part in parts if part).strip()
    return title or DEFAULT_RECORD_TITLE


def extract_agency(fields: Mapping[str, Any]) -> str:
    """Return the department description, falling back to a default."""
    return _field_text(fields.get(AGENCY_FIELD)) or DEFAULT_AGENCY


def record_preview(record: Record) -> str:
    """Return a single-line prefix of the record text for logs."""
    collapsed = " ".join(record.raw_text.split())
    if len(collapsed) <= RECORD_PREVIEW_LENGTH:
        return collapsed
    return collapsed[: RECORD_PREVIEW_LENGTH - 3] + "..."


def _field_text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()
