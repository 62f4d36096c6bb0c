"""Chainfeed exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations


class ChainfeedError(Exception):
    """Base exception for all Chainfeed failures."""


class ChainfeedConfigError(ChainfeedError):
    """Raised for invalid runtime configuration."""


class ChainfeedIngestError(ChainfeedError):
    """Raised when an input stream cannot be opened or read."""


class ChainfeedProgressError(ChainfeedError):
    """Raised when the progress log cannot be opened or appended."""


class ChainfeedLedgerError(ChainfeedError):
    """Base error for ledger collaborator failures."""


class ChainfeedSequenceMismatchError(ChainfeedLedgerError):
    """Raised when the ledger rejects a transaction for a stale sequence."""


class ChainfeedSubmissionError(ChainfeedLedgerError):
    """Raised for any other ledger rejection or transport failure."""


class ChainfeedDependencyError(ChainfeedError):
    """Raised when an optional runtime dependency is missing."""


class ChainfeedRunSpecError(ChainfeedError):
    """Raised for invalid or unsupported run-spec configuration."""
