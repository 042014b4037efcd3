from __future__ import annotations

from typing import Optional


class AlertIngestError(Exception):
    """Base class for per-event ingest failures (reported as values in a BatchResult)."""

    kind = "error"


class AlertValidationError(AlertIngestError):
    """Raw alert event is malformed or incomplete (e.g. fingerprint missing)."""

    kind = "validation"

    def __init__(self, message: str, *, index: Optional[int] = None, fingerprint: Optional[str] = None):
        super().__init__(message)
        self.index = index
        self.fingerprint = fingerprint


class PersistenceError(AlertIngestError):
    """Alert store operation failed for infrastructure reasons."""

    kind = "persistence"


class DuplicateKeyError(PersistenceError):
    """Insert rejected by the fingerprint uniqueness constraint."""

    kind = "duplicate_key"

    def __init__(self, fingerprint: str):
        super().__init__(f"alert with fingerprint {fingerprint!r} already exists")
        self.fingerprint = fingerprint


class SerializationError(PersistenceError):
    """Labels or annotations could not be encoded for storage."""

    kind = "serialization"
