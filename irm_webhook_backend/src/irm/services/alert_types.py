from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from src.irm.errors import AlertIngestError, AlertValidationError


class Outcome(str, Enum):
    """Classification of one reconciled alert event."""

    new = "new"
    updated = "updated"
    duplicate = "duplicate"
    error = "error"


@dataclass(frozen=True)
class AlertEvent:
    """Canonical incoming alert event (one per webhook alert, never persisted directly)."""

    fingerprint: str
    status: str = ""
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    starts_at: Optional[datetime] = None
    # None means "still open" (Alertmanager sends the zero time for unset endsAt).
    ends_at: Optional[datetime] = None


@dataclass
class AlertRecord:
    """Persisted alert state, one per unique fingerprint."""

    fingerprint: str
    status: str
    labels: str
    annotations: str
    starts_at: Optional[datetime]
    ends_at: Optional[datetime]
    created_at: datetime
    id: Optional[str] = None


@dataclass(frozen=True)
class EventOutcome:
    """Result slot for a single event of a batch."""

    index: int
    fingerprint: Optional[str]
    outcome: Outcome
    error: Optional[AlertIngestError] = None

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.kind if self.error is not None else None


@dataclass
class BatchResult:
    """Ordered per-event outcomes of one reconcile call plus aggregate counts."""

    outcomes: List[EventOutcome] = field(default_factory=list)

    @property
    def received(self) -> int:
        return len(self.outcomes)

    @property
    def counts(self) -> Dict[str, int]:
        totals = {o.value: 0 for o in Outcome}
        for item in self.outcomes:
            totals[item.outcome.value] += 1
        return totals

    @property
    def errors(self) -> List[EventOutcome]:
        return [o for o in self.outcomes if o.outcome is Outcome.error]

    @property
    def has_validation_errors(self) -> bool:
        return any(isinstance(o.error, AlertValidationError) for o in self.errors)

    @property
    def has_persistence_errors(self) -> bool:
        return any(o.error is not None and not isinstance(o.error, AlertValidationError) for o in self.errors)

    @property
    def ok(self) -> bool:
        return not self.errors
