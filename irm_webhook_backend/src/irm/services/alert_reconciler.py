from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Callable, Iterable, Optional, Sequence

from src.irm.errors import (
    AlertIngestError,
    AlertValidationError,
    DuplicateKeyError,
    PersistenceError,
    SerializationError,
)
from src.irm.schemas.common import utc_now
from src.irm.services.alert_normalizer import NormalizedItem, RawAlert, normalize_batch
from src.irm.services.alert_store import AlertStore
from src.irm.services.alert_types import AlertEvent, AlertRecord, BatchResult, EventOutcome, Outcome
from src.irm.services.outcome_reporter import OutcomeReporter

logger = logging.getLogger(__name__)


def _to_json(value: dict, what: str, fingerprint: str) -> str:
    try:
        return json.dumps(value, sort_keys=True)
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"failed to marshal {what} for fingerprint {fingerprint!r}: {exc}") from exc


class AlertReconciler:
    """
    Reconciles incoming alert events against stored alert state, one fingerprint at a time.

    Per event (in input order):
    - unknown fingerprint -> insert a new record (Outcome.new)
    - known fingerprint, different status -> update status/endsAt only (Outcome.updated)
    - known fingerprint, same status -> no write (Outcome.duplicate)
    - any failure -> Outcome.error with the failure attached; the batch keeps going

    Two batches racing on the first insert of a fingerprint are settled by the store's
    uniqueness constraint: the loser re-reads the winner's record and is reconciled against it.
    When both carry the same status the loser is therefore reported as Outcome.duplicate, not updated.
    """

    def __init__(
        self,
        store: AlertStore,
        reporter: OutcomeReporter,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._reporter = reporter
        self._clock = clock

    # PUBLIC_INTERFACE
    def ingest(self, raws: Iterable[RawAlert]) -> BatchResult:
        """Normalize raw webhook alerts and reconcile them."""
        return self.reconcile(normalize_batch(raws))

    # PUBLIC_INTERFACE
    def reconcile(self, batch: Sequence[NormalizedItem]) -> BatchResult:
        """Reconcile a batch of normalized events; never raises for per-event failures."""
        self._report("increment_received", len(batch))

        result = BatchResult()
        for index, item in enumerate(batch):
            result.outcomes.append(self._reconcile_item(index, item))

        counts = result.counts
        logger.info(
            "Reconciled alert batch received=%s new=%s updated=%s duplicate=%s error=%s",
            result.received,
            counts["new"],
            counts["updated"],
            counts["duplicate"],
            counts["error"],
        )
        return result

    def _reconcile_item(self, index: int, item: NormalizedItem) -> EventOutcome:
        if isinstance(item, AlertValidationError):
            return self._error(index, item.fingerprint, item)

        try:
            return self._reconcile_event(index, item)
        except AlertIngestError as exc:
            logger.error("Alert reconcile failed index=%s fingerprint=%s: %s", index, item.fingerprint, exc)
            return self._error(index, item.fingerprint, exc)
        except Exception as exc:
            # Store implementations should only raise PersistenceError; anything else is wrapped.
            logger.exception("Unexpected store failure index=%s fingerprint=%s", index, item.fingerprint)
            wrapped = PersistenceError(f"unexpected store failure: {exc}")
            wrapped.__cause__ = exc
            return self._error(index, item.fingerprint, wrapped)

    def _reconcile_event(self, index: int, event: AlertEvent) -> EventOutcome:
        existing = self._store.find_by_fingerprint(event.fingerprint)
        if existing is not None:
            return self._reconcile_existing(index, event, existing)

        record = AlertRecord(
            fingerprint=event.fingerprint,
            status=event.status,
            labels=_to_json(event.labels, "labels", event.fingerprint),
            annotations=_to_json(event.annotations, "annotations", event.fingerprint),
            starts_at=event.starts_at,
            ends_at=event.ends_at,
            created_at=self._clock(),
        )
        try:
            self._store.insert(record)
        except DuplicateKeyError as exc:
            logger.warning("Concurrent first insert for fingerprint=%s; retrying as update", event.fingerprint)
            return self._retry_as_update(index, event, exc)

        logger.debug("New alert fingerprint=%s status=%s", event.fingerprint, event.status)
        self._report("increment_new")
        return EventOutcome(index=index, fingerprint=event.fingerprint, outcome=Outcome.new)

    def _retry_as_update(self, index: int, event: AlertEvent, race: DuplicateKeyError) -> EventOutcome:
        try:
            winner = self._store.find_by_fingerprint(event.fingerprint)
        except PersistenceError as exc:
            logger.error("Re-read after insert race failed for fingerprint=%s: %s", event.fingerprint, exc)
            return self._error(index, event.fingerprint, race)
        if winner is None:
            return self._error(index, event.fingerprint, race)
        return self._reconcile_existing(index, event, winner)

    def _reconcile_existing(self, index: int, event: AlertEvent, existing: AlertRecord) -> EventOutcome:
        if existing.status == event.status:
            # Pure retransmission: endsAt is intentionally left untouched.
            self._report("increment_duplicate")
            return EventOutcome(index=index, fingerprint=event.fingerprint, outcome=Outcome.duplicate)

        assert existing.id is not None
        self._store.update_status_and_ends_at(existing.id, event.status, event.ends_at)
        logger.debug(
            "Updated alert fingerprint=%s status=%s->%s", event.fingerprint, existing.status, event.status
        )
        self._report("increment_updated")
        return EventOutcome(index=index, fingerprint=event.fingerprint, outcome=Outcome.updated)

    def _error(self, index: int, fingerprint: Optional[str], error: AlertIngestError) -> EventOutcome:
        self._report("increment_error")
        return EventOutcome(index=index, fingerprint=fingerprint, outcome=Outcome.error, error=error)

    def _report(self, method: str, *args) -> None:
        """Best-effort metrics; a failing sink never changes an outcome."""
        try:
            getattr(self._reporter, method)(*args)
        except Exception:
            logger.exception("Outcome reporter call %s failed", method)
