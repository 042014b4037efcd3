from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from threading import RLock
from typing import Any, Dict, List, Optional, Protocol, Tuple
from uuid import uuid4

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING
from pymongo import errors as mongo_errors
from pymongo.collection import Collection

from src.irm.errors import DuplicateKeyError, PersistenceError
from src.irm.services.alert_types import AlertRecord

logger = logging.getLogger(__name__)


class AlertStore(Protocol):
    """Persistence contract used by the reconciler and the query API."""

    def find_by_fingerprint(self, fingerprint: str) -> Optional[AlertRecord]: ...

    def insert(self, record: AlertRecord) -> AlertRecord: ...

    def update_status_and_ends_at(self, record_id: str, status: str, ends_at: Optional[datetime]) -> None: ...

    def list_alerts(
        self, status: Optional[str] = None, limit: int = 100, offset: int = 0
    ) -> Tuple[List[AlertRecord], int]: ...

    def ping(self) -> bool: ...


def _doc_to_record(doc: dict) -> AlertRecord:
    return AlertRecord(
        id=str(doc.get("_id")),
        fingerprint=doc["fingerprint"],
        status=doc.get("status", ""),
        labels=doc.get("labels") or "{}",
        annotations=doc.get("annotations") or "{}",
        starts_at=doc.get("startsAt"),
        ends_at=doc.get("endsAt"),
        created_at=doc["createdAt"],
    )


def _record_to_doc(record: AlertRecord) -> Dict[str, Any]:
    return {
        "fingerprint": record.fingerprint,
        "status": record.status,
        "labels": record.labels,
        "annotations": record.annotations,
        "startsAt": record.starts_at,
        "endsAt": record.ends_at,
        "createdAt": record.created_at,
    }


class MongoAlertStore:
    """
    AlertStore backed by the irm.alerts collection.

    Uniqueness of fingerprint is enforced by the uniq_alerts_fingerprint index
    (see MongoManager.init_indexes); pymongo errors are translated into the ingest error taxonomy.
    """

    def __init__(self, collection: Collection, ping_fn=None):
        self._col = collection
        self._ping_fn = ping_fn

    def find_by_fingerprint(self, fingerprint: str) -> Optional[AlertRecord]:
        try:
            doc = self._col.find_one({"fingerprint": fingerprint})
        except mongo_errors.PyMongoError as exc:
            raise PersistenceError(f"lookup failed for fingerprint {fingerprint!r}: {exc}") from exc
        return _doc_to_record(doc) if doc else None

    def insert(self, record: AlertRecord) -> AlertRecord:
        doc = _record_to_doc(record)
        try:
            res = self._col.insert_one(doc)
        except mongo_errors.DuplicateKeyError as exc:
            raise DuplicateKeyError(record.fingerprint) from exc
        except mongo_errors.PyMongoError as exc:
            raise PersistenceError(f"insert failed for fingerprint {record.fingerprint!r}: {exc}") from exc
        return replace(record, id=str(res.inserted_id))

    def update_status_and_ends_at(self, record_id: str, status: str, ends_at: Optional[datetime]) -> None:
        try:
            oid = ObjectId(record_id)
        except (InvalidId, TypeError) as exc:
            raise PersistenceError(f"invalid record id {record_id!r}") from exc
        try:
            res = self._col.update_one({"_id": oid}, {"$set": {"status": status, "endsAt": ends_at}})
        except mongo_errors.PyMongoError as exc:
            raise PersistenceError(f"update failed for record {record_id}: {exc}") from exc
        if res.matched_count == 0:
            raise PersistenceError(f"record {record_id} not found for update")

    def list_alerts(
        self, status: Optional[str] = None, limit: int = 100, offset: int = 0
    ) -> Tuple[List[AlertRecord], int]:
        q: Dict[str, Any] = {"status": status} if status else {}
        try:
            total = int(self._col.count_documents(q))
            docs = list(self._col.find(q).sort("createdAt", DESCENDING).skip(int(offset)).limit(int(limit)))
        except mongo_errors.PyMongoError as exc:
            raise PersistenceError(f"listing alerts failed: {exc}") from exc
        return [_doc_to_record(d) for d in docs], total

    def ping(self) -> bool:
        return bool(self._ping_fn()) if self._ping_fn is not None else True


class InMemoryAlertStore:
    """Process-local AlertStore (ALERT_STORE_BACKEND=memory) with the same uniqueness guarantee."""

    def __init__(self):
        self._by_fingerprint: Dict[str, AlertRecord] = {}
        self._lock = RLock()

    def find_by_fingerprint(self, fingerprint: str) -> Optional[AlertRecord]:
        with self._lock:
            rec = self._by_fingerprint.get(fingerprint)
            return replace(rec) if rec else None

    def insert(self, record: AlertRecord) -> AlertRecord:
        with self._lock:
            if record.fingerprint in self._by_fingerprint:
                raise DuplicateKeyError(record.fingerprint)
            stored = replace(record, id=uuid4().hex)
            self._by_fingerprint[record.fingerprint] = stored
            return replace(stored)

    def update_status_and_ends_at(self, record_id: str, status: str, ends_at: Optional[datetime]) -> None:
        with self._lock:
            for fp, rec in self._by_fingerprint.items():
                if rec.id == record_id:
                    self._by_fingerprint[fp] = replace(rec, status=status, ends_at=ends_at)
                    return
        raise PersistenceError(f"record {record_id} not found for update")

    def list_alerts(
        self, status: Optional[str] = None, limit: int = 100, offset: int = 0
    ) -> Tuple[List[AlertRecord], int]:
        with self._lock:
            recs = [r for r in self._by_fingerprint.values() if not status or r.status == status]
        recs.sort(key=lambda r: r.created_at, reverse=True)
        return [replace(r) for r in recs[offset : offset + limit]], len(recs)

    def ping(self) -> bool:
        return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_fingerprint)
