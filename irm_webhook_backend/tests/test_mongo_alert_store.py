from __future__ import annotations

from datetime import datetime, timezone

import pytest
from helpers import T0, T1, RecordingReporter

from src.irm.db.mongo import MongoManager
from src.irm.errors import DuplicateKeyError, PersistenceError
from src.irm.services.alert_reconciler import AlertReconciler
from src.irm.services.alert_store import MongoAlertStore
from src.irm.services.alert_types import AlertEvent, AlertRecord, Outcome

TEST_DB = "irm_test"


@pytest.fixture
def mongo_store(mongo_uri: str, mongo_client):
    """MongoAlertStore on a scratch database with the production indexes."""
    mongo_client[TEST_DB]["alerts"].delete_many({})
    manager = MongoManager(mongo_uri, TEST_DB)
    manager.init_indexes()
    try:
        yield MongoAlertStore(manager.alerts(), ping_fn=manager.ping)
    finally:
        manager.close()


def _record(fp: str = "a1", status: str = "firing") -> AlertRecord:
    return AlertRecord(
        fingerprint=fp,
        status=status,
        labels='{"alertname": "HighCPU"}',
        annotations="{}",
        starts_at=T0,
        ends_at=None,
        created_at=datetime(2024, 5, 1, 12, 1, tzinfo=timezone.utc),
    )


def test_insert_find_and_uniqueness(mongo_store: MongoAlertStore):
    inserted = mongo_store.insert(_record())
    assert inserted.id

    found = mongo_store.find_by_fingerprint("a1")
    assert found == inserted
    assert mongo_store.find_by_fingerprint("missing") is None

    with pytest.raises(DuplicateKeyError):
        mongo_store.insert(_record(status="resolved"))


def test_update_touches_only_status_and_ends_at(mongo_store: MongoAlertStore):
    inserted = mongo_store.insert(_record())

    mongo_store.update_status_and_ends_at(inserted.id, "resolved", T1)

    rec = mongo_store.find_by_fingerprint("a1")
    assert (rec.status, rec.ends_at) == ("resolved", T1)
    assert rec.starts_at == inserted.starts_at
    assert rec.created_at == inserted.created_at
    assert rec.labels == inserted.labels


def test_update_of_unknown_record_fails(mongo_store: MongoAlertStore):
    with pytest.raises(PersistenceError):
        mongo_store.update_status_and_ends_at("0123456789abcdef01234567", "resolved", None)
    with pytest.raises(PersistenceError):
        mongo_store.update_status_and_ends_at("not-an-object-id", "resolved", None)


def test_list_alerts_and_ping(mongo_store: MongoAlertStore):
    mongo_store.insert(_record("a1", "firing"))
    mongo_store.insert(_record("a2", "resolved"))

    items, total = mongo_store.list_alerts(status="firing")
    assert total == 1 and items[0].fingerprint == "a1"
    assert mongo_store.list_alerts()[1] == 2
    assert mongo_store.ping() is True


def test_reconciler_against_mongo(mongo_store: MongoAlertStore):
    reconciler = AlertReconciler(mongo_store, RecordingReporter())

    result = reconciler.reconcile(
        [
            AlertEvent(fingerprint="m1", status="firing", starts_at=T0),
            AlertEvent(fingerprint="m1", status="firing", starts_at=T0),
            AlertEvent(fingerprint="m1", status="resolved", ends_at=T1),
        ]
    )

    assert [o.outcome for o in result.outcomes] == [Outcome.new, Outcome.duplicate, Outcome.updated]
    assert mongo_store.list_alerts()[1] == 1
