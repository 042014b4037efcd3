from __future__ import annotations

import os
from collections.abc import AsyncIterator, Iterator

# src.irm.main builds a module-level app at import time; default it to the in-memory store.
os.environ.setdefault("ALERT_STORE_BACKEND", "memory")

import httpx  # noqa: E402
import pytest  # noqa: E402
from helpers import FixedClock, RecordingReporter  # noqa: E402
from prometheus_client import CollectorRegistry  # noqa: E402
from pymongo import MongoClient  # noqa: E402

from src.irm.config import BackendConfig  # noqa: E402
from src.irm.services.alert_reconciler import AlertReconciler  # noqa: E402
from src.irm.services.alert_store import InMemoryAlertStore  # noqa: E402
from src.irm.services.outcome_reporter import PrometheusOutcomeReporter  # noqa: E402


@pytest.fixture
def store() -> InMemoryAlertStore:
    return InMemoryAlertStore()


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture
def reconciler(store: InMemoryAlertStore, reporter: RecordingReporter) -> AlertReconciler:
    return AlertReconciler(store, reporter, clock=FixedClock())


@pytest.fixture
def prometheus_reporter() -> PrometheusOutcomeReporter:
    return PrometheusOutcomeReporter(CollectorRegistry())


@pytest.fixture
def memory_config() -> BackendConfig:
    return BackendConfig(
        store_backend="memory",
        mongo_uri=None,
        mongo_db_name="irm",
        alerts_list_max=500,
        host="127.0.0.1",
        port=8080,
    )


@pytest.fixture
def app(memory_config: BackendConfig):
    """Fresh FastAPI app per test, backed by the in-memory alert store."""
    from src.irm.main import create_app

    return create_app(memory_config)


@pytest.fixture
async def async_client(app) -> AsyncIterator[httpx.AsyncClient]:
    """
    Async HTTP client bound to the FastAPI ASGI app.

    ASGITransport does not run startup hooks, which the memory backend does not need.
    """
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture(scope="session")
def mongo_uri() -> str:
    """MongoDB URI for integration tests; skips them when none is configured."""
    uri = os.getenv("IRM_TEST_MONGO_URI")
    if not uri:
        pytest.skip("IRM_TEST_MONGO_URI not set; skipping Mongo integration tests")
    return uri


@pytest.fixture(scope="session")
def mongo_client(mongo_uri: str) -> Iterator[MongoClient]:
    """PyMongo client used by tests for direct DB inspection/cleanup."""
    client = MongoClient(mongo_uri, connect=True, tz_aware=True)
    try:
        yield client
    finally:
        client.close()
