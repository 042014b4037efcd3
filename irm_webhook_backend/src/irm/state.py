from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI
from prometheus_client import CollectorRegistry

from src.irm.config import BackendConfig
from src.irm.db.mongo import MongoManager
from src.irm.services.alert_reconciler import AlertReconciler
from src.irm.services.alert_store import AlertStore, InMemoryAlertStore, MongoAlertStore
from src.irm.services.outcome_reporter import PrometheusOutcomeReporter


@dataclass
class AppState:
    """Typed app.state container for shared singletons."""

    config: BackendConfig
    store: AlertStore
    registry: CollectorRegistry
    reporter: PrometheusOutcomeReporter
    reconciler: AlertReconciler
    mongo: Optional[MongoManager] = None  # only set for the mongo store backend


def _build_store(config: BackendConfig) -> tuple[AlertStore, Optional[MongoManager]]:
    if config.store_backend == "memory":
        return InMemoryAlertStore(), None
    assert config.mongo_uri is not None
    mongo = MongoManager(config.mongo_uri, config.mongo_db_name)
    return MongoAlertStore(mongo.alerts(), ping_fn=mongo.ping), mongo


# PUBLIC_INTERFACE
def init_state(app: FastAPI, config: BackendConfig) -> AppState:
    """Initialize app.state with config, store, metrics registry and reconciler."""
    store, mongo = _build_store(config)
    registry = CollectorRegistry()
    reporter = PrometheusOutcomeReporter(registry)
    state = AppState(
        config=config,
        store=store,
        registry=registry,
        reporter=reporter,
        reconciler=AlertReconciler(store, reporter),
        mongo=mongo,
    )
    app.state.state = state
    return state


# PUBLIC_INTERFACE
def get_state(app: FastAPI) -> AppState:
    """Fetch typed AppState from a FastAPI app."""
    return app.state.state  # type: ignore[attr-defined]
