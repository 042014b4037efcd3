from __future__ import annotations

from typing import Protocol

from prometheus_client import CollectorRegistry, Counter


class OutcomeReporter(Protocol):
    """Counter sink the reconciler reports classifications into."""

    def increment_received(self, n: int) -> None: ...

    def increment_new(self) -> None: ...

    def increment_duplicate(self) -> None: ...

    def increment_updated(self) -> None: ...

    def increment_error(self) -> None: ...


class PrometheusOutcomeReporter:
    """
    OutcomeReporter backed by prometheus_client counters.

    Counters are registered in the given registry (one per app instance) so that
    several apps/tests in a process never collide on the default global registry.
    """

    def __init__(self, registry: CollectorRegistry):
        self.registry = registry
        self.received_total = Counter(
            "irm_webhooks_alertmanager_total",
            "Total number of received webhooks",
            registry=registry,
        )
        self.new_total = Counter(
            "irm_webhooks_alertmanager_new_total",
            "Total number of new unique webhook inserted into the database",
            registry=registry,
        )
        self.duplicate_total = Counter(
            "irm_webhooks_alertmanager_duplicate_total",
            "Total number of duplicate webhooks (already exists in DB)",
            registry=registry,
        )
        self.updated_total = Counter(
            "irm_webhooks_alertmanager_updated_total",
            "Total number of webhooks that were updated",
            registry=registry,
        )
        self.error_total = Counter(
            "irm_webhooks_alertmanager_error_total",
            "Total number of webhook alerts that failed validation or persistence",
            registry=registry,
        )

    def increment_received(self, n: int) -> None:
        if n > 0:
            self.received_total.inc(n)

    def increment_new(self) -> None:
        self.new_total.inc()

    def increment_duplicate(self) -> None:
        self.duplicate_total.inc()

    def increment_updated(self) -> None:
        self.updated_total.inc()

    def increment_error(self) -> None:
        self.error_total.inc()
