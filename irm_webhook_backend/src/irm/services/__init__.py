"""Business-logic layer for alert ingestion.

- alert_normalizer.py (raw webhook alert -> AlertEvent)
- alert_reconciler.py (new / updated / duplicate decision per fingerprint)
- alert_store.py (Mongo and in-memory stores)
- outcome_reporter.py (Prometheus counters)
- alerts_service.py (request-level glue for the routers)
"""

# Import side-effects are intentionally avoided here; modules are imported by routers/services as needed.
