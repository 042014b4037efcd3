from __future__ import annotations

from datetime import datetime, timedelta, timezone

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
T1 = T0 + timedelta(minutes=15)


class RecordingReporter:
    """OutcomeReporter that just tallies calls."""

    def __init__(self):
        self.received = 0
        self.new = 0
        self.duplicate = 0
        self.updated = 0
        self.error = 0

    def increment_received(self, n: int) -> None:
        self.received += n

    def increment_new(self) -> None:
        self.new += 1

    def increment_duplicate(self) -> None:
        self.duplicate += 1

    def increment_updated(self) -> None:
        self.updated += 1

    def increment_error(self) -> None:
        self.error += 1


class FixedClock:
    """Deterministic clock; each call returns the next minute."""

    def __init__(self, start: datetime = T0):
        self._next = start

    def __call__(self) -> datetime:
        now = self._next
        self._next = now + timedelta(minutes=1)
        return now


def alert_payload(fingerprint: str = "a1", status: str = "firing", **overrides) -> dict:
    """Alertmanager-shaped alert dict."""
    payload = {
        "status": status,
        "labels": {"alertname": "HighCPU", "instance": "node-1"},
        "annotations": {"summary": "CPU above 90%"},
        "startsAt": T0.isoformat(),
        "endsAt": "0001-01-01T00:00:00Z",
        "generatorURL": "http://prometheus.local/graph",
        "fingerprint": fingerprint,
    }
    payload.update(overrides)
    return payload


def webhook_payload(*alerts: dict) -> dict:
    return {
        "version": "4",
        "groupKey": '{}:{alertname="HighCPU"}',
        "truncatedAlerts": 0,
        "status": "firing",
        "receiver": "irm",
        "groupLabels": {"alertname": "HighCPU"},
        "commonLabels": {"alertname": "HighCPU"},
        "commonAnnotations": {},
        "externalURL": "http://alertmanager.local",
        "alerts": list(alerts),
    }
