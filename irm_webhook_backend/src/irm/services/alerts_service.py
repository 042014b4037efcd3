from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Request, status

from src.irm.schemas.alerts import (
    AlertmanagerWebhookIn,
    AlertRecordOut,
    EventOutcomeOut,
    WebhookResponse,
)
from src.irm.services.alert_types import AlertRecord, BatchResult
from src.irm.state import get_state

logger = logging.getLogger(__name__)


def _json_obj(text: str) -> Dict[str, Any]:
    try:
        value = json.loads(text or "{}")
    except ValueError:
        logger.warning("Stored labels/annotations are not valid JSON: %r", text)
        return {}
    return value if isinstance(value, dict) else {}


def _record_to_out(rec: AlertRecord) -> AlertRecordOut:
    return AlertRecordOut(
        id=rec.id or "",
        fingerprint=rec.fingerprint,
        status=rec.status,
        labels=_json_obj(rec.labels),
        annotations=_json_obj(rec.annotations),
        startsAt=rec.starts_at,
        endsAt=rec.ends_at,
        createdAt=rec.created_at,
    )


def _http_status_for(result: BatchResult) -> int:
    # Infrastructure failures dominate: the sender should retry the whole notification.
    if result.has_persistence_errors:
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    if result.has_validation_errors:
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_200_OK


def _batch_to_response(result: BatchResult, http_status: int) -> WebhookResponse:
    summary = {
        status.HTTP_200_OK: "alerts processed",
        status.HTTP_400_BAD_REQUEST: "invalid alerts in batch",
    }.get(http_status, "failed to persist alerts")
    return WebhookResponse(
        status=summary,
        received=result.received,
        counts=result.counts,
        results=[
            EventOutcomeOut(
                index=o.index,
                fingerprint=o.fingerprint,
                outcome=o.outcome,
                errorKind=o.error_kind,
                error=str(o.error) if o.error is not None else None,
            )
            for o in result.outcomes
        ],
    )


# PUBLIC_INTERFACE
def process_webhook(request: Request, payload: AlertmanagerWebhookIn) -> Tuple[int, WebhookResponse]:
    """Reconcile an Alertmanager notification; returns (http_status, response body)."""
    state = get_state(request.app)
    if payload.truncated_alerts:
        logger.warning(
            "Alertmanager truncated %s alerts for receiver=%s groupKey=%s",
            payload.truncated_alerts,
            payload.receiver,
            payload.group_key,
        )
    result = state.reconciler.ingest(payload.alerts)
    http_status = _http_status_for(result)
    return http_status, _batch_to_response(result, http_status)


# PUBLIC_INTERFACE
def list_alerts(
    request: Request, status_filter: Optional[str] = None, limit: int = 100, offset: int = 0
) -> Tuple[List[AlertRecordOut], int]:
    """
    List stored alerts, newest first.

    Returns (items, total_matching).
    """
    state = get_state(request.app)
    limit = max(1, min(int(limit), state.config.alerts_list_max))
    records, total = state.store.list_alerts(status=status_filter, limit=limit, offset=max(0, int(offset)))
    return [_record_to_out(r) for r in records], total


# PUBLIC_INTERFACE
def get_alert(request: Request, fingerprint: str) -> Optional[AlertRecordOut]:
    """Fetch a stored alert by fingerprint; returns None if not found."""
    rec = get_state(request.app).store.find_by_fingerprint(fingerprint)
    return _record_to_out(rec) if rec else None
