from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Path, Query, Request
from fastapi.responses import JSONResponse

from src.irm.errors import PersistenceError
from src.irm.schemas.alerts import AlertListResponse, AlertmanagerWebhookIn, AlertRecordOut, WebhookResponse
from src.irm.schemas.common import ErrorResponse
from src.irm.services import alerts_service

router = APIRouter(prefix="/api/v1", tags=["Alerts"])

WEBHOOK_PATH = "/api/v1/webhooks/alertmanager"


@router.post(
    "/webhooks/alertmanager",
    response_model=WebhookResponse,
    responses={400: {"model": WebhookResponse}, 500: {"model": WebhookResponse}},
    summary="Receive Alertmanager webhook",
    description=(
        "Reconcile each alert of an Alertmanager notification by fingerprint (new, updated, duplicate or error). "
        "200 when every alert was handled, 400 when some alerts were invalid, 500 when some could not be persisted. "
        "The body carries per-alert outcomes; an unparseable body is rejected with 400 and an ErrorResponse."
    ),
    operation_id="receive_alertmanager_webhook",
)
def receive_alertmanager_webhook(request: Request, payload: AlertmanagerWebhookIn) -> JSONResponse:
    """Ingest an Alertmanager webhook batch."""
    http_status, body = alerts_service.process_webhook(request, payload)
    return JSONResponse(status_code=http_status, content=body.model_dump(mode="json", by_alias=True))


@router.get(
    "/alerts",
    response_model=AlertListResponse,
    responses={500: {"model": ErrorResponse}},
    summary="List stored alerts",
    description="List reconciled alerts, newest first. Optionally filter by status.",
    operation_id="list_alerts",
)
def list_alerts(
    request: Request,
    status_filter: Optional[str] = Query(default=None, alias="status", description="e.g. firing|resolved"),
    limit: int = Query(100, ge=1, le=5000),
    offset: int = Query(0, ge=0, le=1000000),
) -> AlertListResponse:
    """List stored alerts with pagination."""
    try:
        items, total = alerts_service.list_alerts(request, status_filter=status_filter, limit=limit, offset=offset)
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return AlertListResponse(items=items, total=total)


@router.get(
    "/alerts/{fingerprint}",
    response_model=AlertRecordOut,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Get stored alert",
    description="Fetch the current state of a single alert by fingerprint.",
    operation_id="get_alert",
)
def get_alert(
    request: Request,
    fingerprint: str = Path(..., description="Alert fingerprint."),
) -> AlertRecordOut:
    """Get an alert by fingerprint."""
    try:
        alert = alerts_service.get_alert(request, fingerprint)
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    if not alert:
        raise HTTPException(status_code=404, detail="alert not found")
    return alert
