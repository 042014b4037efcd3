from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from src.irm.services.alert_types import Outcome


class RawAlertIn(BaseModel):
    """One alert as posted by Alertmanager (fields validated per alert, not per request)."""

    status: str = Field("", description="Alert status, e.g. 'firing' or 'resolved'.")
    labels: Optional[Dict[str, str]] = Field(default=None, description="Alert label set.")
    annotations: Optional[Dict[str, str]] = Field(default=None, description="Alert annotation set.")
    starts_at: Optional[datetime] = Field(default=None, description="When the alert started firing.", alias="startsAt")
    ends_at: Optional[datetime] = Field(
        default=None,
        description="When the alert ended; Alertmanager sends the zero time while still open.",
        alias="endsAt",
    )
    generator_url: Optional[str] = Field(default=None, description="Link to the alert source.", alias="generatorURL")
    fingerprint: Optional[str] = Field(default=None, description="Stable deduplication key of the alert.")


class AlertmanagerWebhookIn(BaseModel):
    """Alertmanager webhook envelope (version 4)."""

    version: Optional[str] = Field(default=None, description="Webhook payload version.")
    group_key: Optional[str] = Field(default=None, description="Alertmanager group key.", alias="groupKey")
    truncated_alerts: int = Field(0, ge=0, description="Number of alerts dropped by max_alerts.", alias="truncatedAlerts")
    status: Optional[str] = Field(default=None, description="Group status (firing|resolved).")
    receiver: Optional[str] = Field(default=None, description="Receiver name.")
    group_labels: Dict[str, str] = Field(default_factory=dict, alias="groupLabels")
    common_labels: Dict[str, str] = Field(default_factory=dict, alias="commonLabels")
    common_annotations: Dict[str, str] = Field(default_factory=dict, alias="commonAnnotations")
    external_url: Optional[str] = Field(default=None, alias="externalURL")

    # Kept untyped so a single malformed alert is reported per event instead of rejecting the request.
    alerts: List[Any] = Field(..., description="Alerts contained in this notification.")


class EventOutcomeOut(BaseModel):
    """Per-event result of a webhook batch."""

    index: int = Field(..., ge=0, description="Position of the alert in the posted batch.")
    fingerprint: Optional[str] = Field(default=None, description="Alert fingerprint (when present).")
    outcome: Outcome = Field(..., description="new | updated | duplicate | error")
    error_kind: Optional[str] = Field(
        default=None,
        description="validation | persistence | duplicate_key | serialization (errors only).",
        alias="errorKind",
    )
    error: Optional[str] = Field(default=None, description="Human-readable error detail (errors only).")


class WebhookResponse(BaseModel):
    """Response envelope for the Alertmanager webhook endpoint."""

    status: str = Field(..., description="Summary status string.")
    received: int = Field(..., ge=0, description="Number of alerts in the batch.")
    counts: Dict[str, int] = Field(..., description="Outcome totals keyed by outcome.")
    results: List[EventOutcomeOut] = Field(..., description="Ordered per-alert outcomes.")


class AlertRecordOut(BaseModel):
    """Stored alert state."""

    id: str = Field(..., description="Store-assigned record id.")
    fingerprint: str = Field(..., description="Alert fingerprint (unique).")
    status: str = Field(..., description="Current alert status.")
    labels: Dict[str, Any] = Field(default_factory=dict, description="Labels captured at first sight.")
    annotations: Dict[str, Any] = Field(default_factory=dict, description="Annotations captured at first sight.")
    starts_at: Optional[datetime] = Field(default=None, alias="startsAt")
    ends_at: Optional[datetime] = Field(default=None, alias="endsAt")
    created_at: datetime = Field(..., description="UTC timestamp of first insertion.", alias="createdAt")


class AlertListResponse(BaseModel):
    """Envelope for listing stored alerts."""

    items: List[AlertRecordOut] = Field(..., description="Stored alerts, newest first.")
    total: int = Field(..., ge=0, description="Total count of alerts matching the filters.")
