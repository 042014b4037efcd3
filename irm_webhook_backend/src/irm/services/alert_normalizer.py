from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from src.irm.errors import AlertValidationError
from src.irm.schemas.alerts import RawAlertIn
from src.irm.services.alert_types import AlertEvent

logger = logging.getLogger(__name__)

RawAlert = Union[RawAlertIn, Mapping[str, Any]]
NormalizedItem = Union[AlertEvent, AlertValidationError]


def _normalize_ts(ts: Optional[datetime]) -> Optional[datetime]:
    """Map Alertmanager's zero time (0001-01-01) to None and make naive timestamps UTC."""
    if ts is None or ts.year <= 1:
        return None
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def _fingerprint_hint(raw: RawAlert) -> Optional[str]:
    value = raw.get("fingerprint") if isinstance(raw, Mapping) else None
    return value if isinstance(value, str) and value else None


# PUBLIC_INTERFACE
def normalize_event(raw: RawAlert, index: Optional[int] = None) -> AlertEvent:
    """
    Convert one raw webhook alert into an AlertEvent.

    Raises AlertValidationError when the payload does not validate or the fingerprint is empty.
    Every other field falls back to an empty/unset default.
    """
    if isinstance(raw, RawAlertIn):
        model = raw
    else:
        try:
            model = RawAlertIn.model_validate(raw)
        except ValidationError as exc:
            raise AlertValidationError(
                f"invalid alert payload: {exc.errors()[0].get('msg', 'validation failed')}",
                index=index,
                fingerprint=_fingerprint_hint(raw),
            ) from exc

    # Used verbatim as the deduplication key; only an all-blank value is rejected.
    fingerprint = model.fingerprint or ""
    if not fingerprint.strip():
        raise AlertValidationError("fingerprint must not be empty", index=index)

    return AlertEvent(
        fingerprint=fingerprint,
        status=model.status or "",
        labels=dict(model.labels or {}),
        annotations=dict(model.annotations or {}),
        starts_at=_normalize_ts(model.starts_at),
        ends_at=_normalize_ts(model.ends_at),
    )


# PUBLIC_INTERFACE
def normalize_batch(raws: Iterable[RawAlert]) -> List[NormalizedItem]:
    """Normalize every alert independently; failed slots hold their AlertValidationError."""
    items: List[NormalizedItem] = []
    for i, raw in enumerate(raws):
        try:
            items.append(normalize_event(raw, index=i))
        except AlertValidationError as exc:
            logger.warning("Rejected alert at index=%s fingerprint=%s: %s", i, exc.fingerprint, exc)
            items.append(exc)
    return items
