from __future__ import annotations

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, Field

from src.irm.schemas.common import HealthResponse, utc_now
from src.irm.state import get_state

router = APIRouter(tags=["Health"])


class StoreHealthResponse(BaseModel):
    """Response model for the store-backed health check."""

    status: str = Field(..., description="'healthy' or 'unhealthy'.")
    error: str | None = Field(default=None, description="Failure reason when unhealthy.")


@router.get(
    "/",
    response_model=HealthResponse,
    summary="Liveness check",
    description="Basic service liveness check used by deployment tooling.",
    operation_id="health_check",
)
def health_check() -> HealthResponse:
    """Return service liveness status."""
    return HealthResponse(status="ok", message="Healthy", timestamp=utc_now())


@router.get(
    "/healthz",
    response_model=StoreHealthResponse,
    responses={500: {"model": StoreHealthResponse}},
    response_model_exclude_none=True,
    summary="Readiness check",
    description="Pings the alert store; 500 when the database is unreachable.",
    operation_id="healthz",
)
def healthz(request: Request):
    """Readiness: report whether the alert store answers."""
    if not get_state(request.app).store.ping():
        return JSONResponse(status_code=500, content={"status": "unhealthy", "error": "database unreachable"})
    return StoreHealthResponse(status="healthy")


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Webhook outcome counters in Prometheus text exposition format.",
    operation_id="metrics",
)
def metrics(request: Request) -> Response:
    """Expose this app's metrics registry."""
    return Response(content=generate_latest(get_state(request.app).registry), media_type=CONTENT_TYPE_LATEST)
