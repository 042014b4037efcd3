from __future__ import annotations

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.irm.config import BackendConfig, load_config
from src.irm.routers import alerts, health
from src.irm.schemas.common import ErrorResponse
from src.irm.state import get_state, init_state

openapi_tags = [
    {"name": "Health", "description": "Service liveness, store readiness and Prometheus metrics."},
    {"name": "Alerts", "description": "Alertmanager webhook ingestion and stored alert state."},
]

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
def create_app(config: Optional[BackendConfig] = None) -> FastAPI:
    """Build the FastAPI app with its store, reporter and reconciler wired into app.state."""
    app = FastAPI(
        title="IRM Alertmanager Webhook API",
        description=(
            "Receives Alertmanager webhook notifications, reconciles every alert by fingerprint "
            "against stored state (new / updated / duplicate) and exposes the stored alerts."
        ),
        version="0.1.0",
        openapi_tags=openapi_tags,
    )
    init_state(app, config or load_config())

    @app.on_event("startup")
    async def _on_startup() -> None:
        """Startup hook: connect to Mongo, validate connectivity and ensure indexes."""
        state = get_state(app)
        if state.mongo is None:
            logger.info("Alert store backend=%s; no database to connect", state.config.store_backend)
            return

        # Connect + verify early so a misconfigured Mongo doesn't surface as per-alert persistence errors.
        state.mongo.connect()
        if not state.mongo.ping():
            raise RuntimeError("Mongo connectivity check failed during startup. Verify IRM_MONGO_URI.")
        state.mongo.init_indexes()

    @app.exception_handler(RequestValidationError)
    async def _on_request_validation_error(request: Request, exc: RequestValidationError):
        """Unparseable webhook bodies are client errors (400); other routes keep the default 422."""
        if request.url.path != alerts.WEBHOOK_PATH:
            return await request_validation_exception_handler(request, exc)
        logger.warning("Rejected Alertmanager webhook body: %s", exc.errors())
        body = ErrorResponse(
            detail="invalid webhook payload",
            code="invalid_payload",
            errors=jsonable_encoder(exc.errors()),
        )
        return JSONResponse(status_code=400, content=body.model_dump())

    @app.on_event("shutdown")
    async def _on_shutdown() -> None:
        """Shutdown hook: close Mongo connections."""
        state = get_state(app)
        if state.mongo is not None:
            state.mongo.close()

    app.include_router(health.router)
    app.include_router(alerts.router)
    return app


app = create_app()


if __name__ == "__main__":
    cfg = get_state(app).config
    uvicorn.run(app, host=cfg.host, port=cfg.port)
