"""FastAPI server - admission endpoint, health, webhook run history."""
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import Body, FastAPI, HTTPException, Request
from passlib.context import CryptContext

from deployhook.config import SettingsYaml, load_config
from deployhook.exceptions import RecordDecodeError
from deployhook.handler import AdmissionRequest, AdmissionResponse
from deployhook.integrations.service import get_handler
from deployhook.integrations.webhooks import WebhookCaller
from deployhook.scheduler.retention import RetentionScheduler

logger = logging.getLogger(__name__)

ROOT = Path(__file__).parent.parent.parent

pwd_ctx = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def _review(response: AdmissionResponse) -> dict[str, Any]:
    return {
        "apiVersion": "admission.k8s.io/v1",
        "kind": "AdmissionReview",
        "response": response.model_dump(by_alias=True, exclude_none=True),
    }


def create_app(
    project_root: Path = ROOT,
    settings: SettingsYaml | None = None,
    callers: list[WebhookCaller] | None = None,
) -> FastAPI:
    settings = settings or load_config(project_root)
    handler = get_handler(project_root, settings, callers)
    audit_log = handler.audit_log
    retention = None
    if audit_log is not None:
        retention = RetentionScheduler(
            audit_log,
            retention_days=settings.audit.retention_days,
            interval_minutes=settings.audit.prune_interval_minutes,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if retention is not None:
            retention.start()
        yield
        if retention is not None:
            retention.stop()

    app = FastAPI(title="deployhook", lifespan=lifespan)
    app.state.handler = handler
    app.state.settings = settings

    def require_token(request: Request) -> None:
        token_hash = settings.api.token_hash
        if not token_hash:
            return
        auth = request.headers.get("Authorization", "")
        scheme, _, token = auth.partition(" ")
        if scheme.lower() != "bearer" or not token or not pwd_ctx.verify(token, token_hash):
            raise HTTPException(status_code=401, detail="Unauthorized")

    @app.post("/mutate")
    async def mutate(review: dict[str, Any] = Body(...)):
        try:
            request = AdmissionRequest.model_validate(review.get("request") or {})
        except ValueError as e:
            raise HTTPException(status_code=400, detail=f"Malformed AdmissionReview: {e}")
        try:
            response = await handler.mutate(request)
        except RecordDecodeError as e:
            logger.warning("Rejecting %s/%s: %s", request.namespace, request.name, e)
            response = AdmissionResponse(
                uid=request.uid,
                allowed=False,
                status={"code": 400, "message": str(e)},
            )
        return _review(response)

    @app.get("/healthz")
    async def healthz():
        return {
            "status": "ok",
            "namespace": settings.watch.namespace,
            "webhooks": [c.name for c in handler.coordinator.callers],
        }

    @app.get("/api/runs")
    async def api_runs(request: Request, limit: int = 100, component: str | None = None):
        require_token(request)
        if audit_log is None:
            return {"runs": []}
        return {"runs": audit_log.get_recent(limit=limit, component=component)}

    return app
