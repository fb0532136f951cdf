"""Admission handler - mutates package deploy-info secrets as they are created or updated."""
import base64
import json
import logging
import sqlite3
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from deployhook.audit_log import AuditLog
from deployhook.codec import decode, encode
from deployhook.config import WatchConfig
from deployhook.coordinator import WebhookCoordinator, changed_runs
from deployhook.exceptions import RecordDecodeError

logger = logging.getLogger(__name__)

# Key inside the secret's data map that holds the status record.
RECORD_DATA_KEY = "data"


class GroupVersionKind(BaseModel):
    group: str = ""
    version: str = ""
    kind: str = ""


class AdmissionRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")
    uid: str
    kind: GroupVersionKind = GroupVersionKind()
    operation: str = ""
    namespace: str = ""
    name: str = ""
    object: dict[str, Any] | None = None


class AdmissionResponse(BaseModel):
    uid: str
    allowed: bool = True
    patch: str | None = None
    patch_type: str | None = Field(default=None, serialization_alias="patchType")
    status: dict[str, Any] | None = None


def _labels(obj: dict[str, Any]) -> dict[str, str]:
    return (obj.get("metadata") or {}).get("labels") or {}


class AdmissionHandler:
    """Filters admission requests down to watched status secrets and runs the coordinator on them."""

    def __init__(self, coordinator: WebhookCoordinator, watch: WatchConfig, audit_log: AuditLog | None = None):
        self.coordinator = coordinator
        self.watch = watch
        self.audit_log = audit_log

    def matches(self, request: AdmissionRequest) -> bool:
        if request.kind.kind != "Secret" or request.object is None:
            return False
        if request.operation not in self.watch.operations:
            return False
        namespace = request.namespace or (request.object.get("metadata") or {}).get("namespace", "")
        if namespace != self.watch.namespace:
            return False
        return self.watch.label in _labels(request.object)

    async def _process(self, payload: bytes) -> tuple[bytes, bool]:
        decoded = decode(payload)
        updated, errors = await self.coordinator.run_pending(decoded.record)
        self._audit(decoded.record, updated, errors)
        return encode(updated, decoded.was_binary_encoded), updated != decoded.record

    async def mutate_payload(self, payload: bytes) -> bytes:
        """Decode, run pending webhooks, re-encode. Raises RecordDecodeError on a bad payload."""
        mutated, _ = await self._process(payload)
        return mutated

    def _audit(self, before, after, errors: dict[tuple[str, str], str]) -> None:
        if self.audit_log is None:
            return
        # The webhooks already ran; audit failures never abort the event.
        try:
            for component, run in changed_runs(before, after):
                self.audit_log.log(
                    after.package_name,
                    component,
                    run.name,
                    run.observed_generation,
                    run.status.value,
                    error=errors.get((component, run.name)),
                )
        except sqlite3.Error:
            logger.exception("Failed to write webhook runs for %s to the audit log", after.package_name)

    async def mutate(self, request: AdmissionRequest) -> AdmissionResponse:
        if not self.matches(request):
            return AdmissionResponse(uid=request.uid)

        data = request.object.get("data") or {}
        raw = data.get(RECORD_DATA_KEY)
        if raw is None:
            logger.debug("Secret %s has no %s key, nothing to mutate", request.name, RECORD_DATA_KEY)
            return AdmissionResponse(uid=request.uid)
        if not isinstance(raw, str):
            raise RecordDecodeError(
                f"Secret data key {RECORD_DATA_KEY!r} must be a string, got {type(raw).__name__}"
            )

        payload = raw.encode("utf-8")
        mutated, changed = await self._process(payload)
        if not changed:
            return AdmissionResponse(uid=request.uid)

        patch = [{"op": "replace", "path": f"/data/{RECORD_DATA_KEY}", "value": mutated.decode("utf-8")}]
        return AdmissionResponse(
            uid=request.uid,
            patch=base64.b64encode(json.dumps(patch).encode("utf-8")).decode("ascii"),
            patch_type="JSONPatch",
        )
