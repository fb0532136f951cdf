"""Deployment status record - the JSON document stored in a package's deploy-info secret.

Only the fields the webhook coordinator reads are modelled. Everything else in
the document (package definition, CLI version, connect strings, installed
charts) is kept as extra data so it survives a decode/encode cycle untouched.
"""
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ComponentState(str, Enum):
    DEPLOYING = "Deploying"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    REMOVING = "Removing"


class WebhookState(str, Enum):
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


class _RecordModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class WebhookRun(_RecordModel):
    """One execution of a named webhook for a component at a generation."""

    name: str
    status: WebhookState
    observed_generation: int = Field(default=0, alias="observedGeneration")
    wait_duration_seconds: int = Field(default=0, alias="waitDurationSeconds")


class ComponentStatus(_RecordModel):
    name: str
    # Kept as a plain string so statuses this service does not know about pass through.
    status: str = ""

    @property
    def is_deploying(self) -> bool:
        return self.status == ComponentState.DEPLOYING.value


class DeploymentStatusRecord(_RecordModel):
    generation: int = 0
    deployed_components: list[ComponentStatus] = Field(default_factory=list, alias="deployedComponents")
    component_webhooks: dict[str, dict[str, WebhookRun]] = Field(
        default_factory=dict, alias="componentWebhooks"
    )

    @field_validator("deployed_components", "component_webhooks", mode="before")
    @classmethod
    def _null_is_empty(cls, value: Any, info) -> Any:
        # Go encodes nil slices and maps as null.
        if value is None:
            return [] if info.field_name == "deployed_components" else {}
        return value

    @field_validator("generation", mode="before")
    @classmethod
    def _null_generation(cls, value: Any) -> Any:
        return 0 if value is None else value

    @property
    def package_name(self) -> str:
        extra = self.model_extra or {}
        return str(extra.get("name", ""))

    def get_webhook_run(self, component: str, webhook: str) -> WebhookRun | None:
        return self.component_webhooks.get(component, {}).get(webhook)

    def set_webhook_run(self, component: str, run: WebhookRun) -> None:
        """Record a run, keeping any other webhooks already tracked for the component."""
        self.component_webhooks.setdefault(component, {})[run.name] = run

    def running_webhooks(self) -> list[tuple[str, WebhookRun]]:
        return [
            (component, run)
            for component, hooks in self.component_webhooks.items()
            for run in hooks.values()
            if run.status == WebhookState.RUNNING
        ]

    def needs_wait(self) -> tuple[bool, int]:
        """Whether a deployer should keep waiting, and the wait budget of the first running webhook."""
        running = self.running_webhooks()
        if not running:
            return False, 0
        _, run = running[0]
        return True, run.wait_duration_seconds

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
