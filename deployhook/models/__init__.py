from .status import (
    ComponentState,
    ComponentStatus,
    DeploymentStatusRecord,
    WebhookRun,
    WebhookState,
)

__all__ = [
    "ComponentState",
    "ComponentStatus",
    "DeploymentStatusRecord",
    "WebhookRun",
    "WebhookState",
]
