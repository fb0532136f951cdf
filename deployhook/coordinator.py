"""Webhook coordinator - runs each webhook at most once per component and deployment generation."""
import logging

from deployhook.integrations.webhooks import WebhookCaller
from deployhook.models.status import (
    ComponentStatus,
    DeploymentStatusRecord,
    WebhookRun,
    WebhookState,
)

logger = logging.getLogger(__name__)


class WebhookCoordinator:
    """Decides, per deploying component, whether a webhook still has to run for the current generation.

    `process` never mutates its argument. It works on a deep copy and returns it.
    Components and webhooks are handled one at a time: the Running claim for a
    component must be in the record before its call starts.
    """

    def __init__(self, callers: list[WebhookCaller], retry_failed: bool = False):
        self.callers = callers
        self.retry_failed = retry_failed

    def _already_handled(self, record: DeploymentStatusRecord, component: str, webhook: str) -> bool:
        run = record.get_webhook_run(component, webhook)
        if run is None or run.observed_generation != record.generation:
            return False
        if self.retry_failed and run.status == WebhookState.FAILED:
            return False
        return True

    async def _run_webhook(
        self, record: DeploymentStatusRecord, component: ComponentStatus, caller: WebhookCaller
    ) -> str | None:
        """Claim, call and settle one run. Returns the failure message, if any."""
        run = WebhookRun(
            name=caller.name,
            status=WebhookState.RUNNING,
            observed_generation=record.generation,
            wait_duration_seconds=caller.wait_duration_seconds,
        )
        # Claim first so an overlapping invocation sees Running instead of starting a second call.
        record.set_webhook_run(component.name, run)
        logger.info(
            "Running webhook %s for component %s (generation %d)", caller.name, component.name, record.generation
        )
        try:
            await caller.call(component.name, record)
        except Exception as e:
            run.status = WebhookState.FAILED
            logger.error("Webhook %s failed for component %s: %s", caller.name, component.name, e)
            return str(e) or type(e).__name__
        run.status = WebhookState.SUCCEEDED
        logger.info("Webhook %s succeeded for component %s", caller.name, component.name)
        return None

    async def run_pending(
        self, record: DeploymentStatusRecord
    ) -> tuple[DeploymentStatusRecord, dict[tuple[str, str], str]]:
        """Like `process`, but also returns failure messages keyed by (component, webhook)."""
        updated = record.model_copy(deep=True)
        errors: dict[tuple[str, str], str] = {}
        for component in updated.deployed_components:
            if not component.is_deploying:
                continue
            logger.info("The component %s is currently deploying", component.name)
            for caller in self.callers:
                if self._already_handled(updated, component.name, caller.name):
                    logger.debug(
                        "The component %s already ran webhook %s for generation %d, not running it again",
                        component.name,
                        caller.name,
                        updated.generation,
                    )
                    continue
                error = await self._run_webhook(updated, component, caller)
                if error is not None:
                    errors[(component.name, caller.name)] = error
        return updated, errors

    async def process(self, record: DeploymentStatusRecord) -> DeploymentStatusRecord:
        updated, _ = await self.run_pending(record)
        return updated


def changed_runs(
    before: DeploymentStatusRecord, after: DeploymentStatusRecord
) -> list[tuple[str, WebhookRun]]:
    """Runs in `after` that are new or differ from `before`, as (component, run) pairs."""
    changes = []
    for component, hooks in after.component_webhooks.items():
        for name, run in hooks.items():
            if before.get_webhook_run(component, name) != run:
                changes.append((component, run))
    return changes
