"""Wait for component webhooks - used by deployers that must not move on while a webhook is Running."""
import asyncio
import logging
import time
from typing import Awaitable, Callable

from deployhook.exceptions import WebhookWaitTimeout
from deployhook.models.status import DeploymentStatusRecord

logger = logging.getLogger(__name__)

DEFAULT_WAIT_SECONDS = 300
POLL_INTERVAL_SECONDS = 3.0


async def wait_for_webhooks(
    fetch: Callable[[], Awaitable[DeploymentStatusRecord]],
    default_wait_seconds: int = DEFAULT_WAIT_SECONDS,
    poll_interval: float = POLL_INTERVAL_SECONDS,
) -> DeploymentStatusRecord:
    """Poll `fetch` until no webhook is Running and return the settled record.

    The deadline is the running webhook's waitDurationSeconds when it sets one,
    otherwise `default_wait_seconds`.
    """
    record = await fetch()
    needs_wait, wait_seconds = record.needs_wait()
    if not needs_wait:
        return record

    budget = wait_seconds if wait_seconds > 0 else default_wait_seconds
    deadline = time.monotonic() + budget
    logger.info("Waiting up to %ds for component webhooks to complete", budget)
    while needs_wait:
        for component, run in record.running_webhooks():
            logger.debug("Waiting for webhook '%s' to complete for component '%s'", run.name, component)
        if time.monotonic() >= deadline:
            raise WebhookWaitTimeout(
                "Timed out waiting for package deployment to complete", package=record.package_name
            )
        await asyncio.sleep(poll_interval)
        record = await fetch()
        needs_wait, _ = record.needs_wait()
    return record
