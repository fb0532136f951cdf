"""Webhook callers - the external operation run once per component and generation."""
import asyncio
import logging
from abc import ABC, abstractmethod

import httpx

from deployhook.config import Settings, SettingsYaml, WebhookConfig
from deployhook.exceptions import WebhookCallError
from deployhook.models.status import DeploymentStatusRecord

logger = logging.getLogger(__name__)


class WebhookCaller(ABC):
    """A named webhook. `call` returns on success and raises on failure."""

    def __init__(self, name: str, wait_duration_seconds: int = 0):
        self.name = name
        self.wait_duration_seconds = wait_duration_seconds

    @abstractmethod
    async def call(self, component: str, record: DeploymentStatusRecord) -> None:
        pass


class DelayWebhookCaller(WebhookCaller):
    """Waits a fixed time and succeeds. Stands in for a slow integration during development."""

    def __init__(self, name: str, delay_seconds: float = 10.0, wait_duration_seconds: int = 0):
        super().__init__(name, wait_duration_seconds)
        self.delay_seconds = delay_seconds

    async def call(self, component: str, record: DeploymentStatusRecord) -> None:
        logger.debug("Webhook %s sleeping %.1fs for component %s", self.name, self.delay_seconds, component)
        await asyncio.sleep(self.delay_seconds)


class HttpWebhookCaller(WebhookCaller):
    """POSTs a JSON notification to an external endpoint. Any non-2xx answer is a failure."""

    def __init__(
        self,
        name: str,
        url: str,
        timeout_seconds: float = 30.0,
        token: str = "",
        wait_duration_seconds: int = 0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(name, wait_duration_seconds)
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.token = token
        self._transport = transport

    def _payload(self, component: str, record: DeploymentStatusRecord) -> dict:
        return {
            "webhook": self.name,
            "package": record.package_name,
            "component": component,
            "generation": record.generation,
        }

    async def call(self, component: str, record: DeploymentStatusRecord) -> None:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                r = await client.post(self.url, json=self._payload(component, record), headers=headers)
        except httpx.HTTPError as e:
            raise WebhookCallError(
                f"Webhook {self.name} request failed: {e}", record.package_name, component
            ) from e
        if not r.is_success:
            raise WebhookCallError(
                f"Webhook {self.name} returned HTTP {r.status_code}",
                record.package_name,
                component,
                status_code=r.status_code,
            )


def build_caller(config: WebhookConfig, env: Settings) -> WebhookCaller:
    if config.url:
        return HttpWebhookCaller(
            config.name,
            config.url,
            timeout_seconds=config.timeout_seconds,
            token=env.webhook_token,
            wait_duration_seconds=config.wait_duration_seconds,
        )
    return DelayWebhookCaller(
        config.name,
        delay_seconds=config.delay_seconds,
        wait_duration_seconds=config.wait_duration_seconds,
    )


def build_callers(settings: SettingsYaml, env: Settings) -> list[WebhookCaller]:
    """One caller per configured webhook, in configuration order."""
    return [build_caller(w, env) for w in settings.webhooks]
