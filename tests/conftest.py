import pytest

from deployhook.integrations.webhooks import WebhookCaller
from deployhook.models.status import DeploymentStatusRecord, WebhookState


class FakeCaller(WebhookCaller):
    """Records every call and what the record looked like while the call was in flight."""

    def __init__(self, name: str = "test-webhook", fail_for: set[str] | None = None, wait_duration_seconds: int = 0):
        super().__init__(name, wait_duration_seconds)
        self.fail_for = fail_for or set()
        self.calls: list[str] = []
        self.seen_status: dict[str, WebhookState] = {}

    async def call(self, component: str, record: DeploymentStatusRecord) -> None:
        self.calls.append(component)
        run = record.get_webhook_run(component, self.name)
        self.seen_status[component] = run.status if run else None
        if component in self.fail_for:
            raise RuntimeError(f"{component} exploded")


def make_record(generation: int = 3, components=None, webhooks=None, **extra) -> dict:
    return {
        "name": "dos-games",
        "cliVersion": "v0.30.0",
        "generation": generation,
        "deployedComponents": components if components is not None else [
            {"name": "frontend", "status": "Deploying", "installedCharts": []},
        ],
        "componentWebhooks": webhooks if webhooks is not None else {},
        **extra,
    }


@pytest.fixture
def record_dict() -> dict:
    return make_record()


@pytest.fixture
def caller() -> FakeCaller:
    return FakeCaller()
