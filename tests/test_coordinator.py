import asyncio

from deployhook.coordinator import WebhookCoordinator, changed_runs
from deployhook.models.status import DeploymentStatusRecord, WebhookRun, WebhookState
from tests.conftest import FakeCaller, make_record


def _record(**kwargs) -> DeploymentStatusRecord:
    return DeploymentStatusRecord.model_validate(make_record(**kwargs))


def test_deploying_component_runs_webhook_once(caller):
    record = _record(generation=3)

    result = asyncio.run(WebhookCoordinator([caller]).process(record))

    run = result.get_webhook_run("frontend", "test-webhook")
    assert run.status == WebhookState.SUCCEEDED
    assert run.observed_generation == 3
    assert caller.calls == ["frontend"]


def test_failed_call_is_recorded_and_not_retried():
    caller = FakeCaller(fail_for={"frontend"})
    coordinator = WebhookCoordinator([caller])

    first = asyncio.run(coordinator.process(_record(generation=3)))
    second = asyncio.run(coordinator.process(first))

    assert first.get_webhook_run("frontend", "test-webhook").status == WebhookState.FAILED
    assert second.get_webhook_run("frontend", "test-webhook") == first.get_webhook_run("frontend", "test-webhook")
    assert caller.calls == ["frontend"]


def test_retry_failed_reruns_failed_webhook_at_same_generation():
    caller = FakeCaller(fail_for={"frontend"})
    first = asyncio.run(WebhookCoordinator([caller]).process(_record(generation=3)))

    caller.fail_for.clear()
    second = asyncio.run(WebhookCoordinator([caller], retry_failed=True).process(first))

    assert second.get_webhook_run("frontend", "test-webhook").status == WebhookState.SUCCEEDED
    assert caller.calls == ["frontend", "frontend"]


def test_already_handled_generation_is_a_no_op(caller):
    record = _record(
        generation=4,
        webhooks={"frontend": {"test-webhook": {"name": "test-webhook", "status": "Succeeded", "observedGeneration": 4}}},
    )

    result = asyncio.run(WebhookCoordinator([caller]).process(record))

    assert result == record
    assert caller.calls == []


def test_running_claim_at_current_generation_blocks_second_call(caller):
    record = _record(
        generation=4,
        webhooks={"frontend": {"test-webhook": {"name": "test-webhook", "status": "Running", "observedGeneration": 4}}},
    )

    result = asyncio.run(WebhookCoordinator([caller]).process(record))

    assert result.get_webhook_run("frontend", "test-webhook").status == WebhookState.RUNNING
    assert caller.calls == []


def test_new_generation_triggers_again(caller):
    record = _record(
        generation=5,
        webhooks={"frontend": {"test-webhook": {"name": "test-webhook", "status": "Succeeded", "observedGeneration": 4}}},
    )

    result = asyncio.run(WebhookCoordinator([caller]).process(record))

    assert result.get_webhook_run("frontend", "test-webhook").observed_generation == 5
    assert caller.calls == ["frontend"]


def test_claim_is_written_before_the_call(caller):
    asyncio.run(WebhookCoordinator([caller]).process(_record()))

    assert caller.seen_status == {"frontend": WebhookState.RUNNING}


def test_components_not_deploying_are_untouched(caller):
    record = _record(
        components=[
            {"name": "baseline", "status": "Succeeded"},
            {"name": "frontend", "status": "Deploying"},
            {"name": "db", "status": "Failed"},
            {"name": "legacy", "status": "Removing"},
        ]
    )

    result = asyncio.run(WebhookCoordinator([caller]).process(record))

    assert caller.calls == ["frontend"]
    assert set(result.component_webhooks) == {"frontend"}
    assert result.deployed_components == record.deployed_components


def test_input_record_is_not_mutated(caller):
    record = _record()
    snapshot = record.model_copy(deep=True)

    asyncio.run(WebhookCoordinator([caller]).process(record))

    assert record == snapshot


def test_failure_in_one_component_does_not_stop_the_next():
    caller = FakeCaller(fail_for={"api"})
    record = _record(
        components=[{"name": "api", "status": "Deploying"}, {"name": "web", "status": "Deploying"}]
    )

    result = asyncio.run(WebhookCoordinator([caller]).process(record))

    assert caller.calls == ["api", "web"]
    assert result.get_webhook_run("api", "test-webhook").status == WebhookState.FAILED
    assert result.get_webhook_run("web", "test-webhook").status == WebhookState.SUCCEEDED


def test_multiple_webhooks_keep_each_others_entries():
    notify = FakeCaller("notify")
    scan = FakeCaller("scan", wait_duration_seconds=60)

    result = asyncio.run(WebhookCoordinator([notify, scan]).process(_record()))

    hooks = result.component_webhooks["frontend"]
    assert set(hooks) == {"notify", "scan"}
    assert hooks["scan"].wait_duration_seconds == 60
    assert all(run.status == WebhookState.SUCCEEDED for run in hooks.values())


def test_changed_runs_reports_only_new_entries(caller):
    before = _record(
        components=[{"name": "api", "status": "Deploying"}, {"name": "web", "status": "Deploying"}],
        webhooks={"api": {"test-webhook": {"name": "test-webhook", "status": "Succeeded", "observedGeneration": 3}}},
    )

    after = asyncio.run(WebhookCoordinator([caller]).process(before))

    changes = changed_runs(before, after)
    assert [(c, r.name) for c, r in changes] == [("web", "test-webhook")]
    assert isinstance(changes[0][1], WebhookRun)


def test_run_pending_reports_failure_messages():
    caller = FakeCaller(fail_for={"api"})
    record = _record(
        components=[{"name": "api", "status": "Deploying"}, {"name": "web", "status": "Deploying"}]
    )

    result, errors = asyncio.run(WebhookCoordinator([caller]).run_pending(record))

    assert errors == {("api", "test-webhook"): "api exploded"}
    assert result.get_webhook_run("web", "test-webhook").status == WebhookState.SUCCEEDED
