"""Service wiring - shared backend for the admission server and the CLI."""
from pathlib import Path

from deployhook.audit_log import AuditLog
from deployhook.config import SettingsYaml, get_env, load_config
from deployhook.coordinator import WebhookCoordinator
from deployhook.handler import AdmissionHandler
from deployhook.integrations.webhooks import WebhookCaller, build_callers


def get_audit_log(project_root: Path, settings: SettingsYaml | None = None) -> AuditLog | None:
    settings = settings or load_config(project_root)
    if not settings.audit.enabled:
        return None
    data_dir = Path(settings.data_dir)
    if not data_dir.is_absolute():
        data_dir = project_root / data_dir
    return AuditLog(data_dir / "webhook_runs.db")


def get_handler(
    project_root: Path,
    settings: SettingsYaml | None = None,
    callers: list[WebhookCaller] | None = None,
) -> AdmissionHandler:
    """Build the admission handler from config. `callers` overrides the configured webhooks."""
    settings = settings or load_config(project_root)
    if callers is None:
        callers = build_callers(settings, get_env(project_root))
    coordinator = WebhookCoordinator(callers, retry_failed=settings.retry_failed)
    return AdmissionHandler(coordinator, settings.watch, get_audit_log(project_root, settings))
