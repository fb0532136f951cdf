"""Configuration loader - reads from config/settings.yaml. Secrets fall back to env."""
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError

from deployhook.exceptions import ConfigError

DEFAULT_ROOT = Path(__file__).parent.parent


class Settings:
    """Secrets - from config file first, then env."""

    def __init__(self, project_root: Path | None = None):
        root = project_root or DEFAULT_ROOT
        config_path = root / "config" / "settings.yaml"
        secrets = {}
        if config_path.exists():
            secrets = _read_yaml(config_path).get("secrets", {}) or {}
        self.webhook_token = secrets.get("webhook_token") or os.getenv("DEPLOYHOOK_WEBHOOK_TOKEN", "")


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8443
    tls_cert_file: str = ""
    tls_key_file: str = ""


class WatchConfig(BaseModel):
    """Which status records the handler mutates."""

    namespace: str = "zarf"
    label: str = "package-deploy-info"
    operations: list[str] = ["CREATE", "UPDATE"]


class WebhookConfig(BaseModel):
    name: str = "test-webhook"
    url: str = ""
    timeout_seconds: float = 30.0
    # Used by the delay caller when no url is set.
    delay_seconds: float = 10.0
    wait_duration_seconds: int = 0


class AuditConfig(BaseModel):
    enabled: bool = True
    retention_days: int = 30
    prune_interval_minutes: int = 60


class ApiConfig(BaseModel):
    token_hash: str = ""


class SettingsYaml(BaseModel):
    model_config = ConfigDict(extra="ignore")
    data_dir: str = "./data"
    log_level: str = "INFO"
    retry_failed: bool = False
    server: ServerConfig = ServerConfig()
    watch: WatchConfig = WatchConfig()
    webhooks: list[WebhookConfig] = [WebhookConfig()]
    audit: AuditConfig = AuditConfig()
    api: ApiConfig = ApiConfig()


def _read_yaml(path: Path) -> dict:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Unable to parse {path.name}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the top level")
    return data


def load_config(project_root: Path | None = None) -> SettingsYaml:
    """Load settings from YAML. Missing file means defaults."""
    root = project_root or DEFAULT_ROOT
    settings_path = root / "config" / "settings.yaml"

    settings_data: dict = {}
    if settings_path.exists():
        settings_data = _read_yaml(settings_path)
    settings_data.pop("secrets", None)

    try:
        settings = SettingsYaml(**settings_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings in {settings_path}: {e}") from e

    if not settings.webhooks:
        raise ConfigError("At least one webhook must be configured")
    names = [w.name for w in settings.webhooks]
    if len(set(names)) != len(names):
        raise ConfigError(f"Webhook names must be unique, got {names}")

    env_level = os.getenv("LOG_LEVEL")
    if env_level:
        settings.log_level = env_level.upper()
    return settings


def get_env(project_root: Path | None = None) -> Settings:
    """Load secrets from config file (written by CLI) or env."""
    return Settings(project_root)
