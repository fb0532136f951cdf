import pytest

from deployhook.config import get_env, load_config
from deployhook.exceptions import ConfigError


def _write_settings(root, text: str) -> None:
    (root / "config").mkdir()
    (root / "config" / "settings.yaml").write_text(text, encoding="utf-8")


def test_defaults_without_config_file(tmp_path, monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)

    settings = load_config(tmp_path)

    assert settings.watch.namespace == "zarf"
    assert settings.watch.label == "package-deploy-info"
    assert [w.name for w in settings.webhooks] == ["test-webhook"]
    assert settings.retry_failed is False
    assert settings.log_level == "INFO"


def test_reads_yaml_and_ignores_unknown_keys(tmp_path, monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    _write_settings(
        tmp_path,
        "\n".join(
            [
                "unknown_section: true",
                "watch:",
                "  namespace: packages",
                "webhooks:",
                "  - name: notify",
                "    url: https://hooks.example.com/deploy",
                "    wait_duration_seconds: 120",
                "secrets:",
                "  webhook_token: from-file",
                "",
            ]
        ),
    )

    settings = load_config(tmp_path)

    assert settings.watch.namespace == "packages"
    assert settings.webhooks[0].url == "https://hooks.example.com/deploy"
    assert settings.webhooks[0].wait_duration_seconds == 120
    assert get_env(tmp_path).webhook_token == "from-file"


def test_token_falls_back_to_env(tmp_path, monkeypatch):
    monkeypatch.setenv("DEPLOYHOOK_WEBHOOK_TOKEN", "from-env")

    assert get_env(tmp_path).webhook_token == "from-env"


def test_log_level_env_override(tmp_path, monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "debug")

    assert load_config(tmp_path).log_level == "DEBUG"


@pytest.mark.parametrize(
    "text",
    [
        "watch: [unclosed",
        "- just\n- a list\n",
        "server:\n  port: not-a-port\n",
        "webhooks: []\n",
        "webhooks:\n  - name: a\n  - name: a\n",
    ],
)
def test_invalid_config_raises(tmp_path, text):
    _write_settings(tmp_path, text)

    with pytest.raises(ConfigError):
        load_config(tmp_path)
