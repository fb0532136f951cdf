import base64
import json

from deployhook import cli
from tests.conftest import make_record


def _write_record(path, status: str) -> None:
    record = make_record(
        webhooks={"frontend": {"test-webhook": {"name": "test-webhook", "status": status, "observedGeneration": 3}}}
    )
    path.write_bytes(base64.b64encode(json.dumps(record).encode("utf-8")))


def test_status_prints_webhook_state(tmp_path, capsys):
    path = tmp_path / "record.b64"
    _write_record(path, "Succeeded")

    rc = cli.main(["status", str(path)])

    out = capsys.readouterr().out
    assert rc == 0
    assert "dos-games" in out
    assert "test-webhook: Succeeded (generation 3)" in out


def test_status_exit_code_when_running(tmp_path, capsys):
    path = tmp_path / "record.b64"
    _write_record(path, "Running")

    assert cli.main(["status", str(path)]) == 2
    assert "still running" in capsys.readouterr().out


def test_status_reports_decode_errors(tmp_path, capsys):
    path = tmp_path / "broken.json"
    path.write_text("{nope", encoding="utf-8")

    assert cli.main(["status", str(path)]) == 1
    assert "Error:" in capsys.readouterr().err


def test_wait_times_out(tmp_path, capsys):
    path = tmp_path / "record.b64"
    _write_record(path, "Running")

    assert cli.main(["wait", str(path), "--timeout", "0", "--interval", "0"]) == 1
    assert "Timed out" in capsys.readouterr().err


def test_config_set_and_get(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(cli, "CONFIG_DIR", tmp_path / "config")
    monkeypatch.setattr(cli, "SETTINGS_PATH", tmp_path / "config" / "settings.yaml")

    assert cli.main(["config", "set", "watch.namespace", "packages"]) == 0
    assert cli.main(["config", "get", "watch.namespace"]) == 0

    assert capsys.readouterr().out.strip().splitlines()[-1] == "packages"


def test_config_set_parses_yaml_scalars(tmp_path, monkeypatch):
    monkeypatch.setattr(cli, "CONFIG_DIR", tmp_path / "config")
    monkeypatch.setattr(cli, "SETTINGS_PATH", tmp_path / "config" / "settings.yaml")

    cli.main(["config", "set", "retry_failed", "true"])
    cli.main(["config", "set", "audit.retention_days", "14"])
    cli.main(["config", "set", "log_level", "DEBUG"])

    saved = cli._load_settings()
    assert saved["retry_failed"] is True
    assert saved["audit"]["retention_days"] == 14
    assert saved["log_level"] == "DEBUG"
