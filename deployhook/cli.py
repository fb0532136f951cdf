"""CLI - setup, server, config and status record inspection."""
import argparse
import asyncio
import getpass
import sys
from pathlib import Path

import yaml

from deployhook.codec import decode
from deployhook.config import load_config
from deployhook.exceptions import DeployHookError
from deployhook.logging_utils import configure_logging
from deployhook.models.status import DeploymentStatusRecord
from deployhook.waiter import DEFAULT_WAIT_SECONDS, wait_for_webhooks

ROOT = Path(__file__).parent.parent
CONFIG_DIR = ROOT / "config"
SETTINGS_PATH = CONFIG_DIR / "settings.yaml"


def _ensure_config_dir() -> None:
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)


def _load_settings() -> dict:
    if not SETTINGS_PATH.exists():
        return {}
    with open(SETTINGS_PATH, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _save_settings(data: dict) -> None:
    _ensure_config_dir()
    with open(SETTINGS_PATH, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def _prompt(prompt: str, default: str = "", secret: bool = False) -> str:
    if default:
        p = f"{prompt} [{default}]: "
    else:
        p = f"{prompt}: "
    if secret:
        v = getpass.getpass(p)
    else:
        v = input(p).strip()
    return v if v else default


def _prompt_yes(prompt: str, default: bool = True) -> bool:
    d = "Y/n" if default else "y/N"
    v = input(f"{prompt} [{d}]: ").strip().lower()
    if not v:
        return default
    return v in ("y", "yes")


def cmd_setup() -> None:
    """Interactive setup - writes config/settings.yaml."""
    print("\ndeployhook - Setup\n")
    settings = _load_settings()

    settings.setdefault("data_dir", "./data")
    settings["data_dir"] = _prompt("Data directory", settings["data_dir"])

    settings.setdefault("watch", {})
    settings["watch"]["namespace"] = _prompt("Namespace to watch", settings["watch"].get("namespace", "zarf"))
    settings["watch"]["label"] = _prompt("Status secret label", settings["watch"].get("label", "package-deploy-info"))

    settings.setdefault("server", {})
    settings["server"]["host"] = _prompt("Server host", settings["server"].get("host", "0.0.0.0"))
    settings["server"]["port"] = int(_prompt("Server port", str(settings["server"].get("port", 8443))))
    settings["server"]["tls_cert_file"] = _prompt("TLS certificate file", settings["server"].get("tls_cert_file", ""))
    settings["server"]["tls_key_file"] = _prompt("TLS key file", settings["server"].get("tls_key_file", ""))

    webhooks = settings.get("webhooks") or [{}]
    hook = webhooks[0]
    hook["name"] = _prompt("Webhook name", hook.get("name", "test-webhook"))
    hook["url"] = _prompt("Webhook URL (empty to use a fixed delay)", hook.get("url", ""))
    if not hook["url"]:
        hook["delay_seconds"] = float(_prompt("Delay seconds", str(hook.get("delay_seconds", 10))))
    settings["webhooks"] = webhooks

    settings.setdefault("secrets", {})
    if hook["url"]:
        settings["secrets"]["webhook_token"] = _prompt(
            "Webhook bearer token", settings["secrets"].get("webhook_token", ""), secret=True
        )

    settings.setdefault("api", {})
    token = _prompt("Runs API token (optional, press Enter for none)", "", secret=True)
    if token:
        from deployhook.server.app import pwd_ctx
        settings["api"]["token_hash"] = pwd_ctx.hash(token)

    settings["retry_failed"] = _prompt_yes("Re-run failed webhooks on the next update?", settings.get("retry_failed", False))

    _save_settings(settings)
    print("\nConfiguration saved.\n")


def cmd_run() -> None:
    """Run the admission server."""
    import uvicorn
    from deployhook.server.app import create_app

    settings = load_config(ROOT)
    configure_logging(settings.log_level)
    ssl = {}
    if settings.server.tls_cert_file and settings.server.tls_key_file:
        ssl = {"ssl_certfile": settings.server.tls_cert_file, "ssl_keyfile": settings.server.tls_key_file}
    uvicorn.run(create_app(ROOT, settings), host=settings.server.host, port=settings.server.port, **ssl)


def cmd_config_get(key: str) -> None:
    """Get config value."""
    settings = _load_settings()
    keys = key.split(".")
    v = settings
    for k in keys:
        if isinstance(v, dict):
            v = v.get(k, "")
        else:
            v = ""
            break
    print(v)


def cmd_config_set(key: str, value: str) -> None:
    """Set config value."""
    settings = _load_settings()
    keys = key.split(".")
    d = settings
    for k in keys[:-1]:
        d = d.setdefault(k, {})
    # YAML scalars: "true" -> bool, "30" -> int, anything unparsable stays a string.
    try:
        val = yaml.safe_load(value) if value else value
    except yaml.YAMLError:
        val = value
    d[keys[-1]] = val
    _save_settings(settings)
    print(f"Set {key} = {value}")


def _read_record(path: Path) -> DeploymentStatusRecord:
    return decode(path.read_bytes()).record


def cmd_status(path: Path) -> int:
    """Print component and webhook state of a status record file."""
    record = _read_record(path)
    print(f"Package: {record.package_name or '(unnamed)'}  generation: {record.generation}")
    for component in record.deployed_components:
        print(f"  {component.name}: {component.status or '-'}")
        for run in record.component_webhooks.get(component.name, {}).values():
            print(f"    {run.name}: {run.status.value} (generation {run.observed_generation})")
    needs_wait, wait_seconds = record.needs_wait()
    if needs_wait:
        print(f"Webhooks still running (wait up to {wait_seconds or DEFAULT_WAIT_SECONDS}s)")
        return 2
    return 0


def cmd_wait(path: Path, timeout: int, interval: float) -> int:
    """Poll a status record file until no webhook is Running."""

    async def fetch() -> DeploymentStatusRecord:
        return _read_record(path)

    asyncio.run(wait_for_webhooks(fetch, default_wait_seconds=timeout, poll_interval=interval))
    print("All component webhooks complete")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="deployhook", description="Component webhook admission service")
    sub = parser.add_subparsers(dest="cmd")

    sub.add_parser("setup", help="Interactive setup")
    sub.add_parser("run", help="Run the admission server")
    cfg = sub.add_parser("config", help="Get/set config")
    cfg.add_argument("action", choices=["get", "set"])
    cfg.add_argument("key")
    cfg.add_argument("value", nargs="*", default=[])
    st = sub.add_parser("status", help="Show webhook state of a status record file")
    st.add_argument("file", type=Path)
    wt = sub.add_parser("wait", help="Wait until no webhook in a status record file is running")
    wt.add_argument("file", type=Path)
    wt.add_argument("--timeout", type=int, default=DEFAULT_WAIT_SECONDS)
    wt.add_argument("--interval", type=float, default=3.0)

    args = parser.parse_args(argv)

    try:
        if args.cmd == "setup":
            cmd_setup()
        elif args.cmd == "run":
            cmd_run()
        elif args.cmd == "config":
            if args.action == "get":
                cmd_config_get(args.key)
            else:
                val = " ".join(args.value) if args.value else ""
                if not val:
                    print("config set requires a value")
                    return 1
                cmd_config_set(args.key, val)
        elif args.cmd == "status":
            return cmd_status(args.file)
        elif args.cmd == "wait":
            return cmd_wait(args.file, args.timeout, args.interval)
        else:
            if not SETTINGS_PATH.exists():
                print("No config found. Running setup...")
                cmd_setup()
            else:
                cmd_run()
    except DeployHookError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
