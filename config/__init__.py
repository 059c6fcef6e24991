"""Configuration: bundled YAML defaults, an optional override file, then env vars."""
import os
import yaml
from pathlib import Path

DEFAULT_CONFIG_PATH = Path(__file__).parent / "default_config.yaml"

# env var -> (section, key)
ENV_OVERRIDES = {
    "OPS_MONITOR_DB_PATH": ("database", "path"),
    "OPS_MONITOR_CHECK_INTERVAL": ("monitor", "check_interval"),
    "OPS_MONITOR_LOG_LEVEL": ("logging", "level"),
    "OPS_MONITOR_WEBHOOK_URL": ("notifications", "webhook_url"),
}


def load_config(path=None):
    """Load and validate the effective config. A missing override file is ignored."""
    with open(DEFAULT_CONFIG_PATH) as f:
        config = yaml.safe_load(f)

    if path and Path(path).exists():
        with open(path) as f:
            config = _merge(config, yaml.safe_load(f) or {})

    _apply_env(config, os.environ)
    _validate_config(config)
    return config


def _merge(base, override):
    merged = dict(base)
    for key, val in override.items():
        if isinstance(merged.get(key), dict) and isinstance(val, dict):
            merged[key] = _merge(merged[key], val)
        else:
            merged[key] = val
    return merged


def _apply_env(config, environ):
    for env_key, (section, key) in ENV_OVERRIDES.items():
        raw = environ.get(env_key)
        if not raw:
            continue
        config.setdefault(section, {})[key] = int(raw) if raw.isdigit() else raw

    # Setting a webhook URL in the environment is enough to turn the channel on
    if environ.get("OPS_MONITOR_WEBHOOK_URL"):
        config["notifications"]["webhook_enabled"] = True


def _validate_config(config):
    for section in ("monitor", "probes", "database", "alerts", "notifications", "web"):
        if section not in config:
            raise ValueError(f"Missing required config section: {section}")

    monitor = config["monitor"]
    if monitor["check_interval"] < 5:
        raise ValueError("check_interval must be >= 5 seconds")
    for key in ("sample_capacity", "max_incidents"):
        if monitor.get(key, 1) <= 0:
            raise ValueError(f"monitor.{key} must be positive")
    if config["alerts"].get("history_size", 1) <= 0:
        raise ValueError("alerts.history_size must be positive")

    for target in config["probes"].get("http", []):
        if not target.get("name") or not target.get("url"):
            raise ValueError(f"HTTP probe needs name and url: {target}")
    for target in config["probes"].get("tcp", []):
        if not (target.get("name") and target.get("host") and target.get("port")):
            raise ValueError(f"TCP probe needs name, host and port: {target}")
