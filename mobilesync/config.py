import json
from pathlib import Path

MOBILESYNC_CONFIG = ".mobilesyncconfig"
GLOBAL_CONFIG_FILE = Path.home() / ".mobilesync" / "config.json"

DEFAULT_CONFIG = {
    "region": "us-east-1",
    "backend_dir": "backend",
    "max_wait_attempts": 100,  # each wait is wait_interval seconds
    "wait_interval": 5,
    # Optional: "profile": "dev", "cloudwatch_log_group": "/mobilesync/my-app"
}


def load_global_config():
    """Load ~/.mobilesync/config.json, the defaults shared by every project."""
    if GLOBAL_CONFIG_FILE.exists():
        try:
            return json.loads(GLOBAL_CONFIG_FILE.read_text())
        except (json.JSONDecodeError, OSError):
            pass
    return {}


def save_global_config(updates):
    """Merge updates into ~/.mobilesync/config.json."""
    existing = load_global_config()
    existing.update(updates)
    GLOBAL_CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    GLOBAL_CONFIG_FILE.write_text(json.dumps(existing, indent=2) + "\n")


def find_config(start=None):
    """Walk up from cwd to find .mobilesyncconfig, like git finds .git."""
    current = Path(start) if start else Path.cwd()
    for parent in [current, *current.parents]:
        config_path = parent / MOBILESYNC_CONFIG
        if config_path.exists():
            return config_path
    return None


def load_config(start=None):
    # Merge order: defaults → global config → project .mobilesyncconfig
    config = {**DEFAULT_CONFIG, **load_global_config()}

    config_path = find_config(start)
    if config_path:
        try:
            raw = json.loads(config_path.read_text())
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {config_path}: {e}")
        config.update(raw)
        _validate(config, config_path)

    return config


def _validate(config, config_path):
    if not config.get("region"):
        raise ValueError(f"No AWS region set in {config_path}")
    for key in ("max_wait_attempts", "wait_interval"):
        value = config.get(key)
        # bool is an int subclass
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValueError(f"{key} in {config_path} must be a positive integer, got {value!r}")


def init_config(path=None, region=None, profile=None):
    """Create a .mobilesyncconfig in the given directory."""
    target = Path(path) if path else Path.cwd()
    config_path = target / MOBILESYNC_CONFIG
    global_cfg = load_global_config()
    init = {
        "region": region or global_cfg.get("region") or DEFAULT_CONFIG["region"],
    }
    if profile:
        init["profile"] = profile
    config_path.write_text(json.dumps(init, indent=2))
    return config_path
