import shutil
from functools import lru_cache
from pathlib import Path

import yaml

from .lib import paths

DEFAULTS = {
    "local_identity": None,
    "annotations_db": None,
    "snapshot": None,
    "coalesce_window": 0.0,
    "retry_delay": 5.0,
    "log_level": "INFO",
}


def get_default_config_path() -> Path:
    return paths.package_root() / "config.yaml"


def config_file() -> Path:
    """Return config file path in .skillswap/"""
    return paths.dot_skillswap() / "config.yaml"


def _validate_config(cfg: dict) -> None:
    """Validate config structure. Fail fast on invalid types."""
    if not isinstance(cfg, dict):
        raise ValueError(f"Config must be a dict, got {type(cfg).__name__}")

    identity = cfg.get("local_identity")
    if identity is not None and not isinstance(identity, str):
        raise ValueError("Config 'local_identity' must be a string")

    for key in ("coalesce_window", "retry_delay"):
        value = cfg.get(key)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int | float):
            raise ValueError(f"Config '{key}' must be a number")
        if value < 0:
            raise ValueError(f"Config '{key}' must not be negative")


def clear_cache():
    load_config.cache_clear()


@lru_cache(maxsize=1)
def load_config() -> dict:
    """Load config.yaml merged over defaults, defaults only if the file is missing."""
    cfg = dict(DEFAULTS)
    path = config_file()
    if not path.exists():
        return cfg
    with open(path) as f:
        loaded = yaml.safe_load(f) or {}
    _validate_config(loaded)
    cfg.update(loaded)
    return cfg


def init_config() -> Path:
    """Initialize .skillswap/config.yaml from defaults if missing."""
    target = config_file()
    if target.exists():
        return target

    target.parent.mkdir(parents=True, exist_ok=True)

    default_config_path = get_default_config_path()
    if not default_config_path.exists():
        raise FileNotFoundError(f"Default config not found at {default_config_path}")

    shutil.copy(default_config_path, target)
    clear_cache()
    return target


def annotations_db() -> Path:
    return paths.resolve(load_config().get("annotations_db"), paths.annotations_db())


def snapshot_file() -> Path:
    return paths.resolve(load_config().get("snapshot"), paths.snapshot_file())
