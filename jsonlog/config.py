"""Configuration: frozen dataclass built from defaults, an optional YAML file, and env vars."""

import logging
import os
from dataclasses import dataclass

import yaml

from jsonlog.models import FlushPolicy

logger = logging.getLogger(__name__)

_LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class Config:
    log_file: str = "./logs/app.json"
    max_entries: int = 2000
    flush_policy: str = "always"
    log_level: str = "INFO"
    label: str = "app"
    console: bool = False
    truncate_every: int = 100       # demo: truncate after this many appends
    interval_seconds: float = 0.05  # demo: pause between generated entries

    def __post_init__(self):
        if self.max_entries < 0:
            raise ValueError(f"max_entries must be >= 0, got {self.max_entries}")
        if self.flush_policy not in {p.value for p in FlushPolicy}:
            raise ValueError(f"Unknown flush_policy: {self.flush_policy!r}")
        if self.log_level.upper() not in _LEVEL_NAMES:
            raise ValueError(f"Unknown log_level: {self.log_level!r}")
        if self.truncate_every < 1:
            raise ValueError(f"truncate_every must be >= 1, got {self.truncate_every}")

    @property
    def level_number(self) -> int:
        return logging.getLevelName(self.log_level.upper())


def load_yaml_config(path: str | None) -> dict:
    """Load a YAML mapping. Returns an empty dict if no path or the file is missing."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    logger.info("Loaded YAML config from %s", path)
    return data


def load_config(yaml_data: dict | None = None) -> Config:
    """Build Config: defaults, overridden by YAML data, overridden by env vars."""
    data = dict(yaml_data or {})

    def pick(key: str, env_var: str, default):
        value = os.environ.get(env_var)
        if value is not None:
            return value
        return data.get(key, default)

    return Config(
        log_file=str(pick("log_file", "LOG_FILE", Config.log_file)),
        max_entries=int(pick("max_entries", "MAX_ENTRIES", Config.max_entries)),
        flush_policy=str(pick("flush_policy", "FLUSH_POLICY", Config.flush_policy)).strip().lower(),
        log_level=str(pick("log_level", "LOG_LEVEL", Config.log_level)).strip().upper(),
        label=str(pick("label", "LOG_LABEL", Config.label)),
        console=_parse_bool(pick("console", "LOG_CONSOLE", Config.console)),
        truncate_every=int(pick("truncate_every", "TRUNCATE_EVERY", Config.truncate_every)),
        interval_seconds=float(pick("interval_seconds", "INTERVAL_SECONDS", Config.interval_seconds)),
    )
