"""Configuration: frozen dataclass from environment variables plus an optional YAML overlay."""

import logging
import os
import tempfile
from dataclasses import dataclass, fields

import yaml

logger = logging.getLogger(__name__)

VERSION = "0.1.0"

VALID_LOG_LEVELS = ("ERROR", "WARNING", "WARN", "INFO", "DEBUG")


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


def default_home() -> str:
    return os.path.join(os.path.expanduser("~"), ".d3k")


@dataclass(frozen=True)
class Config:
    home_dir: str = ""
    log_file_path: str | None = None
    pointer_path: str = ""
    timestamp_format: str = "utc"           # "utc" or "local"
    max_log_size_bytes: int = 0             # 0 disables size rotation
    rotation_interval_seconds: int = 0      # 0 disables age rotation
    rotation_check_seconds: int = 30
    stream_poll_seconds: float = 1.0
    heartbeat_seconds: float = 15.0
    keep_archives: int = 20
    max_archive_age_days: int = 7
    framework: str | None = None
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 3684
    color: bool = True

    def __post_init__(self):
        # frozen: fill path defaults through object.__setattr__
        if not self.home_dir:
            object.__setattr__(self, "home_dir", default_home())
        if not self.pointer_path:
            object.__setattr__(
                self, "pointer_path", os.path.join(tempfile.gettempdir(), "d3k.log")
            )


def load_yaml_config(path: str | None) -> dict:
    """Load overrides from a YAML file. Missing file or bad YAML yields {}."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        return {}
    except yaml.YAMLError as e:
        logger.warning("Invalid YAML in %s, using defaults: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Config file %s is not a mapping, ignoring it", path)
        return {}
    logger.debug("Loaded YAML config from %s", path)
    return data


def _max_size(env) -> int:
    # D3K_MAX_LOG_SIZE_BYTES takes precedence over D3K_MAX_LOG_SIZE_MB
    raw_bytes = env.get("D3K_MAX_LOG_SIZE_BYTES")
    raw_mb = env.get("D3K_MAX_LOG_SIZE_MB")
    if raw_bytes is not None:
        return int(raw_bytes)
    if raw_mb is not None:
        return int(float(raw_mb) * 1024 * 1024)
    return Config.max_log_size_bytes


def load_config(env=None, config_path: str | None = None) -> Config:
    """Build Config from env vars, then apply keys from the YAML file on top."""
    env = os.environ if env is None else env
    home = env.get("D3K_HOME") or default_home()

    values = dict(
        home_dir=home,
        log_file_path=env.get("LOG_FILE_PATH") or None,
        pointer_path=env.get("D3K_LOG_POINTER", ""),
        timestamp_format=env.get("D3K_TIMESTAMP_FORMAT", Config.timestamp_format).lower(),
        max_log_size_bytes=_max_size(env),
        rotation_interval_seconds=int(
            env.get("D3K_ROTATION_INTERVAL_SECONDS", Config.rotation_interval_seconds)
        ),
        rotation_check_seconds=int(
            env.get("D3K_ROTATION_CHECK_SECONDS", Config.rotation_check_seconds)
        ),
        stream_poll_seconds=float(
            env.get("D3K_STREAM_POLL_SECONDS", Config.stream_poll_seconds)
        ),
        heartbeat_seconds=float(env.get("D3K_HEARTBEAT_SECONDS", Config.heartbeat_seconds)),
        keep_archives=int(env.get("D3K_KEEP_ARCHIVES", Config.keep_archives)),
        max_archive_age_days=int(
            env.get("D3K_MAX_ARCHIVE_AGE_DAYS", Config.max_archive_age_days)
        ),
        framework=env.get("D3K_FRAMEWORK") or None,
        log_level=env.get("D3K_LOG_LEVEL", Config.log_level).upper(),
        host=env.get("D3K_HOST", Config.host),
        port=int(env.get("D3K_PORT", Config.port)),
        color=not _parse_bool(env.get("NO_COLOR", "false")),
    )

    path = config_path or env.get("CONFIG_PATH") or os.path.join(home, "config.yml")
    known = {f.name for f in fields(Config)}
    for key, value in load_yaml_config(path).items():
        if key in known:
            values[key] = value
        else:
            logger.warning("Unknown config key %r in %s", key, path)

    values["timestamp_format"] = str(values["timestamp_format"]).lower()
    values["log_level"] = str(values["log_level"]).upper()
    if values["timestamp_format"] not in ("utc", "local"):
        raise ValueError(
            f"Invalid timestamp format: {values['timestamp_format']}. Valid formats: utc, local"
        )
    if values["log_level"] not in VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid log level: {values['log_level']}. Valid levels: ERROR, WARN, INFO, DEBUG"
        )
    return Config(**values)


def logging_level(config: Config) -> int:
    name = config.log_level.upper()
    return logging.WARNING if name == "WARN" else getattr(logging, name)
