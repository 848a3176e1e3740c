"""Application configuration management."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields
from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_FILE = "config.json"
ENV_PREFIX = "POE2_DRPC_"

# Client.txt relative path inside the game install
_LOG_RELATIVE = "logs/Client.txt"


class ConfigurationError(Exception):
    """Missing or invalid settings; fatal at startup."""


@dataclass
class AppConfig:
    """Application settings."""

    # Paths
    log_path: str = ""
    game_dir: str = ""
    translations_file: str = ""

    # Polling
    poll_interval: float = 1.0
    replay_history: bool = True
    activity_is_liveness: bool = False

    # Presence
    discord_client_id: str = "550890770056347648"
    debounce_window: float = 1.5
    backoff_initial: float = 1.0
    backoff_max: float = 30.0

    # Game process gating
    require_game_process: bool = True
    process_check_interval: float = 5.0

    # Debug
    log_file: str = "poe2-drpc.log"
    debug: bool = False

    def save(self, path: str = CONFIG_FILE) -> None:
        """Save config to JSON file."""
        Path(path).write_text(
            json.dumps(asdict(self), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )

    @classmethod
    def load(cls, path: str = CONFIG_FILE) -> AppConfig:
        """Load config from JSON file, using defaults for missing fields."""
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except FileNotFoundError:
            return cls()
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"{path}: invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path}: expected a JSON object")
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(sorted(unknown)))
        defaults = asdict(cls())
        defaults.update({k: v for k, v in data.items() if k in known})
        return cls(**defaults).coerced()

    def with_env(self, environ: Mapping[str, str] | None = None) -> AppConfig:
        """Return a copy with POE2_DRPC_* environment variables applied."""
        environ = os.environ if environ is None else environ
        values = asdict(self)
        for f in fields(self):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is not None:
                values[f.name] = raw
        return AppConfig(**values).coerced()

    def coerced(self) -> AppConfig:
        """Return a copy with every field converted to its declared type."""
        defaults = AppConfig()
        values = {}
        for f in fields(self):
            value = getattr(self, f.name)
            kind = type(getattr(defaults, f.name))
            try:
                values[f.name] = _coerce(value, kind)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid value for {f.name}: {value!r}") from e
        return AppConfig(**values)

    def validate(self) -> None:
        """Raise ConfigurationError for settings we cannot start with."""
        if not self.log_path and not self.game_dir:
            raise ConfigurationError("No log path configured (set log_path or game_dir)")
        for name in ("poll_interval", "process_check_interval", "backoff_initial", "backoff_max"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")
        if self.debounce_window < 0:
            raise ConfigurationError("debounce_window must not be negative")
        if not self.discord_client_id:
            raise ConfigurationError("discord_client_id is empty")


_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _coerce(value: object, kind: type) -> object:
    if kind is bool:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ValueError(value)
    if kind is float:
        return float(value)  # type: ignore[arg-type]
    return "" if value is None else str(value)


def resolve_log_path(config: AppConfig) -> Path:
    """Resolve the Client.txt path from config."""
    if config.log_path:
        return Path(config.log_path).expanduser()
    if config.game_dir:
        return Path(config.game_dir).expanduser() / _LOG_RELATIVE
    raise ConfigurationError("No log path configured (set log_path or game_dir)")


def check_log_path(path: Path) -> None:
    """Fail fast when the log cannot be used at all.

    Only called at startup; later disappearances are treated as rotation.
    """
    if not path.exists():
        raise ConfigurationError(f"Log file not found: {path}")
    if not path.is_file():
        raise ConfigurationError(f"Log path is not a file: {path}")
    try:
        with open(path, "rb"):
            pass
    except OSError as e:
        raise ConfigurationError(f"Cannot open log file {path}: {e}") from e
