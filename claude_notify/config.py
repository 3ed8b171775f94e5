"""
Configuration for claude-notify.

Sources, highest precedence first:
- CLI flags
- Environment (SLACK_WEBHOOK_URL, also read from .env)
- YAML file (~/.claude-notify/config.yaml)
- Defaults
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml
from dotenv import find_dotenv, load_dotenv

from claude_notify.exceptions import ConfigValidationError

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".claude-notify"
DEFAULT_CONFIG_FILE = CONFIG_DIR / "config.yaml"
SESSIONS_DIR = CONFIG_DIR / "sessions"  # Bridge sockets, one per running session

DEFAULT_TIMEOUT_MS = 15000
DEFAULT_COMMAND = "claude"
AUDIT_LOG_NAME = "claude-notify-audit.log"
DEBUG_LOG_NAME = "claude-notify-debug.log"
WEBHOOK_ENV_VAR = "SLACK_WEBHOOK_URL"

KNOWN_KEYS = {
    "timeout_ms", "webhook_url", "disable_notifications",
    "debug", "bridge", "socket_path", "command", "command_args",
}


def default_socket_path(session_id: int) -> Path:
    """Bridge socket path for a session (keyed by PID)."""
    return SESSIONS_DIR / f"{session_id}.sock"


@dataclass
class Config:
    """Runtime configuration for one supervised session."""
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    webhook_url: Optional[str] = None
    notifications_disabled: bool = False
    debug: bool = False
    # Inbound bridge
    bridge_enabled: bool = False
    socket_path: Optional[Path] = None
    # Supervised command
    command: str = DEFAULT_COMMAND
    command_args: list[str] = field(default_factory=list)
    working_directory: Path = field(default_factory=Path.cwd)

    @property
    def delay_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    @property
    def audit_log_path(self) -> Path:
        return self.working_directory / AUDIT_LOG_NAME

    @property
    def debug_log_path(self) -> Path:
        return self.working_directory / DEBUG_LOG_NAME


def _flag(raw: dict, key: str) -> bool:
    value = raw.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ConfigValidationError(f"{key} must be true or false, got {value!r}")
    return value


def _string_list(raw: dict, key: str) -> list[str]:
    value = raw.get(key) or []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigValidationError(f"{key} must be a list of strings, got {value!r}")
    return list(value)


def read_config_file(path: Path) -> dict:
    """Read the YAML config file. A missing file is an empty config."""
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"Invalid YAML in {path}: {e}")
    except OSError as e:
        raise ConfigValidationError(f"Could not read config {path}: {e}")

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigValidationError(f"Config {path} must be a mapping, got {type(raw).__name__}")
    return raw


def load_config(
    path: Optional[Path] = None,
    overrides: Optional[dict] = None,
) -> Config:
    """Build a Config from file, environment and CLI overrides.

    Args:
        path: YAML config file (default: ~/.claude-notify/config.yaml)
        overrides: Values from CLI flags; None entries are ignored

    Returns:
        Config (not yet validated - call validate_config)
    """
    # Load .env from the working directory (or a parent), then home
    load_dotenv(find_dotenv(usecwd=True))
    load_dotenv(Path.home() / ".env")

    raw = read_config_file(path or DEFAULT_CONFIG_FILE)
    for key in sorted(set(raw) - KNOWN_KEYS):
        logger.warning(f"Ignoring unknown config key: {key}")

    # Environment beats the file for the webhook; CLI beats both
    if os.environ.get(WEBHOOK_ENV_VAR):
        raw["webhook_url"] = os.environ[WEBHOOK_ENV_VAR]
    for key, value in (overrides or {}).items():
        if value is not None:
            raw[key] = value

    webhook_url = raw.get("webhook_url")

    socket_path = None
    if raw.get("socket_path"):
        socket_path = Path(os.path.expanduser(str(raw["socket_path"])))

    try:
        timeout_ms = int(raw.get("timeout_ms", DEFAULT_TIMEOUT_MS))
    except (TypeError, ValueError):
        raise ConfigValidationError(f"timeout_ms must be an integer, got {raw.get('timeout_ms')!r}")

    return Config(
        timeout_ms=timeout_ms,
        webhook_url=webhook_url,
        notifications_disabled=_flag(raw, "disable_notifications"),
        debug=_flag(raw, "debug"),
        # An explicit socket path implies the bridge
        bridge_enabled=_flag(raw, "bridge") or socket_path is not None,
        socket_path=socket_path,
        command=raw.get("command") or DEFAULT_COMMAND,
        command_args=_string_list(raw, "command_args"),
    )


def validate_config(config: Config) -> list[str]:
    """
    Validate configuration. Returns list of warnings.
    Raises ConfigValidationError for fatal issues.
    """
    errors = []
    warnings = []

    if config.timeout_ms <= 0:
        errors.append(f"timeout must be a positive number of milliseconds, got {config.timeout_ms}")

    if not config.notifications_disabled:
        if not config.webhook_url:
            errors.append(
                f"{WEBHOOK_ENV_VAR} environment variable or --webhook-url option is required.\n"
                "Use --disable-notifications to run without notifications."
            )
        elif not config.webhook_url.startswith("https://"):
            warnings.append(f"webhook URL '{config.webhook_url}' does not use https")

    if not config.command:
        errors.append("command to supervise is empty")

    if config.socket_path and config.socket_path.exists() and not config.socket_path.is_socket():
        errors.append(f"socket path {config.socket_path} exists and is not a socket")

    if errors:
        raise ConfigValidationError("\n".join(errors))

    return warnings
