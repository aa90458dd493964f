"""Configuration management for cronping."""

import os
import sys
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError

VERSION = "1.6.0"
USER_AGENT = f"CronitorCLI/{VERSION}"

VAR_API_KEY = "CRONITOR_API_KEY"
VAR_HOSTNAME = "CRONITOR_HOSTNAME"
VAR_LOG = "CRONITOR_LOG"
VAR_PING_API_KEY = "CRONITOR_PING_API_KEY"
VAR_EXCLUDE_TEXT = "CRONITOR_EXCLUDE_TEXT"
VAR_CONFIG = "CRONITOR_CONFIG"

# Config file keys are the environment variable names.
_KEY_TO_FIELD = {
    VAR_API_KEY: "api_key",
    VAR_PING_API_KEY: "ping_api_key",
    VAR_HOSTNAME: "hostname",
    VAR_LOG: "log_file",
    VAR_EXCLUDE_TEXT: "exclude_text",
}

CONFIG_FILE_NAME = "cronitor.json"


class CronitorConfig(BaseModel):
    """Process-wide, read-only configuration shared by every delivery."""

    model_config = ConfigDict(frozen=True)

    api_key: str = Field(default="", description="Cronitor API key used by the provisioning API")
    ping_api_key: str = Field(default="", description="Secondary ping auth key sent as auth_key")
    hostname: str = Field(default="", description="Hostname override (default: system hostname)")
    log_file: str = Field(default="", description="Append debug logs to this file")
    verbose: bool = Field(default=False, description="Echo log lines to stdout")
    dev: bool = Field(default=False, description="Send everything to the dev endpoint")
    exclude_text: tuple[str, ...] = Field(default=(), description="Text stripped from exec output")
    config_file: Optional[str] = Field(default=None, description="Config file that was read")


def default_config_file_directory() -> str:
    if sys.platform == "win32":
        return f"{os.getenv('SYSTEMDRIVE', 'C:')}\\ProgramData\\Cronitor"
    return "/etc/cronitor"


def _split_csv(value: Any) -> tuple[str, ...]:
    if isinstance(value, (list, tuple)):
        items = [str(v) for v in value]
    else:
        items = str(value or "").split(",")
    return tuple(s.strip() for s in items if s.strip())


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ConfigError(f"Unable to read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file {path} is not valid JSON/YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    out: dict[str, Any] = {}
    for key, value in data.items():
        field_name = _KEY_TO_FIELD.get(str(key))
        if field_name is None or value is None:
            continue
        out[field_name] = value
    return out


def load_config(
    config_path: Optional[str] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> CronitorConfig:
    """Load configuration from file, environment variables and explicit overrides.

    Later sources win: defaults, then the config file, then the environment,
    then ``overrides`` (command line flags). ``None`` overrides are ignored.
    """
    env = os.environ if environ is None else environ

    explicit = config_path or env.get(VAR_CONFIG) or ""
    if explicit:
        path = Path(explicit)
        if not path.exists():
            raise ConfigError(f"Config file {path} does not exist")
    else:
        path = Path(default_config_file_directory()) / CONFIG_FILE_NAME

    config_data: dict[str, Any] = {}
    if path.exists():
        config_data.update(_read_config_file(path))
        config_data["config_file"] = str(path)

    # Override with environment variables
    for var, field_name in _KEY_TO_FIELD.items():
        value = env.get(var)
        if value:
            config_data[field_name] = value

    for key, value in (overrides or {}).items():
        if value is not None:
            config_data[key] = value

    if "exclude_text" in config_data:
        config_data["exclude_text"] = _split_csv(config_data["exclude_text"])

    try:
        return CronitorConfig(**config_data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
