"""
qorcron · Configuration system.

Loads configuration from:
  1. Defaults (defined here)
  2. ~/.qorcron/config.yaml (overrides defaults)
  3. Environment variables QORCRON_* (override everything)
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from qorcron.errors import ConfigError
from qorcron.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".qorcron" / "config.yaml"
ENV_PREFIX = "QORCRON_"

# ============================================================================
# Configuration models
# ============================================================================


class CrontabConfig(BaseModel):
    """External scheduler table commands."""

    list_command: list[str] = Field(default_factory=lambda: ["crontab", "-l"], min_length=1)
    install_command: list[str] = Field(default_factory=lambda: ["crontab", "-"], min_length=1)
    timeout_seconds: float | None = Field(default=None, gt=0)


class SpawnConfig(BaseModel):
    """How job processes are started and stopped."""

    program: list[str] = Field(default_factory=list)
    """Argv prefix for self re-invocation. Empty = derive from sys.argv[0]."""

    job_flag: str = "--qor-job"
    kill_signal: Literal["SIGKILL", "SIGTERM"] = "SIGKILL"


class LoggingConfig(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    json_logs: bool = False
    log_dir: Path | None = None


class QorCronConfig(BaseModel):
    """Top-level configuration."""

    crontab: CrontabConfig = Field(default_factory=CrontabConfig)
    spawn: SpawnConfig = Field(default_factory=SpawnConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# ============================================================================
# Loading
# ============================================================================


def _coerce_env_value(value: str) -> Any:
    """JSON-looking values (lists, numbers, booleans) are decoded, the rest stays a string."""
    stripped = value.strip()
    if stripped[:1] in ("[", "{") or stripped in ("true", "false", "null"):
        try:
            return json.loads(stripped)
        except json.JSONDecodeError:
            return value
    return value


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Applies QORCRON_* environment variables.

    Convention: QORCRON_SECTION_KEY -> data["section"]["key"]
    Example: QORCRON_SPAWN_JOB_FLAG -> data["spawn"]["job_flag"]
    """
    sections = set(QorCronConfig.model_fields)
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        parts = key[len(ENV_PREFIX) :].lower().split("_")
        if len(parts) < 2 or parts[0] not in sections:
            continue
        section = data.setdefault(parts[0], {})
        if not isinstance(section, dict):
            continue
        section["_".join(parts[1:])] = _coerce_env_value(value)
    return data


def load_config(config_path: Path | None = None) -> QorCronConfig:
    """Loads the configuration.

    Order (later wins):
      1. Defaults (pydantic models)
      2. config.yaml (if present; corrupt files are logged and ignored)
      3. QORCRON_* environment variables

    Args:
        config_path: Explicit config.yaml. None = ~/.qorcron/config.yaml

    Raises:
        ConfigError: The merged data fails validation.
    """
    data: dict[str, Any] = {}

    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                file_data = yaml.safe_load(f) or {}
            if isinstance(file_data, dict):
                data = file_data
        except yaml.YAMLError as exc:
            log.warning("config_yaml_ignored", path=str(config_path), error=str(exc))

    data = _apply_env_overrides(data)

    try:
        return QorCronConfig(**data)
    except ValidationError as exc:
        raise ConfigError(
            f"invalid configuration: {exc.error_count()} validation error(s)",
            details={"path": str(config_path), "errors": exc.errors(include_url=False)},
        ) from exc
