# config.py
import json
import logging
import os
from pathlib import Path
from typing import List, Mapping, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from storage import write_json_atomic

logger = logging.getLogger(__name__)

CONFIG_FILE = Path("config.json")
DEFAULT_PORT = "8080"
# digest("randomforest"); only meant for local development.
DEFAULT_PASSWORD_HASH = "ea424017c57b0d0b2f262edd821dca2dc3cfcbb47e296a9007415af86bbc6ac1"

# Fields written back to config.json. Everything else is runtime-only.
PERSISTED_FIELDS = {"api_key", "port", "password_hash", "token_hashes", "require_password"}

_TRUTHY = {"1", "true", "yes", "y", "on"}


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


class AppConfig(BaseModel):
    # Persisted
    api_key: str = ""  # legacy, unused
    port: str = DEFAULT_PORT
    password_hash: str = ""
    token_hashes: List[str] = Field(default_factory=list)
    require_password: bool = False

    # Runtime only
    host: str = "0.0.0.0"
    data_file: str = "tasks.json"
    config_file: str = str(CONFIG_FILE)
    request_timeout: float = 15.0

    @field_validator("port", mode="before")
    @classmethod
    def check_port(cls, value):
        if isinstance(value, int) and not isinstance(value, bool):
            value = str(value)
        if not isinstance(value, str):
            raise ValueError("port must be a string or integer")
        value = value.strip()
        # Empty falls back to the default in load_config.
        if value and not (value.isdigit() and 0 < int(value) < 65536):
            raise ValueError(f"port must be a number between 1 and 65535, got {value!r}")
        return value


def _env_overrides(environ: Mapping[str, str]) -> dict:
    overrides = {}
    for key, field in (
        ("TASKMATE_PORT", "port"),
        ("TASKMATE_API_KEY", "api_key"),
        ("TASKMATE_PASSWORD_HASH", "password_hash"),
        ("TASKMATE_HOST", "host"),
        ("TASKMATE_DATA_FILE", "data_file"),
        ("TASKMATE_CONFIG_FILE", "config_file"),
        ("TASKMATE_REQUEST_TIMEOUT", "request_timeout"),
    ):
        value = environ.get(key, "")
        if value.strip():
            overrides[field] = value.strip()

    require = environ.get("TASKMATE_REQUIRE_PASSWORD", "")
    if require.strip():
        overrides["require_password"] = require.strip().lower() in _TRUTHY
    return overrides


def load_config(path: Union[str, Path, None] = None, environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """
    Loads config.json (if present) and applies TASKMATE_* environment overrides.

    Environment values win over the file. When no password hash is configured
    the development default is used and a warning is logged.
    """
    if environ is None:
        environ = os.environ
    if path is None:
        path = environ.get("TASKMATE_CONFIG_FILE") or CONFIG_FILE
    path = Path(path)

    data = {}
    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Failed to read config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")
        # Go-style writers may emit null for an empty list.
        if data.get("token_hashes") is None:
            data.pop("token_hashes", None)

    data.update(_env_overrides(environ))
    data["config_file"] = str(path)

    try:
        config = AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    if not config.port:
        config.port = DEFAULT_PORT
    if not config.password_hash:
        config.password_hash = DEFAULT_PASSWORD_HASH
        logger.warning("Using default password hash. Set TASKMATE_PASSWORD_HASH for production.")
    return config


def save_config(config: AppConfig, path: Union[str, Path, None] = None):
    """Writes the persisted configuration fields to disk (mode 0600)."""
    path = Path(path or config.config_file)
    write_json_atomic(path, config.model_dump(include=PERSISTED_FIELDS))


def apply_overrides(config: AppConfig, **overrides) -> AppConfig:
    """Returns a validated copy of `config` with the non-empty overrides applied."""
    data = config.model_dump()
    data.update({key: value for key, value in overrides.items() if value})
    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration override: {e}") from e
