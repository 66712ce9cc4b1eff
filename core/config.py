"""Configuration loader -- reads config.yaml + .env + KALSHI_* env vars, validates with Pydantic.

Resolves ${ENV_VAR} references in YAML values from environment variables.
KALSHI_* variables override whatever the YAML file says.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# Default home directory for config.yaml and .env
DEFAULT_HOME = Path.home() / ".kalshi-desk"

PROD_BASE_URL = "https://api.elections.kalshi.com/trade-api/v2"
DEMO_BASE_URL = "https://demo-api.kalshi.co/trade-api/v2"

# string spellings read as true for boolean flags; anything else is false
_TRUE_STRINGS = frozenset({"1", "true", "TRUE", "yes", "YES"})

# env var -> (section, field)
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "KALSHI_ENV": ("kalshi", "env"),
    "KALSHI_BASE_URL": ("kalshi", "base_url"),
    "KALSHI_API_KEY": ("kalshi", "api_key"),
    "KALSHI_PRIVATE_KEY": ("kalshi", "private_key_path"),
    "KALSHI_HTTP_TIMEOUT": ("kalshi", "timeout_seconds"),
    "KALSHI_DB_PATH": ("storage", "db_path"),
    "KALSHI_DB_LOCK_TIMEOUT": ("storage", "lock_timeout_seconds"),
    "KALSHI_HOST": ("server", "host"),
    "KALSHI_PORT": ("server", "port"),
    "KALSHI_REFRESH_LIMIT": ("refresh", "limit"),
    "KALSHI_REFRESH_ON_START": ("refresh", "on_start"),
    "KALSHI_REFRESH_INTERVAL": ("refresh", "interval_seconds"),
    "KALSHI_ALERT_JUMP": ("alerts", "jump_threshold"),
    "KALSHI_ALERT_SPREAD": ("alerts", "spread_threshold"),
    "KALSHI_LOG_LEVEL": ("logging", "level"),
}


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ${ENV_VAR} references in config values."""
    if isinstance(value, str):
        pattern = re.compile(r"\$\{(\w+)\}")
        def replacer(match: re.Match) -> str:
            var_name = match.group(1)
            env_value = os.environ.get(var_name)
            if env_value is None:
                logger.warning("Environment variable %s not set", var_name)
                return match.group(0)  # leave unresolved
            return env_value
        return pattern.sub(replacer, value)
    elif isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


def _apply_env_overrides(raw: dict) -> dict:
    """Overlay KALSHI_* variables onto the raw config dict.

    Empty values are ignored so an unset-but-exported variable keeps the default.
    """
    for var_name, (section, field) in _ENV_OVERRIDES.items():
        value = os.environ.get(var_name)
        if value is None or value == "":
            continue
        target = raw.get(section)
        if not isinstance(target, dict):
            target = {}
            raw[section] = target
        target[field] = value
    return raw


# ---------------------------------------------------------------------------
# Config models (Pydantic)
# ---------------------------------------------------------------------------

class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8080


class KalshiConfig(BaseModel):
    env: str = "demo"
    base_url: str = ""
    api_key: str = ""
    private_key_path: str = ""
    timeout_seconds: float = 30.0

    @property
    def resolved_base_url(self) -> str:
        """Explicit base_url wins, otherwise pick prod or demo from `env`."""
        if self.base_url:
            return self.base_url.rstrip("/")
        return PROD_BASE_URL if self.env == "prod" else DEMO_BASE_URL


class StorageConfig(BaseModel):
    db_path: str = "data/kalshi.db"
    lock_timeout_seconds: float = 5.0


class RefreshConfig(BaseModel):
    limit: int = 100
    on_start: bool = True
    interval_seconds: int = 0  # 0 disables the periodic refresh

    @field_validator("on_start", mode="before")
    @classmethod
    def _lenient_bool(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip() in _TRUE_STRINGS
        return value


class AlertConfig(BaseModel):
    jump_threshold: float = 5.0
    spread_threshold: float = 10.0


class LoggingConfig(BaseModel):
    level: str = "INFO"


class AppConfig(BaseModel):
    """Top-level application configuration."""

    home_dir: str = str(DEFAULT_HOME)
    server: ServerConfig = Field(default_factory=ServerConfig)
    kalshi: KalshiConfig = Field(default_factory=KalshiConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    refresh: RefreshConfig = Field(default_factory=RefreshConfig)
    alerts: AlertConfig = Field(default_factory=AlertConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def home_path(self) -> Path:
        """Resolved home directory as a Path."""
        return Path(self.home_dir).expanduser()


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def load_config(
    config_path: str | Path | None = None,
    env_path: str | Path | None = None,
) -> AppConfig:
    """Load configuration from YAML + .env files.

    1. Load .env into environment variables
    2. Load config.yaml and resolve ${ENV_VAR} references
    3. Apply KALSHI_* environment overrides
    4. Validate against Pydantic models
    """
    home = Path(os.environ.get("KALSHI_DESK_HOME", str(DEFAULT_HOME))).expanduser()

    if env_path is None:
        env_path = home / ".env"
    if config_path is None:
        config_path = home / "config.yaml"

    env_path = Path(env_path)
    config_path = Path(config_path)

    if env_path.exists():
        load_dotenv(env_path)
        logger.info("Loaded environment from %s", env_path)
    else:
        logger.debug("No .env file at %s", env_path)

    raw_config: dict = {}
    if config_path.exists():
        with open(config_path) as f:
            raw_config = yaml.safe_load(f) or {}
        logger.info("Loaded config from %s", config_path)
    else:
        logger.debug("No config file at %s, using defaults", config_path)

    resolved = _apply_env_overrides(_resolve_env_vars(raw_config))
    resolved.setdefault("home_dir", str(home))

    return AppConfig(**resolved)
