"""
roomsync settings.

Values come from (lowest to highest priority): field defaults,
``ROOMSYNC_*`` environment variables / ``.env``, an optional
``roomsync.yaml`` file, explicit overrides (CLI flags).

Usage:
    from roomsync.config import get_settings

    settings = get_settings()
    print(settings.port, settings.reconnect.max_attempts)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "roomsync.yaml"


class ReconnectSettings(BaseModel):
    """Client reconnection policy."""
    base_delay: float = 1.0
    growth_factor: float = 1.5
    max_attempts: int = 10
    open_timeout: float = 10.0


class Settings(BaseSettings):
    """roomsync settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ROOMSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 3001
    ws_path: str = "/ws"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    # Client
    server_url: str = "ws://localhost:3001/ws"
    reconnect: ReconnectSettings = Field(default_factory=ReconnectSettings)


def load_yaml_config(path: Path | str = DEFAULT_CONFIG_PATH) -> dict[str, Any]:
    """Load raw configuration values from a YAML file. Missing file -> {}."""
    path = Path(path)
    if not path.exists():
        return {}

    data = yaml.safe_load(path.read_text()) or {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring {path}: top-level YAML value is not a mapping")
        return {}
    return data


def get_settings(config_path: Optional[Path | str] = None, **overrides: Any) -> Settings:
    """
    Build settings.

    Args:
        config_path: YAML file with defaults (default: ./roomsync.yaml if present)
        **overrides: Explicit values (e.g. from CLI flags), applied last

    Returns:
        Settings instance
    """
    values = load_yaml_config(config_path or DEFAULT_CONFIG_PATH)
    settings = Settings(**values)
    if overrides:
        settings = settings.model_copy(update={k: v for k, v in overrides.items() if v is not None})
    return settings


def default_config_yaml() -> str:
    """Default roomsync.yaml contents."""
    settings = Settings()
    data = {
        "host": settings.host,
        "port": settings.port,
        "ws_path": settings.ws_path,
        "cors_origins": settings.cors_origins,
        "log_level": settings.log_level,
        "server_url": settings.server_url,
        "reconnect": settings.reconnect.model_dump(),
    }
    return "# roomsync configuration\n" + yaml.dump(data, default_flow_style=False, sort_keys=False)
