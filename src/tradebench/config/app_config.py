"""Application configuration loader.

Loads configuration from data/config/app_config_v1.yaml (or built-in
defaults), then applies environment overrides. The backend URL and public
key select remote mode; without both, the client runs offline.

Usage:
    from tradebench.config.app_config import load_app_config

    config = load_app_config()
    if config.backend.is_remote:
        ...
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("data/config/app_config_v1.yaml")

# Environment variables
ENV_BACKEND_URL = "TRADEBENCH_BACKEND_URL"
ENV_BACKEND_KEY = "TRADEBENCH_BACKEND_KEY"
ENV_SERVICE_ROLE_KEY = "TRADEBENCH_SERVICE_ROLE_KEY"
ENV_LOCAL_DB = "TRADEBENCH_LOCAL_DB"

BackendMode = Literal["remote", "offline"]


@dataclass
class BackendConfig:
    """Remote service settings. Empty url/key means offline mode."""

    url: str | None = None
    anon_key: str | None = None
    service_role_key: str | None = None
    timeout: float = 30.0

    @property
    def is_remote(self) -> bool:
        return bool(self.url and self.anon_key)

    @property
    def mode(self) -> BackendMode:
        return "remote" if self.is_remote else "offline"


@dataclass
class StorageConfig:
    """Offline storage settings."""

    local_db_path: Path = Path("data/state/tradebench.db")


@dataclass
class AppConfig:
    """Application-wide configuration."""

    backend: BackendConfig = field(default_factory=BackendConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    default_year: int = 1
    history_limit: int = 10


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "backend": {
            "url": None,
            "anon_key": None,
            "timeout": 30.0,
        },
        "storage": {
            "local_db_path": "data/state/tradebench.db",
        },
        "study": {
            "default_year": 1,
            "history_limit": 10,
        },
    }


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    backend_data = data.get("backend") or {}
    backend = BackendConfig(
        url=backend_data.get("url"),
        anon_key=backend_data.get("anon_key"),
        service_role_key=backend_data.get("service_role_key"),
        timeout=float(backend_data.get("timeout", 30.0)),
    )

    storage_data = data.get("storage") or {}
    storage = StorageConfig(
        local_db_path=Path(storage_data.get("local_db_path", "data/state/tradebench.db")),
    )

    study = data.get("study") or {}

    return AppConfig(
        backend=backend,
        storage=storage,
        default_year=study.get("default_year", 1),
        history_limit=study.get("history_limit", 10),
    )


def _apply_env_overrides(config: AppConfig) -> AppConfig:
    """Apply environment variables on top of file/default values."""
    url = os.environ.get(ENV_BACKEND_URL)
    key = os.environ.get(ENV_BACKEND_KEY)
    if url:
        config.backend.url = url.rstrip("/")
    if key:
        config.backend.anon_key = key

    service_key = os.environ.get(ENV_SERVICE_ROLE_KEY)
    if service_key:
        config.backend.service_role_key = service_key

    local_db = os.environ.get(ENV_LOCAL_DB)
    if local_db:
        config.storage.local_db_path = Path(local_db)

    if bool(config.backend.url) != bool(config.backend.anon_key):
        logger.warning(
            "config.incomplete_backend",
            has_url=bool(config.backend.url),
            has_key=bool(config.backend.anon_key),
            mode="offline",
        )

    return config


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config.

    Args:
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    data: dict[str, Any]

    if CONFIG_FILE.exists():
        logger.debug("config.loading", source=str(CONFIG_FILE))
        data = yaml.safe_load(CONFIG_FILE.read_text(encoding="utf-8")) or {}
    else:
        logger.debug("config.using_defaults")
        data = _get_defaults()

    _cached_config = _apply_env_overrides(_parse_config(data))
    logger.info("config.loaded", mode=_cached_config.backend.mode)
    return _cached_config


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
