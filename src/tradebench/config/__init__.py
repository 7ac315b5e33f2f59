"""Configuration package for TradeBench."""

from tradebench.config.app_config import (
    AppConfig,
    BackendConfig,
    StorageConfig,
    clear_config_cache,
    load_app_config,
)
from tradebench.config.years import (
    TrainingYear,
    clear_years_cache,
    get_year,
    list_years,
    load_years,
)

__all__ = [
    "AppConfig",
    "BackendConfig",
    "StorageConfig",
    "clear_config_cache",
    "load_app_config",
    "TrainingYear",
    "clear_years_cache",
    "get_year",
    "list_years",
    "load_years",
]
