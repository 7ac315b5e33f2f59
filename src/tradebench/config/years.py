"""Training-year catalog loader.

Loads apprenticeship periods from data/config/years_v1.yaml.

Usage:
    from tradebench.config.years import get_year, list_years

    year = get_year(2)
    all_years = list_years()
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
YEARS_FILE = Path("data/config/years_v1.yaml")


@dataclass
class TrainingYear:
    """One apprenticeship period a user can study for."""

    number: int
    title: str
    description: str
    icon: str = ""


# Module-level cache
_cached_years: dict[int, TrainingYear] | None = None


def _get_default_years() -> dict[int, TrainingYear]:
    """Get default periods when config file is missing."""
    return {
        1: TrainingYear(1, "Period 1", "Basic pipefitting fundamentals", "🔧"),
        2: TrainingYear(2, "Period 2", "Intermediate systems and installations", "⚙️"),
        3: TrainingYear(3, "Period 3", "Advanced piping systems", "🏭"),
        4: TrainingYear(4, "Period 4", "Master level and supervision", "👨‍🏫"),
    }


def load_years(force_reload: bool = False) -> dict[int, TrainingYear]:
    """Load all training years from config file.

    Args:
        force_reload: If True, ignore cache and reload from file.

    Returns:
        Dictionary mapping year number to TrainingYear, in ascending order.
    """
    global _cached_years

    if _cached_years is not None and not force_reload:
        return _cached_years

    if not YEARS_FILE.exists():
        logger.debug("years.file_not_found", path=str(YEARS_FILE))
        _cached_years = _get_default_years()
        return _cached_years

    try:
        data = yaml.safe_load(YEARS_FILE.read_text(encoding="utf-8")) or {}
        years = {}
        for entry in data.get("years", []):
            number = int(entry["number"])
            years[number] = TrainingYear(
                number=number,
                title=entry.get("title", f"Period {number}"),
                description=entry.get("description", ""),
                icon=entry.get("icon", ""),
            )
    except (OSError, yaml.YAMLError, KeyError, TypeError, ValueError) as e:
        logger.error("years.load_failed", error=str(e))
        _cached_years = _get_default_years()
        return _cached_years

    _cached_years = dict(sorted(years.items())) or _get_default_years()
    logger.debug("years.loaded", count=len(_cached_years))
    return _cached_years


def get_year(number: int) -> TrainingYear | None:
    """Get a training year by number, or None if unknown."""
    return load_years().get(number)


def list_years() -> list[TrainingYear]:
    """List all training years in order."""
    return list(load_years().values())


def clear_years_cache() -> None:
    """Clear the years cache."""
    global _cached_years
    _cached_years = None
