"""Configuration loading utilities."""

import json
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

DEFAULT_INCIDENT_TYPES = ("fire", "rescue", "medical", "other")


@dataclass
class OrgConfig:
    """Organization configuration loaded from config/organization.json.

    All org-specific data lives here rather than in code, so
    customization requires only editing the JSON file.
    """

    company_name: str
    timezone: str = "UTC"
    cosmos_database: str = ""
    operations_department: str = "operations"
    duty_release_hour: int = 7  # Earliest manual deactivation, day after activation
    duty_sweep_hour: int = 8  # Forced deactivation by the sweep, day after activation
    incident_types: tuple[str, ...] = DEFAULT_INCIDENT_TYPES


def get_project_root() -> Path:
    """Get the project root directory."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / "pyproject.toml").exists():
            return parent
    raise RuntimeError("Could not find project root (no pyproject.toml found)")


def load_org_config() -> OrgConfig:
    """Load organization configuration from config file.

    Returns:
        OrgConfig with timezone, database and duty roster settings

    Raises:
        FileNotFoundError: If config/organization.json does not exist
        ValueError: If a duty hour is outside 0-23
    """
    project_root = get_project_root()
    config_path = project_root / "config" / "organization.json"

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open() as f:
        config_data = json.load(f)

    release_hour = int(config_data.get("duty_release_hour", 7))
    sweep_hour = int(config_data.get("duty_sweep_hour", 8))
    for key, hour in (("duty_release_hour", release_hour), ("duty_sweep_hour", sweep_hour)):
        if not 0 <= hour <= 23:
            raise ValueError(f"{key} must be between 0 and 23, got {hour}")

    return OrgConfig(
        company_name=config_data["company_name"],
        timezone=config_data.get("timezone") or "UTC",
        cosmos_database=config_data.get("cosmos_database", ""),
        operations_department=config_data.get("operations_department", "operations"),
        duty_release_hour=release_hour,
        duty_sweep_hour=sweep_hour,
        incident_types=tuple(config_data.get("incident_types", DEFAULT_INCIDENT_TYPES)),
    )


# Cached config instance
_org_config: OrgConfig | None = None


def get_org_config() -> OrgConfig:
    """Get cached organization config.

    Loads config once and caches it for subsequent calls.
    """
    global _org_config
    if _org_config is None:
        _org_config = load_org_config()
    return _org_config


def get_cosmos_database() -> str:
    """Get Cosmos DB database name.

    Reads from ``COSMOS_DATABASE`` env var first (for Container Apps),
    falls back to ``organization.json``.
    """
    load_dotenv()
    return os.getenv("COSMOS_DATABASE") or get_org_config().cosmos_database


def get_timezone() -> ZoneInfo:
    """Get organization timezone as a ZoneInfo object."""
    return ZoneInfo(get_org_config().timezone)


def local_now() -> datetime:
    """Current time as an aware datetime in the organization timezone."""
    return datetime.now(get_timezone())


def is_sweep_enabled() -> bool:
    """Check whether the in-process duty sweep loop should run.

    Disable with ``DUTY_SWEEP_ENABLED=0`` when an external cron calls
    ``POST /units/sweep`` instead.
    """
    load_dotenv()
    return os.getenv("DUTY_SWEEP_ENABLED", "1").strip().lower() not in {"0", "false", "no"}
