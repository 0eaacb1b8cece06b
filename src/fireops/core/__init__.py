"""Core utilities shared by the roster and report services."""

from fireops.core.config import OrgConfig, get_org_config, get_timezone, local_now
from fireops.core.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    OpsError,
    TooEarlyError,
    ValidationError,
)

__all__ = [
    "ConflictError",
    "InvalidStateError",
    "NotFoundError",
    "OpsError",
    "OrgConfig",
    "TooEarlyError",
    "ValidationError",
    "get_org_config",
    "get_timezone",
    "local_now",
]
