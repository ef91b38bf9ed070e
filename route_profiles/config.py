"""
Route Profiles - Configuration.

============================================================
PURPOSE
============================================================
All configuration for the route profile engine.

Values come from the environment (a local .env file is loaded
first). Every setting has a default so the engine runs against
a local SQLite file with no configuration at all.

============================================================
ENVIRONMENT
============================================================
ROUTE_ENGINE_DATABASE_URL          async SQLAlchemy URL
ROUTE_ENGINE_DB_ECHO               log SQL (true/false)
ROUTE_ENGINE_POOL_SIZE             pool size for server databases
ROUTE_ENGINE_DEFAULT_SCOPE         scope used when none is given
ROUTE_ENGINE_DEFAULT_PROFILE_NAME  name of the implicitly created default
ROUTE_ENGINE_LOG_LEVEL             logging level for the CLI

============================================================
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import load_dotenv

from storage.database import DatabaseConfig

from .errors import InvalidArgument


logger = logging.getLogger(__name__)


# Channel counts commonly generated for a production
CHANNEL_PRESETS = (8, 12, 16, 24)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///route_profiles.db"


# ============================================================
# GENERATION DEFAULTS
# ============================================================

@dataclass
class RouteDefaultsConfig:
    """
    Values seeded into every generated route.

    Only the encoder unit/slot packing is derived; everything
    here is a plain default the operator edits afterwards.
    """

    patch_panel: str = "Flypack1"
    """Patch panel (flypack) the source is cabled through."""

    encoder_vendor: str = "Videon"
    """Encoder vendor tag."""

    transport_protocol: str = "SRT"
    """Transport protocol tag."""

    network_endpoint: str = "TBD"
    """Network endpoint placeholder."""

    receiver_vendor: str = "Magewell"
    """Receiver vendor tag."""

    receiver_unit: Optional[int] = None
    """Receiver unit, unassigned at generation time."""

    destination_prefix: str = "Arena"
    """Prefix of destination labels and matrix-name aliases."""


# ============================================================
# ENGINE CONFIGURATION
# ============================================================

@dataclass
class RouteEngineConfig:
    """Complete engine configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    defaults: RouteDefaultsConfig = field(default_factory=RouteDefaultsConfig)

    default_scope: str = "global"
    """Scope used when a caller does not name one."""

    default_profile_name: str = "Default Routes"
    """Name of the profile created by ensure_default_profile."""


# ============================================================
# LOADING
# ============================================================

def _parse_bool(key: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off", ""):
        return False
    raise InvalidArgument(f"Invalid boolean for {key}: {raw!r}", argument=key, value=raw)


def _parse_positive_int(key: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as e:
        raise InvalidArgument(f"Invalid integer for {key}: {raw!r}", argument=key, value=raw) from e
    if value < 1:
        raise InvalidArgument(f"{key} must be >= 1", argument=key, value=raw)
    return value


def load_config(
    environ: Optional[Mapping[str, str]] = None,
    dotenv: bool = True,
) -> RouteEngineConfig:
    """
    Build configuration from environment variables.

    Args:
        environ: Mapping to read instead of os.environ
        dotenv: Load a .env file into os.environ first

    Raises:
        InvalidArgument: If a variable holds an unusable value
    """
    if environ is None:
        if dotenv:
            load_dotenv()
        environ = os.environ

    url = environ.get("ROUTE_ENGINE_DATABASE_URL")
    if not url:
        url = DEFAULT_DATABASE_URL
        logger.warning(f"ROUTE_ENGINE_DATABASE_URL not set, using default: {url}")

    database = DatabaseConfig(url=url)
    if "ROUTE_ENGINE_DB_ECHO" in environ:
        database.echo = _parse_bool("ROUTE_ENGINE_DB_ECHO", environ["ROUTE_ENGINE_DB_ECHO"])
    if "ROUTE_ENGINE_POOL_SIZE" in environ:
        database.pool_size = _parse_positive_int(
            "ROUTE_ENGINE_POOL_SIZE", environ["ROUTE_ENGINE_POOL_SIZE"]
        )

    config = RouteEngineConfig(database=database)

    scope = environ.get("ROUTE_ENGINE_DEFAULT_SCOPE")
    if scope is not None:
        if not scope.strip():
            raise InvalidArgument("ROUTE_ENGINE_DEFAULT_SCOPE must not be blank",
                                  argument="ROUTE_ENGINE_DEFAULT_SCOPE")
        config.default_scope = scope.strip()

    name = environ.get("ROUTE_ENGINE_DEFAULT_PROFILE_NAME")
    if name:
        config.default_profile_name = name

    return config


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging for command-line use."""
    level_name = (level or os.getenv("ROUTE_ENGINE_LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
