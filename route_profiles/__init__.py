"""
Route Profiles Package.

Layered route configuration for signal channels: baseline
profiles of generated routes, typed aliases, per-consumer
override records and resolution of what each consumer sees.

Core Principles:
- Routes belong to exactly one profile
- At most one default profile per scope
- Consumers never modify baseline routes; their edits are recorded
- Every command commits fully or not at all

Modules:
- types: Domain dataclasses and enums
- generator: Canonical route topology for N channels
- ledger: Override merge rule
- resolution: Mode-driven route resolution
- service: Command/query surface backed by the store
- cli: Command-line interface

Usage:
    from route_profiles import RouteProfileService
    from storage.database import Database

    service = RouteProfileService(Database())
    profile_id = await service.ensure_default_profile(12)
"""

from route_profiles.config import (
    CHANNEL_PRESETS,
    RouteDefaultsConfig,
    RouteEngineConfig,
    load_config,
)

from route_profiles.errors import (
    InvalidArgument,
    NotFound,
    NothingToFork,
    RouteEngineError,
    StoreUnavailable,
)

from route_profiles.generator import build_route_seeds, encoder_position

from route_profiles.service import RouteProfileService

from route_profiles.types import (
    Alias,
    AliasType,
    Profile,
    ProfileState,
    ResolvedRoute,
    Route,
    RouteField,
    RouteMode,
    RouteOverride,
    RouteStatus,
)

__all__ = [
    # Config
    "CHANNEL_PRESETS",
    "RouteDefaultsConfig",
    "RouteEngineConfig",
    "load_config",
    # Errors
    "RouteEngineError",
    "InvalidArgument",
    "NotFound",
    "NothingToFork",
    "StoreUnavailable",
    # Generator
    "build_route_seeds",
    "encoder_position",
    # Service
    "RouteProfileService",
    # Types
    "Alias",
    "AliasType",
    "Profile",
    "ProfileState",
    "ResolvedRoute",
    "Route",
    "RouteField",
    "RouteMode",
    "RouteOverride",
    "RouteStatus",
]
