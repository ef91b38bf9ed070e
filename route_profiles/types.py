"""
Route Profiles - Types.

============================================================
PURPOSE
============================================================
Domain types for the layered route configuration engine.

- Profile: named, versioned baseline configuration
- Route: one signal channel's topology, owned by a profile
- Alias: typed secondary name of a route
- RouteOverride: accumulating per-(consumer, route) diff
- ResolvedRoute: what a consumer sees after resolution
- ProfileState: in-memory mirror of the last committed state

============================================================
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


# ============================================================
# ENUMS
# ============================================================

class RouteStatus(str, Enum):
    """Health of a route."""

    HEALTHY = "healthy"
    WARN = "warn"
    DOWN = "down"
    UNKNOWN = "unknown"


class RouteMode(str, Enum):
    """
    How a consumer obtains its routes.

    USE_DEFAULT   scope default profile, base values
    USE_PROFILE   chosen profile, base values
    FORK_PROFILE  chosen profile with the consumer's overrides applied
    CUSTOM        no profile backing; resolves to nothing
    """

    USE_DEFAULT = "use_default"
    USE_PROFILE = "use_profile"
    FORK_PROFILE = "fork_profile"
    CUSTOM = "custom"


class AliasType(str, Enum):
    """Closed set of alias kinds; at most one alias per kind per route."""

    PRODUCTION = "production"
    TECHNICAL = "technical"
    TRUCK = "truck"
    MATRIX_NAME = "matrix_name"


class RouteField(str, Enum):
    """Fields of a baseline route that may be set after generation."""

    ORDINAL = "ordinal"
    SOURCE_INDEX = "source_index"
    PATCH_PANEL = "patch_panel"
    SOURCE_SUB_INDEX = "source_sub_index"
    ENCODER_VENDOR = "encoder_vendor"
    ENCODER_UNIT = "encoder_unit"
    ENCODER_SLOT = "encoder_slot"
    ENCODER_INPUT_LABEL = "encoder_input_label"
    OUTBOUND_LABEL = "outbound_label"
    TRANSPORT_PROTOCOL = "transport_protocol"
    NETWORK_ENDPOINT = "network_endpoint"
    RECEIVER_VENDOR = "receiver_vendor"
    RECEIVER_UNIT = "receiver_unit"
    DESTINATION_LABEL = "destination_label"
    STATUS = "status"


ROUTE_FIELD_NAMES = frozenset(f.value for f in RouteField)

# Keys that identify a row and can never be overridden
IDENTITY_FIELDS = frozenset({"id", "route_id", "profile_id"})


# ============================================================
# PROFILE / ROUTE / ALIAS
# ============================================================

@dataclass
class Profile:
    """Named baseline configuration."""

    profile_id: str
    name: str
    scope: str
    is_default: bool = False
    created_at: Optional[datetime] = None


@dataclass
class Alias:
    """Typed secondary name attached to a route."""

    alias_id: str
    route_id: str
    alias_type: AliasType
    value: str


@dataclass
class Route:
    """
    One logical signal channel of a profile.

    Topology fields follow the physical path: source, patch
    panel, encoder unit/slot, outbound circuit, transport,
    receiver and the destination on the routing matrix.
    """

    route_id: str
    profile_id: str
    ordinal: int
    source_index: int
    patch_panel: str
    source_sub_index: int
    encoder_vendor: str
    encoder_unit: int
    encoder_slot: int
    encoder_input_label: str
    outbound_label: str
    transport_protocol: str
    network_endpoint: str
    receiver_vendor: str
    receiver_unit: Optional[int]
    destination_label: str
    status: RouteStatus = RouteStatus.UNKNOWN
    aliases: List[Alias] = field(default_factory=list)

    def topology(self) -> Dict[str, Any]:
        """Values of every settable field (topology plus status)."""
        return {f.value: getattr(self, f.value) for f in RouteField}

    def alias(self, alias_type: AliasType) -> Optional[str]:
        """Value of the alias of the given type, if any."""
        for alias in self.aliases:
            if alias.alias_type == alias_type:
                return alias.value
        return None


@dataclass
class ResolvedRoute(Route):
    """
    Route as seen by a consumer.

    Override information is reported in every mode; the override
    values themselves are only applied in fork mode.
    """

    is_overridden: bool = False
    overridden_fields: List[str] = field(default_factory=list)
    extra_fields: Dict[str, Any] = field(default_factory=dict)
    """Overridden keys that are not route fields (fork mode only)."""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["aliases"] = [
            {"alias_type": a.alias_type.value, "value": a.value} for a in self.aliases
        ]
        return data


# ============================================================
# OVERRIDE
# ============================================================

@dataclass
class RouteOverride:
    """
    Accumulating diff of one consumer against one route.

    ``before[f]`` holds the value seen at the first edit of ``f``,
    ``after[f]`` the latest value. ``changed_fields`` keeps the
    order in which fields were first touched.
    """

    consumer_id: str
    route_id: str
    changed_fields: List[str] = field(default_factory=list)
    before: Dict[str, Any] = field(default_factory=dict)
    after: Dict[str, Any] = field(default_factory=dict)


# ============================================================
# IN-MEMORY MIRROR
# ============================================================

@dataclass
class ProfileState:
    """
    Last known-good view of the store.

    Only ever replaced after a write has been committed.
    """

    profiles: List[Profile] = field(default_factory=list)
    active_profile_id: Optional[str] = None
    routes: List[Route] = field(default_factory=list)

    def default_profile(self, scope: str) -> Optional[Profile]:
        for profile in self.profiles:
            if profile.scope == scope and profile.is_default:
                return profile
        return None

    def find_route(self, route_id: str) -> Optional[Route]:
        for route in self.routes:
            if route.route_id == route_id:
                return route
        return None
