"""
Storage Models Package.

ORM models for the route profile engine.

============================================================
MODEL ORGANIZATION
============================================================

base.py
- Base
- TimestampMixin

route_profiles.py
- RouteProfileModel
- RouteModel
- RouteAliasModel
- ConsumerRouteOverrideModel

============================================================
"""

from storage.models.base import Base, TimestampMixin, utcnow
from storage.models.route_profiles import (
    ConsumerRouteOverrideModel,
    RouteAliasModel,
    RouteModel,
    RouteProfileModel,
    new_id,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "utcnow",
    "new_id",
    "RouteProfileModel",
    "RouteModel",
    "RouteAliasModel",
    "ConsumerRouteOverrideModel",
]
