"""
Route Profile ORM Models.

============================================================
PURPOSE
============================================================
Tables backing the layered route configuration engine:
baseline profiles, their signal routes, typed route aliases,
and per-consumer override records.

============================================================
TABLES
============================================================
- route_profiles: Named baseline configurations
- route_profile_routes: Ordered signal routes of a profile
- route_aliases: Typed secondary names, one per (route, type)
- consumer_route_overrides: Accumulating per-(consumer, route) diffs

============================================================
CASCADES
============================================================
Foreign keys declare ON DELETE CASCADE, but the repositories
delete children explicitly so the cascade also holds on
backends that do not enforce foreign keys.

============================================================
"""

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, TimestampMixin


def new_id() -> str:
    """Generate an opaque record identifier."""
    return str(uuid.uuid4())


# ============================================================
# PROFILE
# ============================================================

class RouteProfileModel(Base, TimestampMixin):
    """
    Named baseline configuration.

    The surrogate ``seq`` key records creation order, which is
    what default re-election uses after a delete.
    """

    __tablename__ = "route_profiles"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    profile_id: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True, default=new_id
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    scope: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        # At most one default per scope, enforced by the store itself.
        Index(
            "uq_route_profiles_default_per_scope",
            "scope",
            unique=True,
            sqlite_where=text("is_default = 1"),
            postgresql_where=text("is_default"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<RouteProfileModel(profile_id={self.profile_id}, name={self.name!r}, "
            f"scope={self.scope}, is_default={self.is_default})>"
        )


# ============================================================
# ROUTE
# ============================================================

class RouteModel(Base, TimestampMixin):
    """
    One logical signal channel of a profile.

    ``ordinal`` is not unique at the database level: ad-hoc edits
    may leave gaps or collisions, generation re-normalizes.
    """

    __tablename__ = "route_profile_routes"

    route_id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    profile_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("route_profiles.profile_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    ordinal: Mapped[int] = mapped_column(Integer, nullable=False)

    # Source side
    source_index: Mapped[int] = mapped_column(Integer, nullable=False)
    patch_panel: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    source_sub_index: Mapped[int] = mapped_column(Integer, nullable=False)

    # Encoder
    encoder_vendor: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    encoder_unit: Mapped[int] = mapped_column(Integer, nullable=False)
    encoder_slot: Mapped[int] = mapped_column(Integer, nullable=False)
    encoder_input_label: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    # Transport
    outbound_label: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    transport_protocol: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    network_endpoint: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    # Receiver
    receiver_vendor: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    receiver_unit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    destination_label: Mapped[str] = mapped_column(String(128), nullable=False, default="")

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="unknown")

    __table_args__ = (
        Index("ix_route_profile_routes_profile_ordinal", "profile_id", "ordinal"),
    )

    def __repr__(self) -> str:
        return (
            f"<RouteModel(route_id={self.route_id}, profile_id={self.profile_id}, "
            f"ordinal={self.ordinal}, status={self.status})>"
        )


# ============================================================
# ALIAS
# ============================================================

class RouteAliasModel(Base, TimestampMixin):
    """Typed secondary name of a route."""

    __tablename__ = "route_aliases"

    alias_id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    route_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("route_profile_routes.route_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    alias_type: Mapped[str] = mapped_column(String(32), nullable=False)
    value: Mapped[str] = mapped_column(String(255), nullable=False)

    __table_args__ = (
        UniqueConstraint("route_id", "alias_type", name="uq_route_aliases_route_type"),
    )


# ============================================================
# CONSUMER OVERRIDE
# ============================================================

class ConsumerRouteOverrideModel(Base, TimestampMixin):
    """
    Accumulating diff of one consumer against one baseline route.

    JSON columns are always reassigned, never mutated in place,
    so the ORM sees the change.
    """

    __tablename__ = "consumer_route_overrides"

    override_id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    consumer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    route_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("route_profile_routes.route_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    changed_fields: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    before: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    after: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    __table_args__ = (
        UniqueConstraint("consumer_id", "route_id", name="uq_consumer_route_overrides_pair"),
    )
