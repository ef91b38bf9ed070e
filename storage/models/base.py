"""
Base ORM Model and Mixins.

============================================================
PURPOSE
============================================================
Declarative base and shared column mixins for every table
owned by the route profile engine.

============================================================
COMPONENTS
============================================================
- Base: SQLAlchemy declarative base
- TimestampMixin: created_at / updated_at columns

============================================================
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Timezone-aware current time, used as a column default."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """
    Declarative base for all ORM models.

    Datetime annotations map to timezone-aware columns.
    """

    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class TimestampMixin:
    """
    Mixin providing standard timestamp columns.

    Defaults are generated client-side so that rows written in
    the same transaction carry usable values before a refresh.

    Usage:
        class RouteAliasModel(Base, TimestampMixin):
            __tablename__ = "route_aliases"
            ...
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        comment="Record creation timestamp (UTC)"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        comment="Last update timestamp (UTC)"
    )
