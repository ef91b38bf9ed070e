"""
Route Profile Repositories.

============================================================
PURPOSE
============================================================
Data access for baseline profiles, their routes, route
aliases and consumer overrides.

============================================================
REPOSITORIES
============================================================
- ProfileRepository: Profiles and the per-scope default flag
- RouteRepository: Routes of a profile, bulk replace, field updates
- AliasRepository: Typed aliases with upsert semantics
- OverrideRepository: Per-(consumer, route) override records

============================================================
TRANSACTIONS
============================================================
Repositories only flush. The service opens one transaction
per operation and commits it once every step succeeded.

============================================================
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storage.models.route_profiles import (
    ConsumerRouteOverrideModel,
    RouteAliasModel,
    RouteModel,
    RouteProfileModel,
)
from storage.repositories.base import BaseRepository


# ============================================================
# PROFILES
# ============================================================

class ProfileRepository(BaseRepository[RouteProfileModel]):
    """
    Repository for baseline profiles.

    Creation order is the ``seq`` surrogate key.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, RouteProfileModel, "ProfileRepository")

    async def create(self, name: str, scope: str, is_default: bool = False) -> RouteProfileModel:
        entity = RouteProfileModel(name=name, scope=scope, is_default=is_default)
        return await self._add(entity)

    async def get(self, profile_id: str) -> Optional[RouteProfileModel]:
        stmt = select(RouteProfileModel).where(RouteProfileModel.profile_id == profile_id)
        return await self._execute_scalar(stmt)

    async def list_profiles(self, scope: Optional[str] = None) -> List[RouteProfileModel]:
        stmt = select(RouteProfileModel)
        if scope is not None:
            stmt = stmt.where(RouteProfileModel.scope == scope)
        return await self._execute_query(stmt.order_by(RouteProfileModel.seq))

    async def get_default(self, scope: str) -> Optional[RouteProfileModel]:
        stmt = select(RouteProfileModel).where(
            RouteProfileModel.scope == scope,
            RouteProfileModel.is_default.is_(True),
        )
        return await self._execute_scalar(stmt)

    async def first_in_scope(self, scope: str) -> Optional[RouteProfileModel]:
        stmt = (
            select(RouteProfileModel)
            .where(RouteProfileModel.scope == scope)
            .order_by(RouteProfileModel.seq)
            .limit(1)
        )
        return await self._execute_scalar(stmt)

    async def set_default(self, scope: str, profile_id: Optional[str]) -> None:
        """
        Make ``profile_id`` the only default of ``scope``.

        Clears every flag in the scope first, then sets the one;
        both statements run in the caller's transaction. With
        ``profile_id=None`` the scope is left without a default.
        """
        await self._execute(
            update(RouteProfileModel)
            .where(RouteProfileModel.scope == scope, RouteProfileModel.is_default.is_(True))
            .values(is_default=False),
            "clear_default",
        )
        if profile_id is not None:
            await self._execute(
                update(RouteProfileModel)
                .where(RouteProfileModel.profile_id == profile_id)
                .values(is_default=True),
                "set_default",
            )
        self._logger.debug(f"Default of scope {scope} set to {profile_id}")

    async def delete(self, profile_id: str) -> None:
        await self._execute(
            delete(RouteProfileModel).where(RouteProfileModel.profile_id == profile_id),
            "delete_profile",
        )


# ============================================================
# ROUTES
# ============================================================

class RouteRepository(BaseRepository[RouteModel]):
    """Repository for the routes of a profile."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, RouteModel, "RouteRepository")

    async def get(self, route_id: str) -> Optional[RouteModel]:
        return await self._get_by_id(route_id)

    async def list_for_profile(self, profile_id: str) -> List[RouteModel]:
        stmt = (
            select(RouteModel)
            .where(RouteModel.profile_id == profile_id)
            .order_by(RouteModel.ordinal, RouteModel.route_id)
        )
        return await self._execute_query(stmt)

    async def add_routes(self, profile_id: str, rows: Sequence[Dict[str, Any]]) -> List[RouteModel]:
        """Insert routes for a profile; ``rows`` hold column values."""
        entities = [RouteModel(profile_id=profile_id, **row) for row in rows]
        return await self._add_all(entities)

    async def delete_for_profile(self, profile_id: str) -> int:
        """
        Delete every route of a profile with its aliases and overrides.

        Returns:
            Number of routes deleted
        """
        route_ids = list(
            (await self._execute(
                select(RouteModel.route_id).where(RouteModel.profile_id == profile_id),
                "select_route_ids",
            )).scalars()
        )
        if not route_ids:
            return 0

        await self._execute(
            delete(ConsumerRouteOverrideModel).where(
                ConsumerRouteOverrideModel.route_id.in_(route_ids)
            ),
            "delete_overrides",
        )
        await self._execute(
            delete(RouteAliasModel).where(RouteAliasModel.route_id.in_(route_ids)),
            "delete_aliases",
        )
        await self._execute(
            delete(RouteModel).where(RouteModel.route_id.in_(route_ids)),
            "delete_routes",
        )
        return len(route_ids)

    async def update_field(self, route_id: str, field: str, value: Any) -> None:
        await self._execute(
            update(RouteModel).where(RouteModel.route_id == route_id).values({field: value}),
            "update_field",
        )


# ============================================================
# ALIASES
# ============================================================

class AliasRepository(BaseRepository[RouteAliasModel]):
    """Repository for route aliases; one alias per (route, type)."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, RouteAliasModel, "AliasRepository")

    async def get(self, route_id: str, alias_type: str) -> Optional[RouteAliasModel]:
        stmt = select(RouteAliasModel).where(
            RouteAliasModel.route_id == route_id,
            RouteAliasModel.alias_type == alias_type,
        )
        return await self._execute_scalar(stmt)

    async def list_for_routes(self, route_ids: Sequence[str]) -> List[RouteAliasModel]:
        if not route_ids:
            return []
        stmt = select(RouteAliasModel).where(RouteAliasModel.route_id.in_(list(route_ids)))
        return await self._execute_query(stmt)

    async def add_aliases(self, rows: Sequence[Tuple[str, str, str]]) -> List[RouteAliasModel]:
        """Insert ``(route_id, alias_type, value)`` rows."""
        entities = [
            RouteAliasModel(route_id=route_id, alias_type=alias_type, value=value)
            for route_id, alias_type, value in rows
        ]
        return await self._add_all(entities)

    async def upsert(
        self,
        route_id: str,
        alias_type: str,
        value: str,
    ) -> Tuple[RouteAliasModel, bool]:
        """
        Update the alias in place, or insert it.

        Returns:
            (alias, created)
        """
        existing = await self.get(route_id, alias_type)
        if existing is not None:
            existing.value = value
            await self._flush("update_alias")
            return existing, False

        entity = RouteAliasModel(route_id=route_id, alias_type=alias_type, value=value)
        return await self._add(entity), True


# ============================================================
# OVERRIDES
# ============================================================

class OverrideRepository(BaseRepository[ConsumerRouteOverrideModel]):
    """Repository for consumer override records."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, ConsumerRouteOverrideModel, "OverrideRepository")

    async def get(self, consumer_id: str, route_id: str) -> Optional[ConsumerRouteOverrideModel]:
        stmt = select(ConsumerRouteOverrideModel).where(
            ConsumerRouteOverrideModel.consumer_id == consumer_id,
            ConsumerRouteOverrideModel.route_id == route_id,
        )
        return await self._execute_scalar(stmt)

    async def list_for_consumer(
        self,
        consumer_id: str,
        route_ids: Optional[Sequence[str]] = None,
    ) -> List[ConsumerRouteOverrideModel]:
        stmt = select(ConsumerRouteOverrideModel).where(
            ConsumerRouteOverrideModel.consumer_id == consumer_id
        )
        if route_ids is not None:
            if not route_ids:
                return []
            stmt = stmt.where(ConsumerRouteOverrideModel.route_id.in_(list(route_ids)))
        return await self._execute_query(stmt.order_by(ConsumerRouteOverrideModel.created_at))

    async def create(
        self,
        consumer_id: str,
        route_id: str,
        changed_fields: List[str],
        before: Dict[str, Any],
        after: Dict[str, Any],
    ) -> ConsumerRouteOverrideModel:
        entity = ConsumerRouteOverrideModel(
            consumer_id=consumer_id,
            route_id=route_id,
            changed_fields=changed_fields,
            before=before,
            after=after,
        )
        return await self._add(entity)

    async def replace_payload(
        self,
        entity: ConsumerRouteOverrideModel,
        changed_fields: List[str],
        before: Dict[str, Any],
        after: Dict[str, Any],
    ) -> ConsumerRouteOverrideModel:
        entity.changed_fields = changed_fields
        entity.before = before
        entity.after = after
        await self._flush("update_override")
        return entity
