"""
Route Profiles - Service.

============================================================
PURPOSE
============================================================
Command/query surface of the layered route configuration
engine, consumed by forms and tables.

COMMANDS:
- generate_routes / ensure_default_profile
- create_profile / clone_profile / delete_profile / set_default_profile
- upsert_alias
- update_route_field / update_route_status
- record_consumer_field_change
- fork_from_consumer

QUERIES:
- resolve_for_consumer / get_consumer_routes
- list_profiles / get_profile / list_routes
- list_overrides / get_override
- load / switch_profile (in-memory mirror)

============================================================
CONSISTENCY
============================================================
- One database transaction per command; nothing is committed
  unless every step succeeds.
- Input is validated before the transaction opens.
- The in-memory mirror (``state``) is only updated after the
  commit, from rows read inside that same transaction.
- Writers of the default flag are serialized by one lock; edits
  of the same (consumer, route) pair by a per-pair lock.

============================================================
"""

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import AsyncIterator, Dict, List, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from storage.database import Database
from storage.models.route_profiles import (
    ConsumerRouteOverrideModel,
    RouteAliasModel,
    RouteModel,
    RouteProfileModel,
)
from storage.repositories.exceptions import RepositoryException
from storage.repositories.route_profiles import (
    AliasRepository,
    OverrideRepository,
    ProfileRepository,
    RouteRepository,
)

from .config import RouteEngineConfig
from .errors import InvalidArgument, NotFound, NothingToFork, StoreUnavailable
from .generator import SEEDED_ALIAS_TYPE, build_route_seeds, validate_channel_count
from .ledger import merge_field_change
from .resolution import parse_mode, resolve_routes, target_profile_id
from .schemas import (
    AliasUpsert,
    FieldChange,
    ForkRequest,
    ProfileClone,
    ProfileCreate,
    RouteFieldUpdate,
)
from .types import (
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


logger = logging.getLogger(__name__)

S = TypeVar("S", bound=BaseModel)


# ============================================================
# MODEL CONVERSION
# ============================================================

def _profile(model: RouteProfileModel) -> Profile:
    return Profile(
        profile_id=model.profile_id,
        name=model.name,
        scope=model.scope,
        is_default=bool(model.is_default),
        created_at=model.created_at,
    )


def _alias(model: RouteAliasModel) -> Alias:
    return Alias(
        alias_id=model.alias_id,
        route_id=model.route_id,
        alias_type=AliasType(model.alias_type),
        value=model.value,
    )


def _route(model: RouteModel, aliases: List[Alias]) -> Route:
    return Route(
        route_id=model.route_id,
        profile_id=model.profile_id,
        ordinal=model.ordinal,
        source_index=model.source_index,
        patch_panel=model.patch_panel,
        source_sub_index=model.source_sub_index,
        encoder_vendor=model.encoder_vendor,
        encoder_unit=model.encoder_unit,
        encoder_slot=model.encoder_slot,
        encoder_input_label=model.encoder_input_label,
        outbound_label=model.outbound_label,
        transport_protocol=model.transport_protocol,
        network_endpoint=model.network_endpoint,
        receiver_vendor=model.receiver_vendor,
        receiver_unit=model.receiver_unit,
        destination_label=model.destination_label,
        status=RouteStatus(model.status),
        aliases=sorted(aliases, key=lambda a: a.alias_type.value),
    )


def _override(model: ConsumerRouteOverrideModel) -> RouteOverride:
    return RouteOverride(
        consumer_id=model.consumer_id,
        route_id=model.route_id,
        changed_fields=list(model.changed_fields or []),
        before=dict(model.before or {}),
        after=dict(model.after or {}),
    )


def _route_columns(route: Route) -> Dict[str, object]:
    """Column values of a route's settable fields, ready for insert."""
    columns = route.topology()
    columns["status"] = route.status.value
    return columns


def _validate(schema: Type[S], **values) -> S:
    try:
        return schema(**values)
    except ValidationError as e:
        first = e.errors()[0]
        argument = ".".join(str(part) for part in first["loc"]) or None
        raise InvalidArgument(
            f"Invalid {schema.__name__}: {first['msg']}",
            argument=argument,
            context={"error_count": e.error_count()},
        ) from e


# ============================================================
# SERVICE
# ============================================================

class RouteProfileService:
    """
    Route profile engine bound to one backing store.

    The service owns its mirror; separate instances never share
    engine state.
    """

    def __init__(self, database: Database, config: Optional[RouteEngineConfig] = None):
        """
        Initialize service.

        Args:
            database: Injected store handle
            config: Engine configuration
        """
        self._db = database
        self._config = config or RouteEngineConfig()
        self._state = ProfileState()
        self._default_lock = asyncio.Lock()
        self._pair_locks: Dict[Tuple[str, str], asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def state(self) -> ProfileState:
        """Last committed view: profiles, active profile and its routes."""
        return self._state

    @property
    def config(self) -> RouteEngineConfig:
        return self._config

    # --------------------------------------------------------
    # STORE ACCESS
    # --------------------------------------------------------

    @asynccontextmanager
    async def _write(self, operation: str) -> AsyncIterator[AsyncSession]:
        """Transaction for one command; store failures become StoreUnavailable."""
        try:
            async with self._db.transaction(operation) as session:
                yield session
        except RepositoryException as e:
            logger.error(f"{operation} failed, nothing committed: {e}")
            raise StoreUnavailable(operation, cause=e) from e

    @asynccontextmanager
    async def _read(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._db.session() as session:
                yield session
        except RepositoryException as e:
            logger.error(f"{operation} failed: {e}")
            raise StoreUnavailable(operation, cause=e) from e

    async def _load_routes(self, session: AsyncSession, profile_id: str) -> List[Route]:
        models = await RouteRepository(session).list_for_profile(profile_id)
        alias_models = await AliasRepository(session).list_for_routes(
            [m.route_id for m in models]
        )
        by_route: Dict[str, List[Alias]] = defaultdict(list)
        for alias_model in alias_models:
            by_route[alias_model.route_id].append(_alias(alias_model))
        return [_route(m, by_route[m.route_id]) for m in models]

    async def _load_route(self, session: AsyncSession, route_id: str) -> Route:
        model = await RouteRepository(session).get(route_id)
        if model is None:
            raise NotFound("Route", route_id)
        aliases = await AliasRepository(session).list_for_routes([route_id])
        return _route(model, [_alias(a) for a in aliases])

    async def _load_profiles(self, session: AsyncSession) -> List[Profile]:
        return [_profile(m) for m in await ProfileRepository(session).list_profiles()]

    async def _require_profile(self, session: AsyncSession, profile_id: str) -> RouteProfileModel:
        model = await ProfileRepository(session).get(profile_id)
        if model is None:
            raise NotFound("Profile", profile_id)
        return model

    def _scope(self, scope: Optional[str]) -> str:
        return scope or self._config.default_scope

    # --------------------------------------------------------
    # MIRROR
    # --------------------------------------------------------

    async def load(self, scope: Optional[str] = None) -> ProfileState:
        """
        Load every profile and activate the scope default.

        Falls back to the first profile of the scope when there is
        no default.
        """
        scope = self._scope(scope)
        async with self._read("load") as session:
            profiles = await self._load_profiles(session)
            in_scope = [p for p in profiles if p.scope == scope]
            active = next((p for p in in_scope if p.is_default), None)
            if active is None and in_scope:
                active = in_scope[0]
            routes = await self._load_routes(session, active.profile_id) if active else []

        self._state = ProfileState(
            profiles=profiles,
            active_profile_id=active.profile_id if active else None,
            routes=routes,
        )
        logger.debug(f"Loaded {len(profiles)} profiles, active={self._state.active_profile_id}")
        return self._state

    async def switch_profile(self, profile_id: str) -> List[Route]:
        """
        Make ``profile_id`` the active profile of the mirror.

        Raises:
            NotFound: If the profile does not exist
        """
        async with self._read("switch_profile") as session:
            await self._require_profile(session, profile_id)
            routes = await self._load_routes(session, profile_id)

        self._state.active_profile_id = profile_id
        self._state.routes = routes
        return routes

    def _replace_mirror_route(self, route: Route) -> None:
        self._state.routes = [
            route if r.route_id == route.route_id else r for r in self._state.routes
        ]

    # --------------------------------------------------------
    # QUERIES
    # --------------------------------------------------------

    async def list_profiles(self, scope: Optional[str] = None) -> List[Profile]:
        """Profiles in creation order; all scopes when ``scope`` is None."""
        async with self._read("list_profiles") as session:
            models = await ProfileRepository(session).list_profiles(scope)
        return [_profile(m) for m in models]

    async def get_profile(self, profile_id: str) -> Profile:
        async with self._read("get_profile") as session:
            return _profile(await self._require_profile(session, profile_id))

    async def get_default_profile(self, scope: Optional[str] = None) -> Optional[Profile]:
        async with self._read("get_default_profile") as session:
            model = await ProfileRepository(session).get_default(self._scope(scope))
        return _profile(model) if model else None

    async def list_routes(self, profile_id: str) -> List[Route]:
        """
        Routes of a profile ordered by ordinal, aliases attached.

        Raises:
            NotFound: If the profile does not exist
        """
        async with self._read("list_routes") as session:
            await self._require_profile(session, profile_id)
            return await self._load_routes(session, profile_id)

    async def list_overrides(self, consumer_id: str) -> List[RouteOverride]:
        async with self._read("list_overrides") as session:
            models = await OverrideRepository(session).list_for_consumer(consumer_id)
        return [_override(m) for m in models]

    async def get_override(self, consumer_id: str, route_id: str) -> Optional[RouteOverride]:
        async with self._read("get_override") as session:
            model = await OverrideRepository(session).get(consumer_id, route_id)
        return _override(model) if model else None

    # --------------------------------------------------------
    # ROUTE GENERATION
    # --------------------------------------------------------

    async def generate_routes(self, profile_id: str, channel_count: int) -> List[Route]:
        """
        Replace every route of a profile with the canonical layout.

        Existing routes, their aliases and the overrides recorded
        against them are deleted first, so re-invoking after a
        failure is safe.

        Raises:
            InvalidArgument: If channel_count < 1
            NotFound: If the profile does not exist
            StoreUnavailable: If the store failed; nothing changed
        """
        seeds = build_route_seeds(channel_count, self._config.defaults)

        async with self._write("generate_routes") as session:
            await self._require_profile(session, profile_id)
            routes_repo = RouteRepository(session)

            removed = await routes_repo.delete_for_profile(profile_id)
            rows = []
            for seed in seeds:
                row = asdict(seed)
                row.pop("matrix_alias")
                row["status"] = seed.status.value
                rows.append(row)
            inserted = await routes_repo.add_routes(profile_id, rows)
            await AliasRepository(session).add_aliases([
                (model.route_id, SEEDED_ALIAS_TYPE.value, seed.matrix_alias)
                for model, seed in zip(inserted, seeds)
            ])

            routes = await self._load_routes(session, profile_id)
            profiles = await self._load_profiles(session)

        self._state.profiles = profiles
        self._state.active_profile_id = profile_id
        self._state.routes = routes
        logger.info(
            f"Generated {len(routes)} routes for profile {profile_id} "
            f"(replaced {removed})"
        )
        return routes

    async def ensure_default_profile(self, channel_count: int, scope: Optional[str] = None) -> str:
        """
        Generate routes into the scope default, creating it if needed.

        Returns:
            Id of the default profile
        """
        validate_channel_count(channel_count)
        scope = self._scope(scope)

        profile = await self.get_default_profile(scope)
        if profile is None:
            profile = await self.create_profile(self._config.default_profile_name, scope)
            if not profile.is_default:
                # Another writer elected a default in between
                profile = await self.get_default_profile(scope) or profile

        await self.generate_routes(profile.profile_id, channel_count)
        return profile.profile_id

    # --------------------------------------------------------
    # PROFILE STORE
    # --------------------------------------------------------

    async def create_profile(self, name: str, scope: Optional[str] = None) -> Profile:
        """
        Create an empty profile.

        It becomes the scope default when the scope has none.
        """
        request = _validate(ProfileCreate, name=name, scope=self._scope(scope))

        async with self._default_lock:
            async with self._write("create_profile") as session:
                repo = ProfileRepository(session)
                has_default = await repo.get_default(request.scope) is not None
                model = await repo.create(request.name, request.scope, is_default=not has_default)
                profile = _profile(model)
                profiles = await self._load_profiles(session)

        self._state.profiles = profiles
        logger.info(
            f"Created profile {profile.profile_id} ({profile.name!r}) in scope "
            f"{profile.scope}, default={profile.is_default}"
        )
        return profile

    async def set_default_profile(self, profile_id: str) -> Profile:
        """
        Make a profile the only default of its scope.

        Raises:
            NotFound: If the profile does not exist
        """
        async with self._default_lock:
            async with self._write("set_default_profile") as session:
                model = await self._require_profile(session, profile_id)
                scope = model.scope
                await ProfileRepository(session).set_default(scope, profile_id)
                profiles = await self._load_profiles(session)

        self._state.profiles = profiles
        logger.info(f"Profile {profile_id} is now the default of scope {scope}")
        return next(p for p in profiles if p.profile_id == profile_id)

    async def clone_profile(self, source_profile_id: str, new_name: str) -> Profile:
        """
        Deep-copy a profile's routes and aliases into a new profile.

        The copy is never the default. Ordinals and status are kept.

        Raises:
            NotFound: If the source profile does not exist
        """
        request = _validate(ProfileClone, source_profile_id=source_profile_id, new_name=new_name)

        async with self._write("clone_profile") as session:
            source = await self._require_profile(session, request.source_profile_id)
            source_routes = await self._load_routes(session, source.profile_id)

            model = await ProfileRepository(session).create(
                request.new_name, source.scope, is_default=False
            )
            inserted = await RouteRepository(session).add_routes(
                model.profile_id, [_route_columns(r) for r in source_routes]
            )
            await AliasRepository(session).add_aliases([
                (clone.route_id, alias.alias_type.value, alias.value)
                for clone, original in zip(inserted, source_routes)
                for alias in original.aliases
            ])
            profile = _profile(model)
            profiles = await self._load_profiles(session)

        self._state.profiles = profiles
        logger.info(
            f"Cloned profile {source_profile_id} into {profile.profile_id} "
            f"({len(source_routes)} routes)"
        )
        return profile

    async def delete_profile(self, profile_id: str) -> None:
        """
        Delete a profile with its routes, aliases and overrides.

        Deleting the scope default re-elects the oldest remaining
        profile of the scope, or leaves the scope without one.

        Raises:
            NotFound: If the profile does not exist
        """
        async with self._default_lock:
            async with self._write("delete_profile") as session:
                model = await self._require_profile(session, profile_id)
                scope, was_default = model.scope, bool(model.is_default)
                repo = ProfileRepository(session)

                removed = await RouteRepository(session).delete_for_profile(profile_id)
                await repo.delete(profile_id)

                successor = None
                if was_default:
                    successor = await repo.first_in_scope(scope)
                    await repo.set_default(scope, successor.profile_id if successor else None)

                profiles = await self._load_profiles(session)
                active_id = self._state.active_profile_id
                active_routes = None
                if active_id == profile_id:
                    in_scope = [p for p in profiles if p.scope == scope]
                    fallback = next((p for p in in_scope if p.is_default), None)
                    if fallback is None and in_scope:
                        fallback = in_scope[0]
                    active_id = fallback.profile_id if fallback else None
                    active_routes = await self._load_routes(session, active_id) if active_id else []

        self._state.profiles = profiles
        if active_routes is not None:
            self._state.active_profile_id = active_id
            self._state.routes = active_routes
        logger.info(f"Deleted profile {profile_id} ({removed} routes)")
        if was_default:
            logger.info(
                f"Default of scope {scope} re-elected: "
                f"{successor.profile_id if successor else None}"
            )

    # --------------------------------------------------------
    # BASELINE EDITS
    # --------------------------------------------------------

    async def upsert_alias(
        self,
        route_id: str,
        alias_type: Union[AliasType, str],
        value: str,
    ) -> Alias:
        """
        Set the alias of a type on a route, creating it on first use.

        Raises:
            InvalidArgument: If alias_type is not a known type
            NotFound: If the route does not exist
        """
        request = _validate(AliasUpsert, route_id=route_id, alias_type=alias_type, value=value)

        async with self._write("upsert_alias") as session:
            await self._load_route(session, request.route_id)
            model, created = await AliasRepository(session).upsert(
                request.route_id, request.alias_type.value, request.value
            )
            alias = _alias(model)
            route = await self._load_route(session, request.route_id)

        if self._state.find_route(route.route_id) is not None:
            self._replace_mirror_route(route)
        logger.info(
            f"{'Created' if created else 'Updated'} {alias.alias_type.value} alias "
            f"on route {route_id}"
        )
        return alias

    async def update_route_field(
        self,
        route_id: str,
        field: Union[RouteField, str],
        value: object,
    ) -> Route:
        """
        Set one baseline field of a route.

        Independent of the override ledger, which only tracks
        consumer-level deviations.

        Raises:
            InvalidArgument: Unknown field, or value of the wrong type
            NotFound: If the route does not exist
        """
        update = _validate(RouteFieldUpdate, field=field, value=value)
        stored = update.value.value if isinstance(update.value, RouteStatus) else update.value

        async with self._write("update_route_field") as session:
            await self._load_route(session, route_id)
            await RouteRepository(session).update_field(route_id, update.field.value, stored)
            route = await self._load_route(session, route_id)

        if self._state.find_route(route_id) is not None:
            self._replace_mirror_route(route)
        logger.debug(f"Route {route_id}: {update.field.value} = {stored!r}")
        return route

    async def update_route_status(self, route_id: str, status: Union[RouteStatus, str]) -> Route:
        return await self.update_route_field(route_id, RouteField.STATUS, status)

    # --------------------------------------------------------
    # OVERRIDE LEDGER
    # --------------------------------------------------------

    async def record_consumer_field_change(
        self,
        consumer_id: str,
        route_id: str,
        field: str,
        old_value: object,
        new_value: object,
    ) -> RouteOverride:
        """
        Record a consumer's edit of one route field.

        The first edit of a field fixes ``before[field]``; every
        edit replaces ``after[field]``. Edits of the same
        (consumer, route) pair are applied in issuance order.

        Raises:
            InvalidArgument: Identity field, or bad value for a route field
            NotFound: If the route does not exist
        """
        change = _validate(
            FieldChange,
            consumer_id=consumer_id,
            route_id=route_id,
            field=field,
            old_value=old_value,
            new_value=new_value,
        )

        async with self._pair_locks[(change.consumer_id, change.route_id)]:
            async with self._write("record_consumer_field_change") as session:
                if await RouteRepository(session).get(change.route_id) is None:
                    raise NotFound("Route", change.route_id)

                repo = OverrideRepository(session)
                existing = await repo.get(change.consumer_id, change.route_id)
                if existing is None:
                    payload = merge_field_change(
                        None, None, None, change.field, change.old_value, change.new_value
                    )
                    model = await repo.create(change.consumer_id, change.route_id, *payload)
                else:
                    payload = merge_field_change(
                        existing.changed_fields,
                        existing.before,
                        existing.after,
                        change.field,
                        change.old_value,
                        change.new_value,
                    )
                    model = await repo.replace_payload(existing, *payload)
                override = _override(model)

        logger.debug(
            f"Consumer {consumer_id} changed {field} on route {route_id}: "
            f"{change.old_value!r} -> {change.new_value!r}"
        )
        return override

    # --------------------------------------------------------
    # RESOLUTION
    # --------------------------------------------------------

    async def _resolve(
        self,
        session: AsyncSession,
        consumer_id: str,
        mode: RouteMode,
        source_profile_id: Optional[str],
        scope: str,
    ) -> Tuple[List[ResolvedRoute], List[RouteOverride]]:
        if mode is RouteMode.CUSTOM:
            return [], []

        default_id = None
        if mode is RouteMode.USE_DEFAULT and not source_profile_id:
            default_model = await ProfileRepository(session).get_default(scope)
            default_id = default_model.profile_id if default_model else None

        profile_id = target_profile_id(mode, source_profile_id, default_id)
        if profile_id is None:
            return [], []
        if await ProfileRepository(session).get(profile_id) is None:
            logger.debug(f"Profile {profile_id} no longer exists, consumer {consumer_id} resolves empty")
            return [], []

        routes = await self._load_routes(session, profile_id)
        override_models = await OverrideRepository(session).list_for_consumer(
            consumer_id, [r.route_id for r in routes]
        )
        overrides = [_override(m) for m in override_models]
        resolved = resolve_routes(mode, routes, {o.route_id: o for o in overrides})
        return resolved, overrides

    async def get_consumer_routes(
        self,
        consumer_id: str,
        mode: Union[RouteMode, str],
        source_profile_id: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> Tuple[List[ResolvedRoute], List[RouteOverride]]:
        """Resolved routes plus the consumer's overrides on them."""
        route_mode = parse_mode(mode)
        async with self._read("resolve_for_consumer") as session:
            return await self._resolve(
                session, consumer_id, route_mode, source_profile_id, self._scope(scope)
            )

    async def resolve_for_consumer(
        self,
        consumer_id: str,
        mode: Union[RouteMode, str],
        source_profile_id: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> List[ResolvedRoute]:
        """
        Routes a consumer should see, sorted by ordinal.

        A missing or deleted profile resolves to an empty list, as
        does ``custom`` mode.

        Raises:
            InvalidArgument: If mode is not a known mode
            StoreUnavailable: If the store failed
        """
        routes, _ = await self.get_consumer_routes(consumer_id, mode, source_profile_id, scope)
        return routes

    # --------------------------------------------------------
    # FORK / PROMOTE
    # --------------------------------------------------------

    async def fork_from_consumer(
        self,
        consumer_id: str,
        new_profile_name: str,
        source_profile_id: str,
    ) -> Profile:
        """
        Promote a consumer's fork-mode view into a new baseline profile.

        Routes carry the resolved (post-override) topology and
        status. Aliases are not carried over, unlike clone_profile.

        Raises:
            NothingToFork: If the resolved view is empty; no profile is created
        """
        request = _validate(
            ForkRequest,
            consumer_id=consumer_id,
            new_profile_name=new_profile_name,
            source_profile_id=source_profile_id,
        )

        async with self._write("fork_from_consumer") as session:
            source = await ProfileRepository(session).get(request.source_profile_id)
            resolved, _ = await self._resolve(
                session,
                request.consumer_id,
                RouteMode.FORK_PROFILE,
                request.source_profile_id,
                source.scope if source else self._config.default_scope,
            )
            if not resolved:
                raise NothingToFork(request.consumer_id, request.source_profile_id)

            model = await ProfileRepository(session).create(
                request.new_profile_name, source.scope, is_default=False
            )
            await RouteRepository(session).add_routes(
                model.profile_id, [_route_columns(r) for r in resolved]
            )
            profile = _profile(model)
            profiles = await self._load_profiles(session)

        self._state.profiles = profiles
        logger.info(
            f"Forked consumer {consumer_id} from profile {source_profile_id} into "
            f"{profile.profile_id} ({len(resolved)} routes)"
        )
        return profile
