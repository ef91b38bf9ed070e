"""
Fork / Promote Tests.

Tests cover:
- Promotion of a consumer's fork-mode view into a new profile
- NothingToFork without side effects
- Aliases are not carried over (clone_profile carries them)
"""

import pytest
from unittest.mock import patch

from route_profiles.errors import InvalidArgument, NothingToFork, StoreUnavailable
from route_profiles.types import AliasType, RouteMode, RouteStatus
from storage.repositories.exceptions import QueryError
from storage.repositories.route_profiles import RouteRepository


class TestForkFromConsumer:
    """Test fork_from_consumer."""

    @pytest.mark.asyncio
    async def test_fork_carries_resolved_values(self, service, default_profile_id):
        routes = await service.list_routes(default_profile_id)
        await service.record_consumer_field_change(
            "event-1", routes[0].route_id, "destination_label", "Arena 1", "Press"
        )
        await service.record_consumer_field_change(
            "event-1", routes[1].route_id, "status", "unknown", "down"
        )

        profile = await service.fork_from_consumer("event-1", "Event 1 Routes", default_profile_id)
        forked = await service.list_routes(profile.profile_id)

        assert profile.is_default is False
        assert profile.scope == "global"
        assert len(forked) == 4
        assert forked[0].destination_label == "Press"
        assert forked[1].status == RouteStatus.DOWN
        assert [r.ordinal for r in forked] == [1, 2, 3, 4]
        assert not {r.route_id for r in forked} & {r.route_id for r in routes}

    @pytest.mark.asyncio
    async def test_fork_leaves_source_and_overrides(self, service, default_profile_id):
        routes = await service.list_routes(default_profile_id)
        await service.record_consumer_field_change(
            "event-1", routes[0].route_id, "destination_label", "Arena 1", "Press"
        )

        await service.fork_from_consumer("event-1", "Event 1 Routes", default_profile_id)

        assert await service.list_routes(default_profile_id) == routes
        assert len(await service.list_overrides("event-1")) == 1

    @pytest.mark.asyncio
    async def test_fork_does_not_carry_aliases(self, service, default_profile_id):
        routes = await service.list_routes(default_profile_id)
        await service.upsert_alias(routes[0].route_id, AliasType.PRODUCTION, "Main Cam")

        profile = await service.fork_from_consumer("event-1", "Event 1 Routes", default_profile_id)

        forked = await service.list_routes(profile.profile_id)
        assert all(r.aliases == [] for r in forked)

    @pytest.mark.asyncio
    async def test_forked_profile_resolves_like_the_view(self, service, default_profile_id):
        routes = await service.list_routes(default_profile_id)
        await service.record_consumer_field_change(
            "event-1", routes[2].route_id, "network_endpoint", "TBD", "10.1.1.1"
        )
        view = await service.resolve_for_consumer(
            "event-1", RouteMode.FORK_PROFILE, default_profile_id
        )

        profile = await service.fork_from_consumer("event-1", "Event 1 Routes", default_profile_id)
        promoted = await service.resolve_for_consumer(
            "event-2", RouteMode.USE_PROFILE, profile.profile_id
        )

        assert [r.topology() for r in promoted] == [r.topology() for r in view]

    @pytest.mark.asyncio
    async def test_nothing_to_fork_from_empty_profile(self, service):
        empty = await service.create_profile("Empty")

        with pytest.raises(NothingToFork):
            await service.fork_from_consumer("event-1", "Fork", empty.profile_id)

        assert [p.profile_id for p in await service.list_profiles()] == [empty.profile_id]

    @pytest.mark.asyncio
    async def test_nothing_to_fork_from_missing_profile(self, service, default_profile_id):
        with pytest.raises(NothingToFork):
            await service.fork_from_consumer("event-1", "Fork", "missing")

        assert len(await service.list_profiles()) == 1

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, service, default_profile_id):
        with pytest.raises(InvalidArgument):
            await service.fork_from_consumer("event-1", " ", default_profile_id)

    @pytest.mark.asyncio
    async def test_store_failure_creates_nothing(self, service, default_profile_id):
        failure = QueryError("RouteRepository", "add_all", "add_all", "database is locked")

        with patch.object(RouteRepository, "add_routes", side_effect=failure):
            with pytest.raises(StoreUnavailable):
                await service.fork_from_consumer("event-1", "Fork", default_profile_id)

        assert len(await service.list_profiles()) == 1
