"""
Route Generator Tests.

============================================================
PURPOSE
============================================================
Tests for canonical route generation.

TEST CATEGORIES:
- Encoder packing: unit/slot arithmetic
- Seeds: labels and defaults
- Persistence: replace semantics, aliases, rollback

============================================================
"""

import pytest
from unittest.mock import patch

from route_profiles.config import RouteDefaultsConfig
from route_profiles.errors import InvalidArgument, NotFound, StoreUnavailable
from route_profiles.generator import build_route_seeds, encoder_position
from route_profiles.types import AliasType, RouteStatus
from storage.repositories.exceptions import QueryError
from storage.repositories.route_profiles import AliasRepository


# ============================================================
# ENCODER PACKING
# ============================================================

class TestEncoderPosition:
    """Tests for unit/slot packing."""

    @pytest.mark.parametrize("ordinal,expected", [
        (1, (1, 1)),
        (2, (1, 2)),
        (3, (2, 1)),
        (4, (2, 2)),
        (5, (3, 1)),
        (24, (12, 2)),
    ])
    def test_two_channels_per_unit(self, ordinal, expected):
        assert encoder_position(ordinal) == expected

    def test_zero_rejected(self):
        with pytest.raises(InvalidArgument):
            encoder_position(0)


# ============================================================
# SEEDS
# ============================================================

class TestBuildRouteSeeds:
    """Tests for build_route_seeds."""

    def test_five_channels(self):
        """Channel 5 lands on the first slot of the third encoder."""
        seeds = build_route_seeds(5)

        assert [s.ordinal for s in seeds] == [1, 2, 3, 4, 5]
        fifth = seeds[4]
        assert fifth.encoder_unit == 3
        assert fifth.encoder_slot == 1
        assert fifth.encoder_input_label == "S1"
        assert fifth.outbound_label == "TX 3.1"
        assert fifth.destination_label == "Arena 5"
        assert fifth.matrix_alias == "Arena 5"

    def test_single_channel(self):
        seeds = build_route_seeds(1)

        assert len(seeds) == 1
        assert seeds[0].outbound_label == "TX 1.1"

    def test_default_values(self):
        seed = build_route_seeds(2)[1]

        assert seed.source_index == 2
        assert seed.source_sub_index == 2
        assert seed.patch_panel == "Flypack1"
        assert seed.encoder_vendor == "Videon"
        assert seed.transport_protocol == "SRT"
        assert seed.network_endpoint == "TBD"
        assert seed.receiver_vendor == "Magewell"
        assert seed.receiver_unit is None
        assert seed.status == RouteStatus.UNKNOWN

    def test_custom_defaults(self):
        defaults = RouteDefaultsConfig(destination_prefix="Stage", encoder_vendor="Haivision")

        seed = build_route_seeds(3, defaults)[2]

        assert seed.destination_label == "Stage 3"
        assert seed.matrix_alias == "Stage 3"
        assert seed.encoder_vendor == "Haivision"

    @pytest.mark.parametrize("count", [0, -1, True, "4", 2.5])
    def test_invalid_count_rejected(self, count):
        with pytest.raises(InvalidArgument):
            build_route_seeds(count)


# ============================================================
# PERSISTENCE
# ============================================================

class TestGenerateRoutes:
    """Tests for RouteProfileService.generate_routes."""

    @pytest.mark.asyncio
    async def test_generates_routes_with_matrix_alias(self, service):
        profile = await service.create_profile("Main")

        routes = await service.generate_routes(profile.profile_id, 3)

        assert [r.ordinal for r in routes] == [1, 2, 3]
        assert all(r.profile_id == profile.profile_id for r in routes)
        assert [r.alias(AliasType.MATRIX_NAME) for r in routes] == ["Arena 1", "Arena 2", "Arena 3"]
        assert service.state.active_profile_id == profile.profile_id
        assert service.state.routes == routes

    @pytest.mark.asyncio
    async def test_regenerate_replaces_routes(self, service):
        """Re-generation leaves exactly N routes and drops old ids."""
        profile = await service.create_profile("Main")
        first = await service.generate_routes(profile.profile_id, 6)

        second = await service.generate_routes(profile.profile_id, 2)

        assert len(second) == 2
        assert not {r.route_id for r in first} & {r.route_id for r in second}
        assert len(await service.list_routes(profile.profile_id)) == 2

    @pytest.mark.asyncio
    async def test_regenerate_deletes_old_aliases(self, service, database):
        profile = await service.create_profile("Main")
        first = await service.generate_routes(profile.profile_id, 2)

        await service.generate_routes(profile.profile_id, 2)

        async with database.session() as session:
            aliases = await AliasRepository(session).list_for_routes([r.route_id for r in first])
        assert aliases == []

    @pytest.mark.asyncio
    async def test_invalid_count_does_not_touch_routes(self, service):
        profile = await service.create_profile("Main")
        await service.generate_routes(profile.profile_id, 4)

        with pytest.raises(InvalidArgument):
            await service.generate_routes(profile.profile_id, 0)

        assert len(await service.list_routes(profile.profile_id)) == 4

    @pytest.mark.asyncio
    async def test_unknown_profile(self, service):
        with pytest.raises(NotFound):
            await service.generate_routes("missing", 4)

    @pytest.mark.asyncio
    async def test_store_failure_rolls_back(self, service):
        """A failing alias insert leaves the previous routes in place."""
        profile = await service.create_profile("Main")
        before = await service.generate_routes(profile.profile_id, 4)
        mirror_before = list(service.state.routes)

        failure = QueryError("AliasRepository", "add_all", "add_all", "disk I/O error")
        with patch.object(AliasRepository, "add_aliases", side_effect=failure):
            with pytest.raises(StoreUnavailable) as exc_info:
                await service.generate_routes(profile.profile_id, 8)

        assert exc_info.value.retryable is True
        after = await service.list_routes(profile.profile_id)
        assert [r.route_id for r in after] == [r.route_id for r in before]
        assert service.state.routes == mirror_before

    @pytest.mark.asyncio
    async def test_ensure_default_profile_creates_and_reuses(self, service):
        first = await service.ensure_default_profile(4)
        second = await service.ensure_default_profile(8)

        assert first == second
        profiles = await service.list_profiles()
        assert len(profiles) == 1
        assert profiles[0].name == "Default Routes"
        assert profiles[0].is_default is True
        assert len(await service.list_routes(first)) == 8
