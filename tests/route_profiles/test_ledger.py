"""
Override Ledger Tests.

Tests cover:
- merge_field_change rule (first write wins before, last write wins after)
- Recording consumer edits through the service
- Validation of field names and values
"""

import asyncio

import pytest

from route_profiles.errors import InvalidArgument, NotFound
from route_profiles.ledger import merge_field_change


# =============================================================
# TEST: Merge rule
# =============================================================

class TestMergeFieldChange:
    """Test merge_field_change."""

    def test_first_edit(self):
        fields, before, after = merge_field_change(None, None, None, "venue", "A", "B")

        assert fields == ["venue"]
        assert before == {"venue": "A"}
        assert after == {"venue": "B"}

    def test_repeat_edit_keeps_first_before(self):
        state = merge_field_change(None, None, None, "venue", "A", "B")
        fields, before, after = merge_field_change(*state, "venue", "B", "C")

        assert fields == ["venue"]
        assert before == {"venue": "A"}
        assert after == {"venue": "C"}

    def test_fields_kept_in_first_touch_order(self):
        state = merge_field_change(None, None, None, "b", 1, 2)
        state = merge_field_change(*state, "a", 1, 2)
        state = merge_field_change(*state, "b", 2, 3)

        assert state[0] == ["b", "a"]

    def test_inputs_not_modified(self):
        fields, before, after = ["venue"], {"venue": "A"}, {"venue": "B"}

        merge_field_change(fields, before, after, "zone", 1, 2)

        assert fields == ["venue"]
        assert before == {"venue": "A"}
        assert after == {"venue": "B"}


# =============================================================
# TEST: Service
# =============================================================

class TestRecordConsumerFieldChange:
    """Test record_consumer_field_change."""

    @pytest.mark.asyncio
    async def test_two_edits_same_field(self, service, default_profile_id):
        route = (await service.list_routes(default_profile_id))[0]

        await service.record_consumer_field_change("event-1", route.route_id, "venue", "A", "B")
        override = await service.record_consumer_field_change(
            "event-1", route.route_id, "venue", "B", "C"
        )

        assert override.changed_fields == ["venue"]
        assert override.before == {"venue": "A"}
        assert override.after == {"venue": "C"}
        stored = await service.get_override("event-1", route.route_id)
        assert stored == override

    @pytest.mark.asyncio
    async def test_route_field_value_normalized(self, service, default_profile_id):
        route = (await service.list_routes(default_profile_id))[0]

        override = await service.record_consumer_field_change(
            "event-1", route.route_id, "status", "unknown", "down"
        )

        assert override.after == {"status": "down"}

    @pytest.mark.asyncio
    async def test_consumers_are_isolated(self, service, default_profile_id):
        route = (await service.list_routes(default_profile_id))[0]

        await service.record_consumer_field_change(
            "event-1", route.route_id, "destination_label", "Arena 1", "Press"
        )

        assert await service.get_override("event-2", route.route_id) is None
        assert len(await service.list_overrides("event-1")) == 1

    @pytest.mark.asyncio
    async def test_baseline_untouched(self, service, default_profile_id):
        route = (await service.list_routes(default_profile_id))[0]

        await service.record_consumer_field_change(
            "event-1", route.route_id, "destination_label", "Arena 1", "Press"
        )

        assert (await service.list_routes(default_profile_id))[0].destination_label == "Arena 1"

    @pytest.mark.asyncio
    async def test_concurrent_edits_accumulate(self, service, default_profile_id):
        route = (await service.list_routes(default_profile_id))[0]

        await asyncio.gather(*(
            service.record_consumer_field_change("event-1", route.route_id, f"note_{i}", None, i)
            for i in range(5)
        ))

        override = await service.get_override("event-1", route.route_id)
        assert sorted(override.changed_fields) == [f"note_{i}" for i in range(5)]
        assert override.after == {f"note_{i}": i for i in range(5)}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["id", "route_id", "profile_id"])
    async def test_identity_fields_rejected(self, service, default_profile_id, field):
        route = (await service.list_routes(default_profile_id))[0]

        with pytest.raises(InvalidArgument):
            await service.record_consumer_field_change("event-1", route.route_id, field, "a", "b")

        assert await service.list_overrides("event-1") == []

    @pytest.mark.asyncio
    async def test_bad_route_field_value_rejected(self, service, default_profile_id):
        route = (await service.list_routes(default_profile_id))[0]

        with pytest.raises(InvalidArgument):
            await service.record_consumer_field_change(
                "event-1", route.route_id, "encoder_slot", 1, "left"
            )

    @pytest.mark.asyncio
    async def test_unknown_route(self, service):
        with pytest.raises(NotFound):
            await service.record_consumer_field_change("event-1", "missing", "venue", "A", "B")
