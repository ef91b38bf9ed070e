"""
Backing Store Tests.

============================================================
PURPOSE
============================================================
Tests for the storage layer under the route engine.

TEST CATEGORIES:
- Database lifecycle and health
- Transactions: commit, rollback
- Error mapping: repository errors become StoreUnavailable
- Default uniqueness enforced by the schema itself

============================================================
"""

import pytest
from unittest.mock import patch

from route_profiles.errors import StoreUnavailable
from storage.database import Database, DatabaseConfig
from storage.repositories.exceptions import (
    ConnectionError,
    DuplicateRecordError,
    RepositoryException,
    TransactionError,
)
from storage.repositories.route_profiles import OverrideRepository, ProfileRepository


# ============================================================
# DATABASE
# ============================================================

class TestDatabase:
    """Tests for Database."""

    def test_memory_url_detection(self):
        assert DatabaseConfig(url="sqlite+aiosqlite:///:memory:").is_memory is True
        assert DatabaseConfig(url="sqlite+aiosqlite:///routes.db").is_memory is False

    def test_engine_before_connect(self):
        with pytest.raises(ConnectionError):
            Database().get_engine()

    @pytest.mark.asyncio
    async def test_memory_database_shared_across_sessions(self):
        db = Database(DatabaseConfig(url="sqlite+aiosqlite:///:memory:"))
        await db.create_all()
        try:
            async with db.transaction("create") as session:
                await ProfileRepository(session).create("A", "global", is_default=True)
            async with db.session() as session:
                profiles = await ProfileRepository(session).list_profiles()
            assert [p.name for p in profiles] == ["A"]
            assert await db.health_check() is True
        finally:
            await db.disconnect()

        assert db.is_connected is False

    @pytest.mark.asyncio
    async def test_transaction_rolls_back_on_error(self, database):
        with pytest.raises(RuntimeError):
            async with database.transaction("create") as session:
                await ProfileRepository(session).create("A", "global")
                raise RuntimeError("boom")

        async with database.session() as session:
            assert await ProfileRepository(session).list_profiles() == []


# ============================================================
# SCHEMA CONSTRAINTS
# ============================================================

class TestConstraints:
    """Tests for constraints enforced by the store."""

    @pytest.mark.asyncio
    async def test_second_default_in_scope_rejected(self, database):
        with pytest.raises(DuplicateRecordError):
            async with database.transaction("create") as session:
                repo = ProfileRepository(session)
                await repo.create("A", "global", is_default=True)
                await repo.create("B", "global", is_default=True)

    @pytest.mark.asyncio
    async def test_defaults_in_different_scopes_allowed(self, database):
        async with database.transaction("create") as session:
            repo = ProfileRepository(session)
            await repo.create("A", "arena", is_default=True)
            await repo.create("B", "studio", is_default=True)

        async with database.session() as session:
            assert len(await ProfileRepository(session).list_profiles()) == 2

    @pytest.mark.asyncio
    async def test_one_override_per_pair(self, database, service, default_profile_id):
        route = (await service.list_routes(default_profile_id))[0]

        with pytest.raises(DuplicateRecordError):
            async with database.transaction("create") as session:
                repo = OverrideRepository(session)
                await repo.create("event-1", route.route_id, [], {}, {})
                await repo.create("event-1", route.route_id, [], {}, {})


# ============================================================
# ERROR MAPPING
# ============================================================

class TestStoreUnavailable:
    """Repository failures surface as StoreUnavailable."""

    @pytest.mark.asyncio
    async def test_commit_failure(self, service):
        failure = TransactionError("Database", "create_profile", "commit", "disk full")

        with patch.object(Database, "transaction", side_effect=failure):
            with pytest.raises(StoreUnavailable) as exc_info:
                await service.create_profile("A")

        assert exc_info.value.retryable is True
        assert isinstance(exc_info.value.cause, RepositoryException)
        assert exc_info.value.context["operation"] == "create_profile"
        assert service.state.profiles == []

    @pytest.mark.asyncio
    async def test_read_failure(self, service):
        failure = ConnectionError("ProfileRepository", "query", "connection refused")

        with patch.object(ProfileRepository, "list_profiles", side_effect=failure):
            with pytest.raises(StoreUnavailable):
                await service.list_profiles()

    @pytest.mark.asyncio
    async def test_error_serialization(self, service):
        failure = ConnectionError("ProfileRepository", "query", "connection refused")

        with patch.object(ProfileRepository, "list_profiles", side_effect=failure):
            with pytest.raises(StoreUnavailable) as exc_info:
                await service.list_profiles()

        data = exc_info.value.to_dict()
        assert data["type"] == "StoreUnavailable"
        assert data["retryable"] is True
        assert data["context"]["cause_type"] == "ConnectionError"
