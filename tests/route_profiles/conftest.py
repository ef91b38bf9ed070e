"""
Shared fixtures for route profile tests.

Every test gets its own SQLite file under tmp_path, so tests
never share state.
"""

import pytest
import pytest_asyncio

from route_profiles.config import RouteEngineConfig
from route_profiles.service import RouteProfileService
from storage.database import Database, DatabaseConfig


@pytest.fixture
def engine_config(tmp_path) -> RouteEngineConfig:
    return RouteEngineConfig(
        database=DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path}/routes.db"),
    )


@pytest_asyncio.fixture
async def database(engine_config):
    db = Database(engine_config.database)
    await db.create_all()
    yield db
    await db.disconnect()


@pytest_asyncio.fixture
async def service(database, engine_config) -> RouteProfileService:
    return RouteProfileService(database, engine_config)


@pytest_asyncio.fixture
async def default_profile_id(service) -> str:
    """Scope default with 4 generated routes."""
    return await service.ensure_default_profile(4)
