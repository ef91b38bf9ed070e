"""
Repository Layer Package.

============================================================
PURPOSE
============================================================
The Repository Layer is the ONLY gateway to persistent storage.
All database access MUST go through repository classes.

============================================================
ARCHITECTURE PRINCIPLES
============================================================
1. Session Injection: Sessions are injected, not created internally
2. Explicit Methods: Clear method names per access pattern
3. No Commits: The caller owns the transaction
4. Exception Handling: All DB errors wrapped in repository exceptions

============================================================
REPOSITORIES
============================================================
- ProfileRepository: Profiles and the per-scope default flag
- RouteRepository: Routes of a profile
- AliasRepository: Typed route aliases
- OverrideRepository: Consumer override records

============================================================
USAGE
============================================================

    from storage.repositories import ProfileRepository

    async with database.transaction("create_profile") as session:
        repo = ProfileRepository(session)
        profile = await repo.create("Main Feed", "global")

============================================================
"""

from storage.repositories.base import BaseRepository
from storage.repositories.exceptions import (
    ConnectionError,
    DuplicateRecordError,
    IntegrityError,
    QueryError,
    RepositoryException,
    TransactionError,
)
from storage.repositories.route_profiles import (
    AliasRepository,
    OverrideRepository,
    ProfileRepository,
    RouteRepository,
)

__all__ = [
    "BaseRepository",
    "RepositoryException",
    "DuplicateRecordError",
    "IntegrityError",
    "ConnectionError",
    "QueryError",
    "TransactionError",
    "ProfileRepository",
    "RouteRepository",
    "AliasRepository",
    "OverrideRepository",
]
