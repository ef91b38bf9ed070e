"""
Storage Package.

This package manages persistence of route profiles.

Modules:
- database: Engine, sessions and transaction boundaries
- models/: ORM models
- repositories/: Data access layer
"""

from .database import Database, DatabaseConfig

__all__ = ["Database", "DatabaseConfig"]
