"""
Database migrations module.

Versioned, ordered migrations for the SQLite state store. Migrations are
applied once at start-up, in order, and tracked in a migrations table.
"""

from .runner import Migration, MigrationError, MigrationRunner, get_all_migrations

__all__ = ["Migration", "MigrationError", "MigrationRunner", "get_all_migrations"]
