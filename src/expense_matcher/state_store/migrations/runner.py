"""
Versioned schema migrations for the state store.

Each module in this package named `NNN_name.py` is one migration and defines:
- VERSION: int (unique, matches NNN)
- NAME: str
- upgrade(conn) -> None
- downgrade(conn) -> None  (optional; required to roll back past it)

Applied versions are recorded in the `migrations` table. A migration and its
bookkeeping row commit together, so a failed step leaves no trace.
"""

import importlib
import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

_PACKAGE = __name__.rsplit(".", 1)[0]

Step = Callable[[sqlite3.Connection], None]


class MigrationError(Exception):
    """A migration step failed or was impossible."""

    def __init__(self, version: int, message: str):
        self.version = version
        super().__init__(f"Migration {version:03d}: {message}")


@dataclass(frozen=True)
class Migration:
    """One versioned schema change."""

    version: int
    name: str
    upgrade: Step
    downgrade: Step | None

    @property
    def label(self) -> str:
        return f"{self.version:03d}_{self.name}"


def get_all_migrations() -> list[Migration]:
    """
    Discover the migration modules of this package, ordered by version.

    Raises:
        ValueError: If two modules declare the same version.
    """
    found: dict[int, Migration] = {}
    for path in sorted(Path(__file__).parent.glob("[0-9][0-9][0-9]_*.py")):
        module = importlib.import_module(f"{_PACKAGE}.{path.stem}")
        migration = Migration(
            version=module.VERSION,
            name=module.NAME,
            upgrade=module.upgrade,
            downgrade=getattr(module, "downgrade", None),
        )
        if migration.version in found:
            raise ValueError(
                f"Duplicate migration version {migration.version}: "
                f"{found[migration.version].label} and {migration.label}"
            )
        found[migration.version] = migration

    return [found[version] for version in sorted(found)]


class MigrationRunner:
    """
    Brings a database to a schema version.

    Usage:
        runner = MigrationRunner(conn)
        runner.run_pending()      # at start-up
        runner.migrate_to(2)      # roll back to version 2
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS migrations (
                version INTEGER PRIMARY KEY,
                name TEXT NOT NULL,
                applied_at TEXT NOT NULL
            )
        """
        )
        self.conn.commit()

    def get_applied_versions(self) -> set[int]:
        """Versions recorded as applied."""
        return {row[0] for row in self.conn.execute("SELECT version FROM migrations")}

    def get_current_version(self) -> int:
        """Highest applied version, 0 for an empty database."""
        return max(self.get_applied_versions(), default=0)

    def pending(self) -> list[Migration]:
        """Known migrations not yet applied, in order."""
        applied = self.get_applied_versions()
        return [m for m in get_all_migrations() if m.version not in applied]

    def _step(self, migration: Migration, upgrading: bool) -> None:
        if upgrading:
            action, step = "Applying", migration.upgrade
        else:
            if migration.downgrade is None:
                raise MigrationError(migration.version, "no downgrade defined")
            action, step = "Rolling back", migration.downgrade

        logger.info("%s migration %s", action, migration.label)
        if not self.conn.in_transaction:
            self.conn.execute("BEGIN")
        try:
            step(self.conn)
            if upgrading:
                self.conn.execute(
                    "INSERT INTO migrations (version, name, applied_at) VALUES (?, ?, ?)",
                    (
                        migration.version,
                        migration.name,
                        datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
                    ),
                )
            else:
                self.conn.execute(
                    "DELETE FROM migrations WHERE version = ?", (migration.version,)
                )
            self.conn.commit()
        except Exception as e:
            self.conn.rollback()
            logger.error("Migration %s failed: %s", migration.label, e)
            raise

    def run_pending(self) -> list[int]:
        """
        Apply every pending migration.

        The write lock is held while checking, so concurrent start-ups apply
        each migration once.

        Returns:
            Versions applied by this call.
        """
        versions: list[int] = []
        for migration in self.pending():
            self.conn.execute("BEGIN IMMEDIATE")
            if migration.version in self.get_applied_versions():
                # Applied by a concurrent start-up meanwhile
                self.conn.rollback()
                continue
            self._step(migration, upgrading=True)
            versions.append(migration.version)

        if versions:
            logger.info("Applied %d migrations: %s", len(versions), versions)
        else:
            logger.debug("Schema up to date (version %d)", self.get_current_version())
        return versions

    def migrate_to(self, target_version: int) -> None:
        """
        Upgrade or roll back until `target_version` is the current version.

        Raises:
            MigrationError: If a migration on the way down has no downgrade.
            ValueError: If the target is not a known version (or 0).
        """
        migrations = get_all_migrations()
        known = {m.version for m in migrations}
        if target_version != 0 and target_version not in known:
            raise ValueError(f"Unknown migration version: {target_version}")

        applied = self.get_applied_versions()
        for migration in migrations:
            if migration.version <= target_version and migration.version not in applied:
                self._step(migration, upgrading=True)
        for migration in reversed(migrations):
            if migration.version > target_version and migration.version in applied:
                self._step(migration, upgrading=False)
