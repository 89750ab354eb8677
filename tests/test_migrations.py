"""Tests for the schema migration runner."""

import sqlite3
from dataclasses import replace

import pytest

from expense_matcher.state_store import StateStore
from expense_matcher.state_store.migrations import (
    MigrationError,
    MigrationRunner,
    get_all_migrations,
)


def _columns(conn: sqlite3.Connection, table: str) -> set[str]:
    return {row[1] for row in conn.execute(f"PRAGMA table_info({table})")}


def _tables(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    return {row[0] for row in rows}


class TestMigrationDiscovery:
    """Tests for migration module loading."""

    def test_migrations_are_ordered(self):
        """Migrations load sorted by version with no gaps."""
        versions = [m.version for m in get_all_migrations()]
        assert versions == [1, 2, 3, 4]

    def test_every_migration_can_roll_back(self):
        """All migrations define a downgrade."""
        assert all(m.downgrade is not None for m in get_all_migrations())


class TestMigrationRunner:
    """Tests for MigrationRunner."""

    @pytest.fixture
    def conn(self, temp_db):
        conn = sqlite3.connect(str(temp_db))
        yield conn
        conn.close()

    def test_run_pending_applies_all(self, conn):
        """A fresh database receives every migration."""
        runner = MigrationRunner(conn)

        applied = runner.run_pending()

        assert applied == [1, 2, 3, 4]
        assert runner.get_current_version() == 4
        assert {"transactions", "receipts", "matches", "migrations"} <= _tables(conn)

    def test_run_pending_is_idempotent(self, conn):
        """Second run applies nothing."""
        runner = MigrationRunner(conn)
        runner.run_pending()

        assert runner.run_pending() == []

    def test_tax_fields_added(self, conn):
        """Migration 4 adds external id and sales tax columns."""
        MigrationRunner(conn).run_pending()

        columns = _columns(conn, "transactions")
        assert "external_transaction_id" in columns
        assert "sales_tax" in columns

    def test_migrate_down_and_up(self, conn):
        """Rolling back removes schema, migrating forward restores it."""
        runner = MigrationRunner(conn)
        runner.run_pending()

        runner.migrate_to(2)
        assert runner.get_current_version() == 2
        assert "matches" not in _tables(conn)

        runner.migrate_to(4)
        assert runner.get_current_version() == 4
        assert "matches" in _tables(conn)
        assert "sales_tax" in _columns(conn, "transactions")

    def test_migrate_to_unknown_version(self, conn):
        """Targets must be known versions."""
        runner = MigrationRunner(conn)
        with pytest.raises(ValueError):
            runner.migrate_to(99)

    def test_rollback_without_downgrade(self, conn):
        """A migration without downgrade blocks rollback past it."""
        runner = MigrationRunner(conn)
        runner.run_pending()
        (latest,) = [m for m in get_all_migrations() if m.version == 4]

        with pytest.raises(MigrationError):
            runner._step(replace(latest, downgrade=None), upgrading=False)

        assert runner.get_current_version() == 4


class TestStoreStartup:
    """Tests for migrations run by StateStore."""

    def test_store_migrates_on_init(self, temp_db):
        """Opening a store migrates the database once."""
        StateStore(temp_db)
        StateStore(temp_db)

        conn = sqlite3.connect(str(temp_db))
        try:
            count = conn.execute("SELECT COUNT(*) FROM migrations").fetchone()[0]
        finally:
            conn.close()
        assert count == 4

    def test_store_without_migrations(self, temp_db):
        """run_migrations=False leaves the database empty."""
        StateStore(temp_db, run_migrations=False)

        conn = sqlite3.connect(str(temp_db))
        try:
            assert "transactions" not in _tables(conn)
        finally:
            conn.close()
