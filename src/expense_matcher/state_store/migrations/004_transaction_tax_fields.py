"""
Migration 004: Add external_transaction_id and sales_tax to transactions.

Both columns are optional and filled by imports that carry them or by user
edits.
"""

import sqlite3

VERSION = 4
NAME = "transaction_tax_fields"


def upgrade(conn: sqlite3.Connection) -> None:
    """Add external_transaction_id and sales_tax columns."""
    cursor = conn.execute("PRAGMA table_info(transactions)")
    columns = [row[1] for row in cursor.fetchall()]

    if "external_transaction_id" not in columns:
        conn.execute("ALTER TABLE transactions ADD COLUMN external_transaction_id TEXT")
    if "sales_tax" not in columns:
        conn.execute("ALTER TABLE transactions ADD COLUMN sales_tax TEXT")


def downgrade(conn: sqlite3.Connection) -> None:
    """Remove the added columns (SQLite 3.35+)."""
    conn.execute("ALTER TABLE transactions DROP COLUMN sales_tax")
    conn.execute("ALTER TABLE transactions DROP COLUMN external_transaction_id")
