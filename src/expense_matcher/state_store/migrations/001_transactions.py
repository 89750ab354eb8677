"""
Migration 001: Create transactions table.

Card-ledger entries imported from statement exports. Amounts are stored as
canonical two-place decimal strings so equality is exact.
"""

import sqlite3

VERSION = 1
NAME = "transactions"


def upgrade(conn: sqlite3.Connection) -> None:
    """Create transactions table."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS transactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            transaction_date TEXT NOT NULL,  -- YYYY-MM-DD
            description TEXT NOT NULL,
            amount TEXT NOT NULL,  -- signed, negative = debit
            category TEXT,
            card_last_four TEXT,
            issuer_transaction_id TEXT UNIQUE,  -- NULLs never collide
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE(transaction_date, description, amount)
        )
    """
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_transactions_date ON transactions(transaction_date)"
    )


def downgrade(conn: sqlite3.Connection) -> None:
    """Remove transactions table."""
    conn.execute("DROP INDEX IF EXISTS idx_transactions_date")
    conn.execute("DROP TABLE IF EXISTS transactions")
