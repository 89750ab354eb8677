"""
Migration 003: Create matches table.

Proposed or confirmed pairings between one transaction and one receipt.
UNIQUE(transaction_id, receipt_id) is the race guard for concurrent
proposals; ON DELETE CASCADE removes matches with their parent row.
"""

import sqlite3

VERSION = 3
NAME = "matches"


def upgrade(conn: sqlite3.Connection) -> None:
    """Create matches table."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS matches (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            transaction_id INTEGER NOT NULL,
            receipt_id INTEGER NOT NULL,
            confidence REAL NOT NULL,  -- 0-100
            match_status TEXT NOT NULL DEFAULT 'pending'
                CHECK (match_status IN ('pending', 'confirmed', 'rejected')),
            user_confirmed INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            FOREIGN KEY (transaction_id) REFERENCES transactions(id) ON DELETE CASCADE,
            FOREIGN KEY (receipt_id) REFERENCES receipts(id) ON DELETE CASCADE,
            UNIQUE(transaction_id, receipt_id)
        )
    """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_matches_status ON matches(match_status)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_matches_receipt ON matches(receipt_id)")


def downgrade(conn: sqlite3.Connection) -> None:
    """Remove matches table."""
    conn.execute("DROP INDEX IF EXISTS idx_matches_receipt")
    conn.execute("DROP INDEX IF EXISTS idx_matches_status")
    conn.execute("DROP TABLE IF EXISTS matches")
