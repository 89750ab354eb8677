"""
Migration 002: Create receipts table.

Uploaded receipt documents. The file itself belongs to the storage
collaborator; only an opaque reference is kept here. OCR fields stay NULL
until the OCR collaborator reports back.
"""

import sqlite3

VERSION = 2
NAME = "receipts"


def upgrade(conn: sqlite3.Connection) -> None:
    """Create receipts table."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS receipts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            file_ref TEXT NOT NULL,
            original_filename TEXT,
            file_size INTEGER,
            uploaded_at TEXT NOT NULL,
            ocr_text TEXT,
            extracted_amount TEXT,  -- unsigned receipt total
            extracted_date TEXT,  -- YYYY-MM-DD
            extracted_merchant TEXT,
            processing_status TEXT NOT NULL DEFAULT 'pending'
                CHECK (processing_status IN ('pending', 'processing', 'completed', 'failed')),
            error_message TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_receipts_status ON receipts(processing_status)"
    )


def downgrade(conn: sqlite3.Connection) -> None:
    """Remove receipts table."""
    conn.execute("DROP INDEX IF EXISTS idx_receipts_status")
    conn.execute("DROP TABLE IF EXISTS receipts")
