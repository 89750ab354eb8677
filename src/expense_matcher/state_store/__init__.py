"""
State Store (SQLite-based).

Repository for:
- Imported card transactions
- Receipts and their OCR output
- Transaction ↔ receipt matches

Enforces pairing uniqueness and cascading deletes in the schema.
"""

from .sqlite_store import (
    ConflictError,
    MatchRecord,
    MatchStatus,
    NotFoundError,
    ReceiptRecord,
    ReceiptStatus,
    StateStore,
    StateStoreError,
    TransactionRecord,
)

__all__ = [
    "ConflictError",
    "MatchRecord",
    "MatchStatus",
    "NotFoundError",
    "ReceiptRecord",
    "ReceiptStatus",
    "StateStore",
    "StateStoreError",
    "TransactionRecord",
]
