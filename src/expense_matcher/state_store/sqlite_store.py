"""
SQLite-based state store implementation.

Tables:
- transactions: Imported card-ledger entries
- receipts: Uploaded receipts and their OCR output
- matches: Proposed/confirmed transaction ↔ receipt pairings

Uniqueness and cascades are enforced by the schema, so concurrent callers
resolve to one winner and no-op losers.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any

from expense_matcher.importing.normalizer import (
    NormalizedTransaction,
    normalize_receipt_changes,
    normalize_transaction_changes,
)

logger = logging.getLogger(__name__)

CONFIDENCE_QUANT = Decimal("0.01")


class StateStoreError(Exception):
    """Base exception for state store errors."""

    pass


class NotFoundError(StateStoreError):
    """Referenced transaction, receipt or match does not exist."""

    def __init__(self, entity: str, entity_id: int):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ConflictError(StateStoreError):
    """Requested change conflicts with the current state of a record."""

    def __init__(self, message: str, current: str | None = None, requested: str | None = None):
        self.current = current
        self.requested = requested
        super().__init__(message)


class ReceiptStatus(str, Enum):
    """OCR processing status of a receipt."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    def predecessors(self) -> tuple[ReceiptStatus, ...]:
        """Statuses from which this status may be entered."""
        if self is ReceiptStatus.PENDING:
            return ()
        if self is ReceiptStatus.PROCESSING:
            return (ReceiptStatus.PENDING,)
        if self is ReceiptStatus.COMPLETED or self is ReceiptStatus.FAILED:
            # OCR may call back without a separate "started" notification
            return (ReceiptStatus.PENDING, ReceiptStatus.PROCESSING)
        raise ValueError(f"Unhandled receipt status: {self}")

    @property
    def is_terminal(self) -> bool:
        return self in (ReceiptStatus.COMPLETED, ReceiptStatus.FAILED)


class MatchStatus(str, Enum):
    """Lifecycle status of a match."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _amount_str(amount: Decimal) -> str:
    return str(amount.quantize(CONFIDENCE_QUANT))


def _opt_decimal(value: str | None) -> Decimal | None:
    return Decimal(value) if value is not None else None


def _opt_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


@dataclass
class TransactionRecord:
    """Record of an imported card transaction."""

    id: int
    date: date
    description: str
    amount: Decimal
    category: str | None
    card_last_four: str | None
    issuer_transaction_id: str | None
    external_transaction_id: str | None
    sales_tax: Decimal | None
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> TransactionRecord:
        """Create from database row."""
        return cls(
            id=row["id"],
            date=date.fromisoformat(row["transaction_date"]),
            description=row["description"],
            amount=Decimal(row["amount"]),
            category=row["category"],
            card_last_four=row["card_last_four"],
            issuer_transaction_id=row["issuer_transaction_id"],
            external_transaction_id=row["external_transaction_id"],
            sales_tax=_opt_decimal(row["sales_tax"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "transaction_date": self.date.isoformat(),
            "description": self.description,
            "amount": str(self.amount),
            "category": self.category,
            "card_last_four": self.card_last_four,
            "issuer_transaction_id": self.issuer_transaction_id,
            "external_transaction_id": self.external_transaction_id,
            "sales_tax": str(self.sales_tax) if self.sales_tax is not None else None,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class ReceiptRecord:
    """Record of an uploaded receipt and its OCR output."""

    id: int
    file_ref: str
    original_filename: str | None
    file_size: int | None
    uploaded_at: str
    ocr_text: str | None
    extracted_amount: Decimal | None
    extracted_date: date | None
    extracted_merchant: str | None
    status: ReceiptStatus
    error_message: str | None
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> ReceiptRecord:
        """Create from database row."""
        return cls(
            id=row["id"],
            file_ref=row["file_ref"],
            original_filename=row["original_filename"],
            file_size=row["file_size"],
            uploaded_at=row["uploaded_at"],
            ocr_text=row["ocr_text"],
            extracted_amount=_opt_decimal(row["extracted_amount"]),
            extracted_date=_opt_date(row["extracted_date"]),
            extracted_merchant=row["extracted_merchant"],
            status=ReceiptStatus(row["processing_status"]),
            error_message=row["error_message"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @property
    def is_matchable(self) -> bool:
        """True once OCR completed with the fields candidate generation needs."""
        return (
            self.status is ReceiptStatus.COMPLETED
            and self.extracted_amount is not None
            and self.extracted_date is not None
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "file_ref": self.file_ref,
            "original_filename": self.original_filename,
            "file_size": self.file_size,
            "uploaded_at": self.uploaded_at,
            "ocr_text": self.ocr_text,
            "extracted_amount": (
                str(self.extracted_amount) if self.extracted_amount is not None else None
            ),
            "extracted_date": self.extracted_date.isoformat() if self.extracted_date else None,
            "extracted_merchant": self.extracted_merchant,
            "processing_status": self.status.value,
            "error_message": self.error_message,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class MatchRecord:
    """Record of a transaction ↔ receipt pairing."""

    id: int
    transaction_id: int
    receipt_id: int
    confidence: Decimal
    status: MatchStatus
    user_confirmed: bool
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> MatchRecord:
        """Create from database row."""
        return cls(
            id=row["id"],
            transaction_id=row["transaction_id"],
            receipt_id=row["receipt_id"],
            confidence=Decimal(str(row["confidence"])).quantize(CONFIDENCE_QUANT),
            status=MatchStatus(row["match_status"]),
            user_confirmed=bool(row["user_confirmed"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "receipt_id": self.receipt_id,
            "match_confidence": float(self.confidence),
            "match_status": self.status.value,
            "user_confirmed": self.user_confirmed,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


# Columns a user may edit on a transaction
_EDITABLE_TRANSACTION_FIELDS = {
    "date": "transaction_date",
    "description": "description",
    "amount": "amount",
    "category": "category",
    "card_last_four": "card_last_four",
    "issuer_transaction_id": "issuer_transaction_id",
    "external_transaction_id": "external_transaction_id",
    "sales_tax": "sales_tax",
}

# OCR fields a user may correct on a receipt
_EDITABLE_RECEIPT_FIELDS = {
    "extracted_amount": "extracted_amount",
    "extracted_date": "extracted_date",
    "extracted_merchant": "extracted_merchant",
    "ocr_text": "ocr_text",
}


def _to_column_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return _amount_str(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


class StateStore:
    """
    SQLite-based state store for the expense matcher.

    Every public method opens its own connection and runs in one
    transaction, so each call is atomic. Writes that must observe and change
    state together take the write lock up front (BEGIN IMMEDIATE).
    """

    def __init__(self, db_path: Path | str, run_migrations: bool = True, timeout: float = 30.0):
        """
        Initialize state store.

        Args:
            db_path: Path to SQLite database file
            run_migrations: Whether to run pending migrations (default True)
            timeout: Seconds to wait for a competing writer's lock
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.timeout = timeout
        if run_migrations:
            self._run_migrations()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with row factory."""
        conn = sqlite3.connect(str(self.db_path), timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            if immediate:
                conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _run_migrations(self) -> None:
        """Run pending database migrations."""
        from .migrations import MigrationRunner

        conn = self._get_connection()
        try:
            runner = MigrationRunner(conn)
            runner.run_pending()
        finally:
            conn.close()

    # Transaction methods

    def insert_transactions(
        self, transactions: Iterable[NormalizedTransaction]
    ) -> list[int | None]:
        """
        Insert normalized transactions in one atomic batch.

        Rows colliding with an existing (date, description, amount) or issuer
        transaction id are ignored, including collisions inside the batch.

        Returns:
            New row id per input, or None where the row was a duplicate.
        """
        now = _now()
        results: list[int | None] = []

        with self._transaction(immediate=True) as conn:
            for tx in transactions:
                cursor = conn.execute(
                    """
                    INSERT OR IGNORE INTO transactions
                    (transaction_date, description, amount, category, card_last_four,
                     issuer_transaction_id, external_transaction_id, sales_tax,
                     created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    (
                        tx.date.isoformat(),
                        tx.description,
                        _amount_str(tx.amount),
                        tx.category,
                        tx.card_last_four,
                        tx.issuer_transaction_id,
                        tx.external_transaction_id,
                        _amount_str(tx.sales_tax) if tx.sales_tax is not None else None,
                        now,
                        now,
                    ),
                )
                results.append(cursor.lastrowid if cursor.rowcount == 1 else None)

        return results

    def find_duplicate_transaction(
        self,
        tx_date: date,
        description: str,
        amount: Decimal,
        issuer_transaction_id: str | None = None,
    ) -> TransactionRecord | None:
        """Find an existing transaction that the given fields would duplicate."""
        with self._transaction() as conn:
            row = conn.execute(
                """
                SELECT * FROM transactions
                WHERE (transaction_date = ? AND description = ? AND amount = ?)
                   OR (? IS NOT NULL AND issuer_transaction_id = ?)
                LIMIT 1
            """,
                (
                    tx_date.isoformat(),
                    description,
                    _amount_str(amount),
                    issuer_transaction_id,
                    issuer_transaction_id,
                ),
            ).fetchone()
            return TransactionRecord.from_row(row) if row else None

    def get_transaction(self, transaction_id: int) -> TransactionRecord | None:
        """Get a transaction by ID."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM transactions WHERE id = ?", (transaction_id,)
            ).fetchone()
            return TransactionRecord.from_row(row) if row else None

    def list_transactions(self, limit: int = 50, offset: int = 0) -> list[TransactionRecord]:
        """List transactions, newest first."""
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT * FROM transactions
                ORDER BY transaction_date DESC, id DESC
                LIMIT ? OFFSET ?
            """,
                (limit, offset),
            ).fetchall()
            return [TransactionRecord.from_row(row) for row in rows]

    def count_transactions(self) -> int:
        """Total number of stored transactions."""
        with self._transaction() as conn:
            return conn.execute("SELECT COUNT(*) FROM transactions").fetchone()[0]

    def get_transactions_between(self, start: date, end: date) -> list[TransactionRecord]:
        """Get transactions dated within [start, end] (inclusive)."""
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT * FROM transactions
                WHERE transaction_date BETWEEN ? AND ?
                ORDER BY transaction_date, id
            """,
                (start.isoformat(), end.isoformat()),
            ).fetchall()
            return [TransactionRecord.from_row(row) for row in rows]

    def update_transaction(self, transaction_id: int, **changes: Any) -> TransactionRecord:
        """
        Apply a user edit to a transaction.

        Edited values are normalized like imported rows, so dedup keeps
        working and stored dates and amounts stay readable.

        Raises:
            NotFoundError: If the transaction does not exist.
            ConflictError: If the edit collides with another transaction.
            ValueError: If an unknown field or an unusable value is given.
        """
        unknown = set(changes) - set(_EDITABLE_TRANSACTION_FIELDS)
        if unknown:
            raise ValueError(f"Cannot edit transaction fields: {sorted(unknown)}")
        changes = normalize_transaction_changes(changes)

        with self._transaction(immediate=True) as conn:
            if changes:
                assignments = ", ".join(
                    f"{_EDITABLE_TRANSACTION_FIELDS[name]} = ?" for name in changes
                )
                params = [_to_column_value(value) for value in changes.values()]
                try:
                    conn.execute(
                        f"UPDATE transactions SET {assignments}, updated_at = ? WHERE id = ?",
                        (*params, _now(), transaction_id),
                    )
                except sqlite3.IntegrityError as e:
                    raise ConflictError(
                        f"Transaction {transaction_id} edit duplicates another transaction: {e}"
                    ) from e

            row = conn.execute(
                "SELECT * FROM transactions WHERE id = ?", (transaction_id,)
            ).fetchone()
            if row is None:
                raise NotFoundError("transaction", transaction_id)
            return TransactionRecord.from_row(row)

    def delete_transaction(self, transaction_id: int) -> int:
        """
        Delete a transaction and, by cascade, its matches.

        Returns:
            Number of matches removed with it.

        Raises:
            NotFoundError: If the transaction does not exist.
        """
        with self._transaction(immediate=True) as conn:
            match_count = conn.execute(
                "SELECT COUNT(*) FROM matches WHERE transaction_id = ?", (transaction_id,)
            ).fetchone()[0]
            cursor = conn.execute("DELETE FROM transactions WHERE id = ?", (transaction_id,))
            if cursor.rowcount == 0:
                raise NotFoundError("transaction", transaction_id)
            return match_count

    # Receipt methods

    def create_receipt(
        self,
        file_ref: str,
        original_filename: str | None = None,
        file_size: int | None = None,
    ) -> int:
        """Register an uploaded receipt. Returns the receipt ID."""
        now = _now()
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO receipts
                (file_ref, original_filename, file_size, uploaded_at, processing_status,
                 created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    file_ref,
                    original_filename,
                    file_size,
                    now,
                    ReceiptStatus.PENDING.value,
                    now,
                    now,
                ),
            )
            return cursor.lastrowid or 0

    def get_receipt(self, receipt_id: int) -> ReceiptRecord | None:
        """Get a receipt by ID."""
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM receipts WHERE id = ?", (receipt_id,)).fetchone()
            return ReceiptRecord.from_row(row) if row else None

    def list_receipts(
        self,
        limit: int = 20,
        offset: int = 0,
        status: ReceiptStatus | None = None,
    ) -> list[ReceiptRecord]:
        """List receipts, most recently uploaded first."""
        query = "SELECT * FROM receipts"
        params: list[Any] = []
        if status is not None:
            query += " WHERE processing_status = ?"
            params.append(status.value)
        query += " ORDER BY uploaded_at DESC, id DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()
            return [ReceiptRecord.from_row(row) for row in rows]

    def count_receipts(self, status: ReceiptStatus | None = None) -> int:
        """Number of stored receipts, optionally in one status."""
        with self._transaction() as conn:
            if status is None:
                return conn.execute("SELECT COUNT(*) FROM receipts").fetchone()[0]
            return conn.execute(
                "SELECT COUNT(*) FROM receipts WHERE processing_status = ?", (status.value,)
            ).fetchone()[0]

    def transition_receipt(
        self,
        receipt_id: int,
        new_status: ReceiptStatus,
        fields: dict[str, Any] | None = None,
    ) -> ReceiptRecord:
        """
        Move a receipt to a new processing status, writing any OCR fields.

        The update only applies if the current status is a legal predecessor,
        so concurrent callbacks cannot reopen a finished receipt.

        Raises:
            NotFoundError: If the receipt does not exist.
            ConflictError: If the transition is not allowed.
        """
        fields = fields or {}
        allowed = new_status.predecessors()
        assignments = ["processing_status = ?", "updated_at = ?"]
        params: list[Any] = [new_status.value, _now()]
        for name, value in fields.items():
            assignments.append(f"{name} = ?")
            params.append(_to_column_value(value))

        with self._transaction(immediate=True) as conn:
            updated = 0
            if allowed:
                placeholders = ", ".join("?" for _ in allowed)
                cursor = conn.execute(
                    f"""
                    UPDATE receipts SET {", ".join(assignments)}
                    WHERE id = ? AND processing_status IN ({placeholders})
                """,
                    (*params, receipt_id, *(s.value for s in allowed)),
                )
                updated = cursor.rowcount

            row = conn.execute("SELECT * FROM receipts WHERE id = ?", (receipt_id,)).fetchone()
            if row is None:
                raise NotFoundError("receipt", receipt_id)
            if not updated:
                current = row["processing_status"]
                raise ConflictError(
                    f"Receipt {receipt_id} cannot move from {current} to {new_status.value}",
                    current=current,
                    requested=new_status.value,
                )
            return ReceiptRecord.from_row(row)

    def update_receipt_fields(self, receipt_id: int, **changes: Any) -> ReceiptRecord:
        """
        Apply a user correction to a receipt's extracted fields.

        Raises:
            NotFoundError: If the receipt does not exist.
            ValueError: If a non-editable field or an unusable value is given.
        """
        unknown = set(changes) - set(_EDITABLE_RECEIPT_FIELDS)
        if unknown:
            raise ValueError(f"Cannot edit receipt fields: {sorted(unknown)}")
        changes = normalize_receipt_changes(changes)

        with self._transaction(immediate=True) as conn:
            if changes:
                assignments = ", ".join(f"{_EDITABLE_RECEIPT_FIELDS[name]} = ?" for name in changes)
                params = [_to_column_value(value) for value in changes.values()]
                conn.execute(
                    f"UPDATE receipts SET {assignments}, updated_at = ? WHERE id = ?",
                    (*params, _now(), receipt_id),
                )
            row = conn.execute("SELECT * FROM receipts WHERE id = ?", (receipt_id,)).fetchone()
            if row is None:
                raise NotFoundError("receipt", receipt_id)
            return ReceiptRecord.from_row(row)

    def delete_receipt(self, receipt_id: int) -> int:
        """
        Delete a receipt and, by cascade, its matches.

        Returns:
            Number of matches removed with it.

        Raises:
            NotFoundError: If the receipt does not exist.
        """
        with self._transaction(immediate=True) as conn:
            match_count = conn.execute(
                "SELECT COUNT(*) FROM matches WHERE receipt_id = ?", (receipt_id,)
            ).fetchone()[0]
            cursor = conn.execute("DELETE FROM receipts WHERE id = ?", (receipt_id,))
            if cursor.rowcount == 0:
                raise NotFoundError("receipt", receipt_id)
            return match_count

    def get_receipts_without_confirmed_match(self) -> list[ReceiptRecord]:
        """Completed receipts that have no confirmed match yet."""
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT r.* FROM receipts r
                WHERE r.processing_status = ?
                  AND NOT EXISTS (
                      SELECT 1 FROM matches m
                      WHERE m.receipt_id = r.id AND m.match_status = ?
                  )
                ORDER BY r.id
            """,
                (ReceiptStatus.COMPLETED.value, MatchStatus.CONFIRMED.value),
            ).fetchall()
            return [ReceiptRecord.from_row(row) for row in rows]

    # Match methods

    def insert_match(
        self,
        transaction_id: int,
        receipt_id: int,
        confidence: Decimal,
    ) -> tuple[int | None, bool]:
        """
        Create a pending match unless one already exists for the pair.

        The insert only happens while both the transaction and the receipt
        still exist, so a proposal racing a delete is a no-op.

        Returns:
            (match_id, created). created is False when the pair already had a
            row, whatever its status. match_id is None when either side has
            been deleted.
        """
        now = _now()
        with self._transaction(immediate=True) as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO matches
                (transaction_id, receipt_id, confidence, match_status, user_confirmed,
                 created_at, updated_at)
                SELECT ?, ?, ?, ?, 0, ?, ?
                WHERE EXISTS (SELECT 1 FROM transactions WHERE id = ?)
                  AND EXISTS (SELECT 1 FROM receipts WHERE id = ?)
            """,
                (
                    transaction_id,
                    receipt_id,
                    float(confidence),
                    MatchStatus.PENDING.value,
                    now,
                    now,
                    transaction_id,
                    receipt_id,
                ),
            )
            if cursor.rowcount == 1:
                return cursor.lastrowid or 0, True

            row = conn.execute(
                "SELECT id FROM matches WHERE transaction_id = ? AND receipt_id = ?",
                (transaction_id, receipt_id),
            ).fetchone()
            if row is None:
                logger.info(
                    "Skipped match for receipt %d / tx %d: one side was deleted",
                    receipt_id,
                    transaction_id,
                )
                return None, False
            return row["id"], False

    def get_match(self, match_id: int) -> MatchRecord | None:
        """Get a match by ID."""
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM matches WHERE id = ?", (match_id,)).fetchone()
            return MatchRecord.from_row(row) if row else None

    def get_match_for_pair(self, transaction_id: int, receipt_id: int) -> MatchRecord | None:
        """Get the match row for a (transaction, receipt) pair."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM matches WHERE transaction_id = ? AND receipt_id = ?",
                (transaction_id, receipt_id),
            ).fetchone()
            return MatchRecord.from_row(row) if row else None

    def get_matches_for_receipt(self, receipt_id: int) -> list[MatchRecord]:
        """All matches involving a receipt, best first."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM matches WHERE receipt_id = ? ORDER BY confidence DESC, id",
                (receipt_id,),
            ).fetchall()
            return [MatchRecord.from_row(row) for row in rows]

    def compare_and_set_match_status(
        self,
        match_id: int,
        expected: MatchStatus,
        new_status: MatchStatus,
    ) -> bool:
        """
        Set a match's status only if it currently equals `expected`.

        user_confirmed follows the new status. Returns True if the row changed.
        """
        with self._transaction(immediate=True) as conn:
            cursor = conn.execute(
                """
                UPDATE matches
                SET match_status = ?, user_confirmed = ?, updated_at = ?
                WHERE id = ? AND match_status = ?
            """,
                (
                    new_status.value,
                    1 if new_status is MatchStatus.CONFIRMED else 0,
                    _now(),
                    match_id,
                    expected.value,
                ),
            )
            return cursor.rowcount == 1

    def delete_match(self, match_id: int) -> bool:
        """Delete a match. Returns True if a row was removed."""
        with self._transaction(immediate=True) as conn:
            cursor = conn.execute("DELETE FROM matches WHERE id = ?", (match_id,))
            return cursor.rowcount == 1

    def list_matches(self, status: MatchStatus | None = None) -> list[dict[str, Any]]:
        """List matches joined with transaction and receipt summary fields."""
        query = """
            SELECT m.*,
                   t.transaction_date, t.description, t.amount, t.category,
                   r.original_filename, r.file_ref, r.extracted_amount,
                   r.extracted_date, r.extracted_merchant
            FROM matches m
            JOIN transactions t ON t.id = m.transaction_id
            JOIN receipts r ON r.id = m.receipt_id
        """
        params: list[Any] = []
        if status is not None:
            query += " WHERE m.match_status = ?"
            params.append(status.value)
        query += " ORDER BY m.confidence DESC, m.id"

        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()

        results = []
        for row in rows:
            entry = MatchRecord.from_row(row).to_dict()
            entry.update(
                {
                    "transaction_date": row["transaction_date"],
                    "description": row["description"],
                    "amount": row["amount"],
                    "category": row["category"],
                    "original_filename": row["original_filename"],
                    "file_ref": row["file_ref"],
                    "extracted_amount": row["extracted_amount"],
                    "extracted_date": row["extracted_date"],
                    "extracted_merchant": row["extracted_merchant"],
                }
            )
            results.append(entry)
        return results

    def count_matches(self) -> int:
        """Total number of match rows."""
        with self._transaction() as conn:
            return conn.execute("SELECT COUNT(*) FROM matches").fetchone()[0]

    def get_match_stats(self) -> dict[str, int]:
        """Aggregate match counts and completed receipts without any match."""
        with self._transaction() as conn:
            counts = {status: 0 for status in MatchStatus}
            for row in conn.execute(
                "SELECT match_status, COUNT(*) AS n FROM matches GROUP BY match_status"
            ):
                counts[MatchStatus(row["match_status"])] = row["n"]

            unmatched = conn.execute(
                """
                SELECT COUNT(*) FROM receipts r
                WHERE r.processing_status = ?
                  AND NOT EXISTS (SELECT 1 FROM matches m WHERE m.receipt_id = r.id)
            """,
                (ReceiptStatus.COMPLETED.value,),
            ).fetchone()[0]

        return {
            "total_matches": sum(counts.values()),
            "confirmed_matches": counts[MatchStatus.CONFIRMED],
            "pending_matches": counts[MatchStatus.PENDING],
            "rejected_matches": counts[MatchStatus.REJECTED],
            "unmatched_receipts": unmatched,
        }
