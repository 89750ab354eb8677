"""
API surface consumed by a transport layer (HTTP routes, CLI, UI).

ExpenseMatcher wires the services to one injected StateStore; it holds no
other state. Lookups of unknown ids raise NotFoundError and invalid state
changes raise ConflictError, for the transport layer to map onto its own
error responses.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from .config import Config
from .importing import ImportRow, normalize_transaction_changes, parse_csv_text
from .matching import MatchResult
from .services import (
    AutoMatchResult,
    ImportResult,
    ImportService,
    MatchLifecycleManager,
    OcrResult,
    ReceiptService,
)
from .state_store import (
    MatchRecord,
    MatchStatus,
    NotFoundError,
    ReceiptRecord,
    ReceiptStatus,
    StateStore,
    TransactionRecord,
)

logger = logging.getLogger(__name__)


def _pagination(page: int, limit: int, total: int) -> dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit if limit else 0,
    }

class ExpenseMatcher:
    """Facade over import, receipt intake and match lifecycle operations."""

    def __init__(self, config: Config, state_store: StateStore | None = None) -> None:
        self.config = config
        self.store = state_store or StateStore(config.state_db_path)
        self.importer = ImportService(self.store, config)
        self.receipts = ReceiptService(self.store)
        self.matches = MatchLifecycleManager(self.store, config)

    # Transactions

    def import_rows(self, rows: Iterable[ImportRow], dry_run: bool = False) -> ImportResult:
        return self.importer.import_rows(rows, dry_run=dry_run)

    def import_csv(self, path: Path | str, dry_run: bool = False) -> ImportResult:
        return self.importer.import_csv(path, dry_run=dry_run)

    def import_csv_text(self, text: str, dry_run: bool = False) -> ImportResult:
        """Import an uploaded CSV body."""
        return self.importer.import_rows(parse_csv_text(text), dry_run=dry_run)

    def get_transaction(self, transaction_id: int) -> TransactionRecord:
        transaction = self.store.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError("transaction", transaction_id)
        return transaction

    def list_transactions(self, page: int = 1, limit: int = 50) -> dict[str, Any]:
        """One page of transactions plus pagination info."""
        page = max(page, 1)
        total = self.store.count_transactions()
        items = self.store.list_transactions(limit=limit, offset=(page - 1) * limit)
        return {
            "transactions": [t.to_dict() for t in items],
            "pagination": _pagination(page, limit, total),
        }

    def update_transaction(self, transaction_id: int, **changes: Any) -> TransactionRecord:
        """Edit a transaction; dates in the configured import formats are accepted."""
        changes = normalize_transaction_changes(changes, self.config.importing.date_formats)
        transaction = self.store.update_transaction(transaction_id, **changes)
        logger.info("Updated transaction %d: %s", transaction_id, sorted(changes))
        return transaction

    def delete_transaction(self, transaction_id: int) -> int:
        """Delete a transaction and its matches. Returns the number of matches removed."""
        removed = self.store.delete_transaction(transaction_id)
        logger.info("Deleted transaction %d (%d matches removed)", transaction_id, removed)
        return removed

    # Receipts

    def add_receipt(
        self,
        file_ref: str,
        original_filename: str | None = None,
        file_size: int | None = None,
    ) -> ReceiptRecord:
        return self.receipts.register(file_ref, original_filename, file_size)

    def start_ocr(self, receipt_id: int) -> ReceiptRecord:
        return self.receipts.mark_processing(receipt_id)

    def record_ocr_result(self, receipt_id: int, result: OcrResult) -> ReceiptRecord:
        return self.receipts.record_ocr_result(receipt_id, result)

    def record_ocr_failure(self, receipt_id: int, message: str | None = None) -> ReceiptRecord:
        return self.receipts.mark_failed(receipt_id, message)

    def get_receipt(self, receipt_id: int) -> ReceiptRecord:
        return self.receipts.get(receipt_id)

    def list_receipts(
        self, page: int = 1, limit: int = 20, status: ReceiptStatus | None = None
    ) -> dict[str, Any]:
        """One page of receipts, newest upload first, plus pagination info."""
        page = max(page, 1)
        total = self.receipts.count(status)
        items = self.receipts.list_receipts(
            limit=limit, offset=(page - 1) * limit, status=status
        )
        return {
            "receipts": [r.to_dict() for r in items],
            "pagination": _pagination(page, limit, total),
        }

    def update_receipt(self, receipt_id: int, **fields: Any) -> ReceiptRecord:
        return self.receipts.correct_extraction(receipt_id, **fields)

    def delete_receipt(self, receipt_id: int) -> int:
        return self.receipts.delete(receipt_id)

    def unmatched_receipts(self) -> list[ReceiptRecord]:
        return self.receipts.unmatched()

    # Matches

    def find_candidates(self, receipt_id: int) -> list[MatchResult]:
        """Propose matches for one receipt; scored candidates, best first."""
        return self.matches.propose(receipt_id)

    def auto_match(self, threshold: float | None = None) -> AutoMatchResult:
        return self.matches.auto_match(threshold)

    def confirm(self, match_id: int) -> MatchRecord:
        return self.matches.confirm(match_id)

    def reject(self, match_id: int) -> MatchRecord:
        return self.matches.reject(match_id)

    def delete(self, match_id: int) -> None:
        self.matches.delete(match_id)

    def get_match(self, match_id: int) -> MatchRecord:
        return self.matches.get(match_id)

    def list_matches(self, status: MatchStatus | None = None) -> list[dict[str, Any]]:
        return self.matches.list_matches(status)

    def stats(self) -> dict[str, int]:
        return self.matches.stats()
