"""Statement import service.

Normalizes raw rows and stores the new ones in a single atomic batch.
Malformed rows and duplicates are counted, never fatal, so re-running an
import of the same file changes nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from expense_matcher.importing import (
    ImportRow,
    NormalizedTransaction,
    RecordNormalizer,
    read_csv_file,
)

if TYPE_CHECKING:
    from expense_matcher.config import Config
    from expense_matcher.state_store import StateStore

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    """Outcome of importing a batch of rows."""

    imported: int = 0
    duplicates: int = 0
    invalid: int = 0
    transaction_ids: list[int] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def skipped(self) -> int:
        """Duplicates and malformed rows together."""
        return self.duplicates + self.invalid

    @property
    def total(self) -> int:
        return self.imported + self.skipped

    def to_dict(self) -> dict[str, Any]:
        return {
            "imported": self.imported,
            "skipped": self.skipped,
            "total": self.total,
            "duplicates": self.duplicates,
            "invalid": self.invalid,
            "errors": list(self.errors),
        }


class ImportService:
    """Imports card statement rows into the transaction store.

    Usage:
        service = ImportService(state_store, config)
        result = service.import_csv(Path("statement.csv"))
    """

    def __init__(self, state_store: StateStore, config: Config) -> None:
        self.store = state_store
        self.normalizer = RecordNormalizer(
            date_formats=config.importing.date_formats,
            default_card_last_four=config.importing.default_card_last_four,
        )

    def _normalize_all(
        self, rows: Iterable[ImportRow], result: ImportResult
    ) -> list[NormalizedTransaction]:
        valid: list[NormalizedTransaction] = []
        for number, row in enumerate(rows, start=1):
            try:
                valid.append(self.normalizer.normalize(row))
            except ValueError as e:
                result.invalid += 1
                result.errors.append(f"row {number}: {e}")
                logger.debug("Skipping malformed row %d: %s", number, e)
        return valid

    def import_rows(self, rows: Iterable[ImportRow], dry_run: bool = False) -> ImportResult:
        """Import rows, skipping malformed rows and duplicates.

        Args:
            rows: Raw rows from the import source.
            dry_run: Classify rows without writing anything.

        Returns:
            ImportResult with imported/skipped/total counts.
        """
        result = ImportResult()
        valid = self._normalize_all(rows, result)

        if dry_run:
            self._classify_without_writing(valid, result)
        else:
            for new_id in self.store.insert_transactions(valid):
                if new_id is None:
                    result.duplicates += 1
                else:
                    result.imported += 1
                    result.transaction_ids.append(new_id)

        logger.info(
            "Import%s: %d imported, %d duplicates, %d invalid (%d rows)",
            " (dry run)" if dry_run else "",
            result.imported,
            result.duplicates,
            result.invalid,
            result.total,
        )
        return result

    def _classify_without_writing(
        self, transactions: list[NormalizedTransaction], result: ImportResult
    ) -> None:
        seen_keys: set[tuple] = set()
        seen_issuer_ids: set[str] = set()
        for tx in transactions:
            issuer_id = tx.issuer_transaction_id
            duplicate = (
                tx.dedupe_key in seen_keys
                or (issuer_id is not None and issuer_id in seen_issuer_ids)
                or self.store.find_duplicate_transaction(
                    tx.date, tx.description, tx.amount, tx.issuer_transaction_id
                )
                is not None
            )
            seen_keys.add(tx.dedupe_key)
            if tx.issuer_transaction_id is not None:
                seen_issuer_ids.add(tx.issuer_transaction_id)

            if duplicate:
                result.duplicates += 1
            else:
                result.imported += 1

    def import_csv(self, path: Path | str, dry_run: bool = False) -> ImportResult:
        """Import a statement CSV file.

        Raises:
            CsvFormatError: If the file lacks required columns.
        """
        rows = read_csv_file(path)
        logger.info("Read %d rows from %s", len(rows), path)
        return self.import_rows(rows, dry_run=dry_run)
