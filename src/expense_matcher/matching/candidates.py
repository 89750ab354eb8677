"""Candidate generation: coarse date and amount windows around a receipt."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from expense_matcher.config import MatchingConfig
    from expense_matcher.state_store import ReceiptRecord, StateStore, TransactionRecord

logger = logging.getLogger(__name__)


class CandidateGenerator:
    """Narrows the transaction universe to those worth scoring for a receipt.

    Two independent filters, both of which must pass:
    - Date: transaction date within +/- date_window_days of the receipt date
      (card posting dates drift a few days from the purchase).
    - Amount: |transaction amount| within amount_tolerance_abs OR
      amount_tolerance_pct of the receipt total. Receipts carry unsigned
      totals while debits are negative, so the absolute value is compared.

    The date window is resolved by the store's indexed date query, so work is
    proportional to the candidates rather than the full history.
    """

    def __init__(self, state_store: StateStore, config: MatchingConfig) -> None:
        self.store = state_store
        self.config = config

    def date_window(self, receipt_date: date) -> tuple[date, date]:
        """Inclusive date range searched for a receipt."""
        delta = timedelta(days=self.config.date_window_days)
        return receipt_date - delta, receipt_date + delta

    def amount_bound(self, receipt_amount: Decimal) -> Decimal:
        """Largest accepted absolute difference for a receipt total."""
        relative = abs(receipt_amount) * Decimal(str(self.config.amount_tolerance_pct)) / 100
        return max(self.config.amount_tolerance_abs, relative)

    def in_date_window(self, receipt_date: date, tx_date: date) -> bool:
        return abs((tx_date - receipt_date).days) <= self.config.date_window_days

    def in_amount_window(self, receipt_amount: Decimal, tx_amount: Decimal) -> bool:
        diff = abs(abs(tx_amount) - abs(receipt_amount))
        return diff <= self.amount_bound(receipt_amount)

    def select(
        self,
        receipt_amount: Decimal,
        receipt_date: date,
        transactions: Iterable[TransactionRecord],
    ) -> list[TransactionRecord]:
        """Apply both windows to an in-memory set of transactions."""
        return [
            tx
            for tx in transactions
            if self.in_date_window(receipt_date, tx.date)
            and self.in_amount_window(receipt_amount, tx.amount)
        ]

    def candidates_for(self, receipt: ReceiptRecord) -> list[TransactionRecord]:
        """Candidate transactions for a receipt.

        Receipts without a completed extraction of amount and date have no
        candidates.
        """
        if not receipt.is_matchable:
            logger.debug("Receipt %d not matchable (status=%s)", receipt.id, receipt.status.value)
            return []

        start, end = self.date_window(receipt.extracted_date)
        in_range = self.store.get_transactions_between(start, end)
        candidates = self.select(receipt.extracted_amount, receipt.extracted_date, in_range)

        logger.debug(
            "Receipt %d: %d in date window, %d candidates",
            receipt.id,
            len(in_range),
            len(candidates),
        )
        return candidates
