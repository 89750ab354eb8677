"""Receipt intake and the OCR collaborator's callback interface.

Receipts are registered on upload with an opaque file reference. The OCR
collaborator reports back through `record_ocr_result` or `mark_failed`;
status only ever moves forward (pending → processing → completed | failed).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from expense_matcher.state_store import NotFoundError, ReceiptStatus

if TYPE_CHECKING:
    from expense_matcher.state_store import ReceiptRecord, StateStore

logger = logging.getLogger(__name__)


@dataclass
class OcrResult:
    """Fields extracted by the OCR collaborator. Any of them may be missing."""

    amount: Decimal | None = None
    date: date | None = None
    merchant: str | None = None
    raw_text: str | None = None

    def to_fields(self) -> dict[str, Any]:
        """Column values for the receipts table."""
        merchant = self.merchant.strip() if self.merchant else None
        return {
            # Receipt totals are unsigned
            "extracted_amount": abs(self.amount) if self.amount is not None else None,
            "extracted_date": self.date,
            "extracted_merchant": merchant or None,
            "ocr_text": self.raw_text,
        }


class ReceiptService:
    """Registers receipts and drives their OCR processing status."""

    def __init__(self, state_store: StateStore) -> None:
        self.store = state_store

    def register(
        self,
        file_ref: str,
        original_filename: str | None = None,
        file_size: int | None = None,
    ) -> ReceiptRecord:
        """Register an uploaded receipt in pending status."""
        receipt_id = self.store.create_receipt(file_ref, original_filename, file_size)
        logger.info("Registered receipt %d (%s)", receipt_id, original_filename or file_ref)
        return self.get(receipt_id)

    def get(self, receipt_id: int) -> ReceiptRecord:
        """Get a receipt.

        Raises:
            NotFoundError: If the receipt does not exist.
        """
        receipt = self.store.get_receipt(receipt_id)
        if receipt is None:
            raise NotFoundError("receipt", receipt_id)
        return receipt

    def mark_processing(self, receipt_id: int) -> ReceiptRecord:
        """OCR has started on the receipt."""
        return self.store.transition_receipt(receipt_id, ReceiptStatus.PROCESSING)

    def record_ocr_result(self, receipt_id: int, result: OcrResult) -> ReceiptRecord:
        """Store the OCR extraction and mark the receipt completed.

        Partial extractions are accepted; a receipt without an amount is
        simply never a matching candidate.
        """
        receipt = self.store.transition_receipt(
            receipt_id, ReceiptStatus.COMPLETED, result.to_fields()
        )
        if receipt.extracted_amount is None:
            logger.warning(
                "Receipt %d completed without an amount; it cannot be matched", receipt_id
            )
        else:
            logger.info(
                "Receipt %d completed: %s on %s (%s)",
                receipt_id,
                receipt.extracted_amount,
                receipt.extracted_date,
                receipt.extracted_merchant or "unknown merchant",
            )
        return receipt

    def mark_failed(self, receipt_id: int, message: str | None = None) -> ReceiptRecord:
        """OCR could not process the receipt."""
        receipt = self.store.transition_receipt(
            receipt_id, ReceiptStatus.FAILED, {"error_message": message}
        )
        logger.info("Receipt %d failed OCR: %s", receipt_id, message or "no detail")
        return receipt

    def correct_extraction(self, receipt_id: int, **fields: Any) -> ReceiptRecord:
        """Apply a user correction to the extracted fields.

        Raises:
            NotFoundError: If the receipt does not exist.
            ValueError: If a field is not editable or its value is unusable.
        """
        receipt = self.store.update_receipt_fields(receipt_id, **fields)
        logger.info("Corrected receipt %d: %s", receipt_id, sorted(fields))
        return receipt

    def delete(self, receipt_id: int) -> int:
        """Delete a receipt and its matches. Returns the number of matches removed."""
        removed = self.store.delete_receipt(receipt_id)
        logger.info("Deleted receipt %d (%d matches removed)", receipt_id, removed)
        return removed

    def list_receipts(
        self, limit: int = 20, offset: int = 0, status: ReceiptStatus | None = None
    ) -> list[ReceiptRecord]:
        return self.store.list_receipts(limit=limit, offset=offset, status=status)

    def count(self, status: ReceiptStatus | None = None) -> int:
        return self.store.count_receipts(status)

    def unmatched(self) -> list[ReceiptRecord]:
        """Completed receipts without a confirmed match."""
        return self.store.get_receipts_without_confirmed_match()
