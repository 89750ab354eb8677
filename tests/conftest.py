"""Test fixtures and utilities."""

from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from expense_matcher.config import Config
from expense_matcher.importing import ImportRow, RecordNormalizer
from expense_matcher.state_store import ReceiptStatus, StateStore

# Chase credit card export
SAMPLE_STATEMENT_CSV = """Transaction Date,Post Date,Description,Category,Type,Amount,Memo
01/15/2024,01/16/2024,STARBUCKS STORE #12345,Food & Drink,Sale,-4.50,
01/16/2024,01/17/2024,SHELL OIL 57444,Gas,Sale,-42.17,
01/18/2024,01/19/2024,AMAZON.COM*RT4YU1,Shopping,Sale,-23.99,
01/20/2024,01/20/2024,PAYMENT THANK YOU,,Payment,500.00,
"""


@pytest.fixture
def temp_db(tmp_path) -> Path:
    """Temporary database path for testing."""
    return tmp_path / "test_state.db"


@pytest.fixture
def store(temp_db) -> StateStore:
    """Fresh, migrated state store."""
    return StateStore(temp_db)


@pytest.fixture
def config(temp_db) -> Config:
    """Default configuration pointing at the temporary database."""
    return Config(state_db_path=temp_db)


@pytest.fixture
def statement_csv(tmp_path) -> Path:
    """Sample statement CSV file."""
    path = tmp_path / "statement.csv"
    path.write_text(SAMPLE_STATEMENT_CSV)
    return path


@pytest.fixture
def make_transaction(store):
    """Insert one transaction and return its id."""

    def _make(
        tx_date: date,
        description: str,
        amount: str,
        issuer_transaction_id: str | None = None,
    ) -> int:
        tx = RecordNormalizer().normalize(
            ImportRow(
                date=tx_date.isoformat(),
                description=description,
                amount=amount,
                issuer_transaction_id=issuer_transaction_id,
            )
        )
        (tx_id,) = store.insert_transactions([tx])
        assert tx_id is not None
        return tx_id

    return _make


@pytest.fixture
def make_receipt(store):
    """Register a receipt and complete its OCR with the given fields."""

    def _make(
        receipt_date: date | None,
        amount: str | None,
        merchant: str | None = None,
        ocr_text: str | None = None,
    ) -> int:
        receipt_id = store.create_receipt("uploads/receipt.jpg", "receipt.jpg", 2048)
        store.transition_receipt(
            receipt_id,
            ReceiptStatus.COMPLETED,
            {
                "extracted_amount": Decimal(amount) if amount is not None else None,
                "extracted_date": receipt_date,
                "extracted_merchant": merchant,
                "ocr_text": ocr_text,
            },
        )
        return receipt_id

    return _make
