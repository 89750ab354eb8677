"""Statement import: CSV reading and record normalization."""

from .csv_reader import CsvFormatError, parse_csv_text, read_csv_file
from .normalizer import (
    ImportRow,
    NormalizedTransaction,
    RecordNormalizer,
    normalize_receipt_changes,
    normalize_transaction_changes,
    parse_amount,
    parse_date,
    quantize_amount,
)

__all__ = [
    "CsvFormatError",
    "ImportRow",
    "NormalizedTransaction",
    "RecordNormalizer",
    "normalize_receipt_changes",
    "normalize_transaction_changes",
    "parse_amount",
    "parse_csv_text",
    "parse_date",
    "quantize_amount",
    "read_csv_file",
]
