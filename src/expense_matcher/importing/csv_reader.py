"""
Card statement CSV reader.

Expected columns (Chase credit card export):
    Transaction Date, Post Date, Description, Category, Type, Amount, Memo

Header matching is case- and whitespace-insensitive and accepts common
aliases. Exports with separate Debit/Credit columns instead of a signed
Amount are converted to signed amounts (debits negative).
"""

import csv
import io
import logging
from collections.abc import Iterable, Iterator
from pathlib import Path

from .normalizer import ImportRow

logger = logging.getLogger(__name__)


class CsvFormatError(ValueError):
    """The CSV header lacks a required column."""

    pass


# Canonical field -> accepted header names, most specific first
COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "date": ("transaction date", "trans date", "date", "post date", "posting date"),
    "description": ("description", "merchant", "payee", "details"),
    "amount": ("amount", "transaction amount"),
    "debit": ("debit", "withdrawal"),
    "credit": ("credit", "deposit"),
    "category": ("category",),
    "issuer_transaction_id": ("transaction id", "reference", "reference number"),
    "card_last_four": ("card", "card no.", "card number", "card last four"),
    "external_transaction_id": ("external transaction id", "external id"),
    "sales_tax": ("sales tax", "tax"),
}


def _resolve_columns(fieldnames: Iterable[str]) -> dict[str, str]:
    normalized = {" ".join(name.lower().split()): name for name in fieldnames if name}
    resolved: dict[str, str] = {}
    for field, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in normalized:
                resolved[field] = normalized[alias]
                break

    missing = [f for f in ("date", "description") if f not in resolved]
    if "amount" not in resolved and not ("debit" in resolved or "credit" in resolved):
        missing.append("amount")
    if missing:
        raise CsvFormatError(f"CSV is missing required column(s): {', '.join(missing)}")
    return resolved


def _signed_amount(record: dict[str, str], columns: dict[str, str]) -> str:
    if "amount" in columns:
        return record.get(columns["amount"]) or ""

    debit = (record.get(columns["debit"]) or "").strip() if "debit" in columns else ""
    credit = (record.get(columns["credit"]) or "").strip() if "credit" in columns else ""
    if debit:
        return debit if debit.startswith("-") else f"-{debit}"
    return credit


def iter_csv_rows(stream: Iterable[str]) -> Iterator[ImportRow]:
    """
    Yield ImportRow objects from CSV text lines.

    Raises:
        CsvFormatError: If the header lacks date, description or amount.
    """
    reader = csv.DictReader(stream)
    columns = _resolve_columns(reader.fieldnames or [])
    logger.debug("Resolved CSV columns: %s", columns)

    def cell(record: dict[str, str], field: str) -> str | None:
        name = columns.get(field)
        return record.get(name) if name else None

    for record in reader:
        if not any((value or "").strip() for value in record.values() if isinstance(value, str)):
            continue  # blank line
        yield ImportRow(
            date=cell(record, "date") or "",
            description=cell(record, "description") or "",
            amount=_signed_amount(record, columns),
            category=cell(record, "category"),
            issuer_transaction_id=cell(record, "issuer_transaction_id"),
            card_last_four=cell(record, "card_last_four"),
            external_transaction_id=cell(record, "external_transaction_id"),
            sales_tax=cell(record, "sales_tax"),
        )


def read_csv_file(path: Path | str, encoding: str = "utf-8-sig") -> list[ImportRow]:
    """Read every row of a statement CSV file."""
    with open(path, newline="", encoding=encoding) as f:
        return list(iter_csv_rows(f))


def parse_csv_text(text: str) -> list[ImportRow]:
    """Read every row of statement CSV content (e.g. an uploaded file body)."""
    return list(iter_csv_rows(io.StringIO(text.lstrip("\ufeff"), newline="")))
