"""
CLI main entry point.
"""

import argparse
import json
import logging
import sys
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path

from ..config import Config, create_default_config, load_config
from ..core import ExpenseMatcher
from ..importing import CsvFormatError
from ..services import OcrResult
from ..state_store import ConflictError, MatchStatus, NotFoundError

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _decimal(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from None


def _iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}") from None


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="expense-matcher",
        description="Match imported card transactions with scanned receipts",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print machine-readable JSON instead of text",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # init-config command
    subparsers.add_parser("init-config", help="Write a default config file")

    # import command
    import_parser = subparsers.add_parser("import", help="Import a card statement CSV")
    import_parser.add_argument("csv_file", type=Path, help="Statement CSV export")
    import_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be imported without writing",
    )

    # add-receipt command
    receipt_parser = subparsers.add_parser("add-receipt", help="Register an uploaded receipt")
    receipt_parser.add_argument("file_ref", type=str, help="Storage reference of the file")
    receipt_parser.add_argument("--filename", type=str, help="Original filename")
    receipt_parser.add_argument("--size", type=int, help="File size in bytes")

    # ocr-result command
    ocr_parser = subparsers.add_parser("ocr-result", help="Record OCR output for a receipt")
    ocr_parser.add_argument("receipt_id", type=int)
    ocr_parser.add_argument("--amount", type=_decimal, help="Extracted total")
    ocr_parser.add_argument("--date", type=_iso_date, help="Extracted date (YYYY-MM-DD)")
    ocr_parser.add_argument("--merchant", type=str, help="Extracted merchant name")
    ocr_parser.add_argument("--text", type=str, help="Raw OCR text")
    ocr_parser.add_argument(
        "--failed",
        metavar="MESSAGE",
        type=str,
        help="Mark OCR as failed with this message instead",
    )

    # find command
    find_parser = subparsers.add_parser("find", help="Propose matches for one receipt")
    find_parser.add_argument("receipt_id", type=int)

    # auto-match command
    auto_parser = subparsers.add_parser(
        "auto-match", help="Propose matches for all receipts without a confirmed match"
    )
    auto_parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Minimum confidence 0-100 (default: from config)",
    )

    # match actions
    for name, help_text in (
        ("confirm", "Confirm a pending match"),
        ("reject", "Reject a pending match"),
        ("delete-match", "Delete a match"),
    ):
        action_parser = subparsers.add_parser(name, help=help_text)
        action_parser.add_argument("match_id", type=int)

    delete_tx_parser = subparsers.add_parser(
        "delete-transaction", help="Delete a transaction and its matches"
    )
    delete_tx_parser.add_argument("transaction_id", type=int)

    delete_receipt_parser = subparsers.add_parser(
        "delete-receipt", help="Delete a receipt and its matches"
    )
    delete_receipt_parser.add_argument("receipt_id", type=int)

    # matches command
    matches_parser = subparsers.add_parser("matches", help="List matches")
    matches_parser.add_argument(
        "--status",
        choices=[s.value for s in MatchStatus],
        help="Only matches in this status",
    )

    # stats command
    subparsers.add_parser("stats", help="Show match statistics")

    return parser


def _emit(as_json: bool, payload: object, text: str) -> None:
    if as_json:
        print(json.dumps(payload, indent=2, default=str))
    else:
        print(text)


def cmd_import(matcher: ExpenseMatcher, csv_file: Path, dry_run: bool, as_json: bool) -> int:
    """Import a statement CSV."""
    try:
        result = matcher.import_csv(csv_file, dry_run=dry_run)
    except (OSError, CsvFormatError) as e:
        print(f"❌ Import failed: {e}")
        return 1

    prefix = "[dry run] " if dry_run else ""
    _emit(
        as_json,
        result.to_dict(),
        f"{prefix}✓ Imported: {result.imported}, Skipped: {result.skipped} "
        f"({result.duplicates} duplicates, {result.invalid} invalid), Total: {result.total}",
    )
    for error in result.errors:
        logger.debug("Skipped %s", error)
    return 0


def cmd_add_receipt(
    matcher: ExpenseMatcher, file_ref: str, filename: str | None, size: int | None, as_json: bool
) -> int:
    receipt = matcher.add_receipt(file_ref, filename, size)
    _emit(as_json, receipt.to_dict(), f"✓ Registered receipt {receipt.id}")
    return 0


def cmd_ocr_result(matcher: ExpenseMatcher, args: argparse.Namespace) -> int:
    """Record OCR output (or failure) for a receipt."""
    if args.failed:
        receipt = matcher.record_ocr_failure(args.receipt_id, args.failed)
    else:
        receipt = matcher.record_ocr_result(
            args.receipt_id,
            OcrResult(
                amount=args.amount,
                date=args.date,
                merchant=args.merchant,
                raw_text=args.text,
            ),
        )
    _emit(
        args.json,
        receipt.to_dict(),
        f"✓ Receipt {receipt.id} is {receipt.status.value}",
    )
    return 0


def cmd_find(matcher: ExpenseMatcher, receipt_id: int, as_json: bool) -> int:
    """Propose matches for one receipt."""
    results = matcher.find_candidates(receipt_id)
    if as_json:
        _emit(True, [r.to_dict() for r in results], "")
        return 0

    if not results:
        print(f"No candidates for receipt {receipt_id}")
        return 0

    print(f"🔍 {len(results)} candidate(s) for receipt {receipt_id}:")
    for r in results:
        marker = "new" if r.created else "existing"
        print(
            f"  [{r.match_id}] tx {r.transaction_id}: {r.confidence}% ({marker}) "
            f"- {', '.join(r.breakdown.reasons) or 'weak signals'}"
        )
    return 0


def cmd_auto_match(matcher: ExpenseMatcher, threshold: float | None, as_json: bool) -> int:
    try:
        result = matcher.auto_match(threshold)
    except ValueError as e:
        print(f"❌ {e}")
        return 1
    _emit(
        as_json,
        result.to_dict(),
        f"✓ Auto-match: {result.matched} new match(es) "
        f"across {result.receipts_processed} receipt(s)",
    )
    return 0


def cmd_matches(matcher: ExpenseMatcher, status: str | None, as_json: bool) -> int:
    matches = matcher.list_matches(MatchStatus(status) if status else None)
    if as_json:
        _emit(True, matches, "")
        return 0

    if not matches:
        print("No matches")
        return 0
    for m in matches:
        print(
            f"  [{m['id']}] {m['match_status']:<9} {m['match_confidence']:>6.2f}%  "
            f"{m['transaction_date']} {m['description']} ({m['amount']}) "
            f"↔ {m['original_filename'] or m['file_ref']}"
        )
    return 0


def cmd_stats(matcher: ExpenseMatcher, as_json: bool) -> int:
    """Show match statistics."""
    stats = matcher.stats()
    _emit(
        as_json,
        stats,
        "\n".join(
            [
                "📊 Match statistics",
                f"  Total matches:      {stats['total_matches']}",
                f"  Confirmed:          {stats['confirmed_matches']}",
                f"  Pending:            {stats['pending_matches']}",
                f"  Rejected:           {stats['rejected_matches']}",
                f"  Unmatched receipts: {stats['unmatched_receipts']}",
            ]
        ),
    )
    return 0


def dispatch(config: Config, parsed: argparse.Namespace) -> int:
    """Run a parsed command against a matcher built from config."""
    matcher = ExpenseMatcher(config)
    as_json = parsed.json

    if parsed.command == "import":
        return cmd_import(matcher, parsed.csv_file, parsed.dry_run, as_json)
    elif parsed.command == "add-receipt":
        return cmd_add_receipt(matcher, parsed.file_ref, parsed.filename, parsed.size, as_json)
    elif parsed.command == "ocr-result":
        return cmd_ocr_result(matcher, parsed)
    elif parsed.command == "find":
        return cmd_find(matcher, parsed.receipt_id, as_json)
    elif parsed.command == "auto-match":
        return cmd_auto_match(matcher, parsed.threshold, as_json)
    elif parsed.command == "confirm":
        match = matcher.confirm(parsed.match_id)
        _emit(as_json, match.to_dict(), f"✓ Match {match.id} is {match.status.value}")
        return 0
    elif parsed.command == "reject":
        match = matcher.reject(parsed.match_id)
        _emit(as_json, match.to_dict(), f"✓ Match {match.id} is {match.status.value}")
        return 0
    elif parsed.command == "delete-match":
        matcher.delete(parsed.match_id)
        _emit(as_json, {"deleted": parsed.match_id}, f"✓ Deleted match {parsed.match_id}")
        return 0
    elif parsed.command == "delete-transaction":
        removed = matcher.delete_transaction(parsed.transaction_id)
        _emit(
            as_json,
            {"deleted": parsed.transaction_id, "matches_removed": removed},
            f"✓ Deleted transaction {parsed.transaction_id} ({removed} matches removed)",
        )
        return 0
    elif parsed.command == "delete-receipt":
        removed = matcher.delete_receipt(parsed.receipt_id)
        _emit(
            as_json,
            {"deleted": parsed.receipt_id, "matches_removed": removed},
            f"✓ Deleted receipt {parsed.receipt_id} ({removed} matches removed)",
        )
        return 0
    elif parsed.command == "matches":
        return cmd_matches(matcher, parsed.status, as_json)
    elif parsed.command == "stats":
        return cmd_stats(matcher, as_json)

    print(f"Unknown command: {parsed.command}")
    return 1


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    if parsed.command == "init-config":
        if parsed.config.exists():
            print(f"❌ {parsed.config} already exists")
            return 1
        create_default_config(parsed.config)
        print(f"✓ Wrote {parsed.config}")
        return 0

    # Load config
    try:
        config = load_config(parsed.config)
    except Exception as e:
        print(f"❌ Failed to load config: {e}")
        return 1

    try:
        return dispatch(config, parsed)
    except NotFoundError as e:
        print(f"❌ {e}")
        return 1
    except ConflictError as e:
        logger.warning("Rejected state change: %s", e)
        print(f"❌ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
