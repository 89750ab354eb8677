"""Services for statement import, receipt intake and the match lifecycle."""

from expense_matcher.services.import_service import ImportResult, ImportService
from expense_matcher.services.match_lifecycle import AutoMatchResult, MatchLifecycleManager
from expense_matcher.services.receipts import OcrResult, ReceiptService

__all__ = [
    "AutoMatchResult",
    "ImportResult",
    "ImportService",
    "MatchLifecycleManager",
    "OcrResult",
    "ReceiptService",
]
