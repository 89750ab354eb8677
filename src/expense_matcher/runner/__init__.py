"""
CLI runner module.

Provides commands:
- import: Import a card statement CSV
- add-receipt / ocr-result: Receipt intake and OCR callback
- find / auto-match: Propose matches
- confirm / reject / delete-match: Match lifecycle
- matches / stats: Reporting
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
