"""
Card statement → Receipt OCR → Match proposals → User confirmation

Reconciles imported bank-card transactions with scanned receipts: deduplicated
imports, windowed candidate generation, weighted confidence scoring and a
pending/confirmed/rejected match lifecycle.
"""

__version__ = "0.1.0"
