"""Public interface for the ``budget_assistant`` package.

This module exposes the engine's entry points and public models/types as the
stable import surface. There is no runtime logic here, only symbol re-exports.
"""

from .api import (
    best_instrument,
    classify,
    draft_from_ocr,
    draft_from_text,
    drafts_from_transactions,
    normalize_category,
    normalize_receipt,
    normalize_transactions,
    parse,
    recommend_for_draft,
    screen_import,
)
from .budget import (
    BudgetEnvelope,
    BudgetSummary,
    range_start,
    remaining_history,
    spending_history,
    summarize_budget,
)
from .catalog import CategoryCatalog
from .duplicates import find_duplicates, split_duplicates
from .memory import MerchantMemory
from .models import (
    Category,
    DuplicateMatch,
    ExtractedTransaction,
    ParsedText,
    PaymentInstrument,
    Purchase,
    PurchaseDraft,
    ReceiptAnalysis,
    Recommendation,
    Tag,
)
from .rewards import compare_instruments, default_instruments, effective_rate
from .tags import TagRegistry

__all__ = [
    # API
    "classify",
    "parse",
    "normalize_category",
    "normalize_receipt",
    "normalize_transactions",
    "best_instrument",
    "effective_rate",
    "compare_instruments",
    "default_instruments",
    "find_duplicates",
    "split_duplicates",
    "draft_from_text",
    "draft_from_ocr",
    "drafts_from_transactions",
    "recommend_for_draft",
    "screen_import",
    "summarize_budget",
    "spending_history",
    "remaining_history",
    "range_start",
    # Stateful collections
    "CategoryCatalog",
    "TagRegistry",
    "MerchantMemory",
    # Models / types
    "Category",
    "Tag",
    "PaymentInstrument",
    "Purchase",
    "PurchaseDraft",
    "ParsedText",
    "ExtractedTransaction",
    "ReceiptAnalysis",
    "Recommendation",
    "DuplicateMatch",
    "BudgetEnvelope",
    "BudgetSummary",
]
