"""Public entry points and draft assembly for ``budget_assistant``.

The presentation layer talks to the engine through four entry points, all
re-exported here: :func:`classify`, :func:`parse`, the normalizers
(:func:`normalize_receipt`, :func:`normalize_transactions`,
:func:`normalize_category`) and :func:`best_instrument`. The functions defined
in this module turn their outputs into typed :class:`PurchaseDraft` objects and
screen an import for duplicates. None of them touch storage; committing is the
caller's job (see :mod:`budget_assistant.persistence`).
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date
from decimal import Decimal

from .catalog import CategoryCatalog
from .classifier import classify
from .duplicates import DEFAULT_WINDOW_DAYS, split_duplicates
from .logging_setup import get_logger
from .memory import MerchantMemory
from .models import (
    DuplicateMatch,
    ExtractedTransaction,
    PaymentInstrument,
    Purchase,
    PurchaseDraft,
    Recommendation,
)
from .normalizer import normalize_category, normalize_receipt, normalize_transactions
from .rewards import best_instrument
from .tags import TagRegistry
from .text_parser import guess_receipt_amount, guess_receipt_merchant, parse

logger = get_logger(__name__)


def draft_from_text(
    text: str | None, *, memory: MerchantMemory, catalog: CategoryCatalog
) -> PurchaseDraft:
    """Build a draft from a typed description such as ``"$60 at Olive Garden for dinner"``."""

    parsed = parse(text)
    category = catalog.find(classify(parsed.merchant, text, memory, catalog))
    return PurchaseDraft(
        merchant=parsed.merchant or "",
        amount=parsed.amount or Decimal("0"),
        category_id=category.id if category is not None else None,
        notes=parsed.notes,
    )


def draft_from_ocr(
    ocr_text: str | None, *, memory: MerchantMemory, catalog: CategoryCatalog
) -> PurchaseDraft:
    """Build a draft from raw OCR text, keeping the text on the draft."""

    merchant = guess_receipt_merchant(ocr_text)
    amount = guess_receipt_amount(ocr_text)
    category = catalog.find(classify(merchant, ocr_text, memory, catalog))
    return PurchaseDraft(
        merchant=merchant or "",
        amount=amount or Decimal("0"),
        category_id=category.id if category is not None else None,
        ocr_text=ocr_text,
    )


def drafts_from_transactions(
    lines: Iterable[ExtractedTransaction],
    *,
    catalog: CategoryCatalog,
    tags: TagRegistry,
    create_tags: bool = False,
    today: date | None = None,
) -> list[PurchaseDraft]:
    """Turn normalized extraction lines into drafts.

    Lines with a non-positive amount are skipped. A line's category name is
    resolved through the catalog; an unresolved name gets the catalog fallback
    category. A missing date becomes ``today``. Tag names resolve to existing
    tags only, unless ``create_tags`` is set.
    """

    day = today or date.today()
    fallback = catalog.fallback()
    drafts: list[PurchaseDraft] = []
    for line in lines:
        if not line.is_valid:
            logger.debug("skipping line for %r with amount %s", line.merchant, line.amount)
            continue
        category = catalog.find(line.category) or fallback
        drafts.append(
            PurchaseDraft(
                merchant=line.merchant,
                amount=line.amount,
                category_id=category.id if category is not None else None,
                date=line.date or day,
                tag_ids=tags.resolve(line.tags, create=create_tags),
            )
        )
    return drafts


def recommend_for_draft(
    draft: PurchaseDraft,
    *,
    catalog: CategoryCatalog,
    instruments: Sequence[PaymentInstrument],
) -> Recommendation | None:
    """Return the best instrument for a draft, or ``None`` when it cannot be priced.

    A draft is priced only once it has a positive amount and a category known
    to ``catalog``.
    """

    if not draft.is_valid:
        return None
    category = catalog.get(draft.category_id)
    if category is None:
        return None
    return best_instrument(category.name, draft.amount, instruments)


def screen_import(
    drafts: Iterable[PurchaseDraft],
    existing: Sequence[Purchase],
    *,
    window_days: int = DEFAULT_WINDOW_DAYS,
    today: date | None = None,
) -> tuple[list[Purchase], list[DuplicateMatch]]:
    """Convert valid drafts to purchases and split off duplicate candidates.

    Returns ``(clean, matches)``. Invalid drafts are dropped.
    """

    purchases = [d.to_purchase(today=today) for d in drafts if d.is_valid]
    return split_duplicates(purchases, existing, window_days=window_days)


__all__ = [
    "classify",
    "parse",
    "normalize_category",
    "normalize_receipt",
    "normalize_transactions",
    "best_instrument",
    "draft_from_text",
    "draft_from_ocr",
    "drafts_from_transactions",
    "recommend_for_draft",
    "screen_import",
]
