"""Best-guess category resolution for a purchase.

Resolution order:

1. Merchant memory (exact hit on the normalized merchant) always wins.
2. Ordered keyword table over ``merchant + free text``; table order is the
   priority order and must stay stable for deterministic results.
3. Terminal single-keyword checks, consulted only when step 2 found nothing.
   The first keyword hit decides; when its category is missing from the
   catalog, resolution goes straight to step 4.
4. Catalog fallback: ``"Other"``, else the first category, else the sentinel
   ``"Other"``.

Every name returned is spelled the way the catalog spells it. ``classify``
never raises.
"""

from __future__ import annotations

from collections.abc import Mapping

from .catalog import OTHER, CategoryCatalog
from .logging_setup import get_logger
from .memory import normalize_merchant

logger = get_logger(__name__)

# (category name, keywords). Scanned top to bottom; first hit wins.
KEYWORD_TABLE: tuple[tuple[str, tuple[str, ...]], ...] = (
    (
        "Groceries",
        (
            "grocery", "grocer", "supermarket", "whole foods", "trader joe", "aldi",
            "kroger", "safeway", "wegmans", "publix", "costco", "stop & shop", "fairway",
        ),
    ),
    (
        "Dining",
        (
            "restaurant", "cafe", "coffee", "starbucks", "pizza", "sushi", "burger",
            "taco", "bakery", "diner", "grill", "olive garden", "chipotle", "mcdonald",
            "doordash", "grubhub", "dinner", "lunch", "breakfast",
        ),
    ),
    (
        "Gas",
        ("shell", "exxon", "chevron", "mobil", "sunoco", "gas station", "fuel"),
    ),
    (
        "Transit",
        ("uber", "lyft", "metro", "subway", "mta", "amtrak", "bart", "transit", "parking", "toll"),
    ),
    (
        "Travel",
        (
            "hotel", "motel", "airbnb", "airline", "flight", "delta", "jetblue",
            "marriott", "hilton", "hertz", "avis", "resort",
        ),
    ),
    (
        "Online Shopping",
        ("amazon", "amzn", "ebay", "etsy", "shopify", "online order"),
    ),
    (
        "Entertainment",
        ("netflix", "spotify", "hulu", "cinema", "movie", "theater", "concert"),
    ),
    (
        "Bills",
        (
            "electric", "water bill", "internet", "comcast", "xfinity", "verizon",
            "at&t", "t-mobile", "insurance", "rent payment",
        ),
    ),
    (
        "Health",
        ("cvs", "walgreens", "rite aid", "doctor", "dental", "clinic", "hospital", "gym"),
    ),
    (
        "Home",
        ("home depot", "lowe's", "lowes", "ikea", "wayfair", "hardware", "furniture"),
    ),
)

# Consulted only when the table produced nothing.
TERMINAL_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("ticket", "Entertainment"),
    ("pharmacy", "Health"),
    ("utility", "Bills"),
)


def _keyword_hit(haystack: str) -> str | None:
    for category, keywords in KEYWORD_TABLE:
        if any(kw in haystack for kw in keywords):
            return category
    for keyword, category in TERMINAL_KEYWORDS:
        if keyword in haystack:
            return category
    return None


def classify(
    merchant: str | None,
    free_text: str | None,
    memory: Mapping[str, str],
    catalog: CategoryCatalog,
) -> str:
    """Return the best-guess category name for a purchase.

    Parameters
    ----------
    merchant:
        Merchant name as typed or extracted; may be empty.
    free_text:
        Any accompanying text (description, OCR blob, notes); may be empty.
    memory:
        Normalized-merchant -> category-name mapping (e.g. a
        :class:`~budget_assistant.memory.MerchantMemory`).
    catalog:
        The current category catalog snapshot.
    """

    key = normalize_merchant(merchant)
    if key:
        remembered = memory.get(key)
        if remembered:
            resolved = catalog.resolve_name(remembered)
            if resolved is not None:
                return resolved
            logger.debug(
                "memory for %r points at missing category %r; using heuristics",
                key,
                remembered,
            )

    haystack = f"{merchant or ''} {free_text or ''}".lower()
    hit = _keyword_hit(haystack)
    if hit is not None:
        resolved = catalog.resolve_name(hit)
        if resolved is not None:
            return resolved
        # The first hit decides; a missing category goes to the fallback.
        logger.debug("keyword hit %r is not in the catalog; using fallback", hit)

    return catalog.fallback_name() if len(catalog) else OTHER


__all__ = ["classify", "KEYWORD_TABLE", "TERMINAL_KEYWORDS"]
