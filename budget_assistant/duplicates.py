"""Duplicate screening for imported purchases.

A new purchase is a *candidate* duplicate of an existing one when all of the
following hold:

- amounts are equal to the cent;
- dates are at most ``window_days`` apart;
- normalized merchants are similar: equal, one contains the other, or their
  :class:`difflib.SequenceMatcher` ratio is at least ``0.8``.

The detector only pairs; it never merges or discards. The caller decides per
pair whether to add the new purchase anyway or ignore it.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Iterable, Sequence
from difflib import SequenceMatcher

from .logging_setup import get_logger
from .models import DuplicateMatch, Purchase, to_cents

logger = get_logger(__name__)

DEFAULT_WINDOW_DAYS = 3
MERCHANT_SIMILARITY = 0.8


def _norm_merchant_key(merchant: str) -> str:
    s = unicodedata.normalize("NFKC", merchant).strip()
    return " ".join(s.split()).casefold()


def merchants_similar(a: str, b: str) -> bool:
    ka, kb = _norm_merchant_key(a), _norm_merchant_key(b)
    if not ka or not kb:
        return ka == kb
    if ka == kb or ka in kb or kb in ka:
        return True
    return SequenceMatcher(None, ka, kb).ratio() >= MERCHANT_SIMILARITY


def is_duplicate(new: Purchase, existing: Purchase, *, window_days: int = DEFAULT_WINDOW_DAYS) -> bool:
    if to_cents(new.amount) != to_cents(existing.amount):
        return False
    if abs((new.date - existing.date).days) > window_days:
        return False
    return merchants_similar(new.merchant, existing.merchant)


def find_duplicates(
    new: Iterable[Purchase],
    existing: Sequence[Purchase],
    *,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> list[DuplicateMatch]:
    """Pair each new purchase with the first existing purchase it likely repeats.

    Returns an empty list when nothing matches. Order follows ``new``.
    """

    if window_days < 0:
        raise ValueError(f"window_days must be >= 0 (got {window_days})")

    matches: list[DuplicateMatch] = []
    for p in new:
        for e in existing:
            if e.id != p.id and is_duplicate(p, e, window_days=window_days):
                matches.append(DuplicateMatch(existing=e, new=p))
                break
    if matches:
        logger.info("found %d possible duplicate purchase(s)", len(matches))
    return matches


def split_duplicates(
    new: Iterable[Purchase],
    existing: Sequence[Purchase],
    *,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> tuple[list[Purchase], list[DuplicateMatch]]:
    """Return ``(clean, matches)``: purchases with no candidate and the candidate pairs."""

    items = list(new)
    matches = find_duplicates(items, existing, window_days=window_days)
    flagged = {m.new.id for m in matches}
    clean = [p for p in items if p.id not in flagged]
    return clean, matches


__all__ = [
    "DEFAULT_WINDOW_DAYS",
    "MERCHANT_SIMILARITY",
    "merchants_similar",
    "is_duplicate",
    "find_duplicates",
    "split_duplicates",
]
