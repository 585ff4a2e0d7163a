"""Heuristic extraction from free text and OCR blobs.

``parse`` handles a single typed description such as
``"$60 at Olive Garden for dinner"``:

- amount: the *first* ``$``-optional number with an optional two-digit
  fraction;
- merchant: the first three words after ``" at "`` (case-insensitive), else
  the first word of the text;
- notes: everything after ``" for "`` (case-insensitive).

The OCR helpers work on a multi-line receipt and use a different amount
policy: prefer the amount on the last line mentioning ``total``, else the last
amount anywhere.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from .models import ParsedText

_AMOUNT_RE = re.compile(r"\$?(\d+(?:\.\d{2})?)")
_OCR_AMOUNT_RE = re.compile(r"\$?\s*(\d+(?:\.\d{1,2})?)")
_DATE_LIKE_RE = re.compile(r"\d{1,2}/\d{1,2}")
_AT = " at "
_FOR = " for "


def _to_decimal(raw: str) -> Decimal | None:
    try:
        return Decimal(raw)
    except InvalidOperation:
        return None


def parse(text: str | None) -> ParsedText:
    """Extract a tentative merchant, amount, and note from ``text``.

    Blank input yields ``ParsedText(None, None, None)``; this is not an error.
    """

    if text is None or not text.strip():
        return ParsedText(None, None, None)

    lower = text.lower()

    m = _AMOUNT_RE.search(text)
    amount = _to_decimal(m.group(1)) if m else None

    at = lower.find(_AT)
    if at >= 0:
        words = text[at + len(_AT):].split()[:3]
    else:
        words = text.split()[:1]
    merchant = " ".join(words) or None

    notes = None
    pos = lower.find(_FOR)
    if pos >= 0:
        notes = text[pos + len(_FOR):].strip() or None

    return ParsedText(merchant=merchant, amount=amount, notes=notes)


# ---------------------------------------------------------------------------
# OCR receipt heuristics
# ---------------------------------------------------------------------------


def guess_receipt_merchant(ocr_text: str | None) -> str | None:
    """Return the first OCR line that looks like a store name.

    Lines carrying a date-like ``m/d`` token or any number are skipped, as are
    lines shorter than three characters.
    """

    for raw in (ocr_text or "").splitlines():
        if _DATE_LIKE_RE.search(raw) or _OCR_AMOUNT_RE.search(raw):
            continue
        trimmed = raw.strip()
        if len(trimmed) >= 3:
            return trimmed
    return None


def guess_receipt_amount(ocr_text: str | None) -> Decimal | None:
    """Return the receipt amount, preferring the last line that mentions ``total``."""

    lines = (ocr_text or "").lower().splitlines()
    for line in reversed(lines):
        if "total" not in line:
            continue
        found = _OCR_AMOUNT_RE.findall(line)
        if found:
            return _to_decimal(found[-1])

    found = _OCR_AMOUNT_RE.findall("\n".join(lines))
    return _to_decimal(found[-1]) if found else None


__all__ = ["parse", "guess_receipt_merchant", "guess_receipt_amount"]
