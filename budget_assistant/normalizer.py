"""Validation and repair of the external extraction service's output.

The extraction service (a language model reading a receipt, a statement, or a
typed description) answers with loosely shaped JSON. Field names drift between
providers and versions (``amount`` vs ``total``), tags arrive as a list or a
single string, amounts arrive as numbers or as text such as ``"$12.50"``. This
module is the only consumer of that contract and hides all of it:

- ``normalize_category`` maps a free-text category onto the caller's closed
  category list (exact match, then an ordered synonym table, then ``Other``).
- ``normalize_transactions`` decodes the multi-transaction shape
  (``{"transactions": [...]}`` or a bare array) line by line; one bad line
  never loses its siblings.
- ``normalize_receipt`` decodes the single-receipt shape.

Decoding is tolerant rather than schema-strict: every field is produced by an
ordered list of extractor functions tried until one succeeds. Pydantic models
carry the per-line decoding so the resulting shape is validated once.
"""

from __future__ import annotations

import datetime as dt
import json
import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from decimal import Decimal, InvalidOperation
from typing import Any, TypeAlias

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from .catalog import OTHER
from .logging_setup import get_logger
from .models import UNKNOWN_MERCHANT, ExtractedTransaction, ReceiptAnalysis

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Category normalization
# ---------------------------------------------------------------------------

# (keywords, target). Scanned in order; see ``normalize_category`` for the
# stop-on-first-hit rule. Groceries precedes Dining so grocery brands such as
# "whole foods" are not claimed by the generic "food" keyword.
SYNONYMS: tuple[tuple[tuple[str, ...], str], ...] = (
    (
        (
            "grocery", "grocer", "supermarket", "market", "whole foods", "trader joe",
            "aldi", "kroger", "safeway", "stop & shop", "wegmans", "publix",
            "costco (food)", "fairway",
        ),
        "Groceries",
    ),
    (
        (
            "restaurant", "food", "fast food", "cafe", "coffee", "bar", "deli",
            "pizza", "sushi", "burrito", "taco", "wing", "bbq",
        ),
        "Dining",
    ),
    (
        (
            "hotel", "airline", "flight", "delta", "united", "american airlines",
            "frontier", "jetblue", "airbnb", "resort", "motel", "car rental", "hertz",
            "avis", "budget",
        ),
        "Travel",
    ),
    (
        ("uber", "lyft", "subway", "metro", "bus", "train", "amtrak", "ferry", "mta", "bart"),
        "Transit",
    ),
    (("shell", "exxon", "chevron", "bp", "mobil", "gas"), "Gas"),
)


def _find_allowed(name: str, allowed: Sequence[str]) -> str | None:
    key = name.casefold()
    for candidate in allowed:
        if candidate.casefold() == key:
            return candidate
    return None


def normalize_category(candidate: str | None, allowed: Sequence[str]) -> str | None:
    """Map ``candidate`` onto one of ``allowed`` (returned in its allowed spelling).

    Resolution order, first match wins:

    1. exact case-insensitive match;
    2. the first synonym entry with any keyword contained in the candidate.
       Its target is returned when allowed; when it is not, scanning stops
       there and resolution continues at step 3;
    3. ``"Other"`` when allowed;
    4. ``None``.

    A blank candidate resolves to ``None``.
    """

    if candidate is None or not candidate.strip():
        return None
    c = candidate.strip()

    hit = _find_allowed(c, allowed)
    if hit is not None:
        return hit

    lc = c.lower()
    for keywords, target in SYNONYMS:
        if any(kw in lc for kw in keywords):
            hit = _find_allowed(target, allowed)
            if hit is not None:
                return hit
            # No further entries are tried once one has matched.
            break

    return _find_allowed(OTHER, allowed)


# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------

AmountExtractor: TypeAlias = Callable[[Mapping[str, Any]], Decimal | None]

_AMOUNT_CHARS = frozenset("0123456789.-")
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _finite(d: Decimal) -> Decimal | None:
    return d if d.is_finite() else None


def _numeric_field(name: str) -> AmountExtractor:
    def extract(raw: Mapping[str, Any]) -> Decimal | None:
        value = raw.get(name)
        # bool is an int subclass; true/false is not an amount.
        if isinstance(value, bool) or not isinstance(value, int | float | Decimal):
            return None
        return _finite(Decimal(str(value)))

    return extract


def _textual_field(name: str) -> AmountExtractor:
    def extract(raw: Mapping[str, Any]) -> Decimal | None:
        value = raw.get(name)
        if not isinstance(value, str):
            return None
        cleaned = "".join(ch for ch in value if ch in _AMOUNT_CHARS)
        if not cleaned:
            return None
        try:
            return _finite(Decimal(cleaned))
        except InvalidOperation:
            return None

    return extract


def amount_extractors(primary: str, alternate: str) -> tuple[AmountExtractor, ...]:
    """Return the extractor chain for a primary and a legacy field name."""

    return (
        _numeric_field(primary),
        _numeric_field(alternate),
        _textual_field(primary),
        _textual_field(alternate),
    )


TRANSACTION_AMOUNT_EXTRACTORS = amount_extractors("amount", "total")
RECEIPT_AMOUNT_EXTRACTORS = amount_extractors("total", "amount")


def coerce_amount(
    raw: Mapping[str, Any],
    extractors: Iterable[AmountExtractor] = TRANSACTION_AMOUNT_EXTRACTORS,
) -> Decimal:
    """Return the first amount an extractor yields, or ``0`` when none does."""

    for extract in extractors:
        value = extract(raw)
        if value is not None:
            return value
    return Decimal("0")


def coerce_tags(value: Any) -> list[str]:
    """Accept a list of strings or a single string; anything else is empty."""

    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, list | tuple):
        return [v.strip() for v in value if isinstance(v, str) and v.strip()]
    return []


def coerce_date(value: Any) -> dt.date | None:
    """Accept only a full ``YYYY-MM-DD`` calendar date."""

    if not isinstance(value, str):
        return None
    s = value.strip()
    if not _ISO_DATE_RE.match(s):
        return None
    try:
        return dt.date.fromisoformat(s)
    except ValueError:
        return None


def _clean_str(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    s = value.strip()
    return s or None


def filter_tags(tags: Iterable[str], allowed: Sequence[str]) -> list[str]:
    """Keep tags present in ``allowed`` (case-insensitive), in allowed spelling, deduplicated."""

    out: list[str] = []
    for t in tags:
        hit = _find_allowed(t.strip(), allowed)
        if hit is not None and hit not in out:
            out.append(hit)
    return out


# ---------------------------------------------------------------------------
# Raw text -> JSON
# ---------------------------------------------------------------------------

_FENCE_RE = re.compile(r"^```[a-zA-Z0-9_-]*\s*(.*?)\s*```", re.DOTALL)


def load_first_json(text: str) -> Any | None:
    """Decode the first JSON object or array found in ``text``.

    Markdown code fences around the payload are stripped first, then each
    ``{``/``[`` is tried left to right until one starts a complete value.
    Returns ``None`` when nothing decodes.
    """

    s = text.strip()
    m = _FENCE_RE.match(s)
    if m:
        s = m.group(1)

    decoder = json.JSONDecoder()
    for pos, ch in enumerate(s):
        if ch not in "{[":
            continue
        try:
            value, _end = decoder.raw_decode(s, pos)
        except ValueError:
            # JSONDecodeError, or an integer literal too long to convert.
            continue
        return value
    return None


def _load_payload(payload: Any) -> Any:
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace")
    if isinstance(payload, str):
        decoded = load_first_json(payload)
        if decoded is None:
            logger.warning("extraction payload contained no decodable JSON")
        return decoded
    return payload


# ---------------------------------------------------------------------------
# Line models
# ---------------------------------------------------------------------------


class _TransactionLine(BaseModel):
    """One line of the multi-transaction shape after tolerant decoding."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    merchant: str = UNKNOWN_MERCHANT
    amount: Decimal = Decimal("0")
    category: str | None = None
    date: dt.date | None = None
    tags: tuple[str, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _tolerant_decode(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            raise ValueError("transaction line must be a JSON object")
        return {
            "merchant": _clean_str(data.get("merchant")) or UNKNOWN_MERCHANT,
            "amount": coerce_amount(data, TRANSACTION_AMOUNT_EXTRACTORS),
            "category": _clean_str(data.get("category")),
            "date": coerce_date(data.get("date")),
            "tags": tuple(coerce_tags(data.get("tags"))),
        }


class _ReceiptBody(BaseModel):
    """The single-receipt shape after tolerant decoding."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    merchant: str | None = None
    total: Decimal = Decimal("0")
    category: str | None = None
    recommended_card: str | None = None
    tags: tuple[str, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _tolerant_decode(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            raise ValueError("receipt analysis must be a JSON object")
        return {
            "merchant": _clean_str(data.get("merchant")),
            "total": coerce_amount(data, RECEIPT_AMOUNT_EXTRACTORS),
            "category": _clean_str(data.get("category")),
            "recommended_card": _clean_str(data.get("recommended_card")),
            "tags": tuple(coerce_tags(data.get("tags"))),
        }


class _Envelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    transactions: list[Any]


def _lines_from_envelope(data: Any) -> list[Any] | None:
    try:
        return _Envelope.model_validate(data).transactions
    except ValidationError:
        return None


def _lines_from_bare_array(data: Any) -> list[Any] | None:
    return list(data) if isinstance(data, list) else None


_LINE_SHAPES: tuple[Callable[[Any], list[Any] | None], ...] = (
    _lines_from_envelope,
    _lines_from_bare_array,
)


def _tags_for(raw: Iterable[str], allowed_tags: Sequence[str] | None) -> tuple[str, ...]:
    if allowed_tags is None:
        return tuple(dict.fromkeys(raw))
    return tuple(filter_tags(raw, allowed_tags))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize_transactions(
    payload: Any,
    allowed_categories: Sequence[str],
    *,
    allowed_tags: Sequence[str] | None = None,
    drop_invalid: bool = True,
) -> list[ExtractedTransaction]:
    """Decode and normalize a multi-transaction payload.

    Parameters
    ----------
    payload:
        Raw model text (``str``/``bytes``) or already-decoded JSON. Accepted
        shapes: ``{"transactions": [...]}`` or a bare array of lines.
    allowed_categories:
        The closed category list; each line's category goes through
        :func:`normalize_category`.
    allowed_tags:
        When given, tags are filtered to this list (case-insensitive).
    drop_invalid:
        Drop lines whose amount did not coerce to a positive value (default).

    Malformed lines are logged and skipped; they never abort the batch.
    """

    data = _load_payload(payload)
    lines: list[Any] = []
    for shape in _LINE_SHAPES:
        found = shape(data)
        if found is not None:
            lines = found
            break
    else:
        if data is not None:
            logger.warning("unrecognized transactions payload shape: %s", type(data).__name__)

    out: list[ExtractedTransaction] = []
    for pos, raw in enumerate(lines):
        try:
            line = _TransactionLine.model_validate(raw)
        except ValidationError as exc:
            logger.warning("dropping transaction line %d: %s", pos, exc.errors()[0]["msg"])
            continue
        tx = ExtractedTransaction(
            merchant=line.merchant,
            amount=line.amount,
            category=normalize_category(line.category, allowed_categories),
            date=line.date,
            tags=_tags_for(line.tags, allowed_tags),
        )
        if drop_invalid and not tx.is_valid:
            logger.info("dropping transaction line %d (%s): amount %s", pos, tx.merchant, tx.amount)
            continue
        out.append(tx)

    logger.debug("normalized %d of %d transaction line(s)", len(out), len(lines))
    return out


def normalize_receipt(
    payload: Any,
    allowed_categories: Sequence[str],
    *,
    allowed_tags: Sequence[str] | None = None,
) -> ReceiptAnalysis:
    """Decode and normalize a single-receipt analysis.

    A malformed payload degrades to an analysis with no merchant and a zero
    (invalid) total instead of raising.
    """

    data = _load_payload(payload)
    try:
        body = _ReceiptBody.model_validate(data)
    except ValidationError as exc:
        logger.warning("malformed receipt analysis: %s", exc.errors()[0]["msg"])
        return ReceiptAnalysis(merchant=None, total=Decimal("0"))

    return ReceiptAnalysis(
        merchant=body.merchant,
        total=body.total,
        category=normalize_category(body.category, allowed_categories),
        recommended_card=body.recommended_card,
        tags=_tags_for(body.tags, allowed_tags),
    )


__all__ = [
    "SYNONYMS",
    "normalize_category",
    "normalize_transactions",
    "normalize_receipt",
    "amount_extractors",
    "coerce_amount",
    "coerce_tags",
    "coerce_date",
    "filter_tags",
    "load_first_json",
    "TRANSACTION_AMOUNT_EXTRACTORS",
    "RECEIPT_AMOUNT_EXTRACTORS",
]
