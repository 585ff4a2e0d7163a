"""Data models and type aliases for ``budget_assistant``.

Records the engine hands around are frozen ``dataclass``/``NamedTuple``
values. The one exception is :class:`PurchaseDraft`, which is mutable because a
draft is edited in place until it is committed. Untrusted input from the
external extraction service is validated with Pydantic in
:mod:`budget_assistant.normalizer` and lands here as
:class:`ExtractedTransaction` / :class:`ReceiptAnalysis`.

Monetary values and reward rates are :class:`~decimal.Decimal` throughout.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import NamedTuple
from uuid import UUID, uuid4

UNKNOWN_MERCHANT = "Unknown"

CENT = Decimal("0.01")
# Smallest amount that is still positive once rounded to whole cents.
MIN_AMOUNT = Decimal("0.005")


def to_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def is_positive_amount(amount: Decimal) -> bool:
    """True when ``amount`` rounds to at least one cent.

    Every validity check (drafts, extracted lines, receipts, purchases) goes
    through here, so nothing that passes can be stored as ``0.00``.
    """

    return amount.is_finite() and amount >= MIN_AMOUNT

# ---------------------------------------------------------------------------
# Catalog entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Category:
    """A budget category with a spending limit.

    ``name`` is the join key used by the classifier, the normalizer and the
    reward optimizer; uniqueness (case-insensitive) is enforced by
    :class:`~budget_assistant.catalog.CategoryCatalog`.
    """

    name: str
    limit: Decimal = Decimal("0")
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        if not isinstance(self.limit, Decimal):
            object.__setattr__(self, "limit", Decimal(str(self.limit)))
        if self.limit < 0:
            raise ValueError(f"Category.limit must be >= 0 (got {self.limit})")


@dataclass(frozen=True, slots=True)
class Tag:
    name: str
    id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True, slots=True)
class PaymentInstrument:
    """A payment card and its reward schedule.

    ``multipliers`` maps a category name to a reward rate that overrides
    ``base_rate`` for that category only. All rates must be positive.
    """

    name: str
    multipliers: Mapping[str, Decimal] = field(default_factory=dict)
    base_rate: Decimal = Decimal("1")
    note: str | None = None
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        base = self.base_rate if isinstance(self.base_rate, Decimal) else Decimal(str(self.base_rate))
        if base <= 0:
            raise ValueError(f"PaymentInstrument.base_rate must be > 0 (got {base})")
        rates: dict[str, Decimal] = {}
        for cat, raw in self.multipliers.items():
            rate = raw if isinstance(raw, Decimal) else Decimal(str(raw))
            if rate <= 0:
                raise ValueError(f"multiplier for {cat!r} must be > 0 (got {rate})")
            rates[cat] = rate
        object.__setattr__(self, "base_rate", base)
        # Read-only view so a frozen instrument stays frozen.
        object.__setattr__(self, "multipliers", MappingProxyType(rates))


# ---------------------------------------------------------------------------
# Purchases
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Purchase:
    """A committed purchase. ``amount`` is at least one cent after rounding."""

    date: date
    merchant: str
    amount: Decimal
    category_id: UUID | None = None
    notes: str | None = None
    ocr_text: str | None = None
    tag_ids: tuple[UUID, ...] = ()
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        if not is_positive_amount(self.amount):
            raise ValueError(f"Purchase.amount must round to at least 0.01 (got {self.amount})")


@dataclass(slots=True)
class PurchaseDraft:
    """An in-memory purchase under construction.

    A draft may hold a non-positive amount while being edited; it is only
    persisted once :attr:`is_valid` holds.
    """

    merchant: str = ""
    amount: Decimal = Decimal("0")
    category_id: UUID | None = None
    notes: str | None = None
    date: date | None = None
    tag_ids: list[UUID] = field(default_factory=list)
    ocr_text: str | None = None
    id: UUID = field(default_factory=uuid4)

    @property
    def is_valid(self) -> bool:
        return is_positive_amount(self.amount)

    def to_purchase(self, *, today: date | None = None) -> Purchase:
        """Freeze the draft into a :class:`Purchase`.

        Raises ``ValueError`` for an invalid draft. A blank merchant becomes
        ``"Unknown"``, blank notes become ``None`` and a missing date becomes
        ``today`` (defaults to :meth:`date.today`).
        """

        if not self.is_valid:
            raise ValueError(f"cannot commit draft {self.id}: amount must round to at least 0.01")
        merchant = self.merchant.strip() or UNKNOWN_MERCHANT
        notes = (self.notes or "").strip() or None
        return Purchase(
            id=self.id,
            date=self.date or today or date.today(),
            merchant=merchant,
            amount=self.amount,
            category_id=self.category_id,
            notes=notes,
            ocr_text=self.ocr_text,
            tag_ids=tuple(dict.fromkeys(self.tag_ids)),
        )


# ---------------------------------------------------------------------------
# Extraction results
# ---------------------------------------------------------------------------


class ParsedText(NamedTuple):
    """Tentative fields pulled from a single free-text description."""

    merchant: str | None
    amount: Decimal | None
    notes: str | None


@dataclass(frozen=True, slots=True)
class ExtractedTransaction:
    """A normalized line from the external extraction service.

    ``amount`` is ``0`` when nothing could be coerced; such lines are invalid
    and must not become purchases.
    """

    merchant: str
    amount: Decimal
    category: str | None = None
    date: date | None = None
    tags: tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return is_positive_amount(self.amount)


@dataclass(frozen=True, slots=True)
class ReceiptAnalysis:
    """A normalized single-receipt analysis."""

    merchant: str | None
    total: Decimal
    category: str | None = None
    recommended_card: str | None = None
    tags: tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return is_positive_amount(self.total)


# ---------------------------------------------------------------------------
# Engine outputs
# ---------------------------------------------------------------------------


class Recommendation(NamedTuple):
    instrument: PaymentInstrument
    rate: Decimal
    estimated_reward: Decimal


class DuplicateMatch(NamedTuple):
    """A newly imported purchase that likely repeats an existing one."""

    existing: Purchase
    new: Purchase


__all__ = [
    "UNKNOWN_MERCHANT",
    "CENT",
    "MIN_AMOUNT",
    "to_cents",
    "is_positive_amount",
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
]
