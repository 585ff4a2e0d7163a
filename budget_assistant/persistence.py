"""Persistence integration for budget_assistant.

Functions here load engine snapshots from, and write explicit changes to, the
database described in :mod:`budget_assistant.db.models`. Every function takes a
session supplied by the caller (normally from
:func:`budget_assistant.db.client.session_scope`); none of them commit, so a
group of writes either commits together or rolls back together.

Scope:
- ``load_snapshot``: catalog, tags, merchant memory, instruments, purchases.
  Empty tables fall back to the stock defaults (not written back).
- ``seed_defaults``: store the defaults a fresh database fell back to.
- Writes: ``save_catalog``, ``save_tag``, ``save_instruments``, ``save_budget``,
  ``remember_merchant``, ``add_purchase``, ``commit_drafts``,
  ``accept_duplicate``.
- Removal: ``delete_purchase``, ``clear_purchases_and_budgets``.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from .budget import BudgetEnvelope
from .catalog import CategoryCatalog
from .db.models import BaBudget, BaCategory, BaInstrument, BaMerchantMemory, BaPurchase, BaTag
from .logging_setup import get_logger
from .memory import MerchantMemory, normalize_merchant
from .models import (
    UNKNOWN_MERCHANT,
    Category,
    DuplicateMatch,
    PaymentInstrument,
    Purchase,
    PurchaseDraft,
    Tag,
    to_cents,
)
from .rewards import default_instruments
from .tags import TagRegistry

logger = get_logger(__name__)

_BUDGET_ROW = 1


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Everything the engine needs, read in one go."""

    catalog: CategoryCatalog
    tags: TagRegistry
    memory: MerchantMemory
    instruments: list[PaymentInstrument]
    purchases: list[Purchase]
    budget: BudgetEnvelope = field(default_factory=BudgetEnvelope)


# ---------------------------------------------------------------------------
# Read side
# ---------------------------------------------------------------------------


def _load_catalog(session: Session) -> CategoryCatalog:
    rows = session.execute(select(BaCategory).order_by(BaCategory.sort_order)).scalars().all()
    if not rows:
        return CategoryCatalog.default()
    return CategoryCatalog(Category(id=r.id, name=r.name, limit=Decimal(r.spending_limit)) for r in rows)


def _load_tags(session: Session) -> TagRegistry:
    rows = session.execute(select(BaTag).order_by(BaTag.sort_order)).scalars().all()
    if not rows:
        return TagRegistry.default()
    return TagRegistry(Tag(id=r.id, name=r.name) for r in rows)


def _load_instruments(session: Session) -> list[PaymentInstrument]:
    rows = session.execute(select(BaInstrument).order_by(BaInstrument.sort_order)).scalars().all()
    if not rows:
        return default_instruments()
    return [
        PaymentInstrument(
            id=r.id,
            name=r.name,
            multipliers={k: Decimal(str(v)) for k, v in (r.multipliers or {}).items()},
            base_rate=Decimal(r.base_rate),
            note=r.note,
        )
        for r in rows
    ]


def _load_memory(session: Session) -> MerchantMemory:
    rows = session.execute(select(BaMerchantMemory)).scalars().all()
    return MerchantMemory({r.merchant_key: r.category_name for r in rows})


def _to_purchase(row: BaPurchase) -> Purchase:
    return Purchase(
        id=row.id,
        date=row.date,
        merchant=row.merchant,
        amount=Decimal(row.amount),
        category_id=row.category_id,
        notes=row.notes,
        ocr_text=row.ocr_text,
        tag_ids=tuple(uuid.UUID(t) for t in row.tag_ids or ()),
    )


def load_budget(session: Session) -> BudgetEnvelope:
    row = session.get(BaBudget, _BUDGET_ROW)
    if row is None:
        return BudgetEnvelope()
    return BudgetEnvelope(overall_limit=Decimal(row.overall_limit))


def load_purchases(session: Session) -> list[Purchase]:
    rows = session.execute(select(BaPurchase).order_by(BaPurchase.date, BaPurchase.created_at)).scalars()
    return [_to_purchase(r) for r in rows]


def load_snapshot(session: Session) -> Snapshot:
    """Read the full engine state. Empty tables yield the stock defaults."""

    snap = Snapshot(
        catalog=_load_catalog(session),
        tags=_load_tags(session),
        memory=_load_memory(session),
        instruments=_load_instruments(session),
        purchases=load_purchases(session),
        budget=load_budget(session),
    )
    logger.debug(
        "loaded snapshot: %d categories, %d tags, %d memory entries, %d instruments, %d purchases",
        len(snap.catalog),
        len(snap.tags),
        len(snap.memory),
        len(snap.instruments),
        len(snap.purchases),
    )
    return snap


# ---------------------------------------------------------------------------
# Write side
# ---------------------------------------------------------------------------


def _is_empty(session: Session, model: type[BaCategory | BaTag | BaInstrument]) -> bool:
    return session.execute(select(model.id).limit(1)).first() is None


def seed_defaults(session: Session) -> Snapshot:
    """Load a snapshot and store whichever stock defaults it fell back to.

    Category and tag ids are generated when defaults are built, so they must
    be stored before any purchase refers to them.
    """

    snap = load_snapshot(session)
    if _is_empty(session, BaCategory):
        save_catalog(session, snap.catalog)
    if _is_empty(session, BaTag):
        save_tags(session, snap.tags)
    if _is_empty(session, BaInstrument):
        save_instruments(session, snap.instruments)
    return snap


def save_catalog(session: Session, catalog: CategoryCatalog) -> None:
    """Replace the stored catalog with ``catalog`` (order included)."""

    keep = [c.id for c in catalog]
    session.execute(delete(BaCategory).where(BaCategory.id.not_in(keep)))
    for pos, cat in enumerate(catalog):
        session.merge(BaCategory(id=cat.id, name=cat.name, spending_limit=cat.limit, sort_order=pos))
    session.flush()


def save_tag(session: Session, tag: Tag, *, sort_order: int | None = None) -> None:
    """Insert or update a single tag."""

    if sort_order is None:
        existing = session.get(BaTag, tag.id)
        if existing is not None:
            sort_order = existing.sort_order
        else:
            sort_order = len(session.execute(select(BaTag.id)).all())
    session.merge(BaTag(id=tag.id, name=tag.name, sort_order=sort_order))
    session.flush()


def save_tags(session: Session, tags: TagRegistry) -> None:
    for pos, tag in enumerate(tags):
        save_tag(session, tag, sort_order=pos)


def save_instruments(session: Session, instruments: Sequence[PaymentInstrument]) -> None:
    """Replace the stored instrument list. An empty list is rejected."""

    if not instruments:
        raise ValueError("at least one payment instrument must be stored")
    keep = [i.id for i in instruments]
    session.execute(delete(BaInstrument).where(BaInstrument.id.not_in(keep)))
    for pos, inst in enumerate(instruments):
        session.merge(
            BaInstrument(
                id=inst.id,
                name=inst.name,
                multipliers={k: str(v) for k, v in inst.multipliers.items()},
                base_rate=inst.base_rate,
                note=inst.note,
                sort_order=pos,
            )
        )
    session.flush()


def save_budget(session: Session, envelope: BudgetEnvelope) -> None:
    session.merge(BaBudget(id=_BUDGET_ROW, overall_limit=envelope.overall_limit))
    session.flush()


def remember_merchant(session: Session, merchant: str | None, category_name: str | None) -> bool:
    """Store ``merchant -> category_name``; blank merchants and ``Unknown`` are ignored."""

    key = normalize_merchant(merchant)
    if not key or key == UNKNOWN_MERCHANT.lower() or not category_name or not category_name.strip():
        return False
    session.merge(BaMerchantMemory(merchant_key=key, category_name=category_name.strip()))
    session.flush()
    return True


def add_purchase(session: Session, purchase: Purchase) -> None:
    session.add(
        BaPurchase(
            id=purchase.id,
            date=purchase.date,
            merchant=purchase.merchant,
            amount=to_cents(purchase.amount),
            category_id=purchase.category_id,
            notes=purchase.notes,
            ocr_text=purchase.ocr_text,
            tag_ids=[str(t) for t in purchase.tag_ids],
        )
    )
    session.flush()


def _add_and_remember(session: Session, purchase: Purchase, catalog: CategoryCatalog) -> None:
    add_purchase(session, purchase)
    category = catalog.get(purchase.category_id)
    if category is not None:
        remember_merchant(session, purchase.merchant, category.name)


def commit_drafts(
    session: Session,
    drafts: Iterable[PurchaseDraft],
    *,
    catalog: CategoryCatalog,
    today: date | None = None,
) -> list[Purchase]:
    """Persist valid drafts and remember each merchant's category.

    Invalid drafts (non-positive amount) are skipped. Returns the purchases
    written, in input order.
    """

    written: list[Purchase] = []
    skipped = 0
    for draft in drafts:
        if not draft.is_valid:
            skipped += 1
            continue
        purchase = draft.to_purchase(today=today)
        _add_and_remember(session, purchase, catalog)
        written.append(purchase)
    if skipped:
        logger.info("skipped %d invalid draft(s)", skipped)
    return written


def accept_duplicate(session: Session, match: DuplicateMatch, *, catalog: CategoryCatalog) -> Purchase:
    """Record the new side of a duplicate pair the user chose to keep."""

    _add_and_remember(session, match.new, catalog)
    return match.new


def delete_purchase(session: Session, purchase_id: uuid.UUID) -> bool:
    """Remove one purchase. Returns ``False`` when no such purchase exists.

    Merchant memory learned from it is kept.
    """

    row = session.get(BaPurchase, purchase_id)
    if row is None:
        return False
    session.delete(row)
    session.flush()
    return True


def clear_purchases_and_budgets(session: Session) -> int:
    """Start the budget over: no purchases, stock categories, default envelope.

    Merchant memory is cleared too; tags and payment instruments are kept.
    Returns the number of purchases removed.
    """

    removed = session.execute(delete(BaPurchase)).rowcount
    session.execute(delete(BaMerchantMemory))
    session.execute(delete(BaBudget))
    session.execute(delete(BaCategory))
    save_catalog(session, CategoryCatalog.default())
    logger.info("cleared %d purchase(s) and reset budgets", removed)
    return removed


__all__ = [
    "Snapshot",
    "load_snapshot",
    "load_purchases",
    "load_budget",
    "seed_defaults",
    "save_catalog",
    "save_tag",
    "save_tags",
    "save_instruments",
    "save_budget",
    "remember_merchant",
    "add_purchase",
    "commit_drafts",
    "accept_duplicate",
    "delete_purchase",
    "clear_purchases_and_budgets",
]
