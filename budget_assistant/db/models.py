from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ---------------------------
# Reference: ba_categories
# ---------------------------


class BaCategory(Base):
    __tablename__ = "ba_categories"
    __table_args__ = (CheckConstraint("spending_limit >= 0", name="ck_ba_categories_limit"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    # Case-insensitive uniqueness is enforced by CategoryCatalog before writes.
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    spending_limit: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class BaTag(Base):
    __tablename__ = "ba_tags"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class BaInstrument(Base):
    __tablename__ = "ba_instruments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    # category name -> rate as a decimal string
    multipliers: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    base_rate: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class BaMerchantMemory(Base):
    __tablename__ = "ba_merchant_memory"

    merchant_key: Mapped[str] = mapped_column(String, primary_key=True)
    category_name: Mapped[str] = mapped_column(String, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )


# Single row (id 1) holding the overall envelope.
class BaBudget(Base):
    __tablename__ = "ba_budget"
    __table_args__ = (CheckConstraint("overall_limit >= 0", name="ck_ba_budget_overall_limit"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    overall_limit: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)


# ---------------------------
# Core: ba_purchases
# ---------------------------


class BaPurchase(Base):
    __tablename__ = "ba_purchases"
    __table_args__ = (CheckConstraint("amount > 0", name="ck_ba_purchases_amount_positive"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    merchant: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    category_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("ba_categories.id", ondelete="SET NULL"), nullable=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    ocr_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Ordered tag ids as strings.
    tag_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )


__all__ = [
    "Base",
    "BaCategory",
    "BaTag",
    "BaInstrument",
    "BaMerchantMemory",
    "BaBudget",
    "BaPurchase",
]
