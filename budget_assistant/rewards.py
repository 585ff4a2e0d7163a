"""Payment-instrument reward optimization.

The effective rate of an instrument for a category is its multiplier for that
category when one exists, else its base rate. :func:`best_instrument` picks the
highest estimated reward with a strict greater-than comparison, so among equal
rewards the instrument listed first wins. The optimizer never sees an empty
instrument list in normal operation; persistence substitutes
:func:`default_instruments` when nothing is stored.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from .models import PaymentInstrument, Recommendation


def effective_rate(instrument: PaymentInstrument, category_name: str | None) -> Decimal:
    """Return the instrument's reward rate for ``category_name``.

    The multiplier key is matched exactly first, then case-insensitively.
    """

    if category_name:
        rate = instrument.multipliers.get(category_name)
        if rate is not None:
            return rate
        key = category_name.casefold()
        for cat, rate in instrument.multipliers.items():
            if cat.casefold() == key:
                return rate
    return instrument.base_rate


def _recommend(instrument: PaymentInstrument, category_name: str | None, amount: Decimal) -> Recommendation:
    rate = effective_rate(instrument, category_name)
    return Recommendation(instrument=instrument, rate=rate, estimated_reward=amount * rate)


def compare_instruments(
    category_name: str | None,
    amount: Decimal,
    instruments: Sequence[PaymentInstrument],
) -> list[Recommendation]:
    """Return one recommendation per instrument, in input order."""

    return [_recommend(inst, category_name, amount) for inst in instruments]


def best_instrument(
    category_name: str | None,
    amount: Decimal,
    instruments: Sequence[PaymentInstrument],
) -> Recommendation:
    """Return the instrument with the highest reward for this purchase.

    Raises
    ------
    ValueError
        If ``instruments`` is empty.
    """

    if not instruments:
        raise ValueError("best_instrument requires at least one payment instrument")

    best, *rest = compare_instruments(category_name, amount, instruments)
    for rec in rest:
        if rec.estimated_reward > best.estimated_reward:
            best = rec
    return best


def default_instruments() -> list[PaymentInstrument]:
    """The stock card set used for a fresh budget."""

    return [
        PaymentInstrument(
            name="Savor Max",
            multipliers={"Dining": Decimal("4"), "Entertainment": Decimal("3"), "Groceries": Decimal("2")},
            base_rate=Decimal("1"),
        ),
        PaymentInstrument(
            name="Freedom Flexy",
            multipliers={"Gas": Decimal("3"), "Transit": Decimal("3"), "Online Shopping": Decimal("3")},
            base_rate=Decimal("1"),
            note="Rotating 5x categories quarterly.",
        ),
        PaymentInstrument(
            name="Everyday Grocer",
            multipliers={"Groceries": Decimal("3"), "Health": Decimal("2")},
            base_rate=Decimal("1"),
        ),
        PaymentInstrument(
            name="Travel Pro",
            multipliers={"Travel": Decimal("3"), "Dining": Decimal("2"), "Transit": Decimal("2")},
            base_rate=Decimal("1"),
        ),
        PaymentInstrument(name="Flat 2%", base_rate=Decimal("2")),
    ]


__all__ = ["effective_rate", "best_instrument", "compare_instruments", "default_instruments"]
