from datetime import date
from decimal import Decimal

import pytest

from budget_assistant.duplicates import find_duplicates, merchants_similar, split_duplicates
from budget_assistant.models import Purchase


def _p(day: int, merchant: str, amount: str) -> Purchase:
    return Purchase(date=date(2024, 5, day), merchant=merchant, amount=Decimal(amount))


def test_match_within_window_and_same_amount():
    existing = [_p(1, "Whole Foods Market", "54.30")]
    new = [_p(3, "WHOLE FOODS", "54.3")]
    matches = find_duplicates(new, existing)
    assert len(matches) == 1
    assert matches[0].existing is existing[0]
    assert matches[0].new is new[0]


@pytest.mark.parametrize(
    "candidate",
    [
        _p(5, "Whole Foods", "54.30"),  # four days apart
        _p(2, "Whole Foods", "54.31"),  # different amount
        _p(2, "Shell", "54.30"),  # different merchant
    ],
)
def test_no_match(candidate):
    assert find_duplicates([candidate], [_p(1, "Whole Foods", "54.30")]) == []


def test_window_is_configurable():
    existing = [_p(1, "Shell", "40")]
    assert find_duplicates([_p(8, "Shell", "40")], existing) == []
    assert len(find_duplicates([_p(8, "Shell", "40")], existing, window_days=7)) == 1
    with pytest.raises(ValueError):
        find_duplicates([], existing, window_days=-1)


def test_merchants_similar():
    assert merchants_similar("Starbucks #123", "Starbuck #123")
    assert merchants_similar(" uber  trip", "UBER TRIP")
    assert not merchants_similar("Uber", "Lyft")


def test_pairs_with_first_existing_match_only():
    existing = [_p(1, "Shell", "40"), _p(2, "Shell", "40")]
    matches = find_duplicates([_p(2, "Shell", "40")], existing)
    assert len(matches) == 1
    assert matches[0].existing is existing[0]


def test_split_duplicates_never_discards():
    existing = [_p(1, "Shell", "40")]
    new = [_p(2, "Shell", "40"), _p(2, "Kroger", "12.99")]
    clean, matches = split_duplicates(new, existing)
    assert [p.merchant for p in clean] == ["Kroger"]
    assert [m.new.merchant for m in matches] == ["Shell"]


def test_purchase_amount_must_be_positive():
    with pytest.raises(ValueError):
        _p(1, "Shell", "0")
