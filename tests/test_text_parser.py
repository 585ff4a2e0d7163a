from decimal import Decimal

import pytest

from budget_assistant.models import ParsedText
from budget_assistant.text_parser import guess_receipt_amount, guess_receipt_merchant, parse


def test_parse_full_description():
    parsed = parse("$60 at Olive Garden for dinner")
    assert parsed.amount == Decimal("60")
    assert parsed.merchant.startswith("Olive Garden")
    assert parsed.notes == "dinner"


@pytest.mark.parametrize("text", [None, "", "   \n"])
def test_parse_blank_input(text):
    assert parse(text) == ParsedText(None, None, None)


def test_parse_without_at_uses_first_word():
    parsed = parse("Starbucks 4.50")
    assert parsed.merchant == "Starbucks"
    assert parsed.amount == Decimal("4.50")
    assert parsed.notes is None


def test_parse_at_is_case_insensitive_and_takes_three_words():
    parsed = parse("coffee AT Blue Bottle Coffee Roasters downtown")
    assert parsed.merchant == "Blue Bottle Coffee"
    assert parsed.amount is None


def test_parse_takes_first_amount():
    assert parse("$12.50 and $3.00 at Shop").amount == Decimal("12.50")


def test_parse_notes_after_for():
    assert parse("20 at Target FOR school supplies ").notes == "school supplies"


RECEIPT = """\
05/12/2024 14:02
TRADER JOE'S
Store 552
Bananas 1.99
Subtotal 21.40
Tax 1.70
TOTAL $23.10
Cash 30.00
Change 6.90
"""


def test_guess_receipt_merchant_skips_dates_and_numbers():
    assert guess_receipt_merchant(RECEIPT) == "TRADER JOE'S"
    assert guess_receipt_merchant("12/01\nAB\n42 Main St\n") is None
    assert guess_receipt_merchant(None) is None


def test_guess_receipt_amount_prefers_total_line():
    assert guess_receipt_amount(RECEIPT) == Decimal("23.10")


def test_guess_receipt_amount_falls_back_to_last_amount():
    assert guess_receipt_amount("Item 3.00\nItem 4.25\n") == Decimal("4.25")
    assert guess_receipt_amount("thank you") is None
