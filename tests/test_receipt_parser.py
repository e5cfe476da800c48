"""Tests for the OCR receipt parser."""

import re
from datetime import date
from decimal import Decimal

import pytest

from spendscan_core.config import ReceiptParserConfig
from spendscan_core.models import AmountSource, ExpenseCategory, ExpenseDraft
from spendscan_core.receipt_parser import (
    ReceiptParser,
    find_amounts,
    guess_category,
    parse_receipt,
    split_lines,
)

TODAY = date(2024, 6, 1)

CAFE_RECEIPT = """
CORNER CAFE
123 Main St
03/14/2024 8:15 PM
Latte 4.50
Croissant 3.25
Subtotal 7.75
Tax 0.62
Total 8.37
VISA **** 1234
Total 8.37
Thank you!
"""


@pytest.fixture
def parser() -> ReceiptParser:
    """Parser with default settings and a fixed clock."""
    return ReceiptParser(config=ReceiptParserConfig(), clock=lambda: TODAY)


class TestFullReceipt:
    """A complete, well-formed receipt."""

    def test_store_name_is_first_line(self, parser: ReceiptParser):
        draft = parser.parse(CAFE_RECEIPT)
        assert draft.store_name == "CORNER CAFE"

    def test_line_items_in_order(self, parser: ReceiptParser):
        draft = parser.parse(CAFE_RECEIPT)

        assert [(i.name, i.price) for i in draft.items] == [
            ("Latte", Decimal("4.50")),
            ("Croissant", Decimal("3.25")),
        ]
        assert draft.description == "Latte 4.50\nCroissant 3.25"

    def test_summary_fields(self, parser: ReceiptParser):
        draft = parser.parse(CAFE_RECEIPT)

        assert draft.subtotal == Decimal("7.75")
        assert draft.tax == Decimal("0.62")
        assert draft.total == Decimal("8.37")
        assert draft.amount == Decimal("8.37")
        assert draft.amount_source == AmountSource.TOTAL

    def test_date_and_time(self, parser: ReceiptParser):
        draft = parser.parse(CAFE_RECEIPT)

        assert draft.date == date(2024, 3, 14)
        assert draft.date_detected is True
        assert draft.time == "8:15 PM"

    def test_category_guessed_from_merchant(self, parser: ReceiptParser):
        draft = parser.parse(CAFE_RECEIPT)
        assert draft.category == ExpenseCategory.FOOD_DINING

    def test_returns_expense_draft(self, parser: ReceiptParser):
        assert isinstance(parser.parse(CAFE_RECEIPT), ExpenseDraft)


class TestAmountFallbackChain:
    """total -> subtotal -> largest number -> zero."""

    def test_total_line(self, parser: ReceiptParser):
        draft = parser.parse("Total: 42.50")

        assert draft.amount == Decimal("42.50")
        assert draft.amount_source == AmountSource.TOTAL

    def test_subtotal_without_total(self, parser: ReceiptParser):
        draft = parser.parse("Subtotal 10.00")

        assert draft.amount == Decimal("10.00")
        assert draft.subtotal == Decimal("10.00")
        assert draft.total == Decimal("0")
        assert draft.amount_source == AmountSource.SUBTOTAL

    def test_zero_total_falls_back_to_subtotal(self, parser: ReceiptParser):
        draft = parser.parse("Subtotal 9.99\nTotal 0.00")

        assert draft.amount == Decimal("9.99")
        assert draft.amount_source == AmountSource.SUBTOTAL

    def test_largest_number_without_keywords(self, parser: ReceiptParser):
        draft = parser.parse("Item A 3.50\nItem B 7.25")

        assert draft.amount == Decimal("7.25")
        assert draft.amount_source == AmountSource.LARGEST_AMOUNT
        assert len(draft.items) == 2
        assert draft.description == "Item A 3.50\nItem B 7.25"

    def test_freeform_total_without_label(self, parser: ReceiptParser):
        draft = parser.parse("GOOD EATS\nthanks for visiting\n$ 23.10 paid by card")
        assert draft.amount == Decimal("23.10")

    def test_no_numbers_gives_zero(self, parser: ReceiptParser):
        draft = parser.parse("hello world\nno prices here")

        assert draft.amount == Decimal("0")
        assert draft.amount_source == AmountSource.NONE

    def test_implausibly_large_numbers_ignored_in_fallback(self, parser: ReceiptParser):
        draft = parser.parse("Order 12345.00\nItem 5.00")
        assert draft.amount == Decimal("5.00")

    def test_fallback_limit_is_configurable(self):
        parser = ReceiptParser(
            config=ReceiptParserConfig(max_fallback_amount=Decimal("100000")),
            clock=lambda: TODAY,
        )
        draft = parser.parse("Order 12345.00\nItem 5.00")
        assert draft.amount == Decimal("12345.00")

    def test_total_is_not_limited(self, parser: ReceiptParser):
        draft = parser.parse("Total 15000.00")
        assert draft.amount == Decimal("15000.00")


class TestSummaryRules:
    """Keyword rules, precedence and first/last policies."""

    def test_last_total_wins(self, parser: ReceiptParser):
        draft = parser.parse("SHOP\nTotal 10.00\nTax 0.80\nTotal 10.80")
        assert draft.total == Decimal("10.80")

    def test_first_subtotal_wins(self, parser: ReceiptParser):
        draft = parser.parse("Subtotal 5.00\nSubtotal 6.00")
        assert draft.subtotal == Decimal("5.00")

    def test_first_tax_wins(self, parser: ReceiptParser):
        draft = parser.parse("Tax 1.00\nTax 2.00")
        assert draft.tax == Decimal("1.00")

    def test_subtotal_line_is_not_a_total(self, parser: ReceiptParser):
        draft = parser.parse("Subtotal 20.00")
        assert draft.total == Decimal("0")

    def test_amount_due_and_balance_are_totals(self, parser: ReceiptParser):
        assert parser.parse("Amount Due $12.00").total == Decimal("12.00")
        assert parser.parse("BALANCE 15.25").total == Decimal("15.25")

    def test_case_insensitive(self, parser: ReceiptParser):
        draft = parser.parse("SUBTOTAL 4.00\nTAX 0.40\nTOTAL 4.40")

        assert draft.subtotal == Decimal("4.00")
        assert draft.tax == Decimal("0.40")
        assert draft.total == Decimal("4.40")

    def test_rightmost_number_on_keyword_line(self, parser: ReceiptParser):
        draft = parser.parse("Sales Tax 8.25% 1.24")
        assert draft.tax == Decimal("1.24")

    def test_keyword_line_without_number_sets_nothing(self, parser: ReceiptParser):
        draft = parser.parse("Total 9.00\nTOTAL SAVINGS TODAY")
        assert draft.total == Decimal("9.00")

    def test_keywords_match_inside_words(self, parser: ReceiptParser):
        draft = parser.parse("SHOP\nWidget 10.00\nSubtotal 10.00\nTAXES 0.80\nTotal 10.80")

        assert draft.tax == Decimal("0.80")
        assert [i.name for i in draft.items] == ["Widget"]

    def test_run_together_grand_total(self, parser: ReceiptParser):
        draft = parser.parse("SHOP\nGRANDTOTAL 25.00\nCASH 30.00\nCHANGE 5.00")

        assert draft.total == Decimal("25.00")
        assert draft.amount == Decimal("25.00")
        assert draft.amount_source == AmountSource.TOTAL

    def test_grand_total_then_total_takes_last(self, parser: ReceiptParser):
        draft = parser.parse("Grand Total 30.00\nTip 3.00\nTotal 33.00")
        assert draft.total == Decimal("33.00")

    def test_sub_total_spellings(self, parser: ReceiptParser):
        assert parser.parse("Sub Total 7.00").subtotal == Decimal("7.00")
        assert parser.parse("SUB-TOTAL 7.00").subtotal == Decimal("7.00")
        assert parser.parse("Sub Total 7.00").total == Decimal("0")

    def test_summary_lines_are_not_items(self, parser: ReceiptParser):
        draft = parser.parse("Bread 2.00\nTotal 2.00")
        assert [i.name for i in draft.items] == ["Bread"]

    def test_thousands_separator(self, parser: ReceiptParser):
        draft = parser.parse("Laptop $1,234.56\nTotal $1,234.56")

        assert draft.total == Decimal("1234.56")
        assert draft.items[0].price == Decimal("1234.56")


class TestDateExtraction:
    """Numeric dates and the today fallback."""

    def test_fallback_to_clock(self, parser: ReceiptParser):
        draft = parser.parse("Coffee 3.00")

        assert draft.date == TODAY
        assert draft.date_detected is False

    def test_today_argument_overrides_clock(self, parser: ReceiptParser):
        draft = parser.parse("Coffee 3.00", today=date(2020, 1, 2))
        assert draft.date == date(2020, 1, 2)

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Date: 03/14/2024", date(2024, 3, 14)),
            ("12-25-23", date(2023, 12, 25)),
            ("25/12/2023", date(2023, 12, 25)),
            ("14.03.2024", date(2024, 3, 14)),
            ("1/2/2024", date(2024, 1, 2)),
            ("2024-03-14 10:30", date(2024, 3, 14)),
            ("03/14/024", date(2024, 3, 14)),
        ],
    )
    def test_recognized_formats(self, parser: ReceiptParser, text: str, expected: date):
        assert parser.parse(text).date == expected

    def test_impossible_date_is_skipped(self, parser: ReceiptParser):
        draft = parser.parse("13/13/2024\nback on 04/05/2024")
        assert draft.date == date(2024, 4, 5)

    def test_no_valid_date_uses_clock(self, parser: ReceiptParser):
        assert parser.parse("99/99/2024").date == TODAY

    def test_day_first(self):
        parser = ReceiptParser(config=ReceiptParserConfig(day_first=True), clock=lambda: TODAY)
        assert parser.parse("03/04/2024").date == date(2024, 4, 3)

    def test_date_is_not_read_as_amount(self, parser: ReceiptParser):
        draft = parser.parse("14.03.2024")
        assert draft.amount == Decimal("0")


class TestTimeExtraction:
    """Best-effort time of day."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("14:32", "14:32"),
            ("Time 9:05am", "9:05am"),
            ("14:32:05", "14:32:05"),
            ("at 8.30 pm", "8.30 pm"),
        ],
    )
    def test_times(self, parser: ReceiptParser, text: str, expected: str):
        assert parser.parse(text).time == expected

    def test_price_is_not_a_time(self, parser: ReceiptParser):
        assert parser.parse("Milk 12.99").time == ""

    def test_invalid_hour(self, parser: ReceiptParser):
        assert parser.parse("25:00").time == ""


class TestCategoryGuess:
    """Keyword-based category inference."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Shell Gas Station", ExpenseCategory.TRANSPORTATION),
            ("CVS Pharmacy", ExpenseCategory.HEALTHCARE),
            ("Whole Foods Market", ExpenseCategory.GROCERIES),
            ("Hilton Hotel", ExpenseCategory.TRAVEL),
            ("AMC Cinema", ExpenseCategory.ENTERTAINMENT),
            ("Campus Bookstore", ExpenseCategory.EDUCATION),
            ("Joe's Pizza", ExpenseCategory.FOOD_DINING),
            ("Item A 3.50", ExpenseCategory.OTHER),
        ],
    )
    def test_guess_category(self, text: str, expected: ExpenseCategory):
        assert guess_category(text) == expected

    def test_inference_can_be_disabled(self):
        parser = ReceiptParser(
            config=ReceiptParserConfig(infer_category=False),
            clock=lambda: TODAY,
        )
        assert parser.parse(CAFE_RECEIPT).category == ExpenseCategory.OTHER


class TestDegenerateInput:
    """The parser is total over all strings."""

    @pytest.mark.parametrize("text", ["", "   ", "\n\n\t\n", None])
    def test_empty_input_gives_defaults(self, parser: ReceiptParser, text):
        draft = parser.parse(text)

        assert draft.store_name == "Unknown Store"
        assert draft.items == []
        assert draft.amount == Decimal("0")
        assert draft.subtotal == Decimal("0")
        assert draft.tax == Decimal("0")
        assert draft.total == Decimal("0")
        assert draft.description == ""
        assert draft.time == ""
        assert draft.category == ExpenseCategory.OTHER
        assert draft.date == TODAY

    @pytest.mark.parametrize(
        "text",
        [
            "€€€ ### ???",
            "0.00",
            "-5.00",
            "Total -12.50",
            "1.2.3.4.5.6",
            "99999999999999999999.99",
            "$$$ 12.345 .99 1. 00",
            "Ünïcödé Café 4,50",
            "\x00\x01\x02",
            "Total\nTax\nSubtotal",
            "a" * 5000,
        ],
    )
    def test_noisy_input(self, parser: ReceiptParser, text: str):
        draft = parser.parse(text)

        assert draft.amount >= 0
        assert draft.amount.is_finite()
        assert draft.category in ExpenseCategory
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}", draft.date.isoformat())
        assert isinstance(draft.store_name, str)
        assert isinstance(draft.description, str)
        assert isinstance(draft.time, str)

    def test_parse_is_idempotent(self, parser: ReceiptParser):
        assert parser.parse(CAFE_RECEIPT) == parser.parse(CAFE_RECEIPT)


class TestHelpers:
    """Module-level helpers."""

    def test_split_lines(self):
        assert split_lines("  a  \n\n b\r\n  \nc") == ["a", "b", "c"]

    def test_find_amounts(self):
        assert find_amounts("3.50 x 2 = 7.00, was 12.999") == [
            Decimal("3.50"),
            Decimal("7.00"),
        ]

    def test_parse_receipt_shortcut(self):
        draft = parse_receipt("Total 5.00", today=TODAY)

        assert draft.amount == Decimal("5.00")
        assert draft.date == TODAY
