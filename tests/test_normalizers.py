"""Tests for amount, date, merchant and category normalizers."""

from datetime import date
from decimal import Decimal

import pytest

from spend_sentinel.processing.categorizer import CategoryClassifier, categorize_transaction
from spend_sentinel.processing.normalizer import UNKNOWN_MERCHANT, extract_merchant_name
from spend_sentinel.utils.date_utils import normalize_date, parse_date, subtract_months
from spend_sentinel.utils.decimal_utils import format_currency, normalize_amount, round_half_up


class TestNormalizeAmount:
    """Tests for normalize_amount."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("1234.56", Decimal("1234.56")),
            ("$1,234.56", Decimal("1234.56")),
            ("-$12.50", Decimal("-12.50")),
            ("(45.00)", Decimal("-45.00")),
            ("($1,000)", Decimal("-1000")),
            ("  4.50 ", Decimal("4.50")),
            ("€ 99", Decimal("99")),
        ],
    )
    def test_parses_common_formats(self, raw: str, expected: Decimal) -> None:
        """Test currency symbols, separators and negative notations."""
        assert normalize_amount(raw) == expected

    @pytest.mark.parametrize("raw", ["", None, "abc", "NaN", "Infinity", "-", "$"])
    def test_unparseable_is_zero(self, raw: str | None) -> None:
        """Test that bad input yields zero instead of raising."""
        assert normalize_amount(raw) == Decimal("0")


class TestRounding:
    """Tests for half-up rounding helpers."""

    def test_round_half_up(self) -> None:
        """Test that halves round away from zero."""
        assert round_half_up(Decimal("2.345")) == Decimal("2.35")
        assert round_half_up(Decimal("2.5"), Decimal("1")) == Decimal("3")
        assert round_half_up(Decimal("3.5"), Decimal("1")) == Decimal("4")

    def test_format_currency(self) -> None:
        """Test display formatting."""
        assert format_currency(Decimal("-4.5")) == "-4.50"
        assert format_currency(Decimal("-4.5"), include_sign=False) == "4.50"


class TestParseDate:
    """Tests for the strict date parser."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("2024-03-01", date(2024, 3, 1)),
            ("01/03/2024", date(2024, 3, 1)),
            ("03/25/2024", date(2024, 3, 25)),
            ("15 Jan 2024", date(2024, 1, 15)),
            ("Jan 15, 2024", date(2024, 1, 15)),
            ("15-Jan-2024", date(2024, 1, 15)),
            ("1.3.2024", date(2024, 3, 1)),
        ],
    )
    def test_parses_supported_formats(self, raw: str, expected: date) -> None:
        """Test native, day-first and month-first forms."""
        assert parse_date(raw) == expected

    def test_day_first_wins_when_ambiguous(self) -> None:
        """Test that 02/03/2024 is 2 March, not 3 February."""
        assert parse_date("02/03/2024") == date(2024, 3, 2)

    @pytest.mark.parametrize("raw", ["", None, "   ", "not a date", "32/13/2024", "2024-13-45"])
    def test_rejects_invalid(self, raw: str | None) -> None:
        """Test that unparseable dates return None."""
        assert parse_date(raw) is None


class TestNormalizeDate:
    """Tests for the lenient date normalizer."""

    def test_valid_date(self) -> None:
        """Test that a valid date is returned unchanged."""
        assert normalize_date("2024-02-29", today=date(2024, 6, 1)) == date(2024, 2, 29)

    def test_falls_back_to_today(self) -> None:
        """Test that garbage becomes the fallback date."""
        assert normalize_date("garbage", today=date(2024, 6, 1)) == date(2024, 6, 1)


class TestSubtractMonths:
    """Tests for month arithmetic."""

    def test_crosses_year_boundary(self) -> None:
        """Test going back across January."""
        assert subtract_months(date(2024, 3, 1), 6) == date(2023, 9, 1)

    def test_clamps_to_month_end(self) -> None:
        """Test that day 31 clamps in shorter months."""
        assert subtract_months(date(2024, 3, 31), 1) == date(2024, 2, 29)


class TestMerchantNameExtractor:
    """Tests for merchant name extraction."""

    @pytest.mark.parametrize(
        "description, expected",
        [
            ("PURCHASE STARBUCKS #1234 01/03/2024", "STARBUCKS"),
            ("POS DEBIT AMAZON MKTPLACE - SEATTLE WA", "AMAZON MKTPLACE"),
            ("ATM WITHDRAWAL | BRANCH 12", "WITHDRAWAL"),
            ("COFFEE SHOP", "COFFEE SHOP"),
            ("NETFLIX.COM  866-579-7172", "NETFLIX.COM"),
            ("Uber Trip\tHELP.UBER.COM", "Uber Trip"),
            ("PAYMENT: CITY WATER 2024-03-05", "CITY WATER"),
        ],
    )
    def test_extracts_merchant(self, description: str, expected: str) -> None:
        """Test prefix, separator, date and reference handling."""
        assert extract_merchant_name(description) == expected

    @pytest.mark.parametrize("description", ["", None, "#12345", "PURCHASE", "  "])
    def test_empty_result_is_unknown(self, description: str | None) -> None:
        """Test the Unknown Merchant fallback."""
        assert extract_merchant_name(description) == UNKNOWN_MERCHANT

    @pytest.mark.parametrize(
        "description, expected",
        [
            ("STARBUCKS 01/03/2024 #1234 SEATTLE", "STARBUCKS"),
            ("SHELL OIL #88 12 Mar 2024 HOUSTON TX", "SHELL OIL"),
            ("01/03/2024 #1234 STARBUCKS", "STARBUCKS"),
        ],
    )
    def test_removed_tokens_leave_cut_point(self, description: str, expected: str) -> None:
        """Test that the gap left by a removed date or reference ends the name."""
        assert extract_merchant_name(description) == expected

    def test_caps_length(self) -> None:
        """Test that names are capped at 50 characters."""
        assert len(extract_merchant_name("A" * 80)) == 50


class TestCategoryClassifier:
    """Tests for keyword categorization."""

    @pytest.mark.parametrize(
        "merchant, description, expected",
        [
            ("STARBUCKS", "", "dining"),
            ("COFFEE SHOP", "COFFEE SHOP", "dining"),
            ("Whole Foods", "", "groceries"),
            ("Shell Oil", "", "transport"),
            ("Best Buy", "", "shopping"),
            ("City Electric", "", "utilities"),
            ("Netflix", "", "entertainment"),
            ("Random Co", "misc", "other"),
        ],
    )
    def test_categorizes(self, merchant: str, description: str, expected: str) -> None:
        """Test each category of the keyword table."""
        assert categorize_transaction(merchant, description) == expected

    def test_table_order_breaks_ties(self) -> None:
        """Test that 'target' matches groceries before shopping."""
        assert categorize_transaction("TARGET", None) == "groceries"

    def test_description_is_searched(self) -> None:
        """Test that keywords in the description count."""
        assert categorize_transaction("ACME", "monthly netflix subscription") == "entertainment"

    def test_custom_table(self) -> None:
        """Test a classifier with its own table."""
        classifier = CategoryClassifier([("pets", ["vet", "petco"])])
        assert classifier.classify("PETCO 123") == "pets"
        assert classifier.classify("STARBUCKS") == "other"
