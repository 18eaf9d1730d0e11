"""
Unit tests for amount, currency, date and quantity parsing.
"""

from datetime import date
from decimal import Decimal

from hypothesis import given
from hypothesis import strategies as st

from src.core.normalization import clean_amount, detect_currency, parse_date, parse_quantity


class TestCleanAmount:
    """Tests for clean_amount"""

    def test_plain_and_decimal_values(self):
        """Test plain numbers parse unchanged"""
        assert clean_amount("100") == Decimal("100")
        assert clean_amount("99.50") == Decimal("99.50")
        assert clean_amount("-12.5") == Decimal("-12.5")

    def test_currency_symbols_and_separators_stripped(self):
        """Test ₹ $ € , and currency codes are removed"""
        assert clean_amount("₹1,234.50") == Decimal("1234.50")
        assert clean_amount("$ 20") == Decimal("20")
        assert clean_amount("€5") == Decimal("5")
        assert clean_amount("INR 99") == Decimal("99")
        assert clean_amount("45 usd") == Decimal("45")

    def test_accounting_negatives(self):
        """Test parenthesized and trailing-minus negatives"""
        assert clean_amount("(123.45)") == Decimal("-123.45")
        assert clean_amount("123.45-") == Decimal("-123.45")
        assert clean_amount("(₹1,234.50)") == Decimal("-1234.50")
        assert clean_amount("INR 40.00 -") == Decimal("-40.00")
        assert clean_amount("( 7 )") == Decimal("-7")

    def test_malformed_negatives_return_none(self):
        """Test sign markers without a usable number"""
        assert clean_amount("-") is None
        assert clean_amount("()") is None
        assert clean_amount("(-5)") is None
        assert clean_amount("5--") is None

    def test_blank_and_garbage_return_none(self):
        """Test unparseable input yields None"""
        assert clean_amount(None) is None
        assert clean_amount("") is None
        assert clean_amount("  ") is None
        assert clean_amount("n/a") is None
        assert clean_amount("NaN") is None

    @given(st.decimals(min_value=-10**9, max_value=10**9, places=2, allow_nan=False, allow_infinity=False))
    def test_property_formatted_amounts_parse(self, amount):
        """Property test: rupee-formatted amounts parse back to their value"""
        assert clean_amount(f"₹{amount:,}") == amount


class TestDetectCurrency:
    """Tests for detect_currency"""

    def test_markers(self):
        """Test symbol and code detection"""
        assert detect_currency("₹100") == "INR"
        assert detect_currency("INR 100") == "INR"
        assert detect_currency("$100") == "USD"
        assert detect_currency("100 usd") == "USD"
        assert detect_currency("€100") == "EUR"

    def test_no_marker(self):
        """Test bare numbers carry no currency"""
        assert detect_currency("100") is None
        assert detect_currency(None) is None


class TestParseDate:
    """Tests for parse_date"""

    def test_supported_formats(self):
        """Test ISO, day-first, month-first and datetime forms"""
        assert parse_date("2024-01-05") == date(2024, 1, 5)
        assert parse_date("05/01/2024") == date(2024, 1, 5)
        assert parse_date("12/31/2024") == date(2024, 12, 31)
        assert parse_date("2024-01-05 10:15:00") == date(2024, 1, 5)
        assert parse_date("2024-01-05T10:15:00") == date(2024, 1, 5)

    def test_day_first_wins_when_ambiguous(self):
        """Test dd/MM/yyyy is tried before MM/dd/yyyy"""
        assert parse_date("03/04/2024") == date(2024, 4, 3)

    def test_unparseable(self):
        """Test invalid dates yield None"""
        assert parse_date(None) is None
        assert parse_date("") is None
        assert parse_date("yesterday") is None
        assert parse_date("2024-13-45") is None

    @given(st.dates(min_value=date(1990, 1, 1), max_value=date(2100, 12, 31)))
    def test_property_iso_dates_parse(self, value):
        """Property test: ISO dates always parse to themselves"""
        assert parse_date(value.isoformat()) == value


class TestParseQuantity:
    """Tests for parse_quantity"""

    def test_integral_values(self):
        """Test integer-like strings"""
        assert parse_quantity("2") == 2
        assert parse_quantity(" 3 ") == 3
        assert parse_quantity("4.0") == 4
        assert parse_quantity("0") == 0

    def test_rejected_values(self):
        """Test fractional, negative and garbage quantities"""
        assert parse_quantity("1.5") is None
        assert parse_quantity("-1") is None
        assert parse_quantity("two") is None
        assert parse_quantity(None) is None
