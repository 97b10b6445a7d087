"""Tests for amount and date normalization."""

from datetime import date
from decimal import Decimal

import pytest

from banking_ingestion.mapping.normalizer import (
    format_amount,
    parse_amount,
    parse_date,
    probe_date,
)
from banking_kernel.exceptions import InvalidAmountError, InvalidDateError


class TestParseAmount:
    """Locale-aware amount parsing."""

    def test_plain_decimal(self):
        assert parse_amount("250.50") == Decimal("250.50")

    def test_negative_amount(self):
        assert parse_amount("-45.20") == Decimal("-45.20")

    def test_thousands_separator_removed(self):
        assert parse_amount("1,234.50") == Decimal("1234.50")

    def test_european_format(self):
        result = parse_amount("1 234,50", decimal_separator=",", thousands_separator=" ")
        assert result == Decimal("1234.50")

    def test_currency_symbols_stripped(self):
        assert parse_amount("€ 99.99") == Decimal("99.99")
        assert parse_amount("$1,000.00") == Decimal("1000.00")

    def test_parentheses_mean_negative(self):
        assert parse_amount("(12.34)") == Decimal("-12.34")

    def test_parentheses_with_european_format(self):
        result = parse_amount("(1 234,50 €)", decimal_separator=",", thousands_separator=" ")
        assert result == Decimal("-1234.50")

    def test_precision_preserved(self):
        assert parse_amount("0.10") == Decimal("0.10")
        assert parse_amount("0.1") + parse_amount("0.2") == Decimal("0.3")

    def test_empty_cell_rejected(self):
        with pytest.raises(InvalidAmountError) as exc_info:
            parse_amount("   ")
        assert exc_info.value.reason == "empty amount"
        assert exc_info.value.code == "INVALID_AMOUNT"

    def test_garbage_rejected(self):
        with pytest.raises(InvalidAmountError) as exc_info:
            parse_amount("abc")
        assert exc_info.value.raw == "abc"

    @pytest.mark.parametrize("raw", ["NaN", "Infinity", "-inf"])
    def test_non_finite_rejected(self, raw):
        with pytest.raises(InvalidAmountError):
            parse_amount(raw)


class TestParseDate:
    """Explicit-layout date parsing."""

    def test_iso(self):
        assert parse_date("2024-03-15", "%Y-%m-%d") == date(2024, 3, 15)

    def test_estonian(self):
        assert parse_date("15.03.2024", "%d.%m.%Y") == date(2024, 3, 15)

    def test_surrounding_whitespace_ignored(self):
        assert parse_date("  2024-03-15 ", "%Y-%m-%d") == date(2024, 3, 15)

    def test_wrong_layout_rejected(self):
        with pytest.raises(InvalidDateError) as exc_info:
            parse_date("15.03.2024", "%Y-%m-%d")
        assert exc_info.value.raw == "15.03.2024"
        assert exc_info.value.reason

    def test_impossible_date_rejected(self):
        with pytest.raises(InvalidDateError):
            parse_date("2024-02-30", "%Y-%m-%d")


class TestProbeDate:
    """Unknown-layout date probing."""

    @pytest.mark.parametrize("raw,expected", [
        ("2024-03-15", date(2024, 3, 15)),
        ("15.03.2024", date(2024, 3, 15)),
        ("03/15/2024", date(2024, 3, 15)),
        ("15/03/2024", date(2024, 3, 15)),
        ("2024/03/15", date(2024, 3, 15)),
        ("15-03-2024", date(2024, 3, 15)),
        ("2024-03-15T10:30:00", date(2024, 3, 15)),
    ])
    def test_known_layouts(self, raw, expected):
        assert probe_date(raw) == expected

    def test_ambiguous_day_month_prefers_us(self):
        assert probe_date("04/05/2024") == date(2024, 4, 5)

    def test_unparseable_rejected(self):
        with pytest.raises(InvalidDateError):
            probe_date("yesterday")


class TestFormatAmount:

    def test_grouping_and_rounding(self):
        assert format_amount(Decimal("-1234567.891")) == "-1,234,567.89"

    def test_half_up(self):
        assert format_amount(Decimal("0.125")) == "0.13"

    def test_custom_decimals(self):
        assert format_amount(Decimal("5"), decimals=3) == "5.000"
