# tests/test_balance.py
"""
Tests for the balance validator.

These are pure tests: no database, no Django models. Every caller of the
validator (commands, the validate endpoint, posting) goes through the
functions exercised here.
"""

import random
from decimal import Decimal

import pytest

from accounting.balance import (
    summarize_lines,
    validate_lines,
    require_balanced,
    normalize_lines,
    parse_amount,
)
from accounting.errors import InsufficientLines, UnbalancedEntry, ValidationError


def _line(debit="0", credit="0"):
    return {"debit": debit, "credit": credit}


# =============================================================================
# is_balanced == |sum(debit) - sum(credit)| < 0.01
# =============================================================================

class TestBalancedFlag:

    @pytest.mark.parametrize("seed", range(25))
    def test_random_line_sets_match_definition(self, seed):
        rng = random.Random(seed)
        lines = []
        for _ in range(rng.randint(0, 8)):
            cents = rng.randint(0, 1_000_000)
            amount = (Decimal(cents) / 1000).quantize(Decimal("0.001"))
            if rng.random() < 0.5:
                lines.append(_line(debit=str(amount)))
            else:
                lines.append(_line(credit=str(amount)))

        total_debit = sum((Decimal(l["debit"]) for l in lines), Decimal("0"))
        total_credit = sum((Decimal(l["credit"]) for l in lines), Decimal("0"))

        summary = summarize_lines(lines)
        assert summary.total_debit == total_debit
        assert summary.total_credit == total_credit
        assert summary.is_balanced == (abs(total_debit - total_credit) < Decimal("0.01"))

    @pytest.mark.parametrize("debit, credit, expected", [
        ("100.00", "100.00", True),
        ("100.00", "99.995", True),
        ("100.00", "99.991", True),
        ("100.00", "99.99", False),
        ("100.00", "90.00", False),
        ("0", "0", True),
    ])
    def test_tolerance_boundary(self, debit, credit, expected):
        summary = summarize_lines([_line(debit=debit), _line(credit=credit)])
        assert summary.is_balanced is expected

    def test_floats_are_read_through_str(self):
        summary = summarize_lines([_line(debit=0.1), _line(debit=0.2), _line(credit="0.3")])
        assert summary.total_debit == Decimal("0.3")
        assert summary.is_balanced

    def test_empty_amounts_are_zero(self):
        summary = summarize_lines([{"debit": None, "credit": ""}, {}])
        assert summary.total_debit == Decimal("0.00")
        assert summary.total_credit == Decimal("0.00")

    def test_as_dict_reports_difference(self):
        payload = summarize_lines([_line(debit="100"), _line(credit="90")]).as_dict()
        assert payload == {
            "total_debit": "100.00",
            "total_credit": "90.00",
            "difference": "10.00",
            "is_balanced": False,
        }


# =============================================================================
# Structural and rejection rules
# =============================================================================

class TestRequireBalanced:

    @pytest.mark.parametrize("lines", [[], [_line(debit="10")]])
    def test_fewer_than_two_lines(self, lines):
        with pytest.raises(InsufficientLines) as exc_info:
            validate_lines(lines)
        assert exc_info.value.context["line_count"] == len(lines)

    def test_unbalanced_carries_totals(self):
        with pytest.raises(UnbalancedEntry) as exc_info:
            require_balanced([_line(debit="100.00"), _line(credit="90.00")])
        assert exc_info.value.total_debit == Decimal("100.00")
        assert exc_info.value.total_credit == Decimal("90.00")
        assert exc_info.value.as_dict()["difference"] == "10.00"

    def test_balanced_returns_summary(self):
        summary = require_balanced([_line(debit="50"), _line(debit="50"), _line(credit="100")])
        assert summary.is_balanced
        assert summary.total_debit == Decimal("100")

    @pytest.mark.parametrize("value", ["-5", "abc", "NaN", "Infinity", True])
    def test_bad_amounts_rejected(self, value):
        with pytest.raises(ValidationError):
            parse_amount(value, "debit")


class TestNormalizeLines:

    def test_rounds_half_up_to_cents(self):
        lines = normalize_lines([_line(debit="10.005"), _line(credit="10.004", debit=None)])
        assert lines[0]["debit"] == Decimal("10.01")
        assert lines[1]["credit"] == Decimal("10.00")
        assert lines[1]["debit"] == Decimal("0.00")

    def test_keeps_other_keys(self):
        lines = normalize_lines([{"account_id": "a", "debit": "1", "credit": "0", "description": "x"}])
        assert lines[0]["account_id"] == "a"
        assert lines[0]["description"] == "x"

    def test_rounded_figures_decide_balance(self):
        # Each 0.005 rounds up to 0.01, so debits total 0.02 against 0.01.
        lines = normalize_lines([_line(debit="0.005"), _line(debit="0.005"), _line(credit="0.01")])
        assert not summarize_lines(lines).is_balanced


# =============================================================================
# Amount size limit (16 digits before the decimal point)
# =============================================================================

class TestAmountLimit:

    @pytest.mark.parametrize("value", ["1e30", "12345678901234567890.12", "10000000000000000"])
    def test_oversized_amounts_rejected(self, value):
        with pytest.raises(ValidationError) as exc_info:
            parse_amount(value, "credit")
        assert exc_info.value.context["field"] == "credit"

    def test_largest_storable_amount_accepted(self):
        assert parse_amount("9999999999999999.99") == Decimal("9999999999999999.99")

    def test_zero_with_large_exponent_is_zero(self):
        assert parse_amount("0E+30") == 0

    def test_rounding_past_the_limit_rejected(self):
        with pytest.raises(ValidationError):
            normalize_lines([_line(debit="9999999999999999.995")])

    def test_summary_of_oversized_lines_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            summarize_lines([_line(debit="1e30"), _line(credit="1e30")])
