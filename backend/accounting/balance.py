# accounting/balance.py
"""
The balance validator.

One function decides whether a set of journal lines balances. Entry
creation, entry edits, posting, and the live indicator endpoint
(POST /api/accounting/journal-entries/validate/) all call it, so what the
editor shows is exactly what the server accepts.

Amounts are Decimals end to end. The comparison keeps a tolerance of
0.01 (settings.BALANCE_TOLERANCE) because upstream producers may send
float-rounded strings; tightening it to exact equality would reject
entries the product has always accepted.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Mapping, Any

from django.conf import settings

from accounting.errors import ValidationError, InsufficientLines, UnbalancedEntry


MONEY_Q = Decimal("0.01")
ZERO = Decimal("0.00")
MIN_LINES = 2

# Amount columns are DecimalField(max_digits=18, decimal_places=2).
MAX_INTEGER_DIGITS = 16


def tolerance() -> Decimal:
    return Decimal(str(getattr(settings, "BALANCE_TOLERANCE", "0.01")))


@dataclass(frozen=True)
class BalanceSummary:
    total_debit: Decimal
    total_credit: Decimal
    is_balanced: bool

    @property
    def difference(self) -> Decimal:
        return self.total_debit - self.total_credit

    def as_dict(self) -> dict:
        return {
            "total_debit": str(self.total_debit.quantize(MONEY_Q)),
            "total_credit": str(self.total_credit.quantize(MONEY_Q)),
            "difference": str(self.difference.quantize(MONEY_Q)),
            "is_balanced": self.is_balanced,
        }


def parse_amount(value, field: str = "amount") -> Decimal:
    """
    Parse a line amount.

    None and "" mean zero. Strings, ints and Decimals are accepted; floats
    go through str() so 0.1 stays 0.1. Negative or unparsable amounts raise
    ValidationError, and so do amounts with more than MAX_INTEGER_DIGITS
    digits before the decimal point.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}: {value!r}.", field=field)
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f"Invalid {field}: {value!r}.", field=field)
    if not amount.is_finite():
        raise ValidationError(f"Invalid {field}: {value!r}.", field=field)
    if amount < 0:
        raise ValidationError(f"{field.capitalize()} cannot be negative.", field=field)
    check_magnitude(amount, field)
    return amount


def check_magnitude(amount: Decimal, field: str = "amount") -> None:
    if amount and amount.adjusted() >= MAX_INTEGER_DIGITS:
        raise ValidationError(
            f"{field.capitalize()} is too large: at most {MAX_INTEGER_DIGITS} digits before the decimal point.",
            field=field,
        )


def round_money(amount: Decimal, field: str = "amount") -> Decimal:
    """Round half-up to cents, re-checking the bound the rounding can cross."""
    try:
        rounded = amount.quantize(MONEY_Q, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(f"Invalid {field}: {amount!r}.", field=field)
    check_magnitude(rounded, field)
    return rounded


def _amounts(line: Mapping[str, Any]):
    return parse_amount(line.get("debit"), "debit"), parse_amount(line.get("credit"), "credit")


def summarize_lines(lines: Iterable[Mapping[str, Any]]) -> BalanceSummary:
    """Totals and balanced flag for any number of lines (pure)."""
    total_debit = ZERO
    total_credit = ZERO
    for line in lines:
        debit, credit = _amounts(line)
        total_debit += debit
        total_credit += credit
    return BalanceSummary(
        total_debit=total_debit,
        total_credit=total_credit,
        is_balanced=abs(total_debit - total_credit) < tolerance(),
    )


def validate_lines(lines) -> BalanceSummary:
    """Structural check (at least two lines) followed by summarize_lines."""
    lines = list(lines or [])
    if len(lines) < MIN_LINES:
        raise InsufficientLines(len(lines))
    return summarize_lines(lines)


def require_balanced(lines) -> BalanceSummary:
    """validate_lines, then raise UnbalancedEntry unless the lines balance."""
    summary = validate_lines(lines)
    if not summary.is_balanced:
        raise UnbalancedEntry(summary.total_debit, summary.total_credit)
    return summary


def normalize_lines(lines) -> list:
    """
    Copy of `lines` with debit and credit parsed and rounded to cents.

    Commands store amounts at two decimal places, so the balance check runs
    on the rounded figures; the validate endpoint does the same.
    """
    normalized = []
    for line in lines or []:
        debit, credit = _amounts(line)
        normalized.append({
            **line,
            "debit": round_money(debit, "debit"),
            "credit": round_money(credit, "credit"),
        })
    return normalized
