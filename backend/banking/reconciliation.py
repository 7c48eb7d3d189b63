# banking/reconciliation.py
"""
Reconciliation arithmetic.

    reconciled_balance = opening_balance + sum(selected transaction amounts)
    difference         = statement_balance - reconciled_balance

A reconciliation can be completed only when |difference| is under the
same 0.01 tolerance the journal balance check uses. A positive difference
means the statement shows more money than the selected transactions
explain.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable

from accounting.balance import MONEY_Q, ZERO, check_magnitude, tolerance
from accounting.errors import ValidationError


def to_money(value, field: str = "amount") -> Decimal:
    """Signed amount parse (bank amounts may be negative), same size bound as journal lines."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}: {value!r}.", field=field)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid {field}: {value!r}.", field=field)
    if not amount.is_finite():
        raise ValidationError(f"Invalid {field}: {value!r}.", field=field)
    check_magnitude(amount, field)
    return amount


@dataclass(frozen=True)
class ReconciliationSummary:
    opening_balance: Decimal
    selected_total: Decimal
    statement_balance: Decimal

    @property
    def reconciled_balance(self) -> Decimal:
        return self.opening_balance + self.selected_total

    @property
    def difference(self) -> Decimal:
        return self.statement_balance - self.reconciled_balance

    @property
    def is_balanced(self) -> bool:
        return abs(self.difference) < tolerance()

    def as_dict(self) -> dict:
        return {
            "opening_balance": str(self.opening_balance.quantize(MONEY_Q)),
            "selected_total": str(self.selected_total.quantize(MONEY_Q)),
            "reconciled_balance": str(self.reconciled_balance.quantize(MONEY_Q)),
            "statement_balance": str(self.statement_balance.quantize(MONEY_Q)),
            "difference": str(self.difference.quantize(MONEY_Q)),
            "is_balanced": self.is_balanced,
        }


def compute_reconciliation(opening_balance, statement_balance, amounts: Iterable) -> ReconciliationSummary:
    selected_total = ZERO
    for amount in amounts:
        selected_total += to_money(amount)
    return ReconciliationSummary(
        opening_balance=to_money(opening_balance, "opening_balance"),
        selected_total=selected_total,
        statement_balance=to_money(statement_balance, "statement_balance"),
    )
