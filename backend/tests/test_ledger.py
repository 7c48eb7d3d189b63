# tests/test_ledger.py
"""
Tests for the pure ledger and trial balance builders.
"""

from datetime import date
from decimal import Decimal

import pytest

from accounting.ledger import (
    LedgerAccount,
    Posting,
    build_ledger,
    build_trial_balance,
    signed_movement,
    split_net,
    DEBIT,
    CREDIT,
)


CASH = LedgerAccount("cash", "1000", "Cash", "asset", DEBIT)
PAYABLE = LedgerAccount("payable", "2000", "Accounts Payable", "liability", CREDIT)
REVENUE = LedgerAccount("revenue", "4000", "Sales Revenue", "revenue", CREDIT)
EXPENSE = LedgerAccount("expense", "5000", "Office Expense", "expense", DEBIT)
ACCOUNTS = {a.account_id: a for a in (CASH, PAYABLE, REVENUE, EXPENSE)}


def _entry(number, entry_date, *legs):
    """legs: (account, debit, credit) tuples -> Posting list."""
    return [
        Posting(
            entry_id=f"id-{number}",
            entry_number=number,
            entry_date=entry_date,
            line_order=order,
            account_id=account.account_id,
            debit=Decimal(debit),
            credit=Decimal(credit),
            description=f"{number} line {order}",
        )
        for order, (account, debit, credit) in enumerate(legs, start=1)
    ]


@pytest.fixture
def postings():
    return (
        _entry("JE-000002", date(2026, 1, 15), (EXPENSE, "40.00", "0"), (CASH, "0", "40.00"))
        + _entry("JE-000001", date(2026, 1, 10), (CASH, "100.00", "0"), (REVENUE, "0", "100.00"))
        + _entry("JE-000003", date(2026, 2, 1), (EXPENSE, "25.00", "0"), (PAYABLE, "0", "25.00"))
    )


class TestSignConvention:

    def test_signed_movement(self):
        assert signed_movement(DEBIT, Decimal("10"), Decimal("3")) == Decimal("7")
        assert signed_movement(CREDIT, Decimal("10"), Decimal("3")) == Decimal("-7")

    @pytest.mark.parametrize("normal, net, expected", [
        (DEBIT, Decimal("5"), (Decimal("5"), Decimal("0"))),
        (DEBIT, Decimal("-5"), (Decimal("0"), Decimal("5"))),
        (CREDIT, Decimal("5"), (Decimal("0"), Decimal("5"))),
        (CREDIT, Decimal("-5"), (Decimal("5"), Decimal("0"))),
    ])
    def test_split_net_uses_one_column(self, normal, net, expected):
        assert split_net(normal, net) == expected


class TestBuildLedger:

    def test_orders_by_date_then_number(self, postings):
        rows = build_ledger(postings, ACCOUNTS)
        assert [(r.entry_number, r.account_code) for r in rows] == [
            ("JE-000001", "1000"),
            ("JE-000001", "4000"),
            ("JE-000002", "5000"),
            ("JE-000002", "1000"),
            ("JE-000003", "5000"),
            ("JE-000003", "2000"),
        ]

    def test_running_balance_per_account(self, postings):
        rows = build_ledger(postings, {"cash": CASH})
        assert [r.running_balance for r in rows] == [Decimal("100.00"), Decimal("60.00")]

        rows = build_ledger(postings, {"expense": EXPENSE})
        assert [r.running_balance for r in rows] == [Decimal("40.00"), Decimal("65.00")]

    def test_credit_normal_balance_grows_with_credits(self, postings):
        rows = build_ledger(postings, {"revenue": REVENUE})
        assert rows[0].running_balance == Decimal("100.00")

    def test_start_date_carries_opening_balance(self, postings):
        rows = build_ledger(postings, {"cash": CASH}, start_date=date(2026, 1, 12))
        assert len(rows) == 1
        assert rows[0].entry_number == "JE-000002"
        assert rows[0].running_balance == Decimal("60.00")

    def test_end_date_cuts_off(self, postings):
        rows = build_ledger(postings, ACCOUNTS, end_date=date(2026, 1, 31))
        assert {r.entry_number for r in rows} == {"JE-000001", "JE-000002"}

    def test_same_input_same_output(self, postings):
        assert build_ledger(postings, ACCOUNTS) == build_ledger(list(reversed(postings)), ACCOUNTS)

    def test_as_dict(self, postings):
        row = build_ledger(postings, {"cash": CASH})[0].as_dict()
        assert row["entry_date"] == "2026-01-10"
        assert row["debit"] == "100.00"
        assert row["credit"] == "0.00"
        assert row["running_balance"] == "100.00"


class TestBuildTrialBalance:

    def test_totals_match_for_balanced_entries(self, postings):
        tb = build_trial_balance(postings, ACCOUNTS)
        assert tb.total_debits == tb.total_credits == Decimal("125.00")
        assert tb.is_balanced

    def test_one_row_per_account_sorted_by_code(self, postings):
        tb = build_trial_balance(postings, ACCOUNTS)
        assert [(r.code, r.debit, r.credit) for r in tb.accounts] == [
            ("1000", Decimal("60.00"), Decimal("0")),
            ("2000", Decimal("0"), Decimal("25.00")),
            ("4000", Decimal("0"), Decimal("100.00")),
            ("5000", Decimal("65.00"), Decimal("0")),
        ]

    def test_as_of_date(self, postings):
        tb = build_trial_balance(postings, ACCOUNTS, as_of_date=date(2026, 1, 10))
        assert [r.code for r in tb.accounts] == ["1000", "4000"]
        assert tb.total_debits == Decimal("100.00")

    def test_account_netting_to_zero_keeps_a_row(self):
        postings = (
            _entry("JE-000001", date(2026, 1, 1), (CASH, "50", "0"), (REVENUE, "0", "50"))
            + _entry("JE-000002", date(2026, 1, 2), (REVENUE, "50", "0"), (CASH, "0", "50"))
        )
        tb = build_trial_balance(postings, ACCOUNTS)
        assert len(tb.accounts) == 2
        assert all(r.debit == 0 and r.credit == 0 for r in tb.accounts)
        assert tb.is_balanced

    def test_empty(self):
        tb = build_trial_balance([], ACCOUNTS)
        assert tb.accounts == []
        assert tb.as_dict()["total_debits"] == "0.00"
        assert tb.is_balanced
