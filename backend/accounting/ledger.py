# accounting/ledger.py
"""
Ledger and trial balance derivation.

The builders are pure: they take Posting records (one per journal line of
a posted entry) and a mapping of account id -> LedgerAccount, and return
frozen results. The query wrappers at the bottom load postings for a
business and apply the actor's permissions.

Only entries whose status is `posted` produce postings. A voided entry's
original lines are left out entirely, so nothing has to be netted against
a reversal here. (The AccountBalance projection reaches the same numbers
by applying the opposite postings when the void event arrives.)
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from django.core.exceptions import ValidationError as DjangoValidationError

from accounting.balance import MONEY_Q, ZERO, tolerance
from accounting.errors import NotFound, ValidationError


DEBIT = "debit"
CREDIT = "credit"


@dataclass(frozen=True)
class LedgerAccount:
    account_id: str
    code: str
    name: str
    account_type: str
    normal_balance: str

    @classmethod
    def from_account(cls, account) -> "LedgerAccount":
        return cls(
            account_id=str(account.public_id),
            code=account.code,
            name=account.name,
            account_type=account.account_type,
            normal_balance=account.normal_balance,
        )


@dataclass(frozen=True)
class Posting:
    entry_id: str
    entry_number: str
    entry_date: date
    line_order: int
    account_id: str
    debit: Decimal
    credit: Decimal
    description: str = ""

    @property
    def sort_key(self):
        return (self.entry_date, self.entry_number, self.line_order)


def signed_movement(normal_balance: str, debit: Decimal, credit: Decimal) -> Decimal:
    """Balance movement of one posting in the account's own sign convention."""
    if normal_balance == DEBIT:
        return debit - credit
    return credit - debit


def split_net(normal_balance: str, net: Decimal) -> Tuple[Decimal, Decimal]:
    """
    Place an account's net position in exactly one trial balance column.

    `net` is in the account's sign convention (positive = normal side).
    Returns (debit, credit); one of them is always zero.
    """
    if normal_balance == DEBIT:
        return (net, ZERO) if net >= 0 else (ZERO, -net)
    return (ZERO, net) if net >= 0 else (-net, ZERO)


# =============================================================================
# Ledger
# =============================================================================

@dataclass(frozen=True)
class LedgerEntry:
    entry_id: str
    entry_number: str
    entry_date: date
    account_id: str
    account_code: str
    account_name: str
    description: str
    debit: Decimal
    credit: Decimal
    running_balance: Decimal

    def as_dict(self) -> dict:
        return {
            "entry_id": self.entry_id,
            "entry_number": self.entry_number,
            "entry_date": self.entry_date.isoformat(),
            "account_id": self.account_id,
            "account_code": self.account_code,
            "account_name": self.account_name,
            "description": self.description,
            "debit": str(self.debit.quantize(MONEY_Q)),
            "credit": str(self.credit.quantize(MONEY_Q)),
            "running_balance": str(self.running_balance.quantize(MONEY_Q)),
        }


def build_ledger(
    postings: Iterable[Posting],
    accounts: Mapping[str, LedgerAccount],
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[LedgerEntry]:
    """
    Per-account running balances, ordered by (entry_date, entry_number, line_order).

    Postings dated before start_date are not listed but still count toward
    the running balance the first listed row starts from. Postings after
    end_date are ignored.
    """
    running: Dict[str, Decimal] = {}
    rows: List[LedgerEntry] = []

    for posting in sorted(postings, key=lambda p: p.sort_key):
        if end_date and posting.entry_date > end_date:
            break
        account = accounts.get(posting.account_id)
        if account is None:
            continue

        balance = running.get(posting.account_id, ZERO) + signed_movement(
            account.normal_balance, posting.debit, posting.credit
        )
        running[posting.account_id] = balance

        if start_date and posting.entry_date < start_date:
            continue

        rows.append(LedgerEntry(
            entry_id=posting.entry_id,
            entry_number=posting.entry_number,
            entry_date=posting.entry_date,
            account_id=account.account_id,
            account_code=account.code,
            account_name=account.name,
            description=posting.description,
            debit=posting.debit,
            credit=posting.credit,
            running_balance=balance,
        ))

    return rows


# =============================================================================
# Trial balance
# =============================================================================

@dataclass(frozen=True)
class TrialBalanceRow:
    account_id: str
    code: str
    name: str
    account_type: str
    normal_balance: str
    debit: Decimal
    credit: Decimal

    def as_dict(self) -> dict:
        return {
            "account_id": self.account_id,
            "code": self.code,
            "name": self.name,
            "account_type": self.account_type,
            "normal_balance": self.normal_balance,
            "debit": str(self.debit.quantize(MONEY_Q)),
            "credit": str(self.credit.quantize(MONEY_Q)),
        }


@dataclass(frozen=True)
class TrialBalance:
    as_of_date: Optional[date]
    accounts: List[TrialBalanceRow] = field(default_factory=list)
    total_debits: Decimal = ZERO
    total_credits: Decimal = ZERO

    @property
    def difference(self) -> Decimal:
        return self.total_debits - self.total_credits

    @property
    def is_balanced(self) -> bool:
        return abs(self.difference) < tolerance()

    def as_dict(self) -> dict:
        return {
            "as_of_date": self.as_of_date.isoformat() if self.as_of_date else None,
            "accounts": [row.as_dict() for row in self.accounts],
            "total_debits": str(self.total_debits.quantize(MONEY_Q)),
            "total_credits": str(self.total_credits.quantize(MONEY_Q)),
            "difference": str(self.difference.quantize(MONEY_Q)),
            "is_balanced": self.is_balanced,
        }


def build_trial_balance(
    postings: Iterable[Posting],
    accounts: Mapping[str, LedgerAccount],
    as_of_date: Optional[date] = None,
) -> TrialBalance:
    """
    Net debit or credit per account with activity, plus grand totals.

    An account with activity whose postings net to zero still gets a row
    (both columns zero); accounts with no postings at all are omitted.
    """
    sums: Dict[str, List[Decimal]] = {}
    for posting in postings:
        if as_of_date and posting.entry_date > as_of_date:
            continue
        if posting.debit == 0 and posting.credit == 0:
            continue
        bucket = sums.setdefault(posting.account_id, [ZERO, ZERO])
        bucket[0] += posting.debit
        bucket[1] += posting.credit

    rows = []
    total_debits = ZERO
    total_credits = ZERO
    for account_id, (debit_sum, credit_sum) in sums.items():
        account = accounts.get(account_id)
        if account is None:
            continue
        net = signed_movement(account.normal_balance, debit_sum, credit_sum)
        debit, credit = split_net(account.normal_balance, net)
        rows.append(TrialBalanceRow(
            account_id=account.account_id,
            code=account.code,
            name=account.name,
            account_type=account.account_type,
            normal_balance=account.normal_balance,
            debit=debit,
            credit=credit,
        ))
        total_debits += debit
        total_credits += credit

    rows.sort(key=lambda row: row.code)
    return TrialBalance(
        as_of_date=as_of_date,
        accounts=rows,
        total_debits=total_debits,
        total_credits=total_credits,
    )


# =============================================================================
# Queries
# =============================================================================

def posted_postings(business, as_of_date: Optional[date] = None, account=None) -> List[Posting]:
    """Lines of the business's posted entries as Posting records."""
    from accounting.models import JournalEntry, JournalLine

    lines = JournalLine.objects.filter(
        business=business,
        entry__status=JournalEntry.Status.POSTED,
    ).select_related("entry", "account")
    if as_of_date:
        lines = lines.filter(entry__entry_date__lte=as_of_date)
    if account is not None:
        lines = lines.filter(account=account)

    return [
        Posting(
            entry_id=str(line.entry.public_id),
            entry_number=line.entry.entry_number,
            entry_date=line.entry.entry_date,
            line_order=line.line_order,
            account_id=str(line.account.public_id),
            debit=line.debit,
            credit=line.credit,
            description=line.description or line.entry.description,
        )
        for line in lines
    ]


def _ledger_accounts(business) -> Dict[str, LedgerAccount]:
    from accounting.models import Account

    return {
        str(account.public_id): LedgerAccount.from_account(account)
        for account in Account.objects.filter(business=business)
    }


def _parse_date(value, field_name: str) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"{field_name} must be an ISO date (YYYY-MM-DD).", field=field_name)


def get_trial_balance(actor, as_of_date=None) -> TrialBalance:
    """Trial balance over the actor's business, optionally as of a date."""
    from accounts.authz import require

    require(actor, "reports.view")
    as_of = _parse_date(as_of_date, "as_of_date")
    return build_trial_balance(
        posted_postings(actor.business, as_of_date=as_of),
        _ledger_accounts(actor.business),
        as_of_date=as_of,
    )


def get_ledger(actor, account_id=None, start_date=None, end_date=None) -> List[LedgerEntry]:
    """
    Ledger rows for one account (account_id given) or for every account.

    An account id that does not resolve inside the actor's business,
    including one that belongs to another business, is NotFound.
    """
    from accounts.authz import require
    from accounting.models import Account

    require(actor, "reports.view")
    start = _parse_date(start_date, "start_date")
    end = _parse_date(end_date, "end_date")
    if start and end and start > end:
        raise ValidationError("start_date must not be after end_date.", field="start_date")

    account = None
    if account_id:
        try:
            account = Account.objects.get(business=actor.business, public_id=account_id)
        except (Account.DoesNotExist, ValueError, TypeError, DjangoValidationError):
            raise NotFound("Account", account_id)
        accounts = {str(account.public_id): LedgerAccount.from_account(account)}
    else:
        accounts = _ledger_accounts(actor.business)

    return build_ledger(
        posted_postings(actor.business, as_of_date=end, account=account),
        accounts,
        start_date=start,
        end_date=end,
    )

