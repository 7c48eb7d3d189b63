# projections/account_balance.py
"""
Account Balance Projection.

Maintains account balances incrementally. It consumes:
- journal_entry.posted: apply the entry's debits and credits
- journal_entry.voided: apply the equal and opposite postings

After post + void the account's totals are back where they started, which
matches the derived ledger (accounting/ledger.py) where voided entries are
left out entirely.
"""

from collections import OrderedDict
from datetime import date
from decimal import Decimal
from typing import List, Dict, Any
import logging

from accounts.models import Business
from accounting.ledger import split_net
from accounting.models import Account
from events.models import BusinessEvent
from events.types import EventTypes
from projections.base import BaseProjection, projection_registry
from projections.models import AccountBalance


logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def _line_totals(lines) -> "OrderedDict[str, Dict[str, Decimal]]":
    """Sum an event's lines per account (an entry may hit one account twice)."""
    totals: "OrderedDict[str, Dict[str, Decimal]]" = OrderedDict()
    for line_data in lines:
        account_public_id = line_data.get("account_public_id")
        if not account_public_id:
            continue
        bucket = totals.setdefault(account_public_id, {"debit": ZERO, "credit": ZERO})
        bucket["debit"] += Decimal(str(line_data.get("debit") or "0"))
        bucket["credit"] += Decimal(str(line_data.get("credit") or "0"))
    return totals


class AccountBalanceProjection(BaseProjection):
    """
    Maintains materialized account balances from journal entry events.

    Event Flow:
    1. Command posts (or voids) a journal entry
    2. journal_entry.posted / journal_entry.voided is emitted
    3. This projection consumes the event
    4. AccountBalance records are updated

    Idempotent: ProjectionAppliedEvent guards the event as a whole and
    last_event guards each balance row.
    """

    @property
    def name(self) -> str:
        return "account_balance"

    @property
    def consumes(self) -> List[str]:
        return [
            EventTypes.JOURNAL_ENTRY_POSTED,
            EventTypes.JOURNAL_ENTRY_VOIDED,
        ]

    def handle(self, event: BusinessEvent) -> None:
        if event.event_type == EventTypes.JOURNAL_ENTRY_POSTED:
            sign = 1
        elif event.event_type == EventTypes.JOURNAL_ENTRY_VOIDED:
            sign = -1
        else:
            logger.warning("Unknown event type: %s", event.event_type)
            return

        data = event.get_data()
        lines = data.get("lines", [])
        if not lines:
            logger.warning("Entry %s has no lines in %s", data.get("entry_public_id"), event.event_type)
            return

        entry_date = date.fromisoformat(data["entry_date"]) if data.get("entry_date") else None

        for account_public_id, totals in _line_totals(lines).items():
            self._apply(
                business=event.business,
                account_public_id=account_public_id,
                debit=sign * totals["debit"],
                credit=sign * totals["credit"],
                entry_delta=sign,
                entry_date=entry_date if sign > 0 else None,
                event=event,
            )

    def _apply(
        self,
        business: Business,
        account_public_id: str,
        debit: Decimal,
        credit: Decimal,
        entry_delta: int,
        entry_date,
        event: BusinessEvent,
    ) -> None:
        try:
            account = Account.objects.get(public_id=account_public_id, business=business)
        except Account.DoesNotExist:
            raise RuntimeError(
                f"Account {account_public_id} not found for business {business.id} in event {event.id}"
            )

        # Row lock: concurrent posts to the same account serialize here.
        balance = AccountBalance.objects.select_for_update().filter(
            business=business,
            account=account,
        ).first()
        if balance is None:
            balance = AccountBalance(business=business, account=account)

        if balance.last_event_id == event.id:
            logger.debug("Event %s already applied to account %s", event.id, account.code)
            return

        balance.apply_debit(debit)
        balance.apply_credit(credit)
        balance.entry_count += entry_delta

        if entry_date and (not balance.last_entry_date or entry_date > balance.last_entry_date):
            balance.last_entry_date = entry_date

        balance.last_event = event
        balance.save()

        logger.debug(
            "Updated balance for %s: debit=%s credit=%s balance=%s",
            account.code, debit, credit, balance.balance,
        )

    def _clear_projected_data(self, business: Business) -> None:
        cleared = AccountBalance.objects.filter(business=business).update(
            balance=ZERO,
            debit_total=ZERO,
            credit_total=ZERO,
            entry_count=0,
            last_entry_date=None,
            last_event=None,
        )
        logger.info("Reset %s AccountBalance records for %s", cleared, business.name)

    def get_trial_balance(self, business: Business) -> Dict[str, Any]:
        """
        Current trial balance from projected balances.

        Same column rule as accounting.ledger.build_trial_balance; the two
        must agree whenever the projection is caught up.
        """
        balances = AccountBalance.objects.filter(
            business=business,
        ).select_related("account").order_by("account__code")

        accounts = []
        total_debit = ZERO
        total_credit = ZERO

        for bal in balances:
            if bal.debit_total == 0 and bal.credit_total == 0:
                continue
            account = bal.account
            debit, credit = split_net(account.normal_balance, bal.balance)
            accounts.append({
                "account_id": str(account.public_id),
                "code": account.code,
                "name": account.name,
                "account_type": account.account_type,
                "normal_balance": account.normal_balance,
                "debit": str(debit),
                "credit": str(credit),
                "balance": str(bal.balance),
            })
            total_debit += debit
            total_credit += credit

        return {
            "as_of_date": date.today().isoformat(),
            "accounts": accounts,
            "total_debit": str(total_debit),
            "total_credit": str(total_credit),
            "is_balanced": total_debit == total_credit,
        }

    def verify_all_balances(self, business: Business) -> Dict[str, Any]:
        """
        Verify all projected balances by replaying events.

        Expected totals are posted lines minus voided lines per account.
        """
        expected_totals: Dict[str, Dict[str, Decimal]] = {}
        events_processed = 0

        events = BusinessEvent.objects.filter(
            business=business,
            event_type__in=self.consumes,
        ).order_by("business_sequence")

        for event in events:
            sign = -1 if event.event_type == EventTypes.JOURNAL_ENTRY_VOIDED else 1
            for account_public_id, totals in _line_totals(event.get_data().get("lines", [])).items():
                expected = expected_totals.setdefault(account_public_id, {"debit": ZERO, "credit": ZERO})
                expected["debit"] += sign * totals["debit"]
                expected["credit"] += sign * totals["credit"]
            events_processed += 1

        balances = AccountBalance.objects.filter(business=business).select_related("account")

        mismatches = []
        verified = 0

        for bal in balances:
            account_id = str(bal.account.public_id)
            expected = expected_totals.get(account_id, {"debit": ZERO, "credit": ZERO})

            if bal.debit_total != expected["debit"] or bal.credit_total != expected["credit"]:
                mismatches.append({
                    "account_code": bal.account.code,
                    "account_public_id": account_id,
                    "projected_debit": str(bal.debit_total),
                    "projected_credit": str(bal.credit_total),
                    "expected_debit": str(expected["debit"]),
                    "expected_credit": str(expected["credit"]),
                })
            else:
                verified += 1

        projected_ids = {str(bal.account.public_id) for bal in balances}
        for account_id, totals in expected_totals.items():
            if account_id not in projected_ids:
                mismatches.append({
                    "account_code": "(missing projection)",
                    "account_public_id": account_id,
                    "projected_debit": "0.00",
                    "projected_credit": "0.00",
                    "expected_debit": str(totals["debit"]),
                    "expected_credit": str(totals["credit"]),
                })

        return {
            "total_accounts": balances.count(),
            "verified": verified,
            "mismatches": mismatches,
            "events_processed": events_processed,
        }


projection_registry.register(AccountBalanceProjection())
