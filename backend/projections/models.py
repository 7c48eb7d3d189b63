# projections/models.py
"""
Projection models (materialized views).

These tables are DERIVED from events. They can be:
- Rebuilt from scratch by replaying events
- Updated incrementally as new events arrive

NEVER modify these tables directly. They are owned by their projections.
"""

from decimal import Decimal
from django.db import models
from django.conf import settings

from accounts.models import Business
from accounting.models import Account
from accounting.ledger import signed_movement
from events.models import BusinessEvent
from projections.write_barrier import write_context_allowed


class ProjectionOwnedModel(models.Model):
    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not write_context_allowed({"projection"}) and not getattr(settings, "TESTING", False):
            raise RuntimeError(
                f"{self.__class__.__name__} is a projection-owned read model. "
                "Direct saves are only allowed from projections within projection_writes_allowed()."
            )
        super().save(*args, **kwargs)


class AccountBalance(ProjectionOwnedModel):
    """
    Materialized account balance.

    Computed by consuming journal_entry.posted and journal_entry.voided
    events. A void applies the equal and opposite postings, so after
    post + void the totals move back to where they were.

    The balance follows the account's normal balance:
    - debit-normal accounts (assets, expenses): balance = debits - credits
    - credit-normal accounts (liabilities, equity, revenue): balance = credits - debits
    """

    business = models.ForeignKey(
        Business,
        on_delete=models.CASCADE,
        related_name="account_balances",
    )

    account = models.OneToOneField(
        Account,
        on_delete=models.CASCADE,
        related_name="projected_balance",
    )

    balance = models.DecimalField(
        max_digits=18,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Current balance (positive = normal direction)",
    )

    debit_total = models.DecimalField(
        max_digits=18,
        decimal_places=2,
        default=Decimal("0.00"),
    )

    credit_total = models.DecimalField(
        max_digits=18,
        decimal_places=2,
        default=Decimal("0.00"),
    )

    entry_count = models.IntegerField(
        default=0,
        help_text="Posted, non-voided entries touching this account",
    )

    last_entry_date = models.DateField(null=True, blank=True)

    last_event = models.ForeignKey(
        BusinessEvent,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
        help_text="Last event that updated this balance",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Account Balance"
        verbose_name_plural = "Account Balances"
        indexes = [
            models.Index(fields=["business", "account"], name="balance_business_account_idx"),
        ]

    def __str__(self):
        return f"{self.account.code}: {self.balance}"

    def apply_debit(self, amount: Decimal):
        self.debit_total += amount
        self._recalculate_balance()

    def apply_credit(self, amount: Decimal):
        self.credit_total += amount
        self._recalculate_balance()

    def _recalculate_balance(self):
        self.balance = signed_movement(self.account.normal_balance, self.debit_total, self.credit_total)


class ProjectionAppliedEvent(ProjectionOwnedModel):
    """
    Tracks which events were applied by each projection to ensure idempotency.
    """

    business = models.ForeignKey(
        Business,
        on_delete=models.CASCADE,
        related_name="applied_projection_events",
    )

    projection_name = models.CharField(max_length=100)

    event = models.ForeignKey(
        BusinessEvent,
        on_delete=models.CASCADE,
        related_name="+",
    )

    applied_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["business", "projection_name", "event"],
                name="uniq_projection_event",
            ),
        ]
        indexes = [
            models.Index(fields=["business", "projection_name"], name="applied_business_proj_idx"),
        ]

    def __str__(self):
        return f"{self.projection_name} applied {self.event_id}"
