# banking/models.py
"""
Bank accounts, bank transactions and reconciliations.

These are command-owned write models: banking/commands.py writes them
directly inside command_writes_allowed() and emits events for the audit
trail. Nothing else may save them.
"""
import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Sum

from accounts.models import Business
from accounting.models import Account
from projections.write_barrier import write_context_allowed


class CommandOwnedModel(models.Model):
    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not write_context_allowed({"command", "bootstrap"}) and not getattr(settings, "TESTING", False):
            raise RuntimeError(
                f"{self.__class__.__name__} is a command-owned write model. "
                "Use banking.commands to modify it."
            )
        super().save(*args, **kwargs)


class BankAccount(CommandOwnedModel):
    business = models.ForeignKey(
        Business,
        on_delete=models.CASCADE,
        related_name="bank_accounts",
    )
    public_id = models.UUIDField(default=uuid.uuid4, editable=False, unique=True)
    name = models.CharField(max_length=255)
    gl_account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="bank_accounts",
    )
    opening_balance = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["business", "name"],
                name="uniq_bank_account_name_per_business",
            ),
        ]

    def __str__(self):
        return self.name

    def reconciled_balance(self) -> Decimal:
        """Opening balance plus every transaction already reconciled."""
        reconciled = self.transactions.filter(is_reconciled=True).aggregate(total=Sum("amount"))["total"]
        return self.opening_balance + (reconciled or Decimal("0.00"))


class BankTransaction(CommandOwnedModel):
    """A statement line. Deposits are positive, withdrawals negative."""

    business = models.ForeignKey(
        Business,
        on_delete=models.CASCADE,
        related_name="bank_transactions",
    )
    bank_account = models.ForeignKey(
        BankAccount,
        on_delete=models.CASCADE,
        related_name="transactions",
    )
    public_id = models.UUIDField(default=uuid.uuid4, editable=False, unique=True)
    transaction_date = models.DateField()
    description = models.CharField(max_length=255, blank=True, default="")
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    is_reconciled = models.BooleanField(default=False)
    reconciliation = models.ForeignKey(
        "banking.Reconciliation",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="reconciled_transactions",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["transaction_date", "id"]
        indexes = [
            models.Index(fields=["bank_account", "is_reconciled"], name="banktxn_reconciled_idx"),
        ]

    def __str__(self):
        return f"{self.transaction_date} {self.amount}"


class Reconciliation(CommandOwnedModel):
    class Status(models.TextChoices):
        IN_PROGRESS = "in_progress", "In progress"
        COMPLETED = "completed", "Completed"

    business = models.ForeignKey(
        Business,
        on_delete=models.CASCADE,
        related_name="reconciliations",
    )
    bank_account = models.ForeignKey(
        BankAccount,
        on_delete=models.CASCADE,
        related_name="reconciliations",
    )
    public_id = models.UUIDField(default=uuid.uuid4, editable=False, unique=True)
    statement_date = models.DateField()
    statement_balance = models.DecimalField(max_digits=18, decimal_places=2)
    # Snapshot of the bank account's reconciled balance when this started.
    opening_balance = models.DecimalField(max_digits=18, decimal_places=2)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.IN_PROGRESS)
    selected_transactions = models.ManyToManyField(
        BankTransaction,
        blank=True,
        related_name="+",
    )
    completed_at = models.DateTimeField(null=True, blank=True)
    completed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )

    class Meta:
        ordering = ["-statement_date", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["bank_account"],
                condition=models.Q(status="in_progress"),
                name="uniq_open_reconciliation_per_bank_account",
            ),
        ]

    def __str__(self):
        return f"{self.bank_account} @ {self.statement_date} ({self.status})"

    def selected_amounts(self) -> list:
        return list(self.selected_transactions.values_list("amount", flat=True))

    def summary(self):
        from banking.reconciliation import compute_reconciliation

        return compute_reconciliation(
            opening_balance=self.opening_balance,
            statement_balance=self.statement_balance,
            amounts=self.selected_amounts(),
        )
