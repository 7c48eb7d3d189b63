# accounting/models.py
"""
Accounting READ MODELS for Tallybook.

IMPORTANT: These are READ MODELS (projections), not primary state.
=================================================================
Events are the source of truth. These tables are materialized views
built by projections that consume events from the event store.

DO NOT call .save(), .create(), .update() or .delete() on these models
outside a projection. All mutations go through accounting/commands.py,
which emits events that projections consume to update these tables.

The only code allowed to write to these models is
projections/accounting.py (AccountProjection, JournalEntryProjection).

BusinessSequence is the exception: it is a command-owned write model
used to hand out entry numbers under concurrency.

Models:
- BusinessSequence: per-business counters (write model)
- Account: chart of accounts (read model)
- JournalEntry: journal entry headers (read model)
- JournalLine: journal entry lines (read model)
"""
import uuid

from django.conf import settings
from django.db import models, transaction
from django.db.models import Q

from accounts.models import Business
from projections.write_barrier import write_context_allowed


def _projection_write_ok() -> bool:
    return write_context_allowed({"projection"}) or getattr(settings, "TESTING", False)


class ProjectionWriteQuerySet(models.QuerySet):
    """
    QuerySet that refuses writes outside projection_writes_allowed().

    Projections use .projection() to mark the intent explicitly:
        JournalLine.objects.projection().bulk_create(...)
    """

    def __init__(self, *args, _projection_write: bool = False, **kwargs):
        super().__init__(*args, **kwargs)
        self._projection_write = _projection_write

    def _clone(self):
        c = super()._clone()
        c._projection_write = self._projection_write
        return c

    def projection(self):
        clone = self._clone()
        clone._projection_write = True
        return clone

    def _guard(self, operation: str) -> None:
        if not _projection_write_ok():
            raise RuntimeError(
                f"{self.model.__name__} is a read model. "
                f"{operation} is only allowed from projections within projection_writes_allowed()."
            )

    def create(self, **kwargs):
        self._guard("create")
        obj = self.model(**kwargs)
        obj.save(_projection_write=True, using=self.db)
        return obj

    def bulk_create(self, objs, *args, **kwargs):
        """Objects must be pre-validated since save() isn't called."""
        self._guard("bulk_create")
        return super().bulk_create(objs, *args, **kwargs)

    def update_or_create(self, defaults=None, **kwargs):
        self._guard("update_or_create")
        defaults = defaults or {}
        with transaction.atomic(using=self.db):
            try:
                obj = self.select_for_update().get(**kwargs)
            except self.model.DoesNotExist:
                obj = self.model(**{**kwargs, **defaults})
                obj.save(_projection_write=True, using=self.db)
                return obj, True
            for k, v in defaults.items():
                setattr(obj, k, v)
            obj.save(_projection_write=True, using=self.db)
            return obj, False

    def update(self, **kwargs):
        self._guard("update")
        return super().update(**kwargs)

    def delete(self):
        self._guard("delete")
        return super().delete()


class ProjectionWriteManager(models.Manager):
    def get_queryset(self):
        return ProjectionWriteQuerySet(self.model, using=self._db)

    def projection(self):
        return self.get_queryset().projection()


class AccountingReadModel(models.Model):
    class Meta:
        abstract = True

    def save(self, *args, _projection_write: bool = False, **kwargs):
        if not _projection_write_ok():
            raise RuntimeError(
                f"{self.__class__.__name__} is a read model. Use accounting.commands to modify it. "
                "Direct saves are only allowed from projections within projection_writes_allowed()."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if not _projection_write_ok():
            raise RuntimeError(
                f"{self.__class__.__name__} is a read model. "
                "Direct deletes are only allowed from projections within projection_writes_allowed()."
            )
        return super().delete(*args, **kwargs)


class BusinessSequence(models.Model):
    """
    Per-business counters for sequential identifiers.

    This is a write model (not a projection) used by commands
    to allocate unique numbers under concurrency.
    """

    business = models.ForeignKey(
        Business,
        on_delete=models.CASCADE,
        related_name="sequences",
    )
    name = models.CharField(max_length=100)
    next_value = models.BigIntegerField(default=1)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["business", "name"],
                name="uniq_business_sequence_name",
            ),
        ]

    def __str__(self):
        return f"{self.business_id}:{self.name}={self.next_value}"

    def save(self, *args, **kwargs):
        if not write_context_allowed({"command", "bootstrap"}) and not getattr(settings, "TESTING", False):
            raise RuntimeError(
                "BusinessSequence is a command-owned write model. "
                "Direct saves are only allowed within command_writes_allowed()."
            )
        super().save(*args, **kwargs)


class Account(AccountingReadModel):
    """
    Chart of accounts entry.

    normal_balance is not a column: it is derived from account_type every
    time it is read, so the two can never disagree.
    """

    class AccountType(models.TextChoices):
        ASSET = "asset", "Asset"
        LIABILITY = "liability", "Liability"
        EQUITY = "equity", "Equity"
        REVENUE = "revenue", "Revenue"
        EXPENSE = "expense", "Expense"

    class NormalBalance(models.TextChoices):
        DEBIT = "debit", "Debit"
        CREDIT = "credit", "Credit"

    NORMAL_BALANCE_MAP = {
        AccountType.ASSET: NormalBalance.DEBIT,
        AccountType.EXPENSE: NormalBalance.DEBIT,
        AccountType.LIABILITY: NormalBalance.CREDIT,
        AccountType.EQUITY: NormalBalance.CREDIT,
        AccountType.REVENUE: NormalBalance.CREDIT,
    }

    objects = ProjectionWriteManager()

    business = models.ForeignKey(
        Business,
        on_delete=models.CASCADE,
        related_name="accounts",
    )
    public_id = models.UUIDField(
        default=uuid.uuid4,
        editable=False,
        unique=True,
    )
    code = models.CharField(max_length=20)
    name = models.CharField(max_length=255)
    account_type = models.CharField(max_length=20, choices=AccountType.choices)
    is_active = models.BooleanField(default=True)
    description = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["business", "code"],
                name="uniq_account_code_per_business",
            )
        ]
        ordering = ["code"]
        indexes = [
            models.Index(fields=["business", "account_type"], name="account_business_type_idx"),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    @classmethod
    def normal_balance_for(cls, account_type: str) -> str:
        return cls.NORMAL_BALANCE_MAP[account_type]

    @property
    def normal_balance(self) -> str:
        return self.normal_balance_for(self.account_type)


class JournalEntry(AccountingReadModel):
    """
    Journal entry header.

    Workflow: draft -> ask_for_review -> posted -> voided
    (see accounting/lifecycle.py for the full transition table).
    """

    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        ASK_FOR_REVIEW = "ask_for_review", "Ask for review"
        POSTED = "posted", "Posted"
        VOIDED = "voided", "Voided"

    class SourceType(models.TextChoices):
        MANUAL = "manual", "Manual"
        INVOICE = "invoice", "Invoice"
        BILL = "bill", "Bill"
        EXPENSE = "expense", "Expense"

    objects = ProjectionWriteManager()

    business = models.ForeignKey(
        Business,
        on_delete=models.CASCADE,
        related_name="journal_entries",
    )
    public_id = models.UUIDField(
        default=uuid.uuid4,
        editable=False,
        unique=True,
    )
    entry_number = models.CharField(max_length=50)
    entry_date = models.DateField()
    description = models.CharField(max_length=255, blank=True, default="")

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.DRAFT,
    )

    # Weak back-reference to the producing document; never an ownership edge.
    source_type = models.CharField(
        max_length=20,
        choices=SourceType.choices,
        default=SourceType.MANUAL,
    )
    source_id = models.CharField(max_length=100, blank=True, default="")

    review_requested_at = models.DateTimeField(null=True, blank=True)
    review_requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )

    posted_at = models.DateTimeField(null=True, blank=True)
    posted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="posted_journal_entries",
    )

    voided_at = models.DateTimeField(null=True, blank=True)
    voided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="voided_journal_entries",
    )
    void_reason = models.TextField(blank=True, default="")

    # Number of events applied to the aggregate; commands use it as the
    # expected version when emitting the next event.
    version = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="created_journal_entries",
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["business", "entry_number"],
                name="uniq_entry_number_per_business",
            ),
        ]
        indexes = [
            models.Index(fields=["business", "entry_date", "id"], name="entry_business_date_idx"),
            models.Index(fields=["business", "status"], name="entry_business_status_idx"),
        ]
        ordering = ["-entry_date", "-id"]

    def __str__(self):
        return f"{self.entry_number} ({self.entry_date}) {self.status}"


class JournalLine(AccountingReadModel):
    """One posting within a journal entry."""

    objects = ProjectionWriteManager()

    entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.CASCADE,
        related_name="lines",
    )
    business = models.ForeignKey(
        Business,
        on_delete=models.CASCADE,
        related_name="journal_lines",
    )
    public_id = models.UUIDField(
        default=uuid.uuid4,
        editable=False,
        unique=True,
    )
    line_order = models.PositiveIntegerField()
    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="journal_lines",
    )
    description = models.CharField(max_length=255, blank=True, default="")
    debit = models.DecimalField(max_digits=18, decimal_places=2, default=0)
    credit = models.DecimalField(max_digits=18, decimal_places=2, default=0)

    class Meta:
        ordering = ["entry", "line_order"]
        constraints = [
            models.UniqueConstraint(
                fields=["entry", "line_order"],
                name="uniq_line_order_per_entry",
            ),
            models.CheckConstraint(
                condition=Q(debit__gte=0) & Q(credit__gte=0),
                name="chk_line_non_negative",
            ),
        ]
        indexes = [
            models.Index(fields=["business", "account"], name="line_business_account_idx"),
        ]

    def __str__(self):
        return f"{self.entry_id} L{self.line_order}"
