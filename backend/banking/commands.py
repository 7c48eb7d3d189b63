# banking/commands.py
"""
Command layer for banking and reconciliation.

Same contract as accounting.commands: permission check, rule checks,
write, event, CommandResult; everything inside one transaction, typed
errors returned rather than raised.

Reconciliation workflow:
    start_reconciliation -> select_reconciliation_transactions (any number
    of times) -> complete_reconciliation (only when the difference is zero)
"""
import logging
import uuid
from datetime import date, datetime

from django.db import transaction, IntegrityError
from django.utils import timezone

from accounts.authz import ActorContext, require
from accounting.commands import CommandResult, returns_result, emit_versioned
from accounting.errors import (
    ValidationError,
    NotFound,
    InvalidStateTransition,
    ReconciliationNotBalanced,
)
from accounting.models import Account
from banking.models import BankAccount, BankTransaction, Reconciliation
from accounting.balance import round_money
from banking.reconciliation import to_money
from events.emitter import get_aggregate_events
from events.types import EventTypes, ReconciliationStartedData, ReconciliationCompletedData
from projections.write_barrier import command_writes_allowed


logger = logging.getLogger(__name__)


def _parse_uuid(value, kind: str, field: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        raise ValidationError(f"{kind} id must be a UUID, got {value!r}.", field=field)


def _parse_date(value, field: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise ValidationError(f"{field} is required.", field=field)
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD).", field=field)


def _money(value, field: str = "amount"):
    return round_money(to_money(value, field), field)


def _get_bank_account(actor: ActorContext, bank_account_id, for_update: bool = False) -> BankAccount:
    public_id = _parse_uuid(bank_account_id, "BankAccount", "bank_account_id")
    qs = BankAccount.objects.filter(business=actor.business, public_id=public_id)
    if for_update:
        qs = qs.select_for_update()
    bank_account = qs.first()
    if bank_account is None:
        raise NotFound("BankAccount", bank_account_id)
    return bank_account


def _get_reconciliation(actor: ActorContext, reconciliation_id) -> Reconciliation:
    public_id = _parse_uuid(reconciliation_id, "Reconciliation", "reconciliation_id")
    reconciliation = Reconciliation.objects.select_for_update().filter(
        business=actor.business,
        public_id=public_id,
    ).select_related("bank_account").first()
    if reconciliation is None:
        raise NotFound("Reconciliation", reconciliation_id)
    return reconciliation


# =============================================================================
# Bank accounts and transactions
# =============================================================================

@returns_result
@transaction.atomic
def create_bank_account(
    actor: ActorContext,
    name: str,
    gl_account_id,
    opening_balance="0.00",
) -> CommandResult:
    """Register a bank account against an asset account in the chart."""
    require(actor, "banking.manage")

    name = (name or "").strip()
    if not name:
        raise ValidationError("Bank account name is required.", field="name")

    gl_public_id = _parse_uuid(gl_account_id, "Account", "gl_account_id")
    gl_account = Account.objects.filter(business=actor.business, public_id=gl_public_id).first()
    if gl_account is None:
        raise NotFound("Account", gl_account_id)
    if gl_account.account_type != Account.AccountType.ASSET:
        raise ValidationError(
            f"Bank accounts must map to an asset account; {gl_account.code} is {gl_account.account_type}.",
            field="gl_account_id",
        )

    with command_writes_allowed():
        try:
            with transaction.atomic():
                bank_account = BankAccount.objects.create(
                    business=actor.business,
                    name=name,
                    gl_account=gl_account,
                    opening_balance=_money(opening_balance, "opening_balance"),
                )
        except IntegrityError:
            raise ValidationError(f"A bank account named {name} already exists.", field="name")

    logger.info("Bank account created: %s", bank_account.public_id, extra={"business_id": actor.business.id})
    return CommandResult.ok(bank_account)


@returns_result
@transaction.atomic
def record_bank_transaction(
    actor: ActorContext,
    bank_account_id,
    transaction_date,
    amount,
    description: str = "",
) -> CommandResult:
    """Record one statement line (deposits positive, withdrawals negative)."""
    require(actor, "banking.manage")

    bank_account = _get_bank_account(actor, bank_account_id)
    if not bank_account.is_active:
        raise ValidationError(f"Bank account {bank_account.name} is inactive.")

    amount = _money(amount)
    if amount == 0:
        raise ValidationError("Transaction amount cannot be zero.", field="amount")

    with command_writes_allowed():
        bank_transaction = BankTransaction.objects.create(
            business=actor.business,
            bank_account=bank_account,
            transaction_date=_parse_date(transaction_date, "transaction_date"),
            amount=amount,
            description=description or "",
        )

    return CommandResult.ok(bank_transaction)


# =============================================================================
# Reconciliation
# =============================================================================

@returns_result
@transaction.atomic
def start_reconciliation(
    actor: ActorContext,
    bank_account_id,
    statement_date,
    statement_balance,
) -> CommandResult:
    """
    Open a reconciliation for a bank statement.

    The opening balance is the account's reconciled balance right now;
    only one reconciliation per bank account may be open at a time.
    """
    require(actor, "banking.reconcile")

    bank_account = _get_bank_account(actor, bank_account_id, for_update=True)
    if Reconciliation.objects.filter(
        bank_account=bank_account,
        status=Reconciliation.Status.IN_PROGRESS,
    ).exists():
        raise ValidationError(
            f"Bank account {bank_account.name} already has a reconciliation in progress.",
            field="bank_account_id",
        )

    statement_date = _parse_date(statement_date, "statement_date")
    statement_balance = _money(statement_balance, "statement_balance")

    with command_writes_allowed():
        reconciliation = Reconciliation.objects.create(
            business=actor.business,
            bank_account=bank_account,
            statement_date=statement_date,
            statement_balance=statement_balance,
            opening_balance=bank_account.reconciled_balance(),
            created_by=actor.user,
        )

    event = emit_versioned(
        actor,
        EventTypes.RECONCILIATION_STARTED,
        "Reconciliation",
        reconciliation.public_id,
        ReconciliationStartedData(
            reconciliation_public_id=str(reconciliation.public_id),
            bank_account_public_id=str(bank_account.public_id),
            statement_date=statement_date.isoformat(),
            statement_balance=str(reconciliation.statement_balance),
            opening_balance=str(reconciliation.opening_balance),
        ),
        idempotency_key=f"reconciliation.started:{reconciliation.public_id}",
        expected_version=0,
    )

    return CommandResult.ok(reconciliation, event=event)


@returns_result
@transaction.atomic
def select_reconciliation_transactions(
    actor: ActorContext,
    reconciliation_id,
    transaction_ids,
) -> CommandResult:
    """
    Replace the set of transactions ticked off against the statement.

    Each must belong to the reconciliation's bank account, be unreconciled,
    and be dated on or before the statement date.
    """
    require(actor, "banking.reconcile")

    reconciliation = _get_reconciliation(actor, reconciliation_id)
    if reconciliation.status != Reconciliation.Status.IN_PROGRESS:
        raise InvalidStateTransition(reconciliation.status, "select_transactions")

    if not isinstance(transaction_ids, (list, tuple)):
        raise ValidationError("transaction_ids must be a list.", field="transaction_ids")
    public_ids = {_parse_uuid(value, "BankTransaction", "transaction_ids") for value in transaction_ids}

    transactions = list(BankTransaction.objects.filter(
        business=actor.business,
        bank_account=reconciliation.bank_account,
        public_id__in=public_ids,
    ))
    found = {t.public_id for t in transactions}
    missing = public_ids - found
    if missing:
        raise NotFound("BankTransaction", ", ".join(sorted(str(m) for m in missing)))

    for bank_transaction in transactions:
        if bank_transaction.is_reconciled:
            raise ValidationError(
                f"Transaction {bank_transaction.public_id} is already reconciled.",
                field="transaction_ids",
            )
        if bank_transaction.transaction_date > reconciliation.statement_date:
            raise ValidationError(
                f"Transaction {bank_transaction.public_id} is dated after the statement.",
                field="transaction_ids",
            )

    with command_writes_allowed():
        reconciliation.selected_transactions.set(transactions)

    return CommandResult.ok(reconciliation)


@returns_result
@transaction.atomic
def complete_reconciliation(actor: ActorContext, reconciliation_id) -> CommandResult:
    """
    Close a reconciliation whose difference is zero.

    The selected transactions become reconciled, which moves the bank
    account's reconciled balance forward to the statement balance.
    """
    require(actor, "banking.reconcile")

    reconciliation = _get_reconciliation(actor, reconciliation_id)
    if reconciliation.status != Reconciliation.Status.IN_PROGRESS:
        raise InvalidStateTransition(reconciliation.status, "complete")

    summary = reconciliation.summary()
    if not summary.is_balanced:
        raise ReconciliationNotBalanced(summary.difference)

    completed_at = timezone.now()
    transactions = list(reconciliation.selected_transactions.all())

    with command_writes_allowed():
        BankTransaction.objects.filter(
            pk__in=[t.pk for t in transactions],
        ).update(is_reconciled=True, reconciliation=reconciliation)

        reconciliation.status = Reconciliation.Status.COMPLETED
        reconciliation.completed_at = completed_at
        reconciliation.completed_by = actor.user
        reconciliation.save()

    version = len(get_aggregate_events(actor.business, "Reconciliation", reconciliation.public_id))
    event = emit_versioned(
        actor,
        EventTypes.RECONCILIATION_COMPLETED,
        "Reconciliation",
        reconciliation.public_id,
        ReconciliationCompletedData(
            reconciliation_public_id=str(reconciliation.public_id),
            bank_account_public_id=str(reconciliation.bank_account.public_id),
            statement_balance=str(summary.statement_balance),
            reconciled_balance=str(summary.reconciled_balance),
            difference=str(summary.difference),
            completed_at=completed_at.isoformat(),
            transaction_public_ids=[str(t.public_id) for t in transactions],
        ),
        idempotency_key=f"reconciliation.completed:{reconciliation.public_id}",
        expected_version=version,
    )

    logger.info(
        "Reconciliation %s completed with %s transactions",
        reconciliation.public_id, len(transactions),
        extra={"business_id": actor.business.id},
    )
    return CommandResult.ok(reconciliation, event=event)
