# accounting/commands.py
"""
Command layer for accounting operations.

Commands are the single point where business operations happen.
Views call commands; commands enforce rules and emit events.

Pattern:
1. Validate permissions (require)
2. Lock the entry row and replay its aggregate
3. Apply the lifecycle transition and balance rules
4. Emit event (emit_event, with the aggregate's version)
5. Run projections in the same transaction
6. Return CommandResult

ALL state changes MUST go through commands to ensure events are emitted.

Every public command runs inside one database transaction. A typed
JournalError (or a PermissionDenied from require) raised anywhere
inside it rolls the transaction back and is returned as a failed
CommandResult, so a rejected command never leaves a
partial event or read-model change behind.
"""

import functools
import hashlib
import json
import logging
import uuid
from collections.abc import Mapping
from datetime import date, datetime

from django.conf import settings
from django.core.exceptions import PermissionDenied
from django.db import transaction, IntegrityError
from django.utils import timezone

from accounts.authz import ActorContext, require
from accounting.aggregates import load_journal_entry_aggregate, load_account_aggregate
from accounting.balance import normalize_lines, require_balanced
from accounting.errors import (
    JournalError,
    ValidationError,
    NotFound,
    Forbidden,
    ConcurrencyConflict,
)
from accounting.lifecycle import transition, JournalEvent, EVENT_PERMISSIONS
from accounting.models import Account, JournalEntry, BusinessSequence
from accounting.policies import can_post_to_account, can_deactivate_account
from events.emitter import emit_event, AggregateVersionConflict
from events.types import (
    EventTypes,
    AccountCreatedData,
    AccountDeactivatedData,
    JournalLineData,
    JournalEntryCreatedData,
    JournalEntryUpdatedData,
    JournalEntryReviewRequestedData,
    JournalEntryPostedData,
    JournalEntryVoidedData,
    JournalEntryDeletedData,
)
from projections.write_barrier import command_writes_allowed


logger = logging.getLogger(__name__)


class CommandResult:
    """
    Wrapper for command results with success/failure info.

    Usage:
        result = post_journal_entry(actor, entry_id)
        if result.success:
            entry = result.data
            event = result.event
        else:
            error_message = result.error
            status = result.exception.http_status
    """

    def __init__(
        self,
        success: bool,
        data=None,
        error: str = None,
        event=None,
        error_code: str = None,
        exception: JournalError = None,
    ):
        self.success = success
        self.data = data
        self.error = error
        self.error_code = error_code
        self.exception = exception
        self.event = event  # The emitted event, if any

    @classmethod
    def ok(cls, data=None, event=None):
        return cls(success=True, data=data, event=event)

    @classmethod
    def fail(cls, error: str, error_code: str = "error", exception: JournalError = None):
        return cls(success=False, error=error, error_code=error_code, exception=exception)

    @classmethod
    def from_error(cls, exc: JournalError):
        return cls.fail(exc.message, error_code=exc.code, exception=exc)


def returns_result(func):
    """
    Turn a JournalError escaping `func` (and its transaction) into a failed result.

    A PermissionDenied from require() becomes Forbidden, so callers see one
    channel for every refusal.
    """

    @functools.wraps(func)
    def wrapper(actor, *args, **kwargs):
        try:
            return func(actor, *args, **kwargs)
        except PermissionDenied as exc:
            error = Forbidden(actor.role, func.__name__, message=str(exc))
        except JournalError as exc:
            error = exc
        logger.info(
            "%s rejected: %s",
            func.__name__,
            error.code,
            extra={"business_id": actor.business.id, "error_code": error.code},
        )
        return CommandResult.from_error(error)

    return wrapper


def _idempotency_hash(prefix: str, payload: dict) -> str:
    normalized = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode()
    digest = hashlib.sha256(normalized).hexdigest()[:16]
    return f"{prefix}:{digest}"


def _next_business_sequence(business, name: str) -> int:
    """
    Allocate the next sequence value for a business/name pair.
    Uses select_for_update to avoid concurrent duplicates.
    """
    with command_writes_allowed():
        try:
            seq = BusinessSequence.objects.select_for_update().get(
                business=business,
                name=name,
            )
        except BusinessSequence.DoesNotExist:
            try:
                with transaction.atomic():
                    seq = BusinessSequence.objects.create(
                        business=business,
                        name=name,
                        next_value=1,
                    )
            except IntegrityError:
                seq = BusinessSequence.objects.select_for_update().get(
                    business=business,
                    name=name,
                )

        value = seq.next_value
        seq.next_value = value + 1
        seq.save(update_fields=["next_value", "updated_at"])
        return value


def _next_entry_number(business) -> str:
    value = _next_business_sequence(business, "journal_entry_number")
    return f"{settings.JOURNAL_ENTRY_NUMBER_PREFIX}-{value:06d}"


def _process_projections(business) -> None:
    """
    Bring every read model up to date inside the command's transaction.

    Errors propagate, so a failing projection rolls back the event that
    triggered it along with everything else the command wrote.
    """
    from projections.base import projection_registry

    for projection in projection_registry.all():
        projection.process_pending(business, limit=1000, raise_errors=True)


def emit_versioned(
    actor: ActorContext,
    event_type: str,
    aggregate_type: str,
    aggregate_id,
    data,
    *,
    idempotency_key: str,
    expected_version: int,
):
    """emit_event with a required expected_version; a lost race becomes ConcurrencyConflict."""
    try:
        return emit_event(
            actor,
            event_type,
            aggregate_type,
            aggregate_id,
            data,
            idempotency_key=idempotency_key,
            expected_version=expected_version,
        )
    except AggregateVersionConflict:
        raise ConcurrencyConflict(str(aggregate_id), expected_version)


# =============================================================================
# Input helpers
# =============================================================================

def _parse_public_id(value, kind: str, field: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        raise ValidationError(f"{kind} id must be a UUID, got {value!r}.", field=field)


def _parse_entry_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise ValidationError("entry_date is required.", field="entry_date")
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError("entry_date must be an ISO date (YYYY-MM-DD).", field="entry_date")


def _resolve_account(actor: ActorContext, account_ref) -> Account:
    public_id = _parse_public_id(account_ref, "Account", "account_id")
    account = Account.objects.filter(business=actor.business, public_id=public_id).first()
    if account is None:
        raise NotFound("Account", account_ref)
    return account


def _build_lines(actor: ActorContext, lines):
    """
    Validate raw request lines and turn them into event line dicts.

    Runs the structural and balance checks on the cent-rounded amounts,
    then resolves each account inside the actor's business. Returns
    (line dicts, BalanceSummary).
    """
    if not isinstance(lines, (list, tuple)):
        raise ValidationError("lines must be a list.", field="lines")
    for index, line in enumerate(lines, start=1):
        if not isinstance(line, Mapping):
            raise ValidationError(f"Line {index} must be an object.", field="lines")

    normalized = normalize_lines(lines)
    summary = require_balanced(normalized)

    accounts = {}
    result = []
    for order, line in enumerate(normalized, start=1):
        account_ref = line.get("account_id") or line.get("account")
        if not account_ref:
            raise ValidationError(f"Line {order}: account_id is required.", field="account_id", line=order)

        key = str(account_ref)
        if key not in accounts:
            account = _resolve_account(actor, account_ref)
            allowed, reason = can_post_to_account(account)
            if not allowed:
                raise ValidationError(reason, field="account_id", line=order)
            accounts[key] = account
        account = accounts[key]

        result.append(JournalLineData(
            line_order=order,
            account_public_id=str(account.public_id),
            account_code=account.code,
            debit=str(line["debit"]),
            credit=str(line["credit"]),
            description=str(line.get("description") or ""),
        ).to_dict())

    return result, summary


def _check_line_accounts(actor: ActorContext, line_data) -> None:
    """Accounts on stored lines must still exist in the business and be active."""
    for line in line_data:
        account = _resolve_account(actor, line["account_public_id"])
        allowed, reason = can_post_to_account(account)
        if not allowed:
            raise ValidationError(reason, field="account_id", line=line.get("line_order"))


def _locked_entry(actor: ActorContext, entry_id) -> JournalEntry:
    public_id = _parse_public_id(entry_id, "JournalEntry", "entry_id")
    entry = JournalEntry.objects.select_for_update().filter(
        business=actor.business,
        public_id=public_id,
    ).first()
    if entry is None:
        raise NotFound("JournalEntry", entry_id)
    return entry


def _load_aggregate(actor: ActorContext, entry: JournalEntry):
    aggregate = load_journal_entry_aggregate(actor.business, str(entry.public_id))
    if aggregate is None or aggregate.deleted:
        raise NotFound("JournalEntry", entry.public_id)
    return aggregate


def _reload(actor: ActorContext, public_id) -> JournalEntry:
    return JournalEntry.objects.prefetch_related("lines__account").get(
        business=actor.business,
        public_id=public_id,
    )


def _log_transition(actor: ActorContext, entry_public_id, event: str, from_state, to_state) -> None:
    logger.info(
        "Journal entry %s: %s -> %s (%s)",
        entry_public_id, from_state, to_state, event,
        extra={
            "business_id": actor.business.id,
            "entry_id": str(entry_public_id),
            "transition": event,
            "from_state": from_state,
            "to_state": to_state,
            "user_id": actor.user.id,
        },
    )


# =============================================================================
# Account Commands
# =============================================================================

@returns_result
@transaction.atomic
def create_account(
    actor: ActorContext,
    code: str,
    name: str,
    account_type: str,
    description: str = "",
) -> CommandResult:
    """Add an account to the chart of accounts."""
    require(actor, "accounts.manage")

    code = (code or "").strip()
    name = (name or "").strip()
    if not code:
        raise ValidationError("Account code is required.", field="code")
    if not name:
        raise ValidationError("Account name is required.", field="name")
    if account_type not in Account.AccountType.values:
        raise ValidationError(
            f"account_type must be one of {', '.join(Account.AccountType.values)}.",
            field="account_type",
        )
    if Account.objects.filter(business=actor.business, code=code).exists():
        raise ValidationError(f"Account code {code} already exists.", field="code")

    account_public_id = uuid.uuid4()
    event = emit_versioned(
        actor,
        EventTypes.ACCOUNT_CREATED,
        "Account",
        account_public_id,
        AccountCreatedData(
            account_public_id=str(account_public_id),
            code=code,
            name=name,
            account_type=account_type,
            description=description or "",
        ),
        idempotency_key=f"account.created:{account_public_id}",
        expected_version=0,
    )

    _process_projections(actor.business)
    account = Account.objects.get(business=actor.business, public_id=account_public_id)
    return CommandResult.ok(account, event=event)


@returns_result
@transaction.atomic
def deactivate_account(actor: ActorContext, account_id) -> CommandResult:
    """Stop new journal lines from referencing an account."""
    require(actor, "accounts.manage")

    account = _resolve_account(actor, account_id)
    allowed, reason = can_deactivate_account(actor, account)
    if not allowed:
        raise ValidationError(reason)

    aggregate = load_account_aggregate(actor.business, str(account.public_id))
    version = aggregate.version if aggregate else 0

    event = emit_versioned(
        actor,
        EventTypes.ACCOUNT_DEACTIVATED,
        "Account",
        account.public_id,
        AccountDeactivatedData(
            account_public_id=str(account.public_id),
            code=account.code,
        ),
        idempotency_key=f"account.deactivated:{account.public_id}",
        expected_version=version,
    )

    _process_projections(actor.business)
    account.refresh_from_db()
    return CommandResult.ok(account, event=event)


# =============================================================================
# Journal Entry Commands
# =============================================================================

@returns_result
@transaction.atomic
def create_journal_entry(
    actor: ActorContext,
    entry_date,
    lines,
    description: str = "",
    auto_post: bool = False,
    source_type: str = JournalEntry.SourceType.MANUAL,
    source_id=None,
) -> CommandResult:
    """
    Create a journal entry, optionally posting it straight away.

    The lines must balance either way. With auto_post the entry is stored
    as a created event followed by a posted event; both land or neither
    does.
    """
    require(actor, EVENT_PERMISSIONS[JournalEvent.CREATE])

    event_name = JournalEvent.CREATE_POSTED if auto_post else JournalEvent.CREATE
    new_state = transition(None, event_name, actor.role, posting_rights=actor.posting_rights)

    entry_date = _parse_entry_date(entry_date)
    if source_type not in JournalEntry.SourceType.values:
        raise ValidationError(
            f"source_type must be one of {', '.join(JournalEntry.SourceType.values)}.",
            field="source_type",
        )
    line_data, summary = _build_lines(actor, lines)

    entry_public_id = uuid.uuid4()
    entry_number = _next_entry_number(actor.business)

    event = emit_versioned(
        actor,
        EventTypes.JOURNAL_ENTRY_CREATED,
        "JournalEntry",
        entry_public_id,
        JournalEntryCreatedData(
            entry_public_id=str(entry_public_id),
            entry_number=entry_number,
            entry_date=entry_date.isoformat(),
            description=description or "",
            total_debit=str(summary.total_debit),
            total_credit=str(summary.total_credit),
            lines=line_data,
            status=JournalEntry.Status.DRAFT,
            source_type=source_type,
            source_id=str(source_id) if source_id else "",
            created_by_id=actor.user.id,
        ),
        idempotency_key=f"journal_entry.created:{entry_public_id}",
        expected_version=0,
    )

    if auto_post:
        event = emit_versioned(
            actor,
            EventTypes.JOURNAL_ENTRY_POSTED,
            "JournalEntry",
            entry_public_id,
            JournalEntryPostedData(
                entry_public_id=str(entry_public_id),
                entry_number=entry_number,
                entry_date=entry_date.isoformat(),
                posted_at=timezone.now().isoformat(),
                posted_by_id=actor.user.id,
                posted_by_email=actor.user.email,
                total_debit=str(summary.total_debit),
                total_credit=str(summary.total_credit),
                lines=line_data,
            ),
            idempotency_key=f"journal_entry.posted:{entry_public_id}",
            expected_version=1,
        )

    _process_projections(actor.business)
    _log_transition(actor, entry_public_id, event_name, None, new_state)
    return CommandResult.ok(_reload(actor, entry_public_id), event=event)


@returns_result
@transaction.atomic
def update_journal_entry(
    actor: ActorContext,
    entry_id,
    entry_date,
    lines,
    description: str = None,
) -> CommandResult:
    """
    Replace an editable entry's date, description and lines.

    The new lines must balance; if they don't, the stored version is left
    exactly as it was.
    """
    require(actor, EVENT_PERMISSIONS[JournalEvent.EDIT])

    entry = _locked_entry(actor, entry_id)
    aggregate = _load_aggregate(actor, entry)
    transition(aggregate.status, JournalEvent.EDIT, actor.role, posting_rights=actor.posting_rights)

    entry_date = _parse_entry_date(entry_date)
    line_data, summary = _build_lines(actor, lines)
    if description is None:
        description = aggregate.description

    changes = {}
    if entry_date.isoformat() != aggregate.entry_date:
        changes["entry_date"] = {"old": aggregate.entry_date, "new": entry_date.isoformat()}
    if description != aggregate.description:
        changes["description"] = {"old": aggregate.description, "new": description}
    if line_data != aggregate.lines:
        changes["lines"] = {"old": len(aggregate.lines), "new": len(line_data)}

    data = JournalEntryUpdatedData(
        entry_public_id=str(entry.public_id),
        entry_date=entry_date.isoformat(),
        description=description,
        total_debit=str(summary.total_debit),
        total_credit=str(summary.total_credit),
        lines=line_data,
        changes=changes,
    ).to_dict()

    event = emit_versioned(
        actor,
        EventTypes.JOURNAL_ENTRY_UPDATED,
        "JournalEntry",
        entry.public_id,
        data,
        idempotency_key=_idempotency_hash(
            f"journal_entry.updated:{entry.public_id}:{aggregate.version + 1}", data
        ),
        expected_version=aggregate.version,
    )

    _process_projections(actor.business)
    _log_transition(actor, entry.public_id, JournalEvent.EDIT, aggregate.status, aggregate.status)
    return CommandResult.ok(_reload(actor, entry.public_id), event=event)


@returns_result
@transaction.atomic
def ask_for_review_journal_entry(actor: ActorContext, entry_id) -> CommandResult:
    """Hand a draft to the accounting team; owners can no longer edit it."""
    require(actor, EVENT_PERMISSIONS[JournalEvent.ASK_FOR_REVIEW])

    entry = _locked_entry(actor, entry_id)
    aggregate = _load_aggregate(actor, entry)
    new_state = transition(
        aggregate.status, JournalEvent.ASK_FOR_REVIEW, actor.role, posting_rights=actor.posting_rights
    )

    event = emit_versioned(
        actor,
        EventTypes.JOURNAL_ENTRY_REVIEW_REQUESTED,
        "JournalEntry",
        entry.public_id,
        JournalEntryReviewRequestedData(
            entry_public_id=str(entry.public_id),
            requested_at=timezone.now().isoformat(),
            requested_by_id=actor.user.id,
            requested_by_email=actor.user.email,
        ),
        idempotency_key=f"journal_entry.review_requested:{entry.public_id}:{aggregate.version + 1}",
        expected_version=aggregate.version,
    )

    _process_projections(actor.business)
    _log_transition(actor, entry.public_id, JournalEvent.ASK_FOR_REVIEW, aggregate.status, new_state)
    return CommandResult.ok(_reload(actor, entry.public_id), event=event)


@returns_result
@transaction.atomic
def post_journal_entry(actor: ActorContext, entry_id) -> CommandResult:
    """
    Post a draft or in-review entry to the ledger.

    Who may post is decided by the lifecycle (supervisors, or accountants
    holding an explicit journal.post grant), not by a permission code
    alone: owners hold every code but never post.
    """
    entry = _locked_entry(actor, entry_id)
    aggregate = _load_aggregate(actor, entry)
    new_state = transition(
        aggregate.status, JournalEvent.POST, actor.role, posting_rights=actor.posting_rights
    )
    summary = require_balanced(aggregate.lines)
    _check_line_accounts(actor, aggregate.lines)

    event = emit_versioned(
        actor,
        EventTypes.JOURNAL_ENTRY_POSTED,
        "JournalEntry",
        entry.public_id,
        JournalEntryPostedData(
            entry_public_id=str(entry.public_id),
            entry_number=aggregate.entry_number,
            entry_date=aggregate.entry_date,
            posted_at=timezone.now().isoformat(),
            posted_by_id=actor.user.id,
            posted_by_email=actor.user.email,
            total_debit=str(summary.total_debit),
            total_credit=str(summary.total_credit),
            lines=aggregate.lines,
        ),
        idempotency_key=f"journal_entry.posted:{entry.public_id}",
        expected_version=aggregate.version,
    )

    _process_projections(actor.business)
    _log_transition(actor, entry.public_id, JournalEvent.POST, aggregate.status, new_state)
    return CommandResult.ok(_reload(actor, entry.public_id), event=event)


@returns_result
@transaction.atomic
def void_journal_entry(actor: ActorContext, entry_id, reason: str) -> CommandResult:
    """
    Void a posted entry.

    The entry keeps its lines and number; reports stop counting it and the
    projected account balances receive the opposite postings.
    """
    require(actor, EVENT_PERMISSIONS[JournalEvent.VOID])

    entry = _locked_entry(actor, entry_id)
    aggregate = _load_aggregate(actor, entry)
    new_state = transition(
        aggregate.status, JournalEvent.VOID, actor.role, posting_rights=actor.posting_rights
    )

    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A reason is required to void an entry.", field="reason")

    event = emit_versioned(
        actor,
        EventTypes.JOURNAL_ENTRY_VOIDED,
        "JournalEntry",
        entry.public_id,
        JournalEntryVoidedData(
            entry_public_id=str(entry.public_id),
            entry_number=aggregate.entry_number,
            entry_date=aggregate.entry_date,
            voided_at=timezone.now().isoformat(),
            voided_by_id=actor.user.id,
            voided_by_email=actor.user.email,
            reason=reason,
            lines=aggregate.lines,
        ),
        idempotency_key=f"journal_entry.voided:{entry.public_id}",
        expected_version=aggregate.version,
    )

    _process_projections(actor.business)
    _log_transition(actor, entry.public_id, JournalEvent.VOID, aggregate.status, new_state)
    return CommandResult.ok(_reload(actor, entry.public_id), event=event)


@returns_result
@transaction.atomic
def delete_journal_entry(actor: ActorContext, entry_id) -> CommandResult:
    """Remove a draft. Drafts never touched the ledger, so nothing is reversed."""
    require(actor, EVENT_PERMISSIONS[JournalEvent.DELETE])

    entry = _locked_entry(actor, entry_id)
    aggregate = _load_aggregate(actor, entry)
    transition(aggregate.status, JournalEvent.DELETE, actor.role, posting_rights=actor.posting_rights)

    event = emit_versioned(
        actor,
        EventTypes.JOURNAL_ENTRY_DELETED,
        "JournalEntry",
        entry.public_id,
        JournalEntryDeletedData(
            entry_public_id=str(entry.public_id),
            entry_number=aggregate.entry_number,
            status=aggregate.status,
        ),
        idempotency_key=f"journal_entry.deleted:{entry.public_id}",
        expected_version=aggregate.version,
    )

    _process_projections(actor.business)
    _log_transition(actor, entry.public_id, JournalEvent.DELETE, aggregate.status, None)
    return CommandResult.ok(
        {"entry_public_id": str(entry.public_id), "entry_number": aggregate.entry_number},
        event=event,
    )
