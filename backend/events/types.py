# events/types.py
"""
Event type definitions for Tallybook.

This module defines THE CANONICAL SCHEMA for all event payloads.
These dataclasses are the CONTRACT, not a "helper". All event emission
MUST use these types, and validation is enforced at emission time.

Naming Convention: {aggregate}.{action}
Examples:
- account.created
- journal_entry.posted
- reconciliation.completed

IMPORTANT: Events are a STABLE API
============================================
- Adding optional fields with defaults is safe
- Removing, renaming or retyping fields breaks projections and
  requires a migration of stored events
"""

from dataclasses import dataclass, asdict, field, fields as dataclass_fields, MISSING
from typing import Optional, List, Dict, Any, get_type_hints, get_origin, get_args, Union
from decimal import Decimal, InvalidOperation
from datetime import date, datetime


# =============================================================================
# Event Validation
# =============================================================================

class InvalidEventPayload(Exception):
    """
    Raised when an event payload fails validation.

    This exception is raised at event emission time when the provided
    data does not match the expected schema for the event type.
    """
    def __init__(self, event_type: str, errors: List[str]):
        self.event_type = event_type
        self.errors = errors
        error_list = "\n  - ".join(errors)
        super().__init__(
            f"Invalid payload for event '{event_type}':\n  - {error_list}"
        )


def _is_optional_type(type_hint) -> bool:
    """Check if a type hint is Optional[X] (i.e., Union[X, None])."""
    origin = get_origin(type_hint)
    if origin is Union:
        return type(None) in get_args(type_hint)
    return False


def _get_inner_type(type_hint):
    """Get the inner type from Optional[X]."""
    origin = get_origin(type_hint)
    if origin is Union:
        non_none_args = [a for a in get_args(type_hint) if a is not type(None)]
        if len(non_none_args) == 1:
            return non_none_args[0]
    return type_hint


DECIMAL_FIELDS = {
    "debit",
    "credit",
    "total_debit",
    "total_credit",
    "opening_balance",
    "statement_balance",
    "reconciled_balance",
    "difference",
}

DATE_FIELDS = {"entry_date", "statement_date"}
DATETIME_FIELDS = {"posted_at", "voided_at", "requested_at", "completed_at"}


def _enum_fields() -> Dict[str, set]:
    # Import here to avoid circular import (models import this module's app)
    from accounts.models import BusinessMembership
    from accounting.models import Account, JournalEntry

    return {
        "account_type": set(Account.AccountType.values),
        "status": set(JournalEntry.Status.values),
        "source_type": set(JournalEntry.SourceType.values),
        "role": set(BusinessMembership.Role.values),
    }


def _check_type(field_name: str, value: Any, type_hint, errors: List[str]) -> None:
    if value is None:
        if not _is_optional_type(type_hint):
            errors.append(f"Field '{field_name}' cannot be None (type: {type_hint})")
        return

    check_type = _get_inner_type(type_hint) if _is_optional_type(type_hint) else type_hint
    origin = get_origin(check_type)

    if origin is list or check_type is list:
        if not isinstance(value, list):
            errors.append(f"Field '{field_name}' must be a list, got {type(value).__name__}")
            return
        inner = get_args(check_type)
        if inner:
            for idx, item in enumerate(value):
                if inner[0] in (dict, Dict) and not isinstance(item, dict):
                    errors.append(f"Field '{field_name}[{idx}]' must be a dict, got {type(item).__name__}")
                elif inner[0] is str and not isinstance(item, str):
                    errors.append(f"Field '{field_name}[{idx}]' must be a string, got {type(item).__name__}")
    elif origin is dict or check_type is dict:
        if not isinstance(value, dict):
            errors.append(f"Field '{field_name}' must be a dict, got {type(value).__name__}")
    elif check_type is str:
        if not isinstance(value, str):
            errors.append(f"Field '{field_name}' must be a string, got {type(value).__name__}")
    elif check_type is int:
        if not isinstance(value, int) or isinstance(value, bool):
            errors.append(f"Field '{field_name}' must be an int, got {type(value).__name__}")
    elif check_type is bool:
        if not isinstance(value, bool):
            errors.append(f"Field '{field_name}' must be a bool, got {type(value).__name__}")


def validate_event_payload(event_type: str, data: Dict[str, Any]) -> None:
    """
    Validate that a data dict matches the expected schema for an event type.

    Checks, in order:
    1. Required fields are present (fields without defaults)
    2. No unexpected fields are provided (strict schema)
    3. Field types are correct (basic type checking)
    4. Domain semantics: enum values, decimal strings, ISO dates

    Raises:
        InvalidEventPayload: If validation fails
        ValueError: If event_type has no registered schema
    """
    data_class = EVENT_DATA_CLASSES.get(event_type)
    if data_class is None:
        raise ValueError(
            f"No schema registered for event type '{event_type}'. "
            f"Add a dataclass to EVENT_DATA_CLASSES."
        )

    errors = []
    dc_fields = {f.name: f for f in dataclass_fields(data_class)}
    type_hints = get_type_hints(data_class)

    for field_name, field_info in dc_fields.items():
        required = field_info.default is MISSING and field_info.default_factory is MISSING
        if required and field_name not in data:
            errors.append(f"Missing required field: '{field_name}'")

    unexpected = set(data.keys()) - set(dc_fields.keys())
    if unexpected:
        errors.append(
            f"Unexpected fields: {sorted(unexpected)}. "
            f"Expected: {sorted(dc_fields.keys())}"
        )

    for field_name, value in data.items():
        if field_name in type_hints:
            _check_type(field_name, value, type_hints[field_name], errors)

    enum_fields = _enum_fields()

    def _validate_scalar(name: str, value: Any) -> None:
        if value is None or isinstance(value, (dict, list)):
            return
        if name in enum_fields and value not in enum_fields[name]:
            errors.append(
                f"Field '{name}' must be one of {sorted(enum_fields[name])}, got {value!r}"
            )
        if name in DECIMAL_FIELDS:
            if isinstance(value, bool) or not isinstance(value, (int, Decimal, str)):
                errors.append(f"Field '{name}' must be a decimal string, got {type(value).__name__}")
            else:
                try:
                    Decimal(str(value))
                except (InvalidOperation, ValueError):
                    errors.append(f"Field '{name}' must be a decimal string, got {value!r}")
        if name in DATE_FIELDS:
            try:
                date.fromisoformat(value)
            except (TypeError, ValueError):
                errors.append(f"Field '{name}' must be an ISO date string, got {value!r}")
        if name in DATETIME_FIELDS:
            try:
                datetime.fromisoformat(value)
            except (TypeError, ValueError):
                errors.append(f"Field '{name}' must be an ISO datetime string, got {value!r}")

    def _walk(name: str, value: Any) -> None:
        _validate_scalar(name, value)
        if isinstance(value, dict):
            for k, v in value.items():
                _walk(k, v)
        elif isinstance(value, list):
            for item in value:
                if isinstance(item, (dict, list)):
                    _walk(name, item)

    for field_name, value in data.items():
        _walk(field_name, value)

    if errors:
        raise InvalidEventPayload(event_type, errors)


# =============================================================================
# Base Event Classes
# =============================================================================

@dataclass
class BaseEventData:
    """Base class for all event data."""

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON storage."""
        result = {}
        for key, value in asdict(self).items():
            if isinstance(value, Decimal):
                result[key] = str(value)
            elif isinstance(value, (date, datetime)):
                result[key] = value.isoformat()
            else:
                result[key] = value
        return result


# =============================================================================
# Account Events
# =============================================================================

@dataclass
class AccountCreatedData(BaseEventData):
    """Data for account.created event."""
    account_public_id: str
    code: str
    name: str
    account_type: str
    description: str = ""


@dataclass
class AccountDeactivatedData(BaseEventData):
    """Data for account.deactivated event."""
    account_public_id: str
    code: str


# =============================================================================
# Journal Entry Events
# =============================================================================

@dataclass
class JournalLineData:
    """Journal line data for embedding in events."""
    line_order: int
    account_public_id: str
    account_code: str
    debit: str  # String for JSON safety
    credit: str
    description: str = ""

    def to_dict(self) -> dict:
        return {
            "line_order": self.line_order,
            "account_public_id": self.account_public_id,
            "account_code": self.account_code,
            "description": self.description,
            "debit": self.debit,
            "credit": self.credit,
        }


@dataclass
class JournalEntryCreatedData(BaseEventData):
    """
    Data for journal_entry.created event.

    Entries are always created as drafts; an auto-posted entry is a
    created event immediately followed by a posted event.
    """
    entry_public_id: str
    entry_number: str
    entry_date: str  # ISO format
    description: str
    total_debit: str
    total_credit: str
    lines: List[dict]
    status: str = "draft"
    source_type: str = "manual"
    source_id: str = ""
    created_by_id: Optional[int] = None


@dataclass
class JournalEntryUpdatedData(BaseEventData):
    """Data for journal_entry.updated event (lines are replaced wholesale)."""
    entry_public_id: str
    entry_date: str
    description: str
    total_debit: str
    total_credit: str
    lines: List[dict]
    changes: Dict[str, Dict[str, Any]] = field(default_factory=dict)


@dataclass
class JournalEntryReviewRequestedData(BaseEventData):
    """Data for journal_entry.review_requested event."""
    entry_public_id: str
    requested_at: str
    requested_by_id: int
    requested_by_email: str


@dataclass
class JournalEntryPostedData(BaseEventData):
    """Data for journal_entry.posted event."""
    entry_public_id: str
    entry_number: str
    entry_date: str
    posted_at: str
    posted_by_id: int
    posted_by_email: str
    total_debit: str
    total_credit: str
    lines: List[dict]  # List of JournalLineData dicts


@dataclass
class JournalEntryVoidedData(BaseEventData):
    """
    Data for journal_entry.voided event.

    Carries the original lines so balance projections can apply the
    equal and opposite postings without reading other events.
    """
    entry_public_id: str
    entry_number: str
    entry_date: str
    voided_at: str
    voided_by_id: int
    voided_by_email: str
    reason: str
    lines: List[dict]


@dataclass
class JournalEntryDeletedData(BaseEventData):
    """Data for journal_entry.deleted event."""
    entry_public_id: str
    entry_number: str
    status: str


# =============================================================================
# Reconciliation Events
# =============================================================================

@dataclass
class ReconciliationStartedData(BaseEventData):
    """Data for reconciliation.started event."""
    reconciliation_public_id: str
    bank_account_public_id: str
    statement_date: str
    statement_balance: str
    opening_balance: str


@dataclass
class ReconciliationCompletedData(BaseEventData):
    """Data for reconciliation.completed event."""
    reconciliation_public_id: str
    bank_account_public_id: str
    statement_balance: str
    reconciled_balance: str
    difference: str
    completed_at: str
    transaction_public_ids: List[str] = field(default_factory=list)


# =============================================================================
# Event Types Registry
# =============================================================================

class EventTypes:
    """All event type names. Use these constants instead of raw strings."""

    # Account events
    ACCOUNT_CREATED = "account.created"
    ACCOUNT_DEACTIVATED = "account.deactivated"

    # Journal entry events
    JOURNAL_ENTRY_CREATED = "journal_entry.created"
    JOURNAL_ENTRY_UPDATED = "journal_entry.updated"
    JOURNAL_ENTRY_REVIEW_REQUESTED = "journal_entry.review_requested"
    JOURNAL_ENTRY_POSTED = "journal_entry.posted"
    JOURNAL_ENTRY_VOIDED = "journal_entry.voided"
    JOURNAL_ENTRY_DELETED = "journal_entry.deleted"

    # Reconciliation events
    RECONCILIATION_STARTED = "reconciliation.started"
    RECONCILIATION_COMPLETED = "reconciliation.completed"


EVENT_DATA_CLASSES = {
    EventTypes.ACCOUNT_CREATED: AccountCreatedData,
    EventTypes.ACCOUNT_DEACTIVATED: AccountDeactivatedData,

    EventTypes.JOURNAL_ENTRY_CREATED: JournalEntryCreatedData,
    EventTypes.JOURNAL_ENTRY_UPDATED: JournalEntryUpdatedData,
    EventTypes.JOURNAL_ENTRY_REVIEW_REQUESTED: JournalEntryReviewRequestedData,
    EventTypes.JOURNAL_ENTRY_POSTED: JournalEntryPostedData,
    EventTypes.JOURNAL_ENTRY_VOIDED: JournalEntryVoidedData,
    EventTypes.JOURNAL_ENTRY_DELETED: JournalEntryDeletedData,

    EventTypes.RECONCILIATION_STARTED: ReconciliationStartedData,
    EventTypes.RECONCILIATION_COMPLETED: ReconciliationCompletedData,
}
