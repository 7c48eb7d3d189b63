"""
Aggregate definitions for event sourcing.

Aggregates are reconstituted by replaying events from their event stream.
Each aggregate type has a dedicated stream identified by (aggregate_type, aggregate_id).

IMPORTANT: Aggregate Boundary Rules
===================================
All events that modify an aggregate MUST be emitted with that aggregate's
type and ID. This ensures:
1. Aggregates are replayable from their own stream (no global scans)
2. Event ordering is consistent within the aggregate
3. Optimistic concurrency can be enforced per-aggregate (`version`)
"""
from dataclasses import dataclass, field
from typing import Optional, List, Any

from events.emitter import get_aggregate_events
from events.types import EventTypes


@dataclass
class JournalEntryAggregate:
    public_id: str
    business: Any
    entry_number: str = ""
    entry_date: Optional[str] = None
    description: str = ""
    source_type: str = "manual"
    source_id: str = ""
    status: Optional[str] = None
    lines: List[dict] = field(default_factory=list)
    version: int = 0
    deleted: bool = False

    def apply(self, event) -> None:
        data = event.data
        self.version = event.sequence

        if event.event_type == EventTypes.JOURNAL_ENTRY_CREATED:
            self.entry_number = data.get("entry_number", "")
            self.entry_date = data.get("entry_date")
            self.description = data.get("description", "")
            self.source_type = data.get("source_type", self.source_type)
            self.source_id = data.get("source_id") or ""
            self.status = data.get("status", "draft")
            self.lines = data.get("lines", [])
            return

        if event.event_type == EventTypes.JOURNAL_ENTRY_UPDATED:
            self.entry_date = data.get("entry_date", self.entry_date)
            self.description = data.get("description", self.description)
            self.lines = data.get("lines", self.lines)
            return

        if event.event_type == EventTypes.JOURNAL_ENTRY_REVIEW_REQUESTED:
            self.status = "ask_for_review"
            return

        if event.event_type == EventTypes.JOURNAL_ENTRY_POSTED:
            self.status = "posted"
            return

        if event.event_type == EventTypes.JOURNAL_ENTRY_VOIDED:
            self.status = "voided"
            return

        if event.event_type == EventTypes.JOURNAL_ENTRY_DELETED:
            self.deleted = True


def load_journal_entry_aggregate(business, public_id: str) -> Optional[JournalEntryAggregate]:
    """Load a JournalEntry aggregate by replaying its event stream."""
    events = get_aggregate_events(business, "JournalEntry", public_id)
    if not events:
        return None

    aggregate = JournalEntryAggregate(public_id=str(public_id), business=business)
    for event in events:
        aggregate.apply(event)

    return aggregate


@dataclass
class AccountAggregate:
    public_id: str
    business: Any
    code: str = ""
    name: str = ""
    account_type: str = ""
    is_active: bool = True
    version: int = 0

    def apply(self, event) -> None:
        data = event.data
        self.version = event.sequence
        if event.event_type == EventTypes.ACCOUNT_CREATED:
            self.code = data.get("code", "")
            self.name = data.get("name", "")
            self.account_type = data.get("account_type", "")
            self.is_active = True
            return

        if event.event_type == EventTypes.ACCOUNT_DEACTIVATED:
            self.is_active = False


def load_account_aggregate(business, public_id: str) -> Optional[AccountAggregate]:
    events = get_aggregate_events(business, "Account", public_id)
    if not events:
        return None

    aggregate = AccountAggregate(public_id=str(public_id), business=business)
    for event in events:
        aggregate.apply(event)

    return aggregate
