# projections/accounting.py
"""
Accounting projections (read models).

This module contains projections that maintain the read models for
accounting entities. Projections are the ONLY code allowed to write
to the accounting models (Account, JournalEntry, JournalLine).

All writes use _projection_write=True to bypass the read-model guard.
"""

import logging
from decimal import Decimal
from datetime import datetime, date

from events.types import EventTypes
from events.models import BusinessEvent
from projections.base import BaseProjection, projection_registry
from accounting.models import Account, JournalEntry, JournalLine


logger = logging.getLogger(__name__)


def _parse_date(value):
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    return value


def _parse_datetime(value):
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return value


class AccountProjection(BaseProjection):
    @property
    def name(self) -> str:
        return "account_read_model"

    @property
    def consumes(self):
        return [
            EventTypes.ACCOUNT_CREATED,
            EventTypes.ACCOUNT_DEACTIVATED,
        ]

    def handle(self, event: BusinessEvent) -> None:
        data = event.data
        if event.event_type == EventTypes.ACCOUNT_CREATED:
            Account.objects.projection().update_or_create(
                business=event.business,
                public_id=data["account_public_id"],
                defaults={
                    "code": data["code"],
                    "name": data["name"],
                    "account_type": data["account_type"],
                    "description": data.get("description", ""),
                    "is_active": True,
                },
            )
            return

        if event.event_type == EventTypes.ACCOUNT_DEACTIVATED:
            Account.objects.projection().filter(
                business=event.business,
                public_id=data["account_public_id"],
            ).update(is_active=False)
            return

        logger.warning("Unhandled event type for AccountProjection: %s", event.event_type)

    def _clear_projected_data(self, business) -> None:
        # Lines reference accounts with PROTECT, so accounts are re-upserted
        # in place instead of being deleted.
        Account.objects.projection().filter(business=business).update(is_active=True)


class JournalEntryProjection(BaseProjection):
    @property
    def name(self) -> str:
        return "journal_entry_read_model"

    @property
    def consumes(self):
        return [
            EventTypes.JOURNAL_ENTRY_CREATED,
            EventTypes.JOURNAL_ENTRY_UPDATED,
            EventTypes.JOURNAL_ENTRY_REVIEW_REQUESTED,
            EventTypes.JOURNAL_ENTRY_POSTED,
            EventTypes.JOURNAL_ENTRY_VOIDED,
            EventTypes.JOURNAL_ENTRY_DELETED,
        ]

    def _get_entry(self, event: BusinessEvent):
        entry = JournalEntry.objects.filter(
            business=event.business,
            public_id=event.data["entry_public_id"],
        ).first()
        if not entry:
            logger.warning(
                "Journal entry not found for %s: %s",
                event.event_type, event.data["entry_public_id"],
            )
        return entry

    def handle(self, event: BusinessEvent) -> None:
        data = event.data

        if event.event_type == EventTypes.JOURNAL_ENTRY_CREATED:
            entry, _ = JournalEntry.objects.projection().update_or_create(
                business=event.business,
                public_id=data["entry_public_id"],
                defaults={
                    "entry_number": data["entry_number"],
                    "entry_date": _parse_date(data["entry_date"]),
                    "description": data.get("description", ""),
                    "status": data.get("status", JournalEntry.Status.DRAFT),
                    "source_type": data.get("source_type", JournalEntry.SourceType.MANUAL),
                    "source_id": data.get("source_id") or "",
                    "created_by_id": data.get("created_by_id"),
                    "version": event.sequence,
                },
            )
            self._replace_lines(entry, data.get("lines", []))
            return

        entry = self._get_entry(event)
        if not entry:
            return

        if event.event_type == EventTypes.JOURNAL_ENTRY_DELETED:
            entry.delete()
            return

        if event.event_type == EventTypes.JOURNAL_ENTRY_UPDATED:
            entry.entry_date = _parse_date(data["entry_date"])
            entry.description = data.get("description", "")
            self._replace_lines(entry, data["lines"])

        elif event.event_type == EventTypes.JOURNAL_ENTRY_REVIEW_REQUESTED:
            entry.status = JournalEntry.Status.ASK_FOR_REVIEW
            entry.review_requested_at = _parse_datetime(data["requested_at"])
            entry.review_requested_by_id = data["requested_by_id"]

        elif event.event_type == EventTypes.JOURNAL_ENTRY_POSTED:
            entry.status = JournalEntry.Status.POSTED
            entry.posted_at = _parse_datetime(data["posted_at"])
            entry.posted_by_id = data["posted_by_id"]

        elif event.event_type == EventTypes.JOURNAL_ENTRY_VOIDED:
            entry.status = JournalEntry.Status.VOIDED
            entry.voided_at = _parse_datetime(data["voided_at"])
            entry.voided_by_id = data["voided_by_id"]
            entry.void_reason = data["reason"]

        else:
            logger.warning("Unhandled event type for JournalEntryProjection: %s", event.event_type)
            return

        entry.version = event.sequence
        entry.save(_projection_write=True)

    def _replace_lines(self, entry: JournalEntry, lines: list[dict]) -> None:
        entry.lines.all().delete()
        line_objects = []
        for index, line in enumerate(lines, start=1):
            account = Account.objects.filter(
                business=entry.business,
                public_id=line["account_public_id"],
            ).first()
            if not account:
                raise ValueError(
                    f"Account {line['account_public_id']} not found for entry {entry.public_id}"
                )
            line_objects.append(JournalLine(
                entry=entry,
                business=entry.business,
                line_order=line.get("line_order", index),
                account=account,
                description=line.get("description", ""),
                debit=Decimal(str(line.get("debit") or "0")),
                credit=Decimal(str(line.get("credit") or "0")),
            ))
        if line_objects:
            JournalLine.objects.projection().bulk_create(line_objects)

    def _clear_projected_data(self, business) -> None:
        JournalLine.objects.projection().filter(business=business).delete()
        JournalEntry.objects.projection().filter(business=business).delete()


projection_registry.register(AccountProjection())
projection_registry.register(JournalEntryProjection())
