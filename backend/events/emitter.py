# events/emitter.py
"""
Event emission functions.

This module provides the primary interface for emitting business events.
All events MUST be emitted through these functions to ensure:
1. Payload validation against canonical schemas (events/types.py)
2. Idempotency handling
3. Proper sequencing and optimistic concurrency
4. Audit trail (caused_by_user, metadata)

IMPORTANT: Events are validated at emission time.
==============================================
If you get an InvalidEventPayload error, it means the data dict
does not match the schema defined in events/types.py. Fix the
data being passed, don't disable validation.
"""

from __future__ import annotations

import logging
from typing import Optional, Any, Dict, Union
from datetime import datetime

from django.db import IntegrityError, transaction
from django.utils import timezone
from django.conf import settings

from events.models import BusinessEvent
from events.types import validate_event_payload, BaseEventData


logger = logging.getLogger(__name__)


class AggregateVersionConflict(Exception):
    """Another writer appended to the aggregate stream first."""

    def __init__(self, aggregate_type: str, aggregate_id: str, expected_version: int):
        self.aggregate_type = aggregate_type
        self.aggregate_id = aggregate_id
        self.expected_version = expected_version
        super().__init__(
            f"{aggregate_type}#{aggregate_id} is past version {expected_version}"
        )


def _emit_event_core(
    *,
    business,
    user,
    event_type: str,
    aggregate_type: str,
    aggregate_id: Any,
    data: Union[Dict[str, Any], BaseEventData],
    occurred_at: Optional[datetime],
    idempotency_key: str,
    metadata: Optional[Dict[str, Any]],
    expected_version: Optional[int],
    origin: str,
) -> BusinessEvent:
    """
    Validate, deduplicate and persist one event.

    With expected_version set, the event is written at sequence
    expected_version + 1 and a collision raises AggregateVersionConflict
    instead of being retried.
    """
    if not idempotency_key or not str(idempotency_key).strip():
        raise ValueError("idempotency_key is required")

    if isinstance(data, BaseEventData):
        data = data.to_dict()

    if not getattr(settings, "DISABLE_EVENT_VALIDATION", False):
        validate_event_payload(event_type, data)

    if occurred_at is None:
        occurred_at = timezone.now()

    # Quick idempotency check (common case)
    existing = BusinessEvent.objects.filter(business=business, idempotency_key=idempotency_key).first()
    if existing:
        return existing

    sequence = 0 if expected_version is None else expected_version + 1
    attempts = 1 if expected_version is not None else 3

    for attempt in range(attempts):
        try:
            with transaction.atomic():
                return BusinessEvent.objects.create(
                    business=business,
                    event_type=event_type,
                    aggregate_type=aggregate_type,
                    aggregate_id=str(aggregate_id),
                    sequence=sequence,
                    data=data,
                    metadata=metadata or {},
                    caused_by_user=user,
                    occurred_at=occurred_at,
                    idempotency_key=idempotency_key,
                    origin=origin,
                )
        except IntegrityError:
            # Either the idempotency key or the aggregate sequence collided.
            existing = BusinessEvent.objects.filter(business=business, idempotency_key=idempotency_key).first()
            if existing:
                return existing

            if expected_version is not None:
                logger.warning(
                    "Version conflict on %s#%s (expected %s)",
                    aggregate_type, aggregate_id, expected_version,
                )
                raise AggregateVersionConflict(aggregate_type, str(aggregate_id), expected_version)

            if attempt == attempts - 1:
                raise

    raise RuntimeError("Failed to emit event after retries")


def emit_event(
    actor,
    event_type: str,
    aggregate_type: str,
    aggregate_id: Any,
    data: Union[Dict[str, Any], BaseEventData],
    *,
    idempotency_key: str,
    expected_version: Optional[int] = None,
    occurred_at: Optional[datetime] = None,
    metadata: Optional[Dict[str, Any]] = None,
    origin: str = BusinessEvent.EventOrigin.HUMAN,
) -> BusinessEvent:
    """
    Emit a business event on behalf of an actor.

    The data parameter MUST conform to the schema defined in events/types.py
    and can be either a dict or a BaseEventData instance.

    Example:
        emit_event(
            actor,
            EventTypes.JOURNAL_ENTRY_POSTED,
            "JournalEntry",
            entry.public_id,
            JournalEntryPostedData(...),
            idempotency_key=f"journal_entry.posted:{entry.public_id}",
            expected_version=entry.version,
        )

    Raises:
        InvalidEventPayload: If data doesn't match the event type schema
        AggregateVersionConflict: If expected_version is stale
    """
    return _emit_event_core(
        business=actor.business,
        user=actor.user,
        event_type=event_type,
        aggregate_type=aggregate_type,
        aggregate_id=aggregate_id,
        data=data,
        occurred_at=occurred_at,
        idempotency_key=idempotency_key,
        metadata=metadata,
        expected_version=expected_version,
        origin=origin,
    )


def get_aggregate_events(business, aggregate_type: str, aggregate_id: Any) -> list[BusinessEvent]:
    """
    Aggregate stream ordering.

    Use per-aggregate sequence so rebuilds are deterministic within the
    aggregate, independent of other aggregates' interleaving.
    """
    return list(
        BusinessEvent.objects.filter(
            business=business,
            aggregate_type=aggregate_type,
            aggregate_id=str(aggregate_id),
        ).order_by("sequence")
    )


def get_business_events_by_type(
    business,
    event_types: list[str],
    since_event: Optional[BusinessEvent] = None,
    limit: int = 1000,
) -> list[BusinessEvent]:
    """
    Business-wide stream ordering.

    Use business_sequence so projections and bookmarks advance on the same clock.
    """
    qs = BusinessEvent.objects.filter(business=business, event_type__in=event_types)
    if since_event:
        qs = qs.filter(business_sequence__gt=since_event.business_sequence)
    return list(qs.order_by("business_sequence")[:limit])
