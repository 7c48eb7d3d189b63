# events/models.py
"""
Event Store models for Tallybook.

The BusinessEvent table is the canonical source of truth for all
state changes in the system. Events are immutable once created.

EventBookmark tracks consumer progress for projection catch-up and
rebuilds.
"""

import uuid
from django.db import models, transaction, IntegrityError
from django.conf import settings
from django.db.models import F
from django.utils import timezone

from accounts.models import Business


class BusinessEventCounter(models.Model):
    business = models.OneToOneField(
        Business,
        on_delete=models.CASCADE,
        related_name="event_counter",
    )
    last_sequence = models.BigIntegerField(default=0)

    class Meta:
        verbose_name = "Business Event Counter"

    def __str__(self):
        return f"{self.business_id}: {self.last_sequence}"


class BusinessEvent(models.Model):
    """
    Immutable event record.

    `sequence` orders events inside one aggregate stream and doubles as the
    optimistic concurrency check: two writers that both expect version N
    both try to insert sequence N+1 and only one insert survives the unique
    constraint.
    """

    class EventOrigin(models.TextChoices):
        HUMAN = "human", "Human (Manual UI)"
        API = "api", "External API"
        SYSTEM = "system", "Internal System Process"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    business = models.ForeignKey(
        Business,
        on_delete=models.CASCADE,
        related_name="events",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Event type name (e.g., 'journal_entry.posted')",
    )

    aggregate_type = models.CharField(
        max_length=50,
        db_index=True,
        help_text="Entity type (e.g., 'Account', 'JournalEntry')",
    )

    aggregate_id = models.CharField(
        max_length=64,
        db_index=True,
    )

    # Idempotency (deduplication across retries / integrations)
    idempotency_key = models.CharField(
        max_length=255,
        db_index=True,
        editable=False,
        help_text="Unique idempotency key per business",
    )

    sequence = models.PositiveIntegerField(
        default=0,
        editable=False,
        help_text="Position in the aggregate stream (1-based)",
    )

    # Monotonic sequence per business (event stream cursor)
    business_sequence = models.BigIntegerField(
        db_index=True,
        editable=False,
        help_text="Monotonic event sequence per business",
    )

    data = models.JSONField(
        default=dict,
        help_text="Event data payload",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Additional context (source_type, request id, etc.)",
    )

    schema_version = models.PositiveSmallIntegerField(default=1)

    caused_by_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="caused_events",
    )

    origin = models.CharField(
        max_length=20,
        choices=EventOrigin.choices,
        default=EventOrigin.HUMAN,
        db_index=True,
    )

    recorded_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
    )

    occurred_at = models.DateTimeField(
        db_index=True,
        default=timezone.now,
    )

    class Meta:
        ordering = ["business_id", "business_sequence"]
        indexes = [
            models.Index(fields=["business", "aggregate_type", "aggregate_id", "sequence"], name="event_aggregate_stream_idx"),
            models.Index(fields=["business", "event_type", "occurred_at"], name="event_type_occurred_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["business", "aggregate_type", "aggregate_id", "sequence"],
                name="uniq_event_business_aggregate_sequence",
            ),
            models.UniqueConstraint(
                fields=["business", "idempotency_key"],
                name="uniq_event_business_idempotency_key",
            ),
            models.UniqueConstraint(
                fields=["business", "business_sequence"],
                name="uniq_event_business_sequence",
            ),
        ]

    def __str__(self):
        return f"{self.event_type} [{self.aggregate_type}#{self.aggregate_id}] @{self.occurred_at}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Events are immutable and cannot be modified.")

        if not self.idempotency_key or not self.idempotency_key.strip():
            raise ValueError("idempotency_key is required")

        with transaction.atomic():
            try:
                counter, _ = BusinessEventCounter.objects.select_for_update().get_or_create(
                    business=self.business
                )
            except IntegrityError:
                # Race: someone created it between get_or_create attempts
                counter = BusinessEventCounter.objects.select_for_update().get(business=self.business)

            counter.last_sequence = F("last_sequence") + 1
            counter.save(update_fields=["last_sequence"])
            counter.refresh_from_db(fields=["last_sequence"])
            self.business_sequence = counter.last_sequence

            # Callers that pass an explicit sequence are doing a version check.
            if self.sequence == 0:
                last_event = BusinessEvent.objects.filter(
                    business=self.business,
                    aggregate_type=self.aggregate_type,
                    aggregate_id=self.aggregate_id,
                ).order_by("-sequence").first()
                self.sequence = (last_event.sequence + 1) if last_event else 1

            super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Events are immutable and cannot be deleted.")

    def get_data(self) -> dict:
        return self.data


class EventBookmark(models.Model):
    consumer_name = models.CharField(
        max_length=100,
        help_text="Unique consumer identifier (e.g., 'account_balance')",
    )

    business = models.ForeignKey(
        Business,
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name="event_bookmarks",
    )

    last_event = models.ForeignKey(
        BusinessEvent,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
        help_text="Last successfully processed event",
    )

    last_processed_at = models.DateTimeField(null=True, blank=True)

    is_paused = models.BooleanField(
        default=False,
        help_text="Pause event processing for this consumer",
    )

    error_count = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["consumer_name", "business"],
                name="uniq_bookmark_consumer_business",
            ),
        ]

    def __str__(self):
        business_name = self.business.name if self.business else "GLOBAL"
        return f"{self.consumer_name} @ {business_name}"

    def mark_processed(self, event: BusinessEvent):
        self.last_event = event
        self.last_processed_at = timezone.now()
        self.error_count = 0
        self.last_error = ""
        self.save(update_fields=[
            "last_event", "last_processed_at", "error_count", "last_error", "updated_at"
        ])

    def mark_error(self, error_message: str):
        self.error_count += 1
        self.last_error = error_message[:1000]
        self.save(update_fields=["error_count", "last_error", "updated_at"])

    def get_unprocessed_events(self, event_types: list = None, limit: int = 100):
        """Business-wide stream ordering; bookmarks advance on business_sequence."""
        qs = BusinessEvent.objects.all()

        if self.business:
            qs = qs.filter(business=self.business)

        if event_types:
            qs = qs.filter(event_type__in=event_types)

        if self.last_event:
            qs = qs.filter(business_sequence__gt=self.last_event.business_sequence)

        return qs.order_by("business_sequence")[:limit]
