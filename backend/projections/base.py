# projections/base.py
"""
Base classes for projections.

A projection is an event consumer that builds materialized views.
Projections:
- Declare which event types they consume
- Process events idempotently (same event twice = same result)
- Track their progress via EventBookmark
- Can be rebuilt from scratch by replaying all events
"""

from abc import ABC, abstractmethod
from typing import List, Optional
import logging

from django.db import transaction

from accounts.models import Business
from events.models import BusinessEvent, EventBookmark
from projections.models import ProjectionAppliedEvent
from projections.write_barrier import projection_writes_allowed


logger = logging.getLogger(__name__)


class BaseProjection(ABC):
    """
    Base class for all projections.

    Subclasses must implement:
    - name: Unique identifier for this projection
    - consumes: List of event types this projection handles
    - handle(event): Process a single event

    Optional overrides:
    - _clear_projected_data(business): what rebuild() wipes first
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name for this projection (used in bookmarks)."""

    @property
    @abstractmethod
    def consumes(self) -> List[str]:
        """List of event types this projection consumes."""

    @abstractmethod
    def handle(self, event: BusinessEvent) -> None:
        """
        Process a single event.

        MUST be idempotent: processing the same event twice
        should produce the same result.
        """

    def rebuild(self, business: Business) -> int:
        """
        Rebuild this projection from scratch for a business.

        1. Reset bookmark to beginning
        2. Clear existing projected data
        3. Process all relevant events

        Returns:
            Number of events processed
        """
        with transaction.atomic():
            bookmark, _ = EventBookmark.objects.get_or_create(
                consumer_name=self.name,
                business=business,
            )
            bookmark.last_event = None
            bookmark.last_processed_at = None
            bookmark.error_count = 0
            bookmark.last_error = ""
            bookmark.save()

            with projection_writes_allowed():
                self._clear_projected_data(business)
                ProjectionAppliedEvent.objects.filter(
                    business=business,
                    projection_name=self.name,
                ).delete()

        total = 0
        while True:
            processed = self.process_pending(business)
            total += processed
            if processed == 0 or self.get_lag(business) == 0:
                return total

    def _clear_projected_data(self, business: Business) -> None:
        """Clear all projected data for rebuild. Subclasses override this."""

    def process_pending(
        self,
        business: Business,
        limit: int = 1000,
        stop_on_error: bool = True,
        raise_errors: bool = False,
    ) -> int:
        """
        Process pending events for this projection.

        Args:
            business: The business to process events for
            limit: Maximum events to process in one call
            stop_on_error: If True, stop on first error
            raise_errors: Re-raise handler errors instead of recording them.
                Commands use this so a failing projection rolls back the
                command's transaction along with its event.

        Returns:
            Number of events successfully processed
        """
        bookmark, _ = EventBookmark.objects.get_or_create(
            consumer_name=self.name,
            business=business,
        )

        if bookmark.is_paused:
            logger.info("Projection %s is paused for %s", self.name, business.name)
            return 0

        events = list(bookmark.get_unprocessed_events(
            event_types=self.consumes,
            limit=limit,
        ))

        processed = 0

        for event in events:
            try:
                with transaction.atomic():
                    with projection_writes_allowed():
                        _, created = ProjectionAppliedEvent.objects.get_or_create(
                            business=business,
                            projection_name=self.name,
                            event=event,
                        )
                        if created:
                            self.handle(event)
                        bookmark.mark_processed(event)
                        processed += 1

            except Exception as e:
                logger.exception(
                    "Error processing event %s in %s: %s", event.id, self.name, e
                )
                if raise_errors:
                    raise
                bookmark.mark_error(str(e))

                if stop_on_error:
                    break

        if processed > 0:
            logger.info(
                "Projection %s processed %s events for %s", self.name, processed, business.name
            )

        return processed

    def get_bookmark(self, business: Business) -> Optional[EventBookmark]:
        """Get the bookmark for this projection and business."""
        try:
            return EventBookmark.objects.get(
                consumer_name=self.name,
                business=business,
            )
        except EventBookmark.DoesNotExist:
            return None

    def get_lag(self, business: Business) -> int:
        """Number of unprocessed events for this projection."""
        bookmark = self.get_bookmark(business)
        if not bookmark:
            return BusinessEvent.objects.filter(
                business=business,
                event_type__in=self.consumes,
            ).count()

        return bookmark.get_unprocessed_events(
            event_types=self.consumes,
            limit=10000,
        ).count()


class ProjectionRegistry:
    """
    Registry of all projections.

    Usage:
        registry = ProjectionRegistry()
        registry.register(AccountBalanceProjection())

        for projection in registry.all():
            projection.process_pending(business)
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._projections = {}
        return cls._instance

    def register(self, projection: BaseProjection) -> None:
        self._projections[projection.name] = projection

    def get(self, name: str) -> Optional[BaseProjection]:
        return self._projections.get(name)

    def all(self) -> List[BaseProjection]:
        return list(self._projections.values())

    def names(self) -> List[str]:
        return list(self._projections.keys())


# Global registry instance
projection_registry = ProjectionRegistry()
