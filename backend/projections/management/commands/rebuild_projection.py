# projections/management/commands/rebuild_projection.py
"""
Management command to rebuild projections from events.

Events are the source of truth; projections can always be rebuilt.

Usage:
    # Rebuild a specific projection for a specific business
    python manage.py rebuild_projection --projection account_balance --business acme

    # Rebuild ALL projections for ALL businesses
    python manage.py rebuild_projection --all --all-businesses

    # Verify account balances against the event store afterwards
    python manage.py rebuild_projection --all --business acme --verify

    # List all available projections
    python manage.py rebuild_projection --list
"""

import time
import logging

from django.core.management.base import BaseCommand, CommandError

from accounts.models import Business
from projections.base import projection_registry

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Rebuild projections from events."""

    help = "Rebuild projections from the event store"

    def add_arguments(self, parser):
        parser.add_argument("--projection", type=str, help="Name of the projection to rebuild")
        parser.add_argument(
            "--all",
            action="store_true",
            dest="all_projections",
            help="Rebuild every registered projection, in registration order",
        )
        parser.add_argument("--business", type=str, help="Business slug to rebuild for")
        parser.add_argument(
            "--all-businesses",
            action="store_true",
            help="Rebuild for all active businesses",
        )
        parser.add_argument(
            "--verify",
            action="store_true",
            help="Verify projected account balances after rebuilding",
        )
        parser.add_argument("--list", action="store_true", help="List all available projections")

    def handle(self, *args, **options):
        if options["list"]:
            return self._list_projections()

        projections = self._get_projections(options)
        businesses = self._get_businesses(options)

        start_time = time.time()
        total_events = 0

        for business in businesses:
            self.stdout.write(f"\nRebuilding for: {business.name}")
            for projection in projections:
                processed = projection.rebuild(business)
                total_events += processed
                self.stdout.write(f"  {projection.name}: {processed:,} events")

            if options["verify"]:
                self._verify(business)

        elapsed = time.time() - start_time
        self.stdout.write(self.style.SUCCESS(
            f"\nREBUILD COMPLETE: {total_events:,} events in {elapsed:.2f}s"
        ))

    def _list_projections(self):
        self.stdout.write("\nAvailable projections:\n")
        for projection in projection_registry.all():
            consumes = ", ".join(projection.consumes) if projection.consumes else "none"
            self.stdout.write(f"  {projection.name}")
            self.stdout.write(f"    Events: {consumes}\n")
        self.stdout.write(f"\nTotal: {len(projection_registry.names())} projections")

    def _get_projections(self, options):
        if options["all_projections"] and options["projection"]:
            raise CommandError("Cannot use --projection and --all together")
        if options["all_projections"]:
            return projection_registry.all()

        name = options["projection"]
        if not name:
            raise CommandError("Must specify --projection <name> or --all")

        projection = projection_registry.get(name)
        if not projection:
            available = ", ".join(projection_registry.names())
            raise CommandError(f"Unknown projection: {name}\nAvailable: {available}")
        return [projection]

    def _get_businesses(self, options):
        if options["all_businesses"] and options["business"]:
            raise CommandError("Cannot use --business and --all-businesses together")
        if options["all_businesses"]:
            return list(Business.objects.filter(is_active=True))

        slug = options["business"]
        if not slug:
            raise CommandError("Must specify --business <slug> or --all-businesses")
        try:
            return [Business.objects.get(slug=slug, is_active=True)]
        except Business.DoesNotExist:
            raise CommandError(f"Business not found or inactive: {slug}")

    def _verify(self, business):
        projection = projection_registry.get("account_balance")
        result = projection.verify_all_balances(business)
        if result["mismatches"]:
            for mismatch in result["mismatches"]:
                self.stdout.write(self.style.ERROR(f"  Mismatch: {mismatch}"))
            logger.error("Balance verification failed for %s", business.slug)
            raise CommandError(f"{len(result['mismatches'])} balance mismatches for {business.slug}")
        self.stdout.write(self.style.SUCCESS(f"  Verified {result['verified']} balances"))
