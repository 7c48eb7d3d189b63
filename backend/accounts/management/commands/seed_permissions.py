# accounts/management/commands/seed_permissions.py
from django.core.management.base import BaseCommand

from accounts.models import BusinessMembership
from accounts.permissions import grant_role_defaults, seed_permissions
from projections.write_barrier import bootstrap_writes_allowed


class Command(BaseCommand):
    help = "Create permission rows and optionally grant role defaults to every membership"

    def add_arguments(self, parser):
        parser.add_argument(
            "--grant-defaults",
            action="store_true",
            help="Also grant role defaults to active memberships",
        )

    def handle(self, *args, **options):
        with bootstrap_writes_allowed():
            created = seed_permissions()
            granted = 0
            if options["grant_defaults"]:
                for membership in BusinessMembership.objects.filter(is_active=True):
                    granted += grant_role_defaults(membership)

        self.stdout.write(self.style.SUCCESS(
            f"Done! Created {created} permissions, granted {granted}."
        ))
