#accounts/tests/test_permissions_defaults.py

from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from django.contrib.auth import get_user_model

from accounts.models import Business, BusinessMembership, MembershipPermission, Permission
from accounts.authz import ActorContext
from accounts.permission_defaults import ROLE_DEFAULTS, all_permission_codes
from accounts.permissions import grant_role_defaults, grant_permission, revoke_permission


User = get_user_model()


class TestPermissionDefaults(TestCase):
    def setUp(self):
        self.business = Business.objects.create(name="B1", slug="b1")
        self.owner = User.objects.create_user(email="o@test.com", password="pass12345")
        self.manager = User.objects.create_user(email="m@test.com", password="pass12345")
        self.accountant = User.objects.create_user(email="a@test.com", password="pass12345")
        self.supervisor = User.objects.create_user(email="s@test.com", password="pass12345")

        self.owner_m = BusinessMembership.objects.create(user=self.owner, business=self.business, role="owner")
        self.manager_m = BusinessMembership.objects.create(user=self.manager, business=self.business, role="manager")
        self.accountant_m = BusinessMembership.objects.create(
            user=self.accountant, business=self.business, role="accountant",
        )
        self.supervisor_m = BusinessMembership.objects.create(
            user=self.supervisor, business=self.business, role="accountant_supervisor",
        )

        for membership in (self.owner_m, self.manager_m, self.accountant_m, self.supervisor_m):
            grant_role_defaults(membership, granted_by=self.owner)

    def _actor(self, user, membership):
        perms = frozenset(membership.permissions.values_list("code", flat=True))
        return ActorContext(user=user, business=self.business, membership=membership, perms=perms)

    def test_defaults_match_table(self):
        for membership in (self.manager_m, self.accountant_m, self.supervisor_m):
            codes = set(membership.permissions.values_list("code", flat=True))
            self.assertEqual(codes, ROLE_DEFAULTS[membership.role])

    def test_only_supervisor_posts_by_default(self):
        self.assertTrue(self._actor(self.supervisor, self.supervisor_m).posting_rights)
        self.assertFalse(self._actor(self.accountant, self.accountant_m).posting_rights)
        self.assertFalse(self._actor(self.manager, self.manager_m).posting_rights)

    def test_manager_cannot_review_or_manage_accounts(self):
        actor = self._actor(self.manager, self.manager_m)
        self.assertFalse(actor.has("journal.review"))
        self.assertFalse(actor.has("accounts.manage"))
        self.assertTrue(actor.has("journal.void"))

    def test_accountant_cannot_void(self):
        actor = self._actor(self.accountant, self.accountant_m)
        self.assertFalse(actor.has("journal.void"))
        self.assertTrue(actor.has("banking.reconcile"))
        self.assertFalse(actor.has("banking.manage"))

    def test_grant_is_idempotent(self):
        self.assertEqual(grant_role_defaults(self.accountant_m), 0)
        self.assertTrue(grant_permission(self.accountant_m, "journal.post"))
        self.assertFalse(grant_permission(self.accountant_m, "journal.post"))

    def test_grant_records_granter(self):
        grant = MembershipPermission.objects.get(
            membership=self.accountant_m, permission__code="journal.create",
        )
        self.assertEqual(grant.granted_by, self.owner)

    def test_revocation_actually_blocks(self):
        self.assertTrue(revoke_permission(self.supervisor_m, "journal.post"))

        actor = self._actor(self.supervisor, self.supervisor_m)
        self.assertFalse(actor.has("journal.post"))
        self.assertFalse(actor.posting_rights)

    def test_overwrite_resets_manual_grants(self):
        grant_permission(self.accountant_m, "journal.void")
        grant_role_defaults(self.accountant_m, overwrite=True)

        codes = set(self.accountant_m.permissions.values_list("code", flat=True))
        self.assertNotIn("journal.void", codes)

    def test_inactive_membership_has_nothing(self):
        self.owner_m.is_active = False
        self.owner_m.save()
        self.assertFalse(self._actor(self.owner, self.owner_m).has("journal.view"))
        self.assertFalse(self.owner_m.has_permission("journal.view"))


class TestSeedPermissions(TestCase):
    def test_seed_creates_every_code(self):
        out = StringIO()
        call_command("seed_permissions", stdout=out)

        self.assertEqual(
            set(Permission.objects.values_list("code", flat=True)),
            all_permission_codes(),
        )
        self.assertIn("Done!", out.getvalue())

    def test_seed_grants_defaults(self):
        business = Business.objects.create(name="B2", slug="b2")
        user = User.objects.create_user(email="x@test.com", password="pass12345")
        membership = BusinessMembership.objects.create(user=user, business=business, role="accountant")

        call_command("seed_permissions", "--grant-defaults", stdout=StringIO())

        self.assertEqual(
            set(membership.permissions.values_list("code", flat=True)),
            ROLE_DEFAULTS["accountant"],
        )
