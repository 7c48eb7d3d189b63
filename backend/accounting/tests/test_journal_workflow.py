# accounting/tests/test_journal_workflow.py
"""
Integration tests for journal entry workflow.

These tests use API-level testing to verify the full lifecycle
of journal entries: create -> ask for review -> post -> void.

Tests verify the API responses rather than direct database queries
to avoid transaction isolation issues between the API client and
test database connections.
"""
from django.contrib.auth import get_user_model
from django.test import TransactionTestCase
from rest_framework.test import APIClient

from accounts.models import Business, BusinessMembership
from accounts.permissions import grant_role_defaults


class TestJournalEntryThinFlow(TransactionTestCase):
    """
    Thin integration test (API-level):
    - Accountant creates a draft and asks for review
    - Supervisor posts it
    - Reports reflect the posting
    - Supervisor voids it and the reports drop it again
    """

    def setUp(self):
        self.client = APIClient()
        self.business = Business.objects.create(name="Test Co", slug="testco")

        self.owner = self._member("owner@example.com", BusinessMembership.Role.OWNER)
        self.accountant = self._member("accountant@example.com", BusinessMembership.Role.ACCOUNTANT)
        self.supervisor = self._member("supervisor@example.com", BusinessMembership.Role.ACCOUNTANT_SUPERVISOR)

        self.client.force_authenticate(user=self.owner)
        self.cash = self._create_account("1000", "Cash", "asset")
        self.revenue = self._create_account("4000", "Sales Revenue", "revenue")

    def _member(self, email, role):
        User = get_user_model()
        user = User.objects.create_user(email=email, password="pass12345", name=role.title())
        membership = BusinessMembership.objects.create(
            user=user,
            business=self.business,
            role=role,
            is_active=True,
        )
        grant_role_defaults(membership)
        user.active_business = self.business
        user.save(update_fields=["active_business"])
        return user

    def _create_account(self, code, name, account_type):
        res = self.client.post(
            "/api/accounting/accounts/",
            {"code": code, "name": name, "account_type": account_type},
            format="json",
        )
        self.assertEqual(res.status_code, 201, res.data)
        return res.data["public_id"]

    def _as(self, user):
        self.client.force_authenticate(user=user)

    def _lines(self, debit="100.00", credit="100.00"):
        return [
            {"account_id": self.cash, "debit": debit, "credit": "0"},
            {"account_id": self.revenue, "debit": "0", "credit": credit},
        ]

    def _create_draft(self, **overrides):
        payload = {"entry_date": "2026-03-01", "description": "Cash sale", "lines": self._lines()}
        payload.update(overrides)
        return self.client.post("/api/accounting/journal-entries/", payload, format="json")

    def test_full_lifecycle(self):
        # 1) Accountant creates a draft
        self._as(self.accountant)
        res = self._create_draft()
        self.assertEqual(res.status_code, 201, res.data)
        entry_id = res.data["public_id"]
        self.assertEqual(res.data["status"], "draft")
        self.assertEqual(res.data["entry_number"], "JE-000001")
        self.assertEqual(res.data["total_debit"], "100.00")
        self.assertTrue(res.data["is_balanced"])
        self.assertNotIn("post", res.data["allowed_actions"])

        # 2) Ask for review
        res = self.client.post(f"/api/accounting/journal-entries/{entry_id}/ask-for-review/")
        self.assertEqual(res.status_code, 200, res.data)
        self.assertEqual(res.data["status"], "ask_for_review")

        # 3) Accountant cannot post
        res = self.client.post(f"/api/accounting/journal-entries/{entry_id}/post/")
        self.assertEqual(res.status_code, 403, res.data)
        self.assertEqual(res.data["code"], "forbidden")

        # 4) Supervisor posts
        self._as(self.supervisor)
        res = self.client.post(f"/api/accounting/journal-entries/{entry_id}/post/")
        self.assertEqual(res.status_code, 200, res.data)
        self.assertEqual(res.data["status"], "posted")
        self.assertEqual(res.data["posted_by_email"], "supervisor@example.com")
        self.assertEqual(res.data["allowed_actions"], ["void"])

        # 5) Posting twice is a state error
        res = self.client.post(f"/api/accounting/journal-entries/{entry_id}/post/")
        self.assertEqual(res.status_code, 409, res.data)
        self.assertEqual(res.data["code"], "invalid_state_transition")

        # 6) Reports include it
        res = self.client.get("/api/reports/trial-balance/")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["total_debits"], "100.00")
        self.assertEqual(res.data["total_credits"], "100.00")
        self.assertTrue(res.data["is_balanced"])

        res = self.client.get("/api/reports/ledger/", {"account_id": self.cash})
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["count"], 1)
        self.assertEqual(res.data["entries"][0]["running_balance"], "100.00")

        res = self.client.get("/api/reports/account-balances/", {"has_activity": "true"})
        self.assertEqual(res.status_code, 200)
        self.assertEqual(
            [(b["account_code"], b["balance"]) for b in res.data["balances"]],
            [("1000", "100.00"), ("4000", "100.00")],
        )

        res = self.client.get("/api/reports/projection-status/")
        self.assertEqual(res.status_code, 200)
        self.assertTrue(res.data["all_healthy"])

        # 7) Void needs a reason
        res = self.client.post(f"/api/accounting/journal-entries/{entry_id}/void/", {}, format="json")
        self.assertEqual(res.status_code, 400, res.data)
        self.assertEqual(res.data["code"], "validation_error")

        res = self.client.post(
            f"/api/accounting/journal-entries/{entry_id}/void/",
            {"reason": "Duplicate of bank import"},
            format="json",
        )
        self.assertEqual(res.status_code, 200, res.data)
        self.assertEqual(res.data["status"], "voided")
        self.assertEqual(res.data["void_reason"], "Duplicate of bank import")

        # 8) Reports no longer include it
        res = self.client.get("/api/reports/trial-balance/")
        self.assertEqual(res.data["accounts"], [])
        self.assertEqual(res.data["total_debits"], "0.00")

        # 9) The activity feed shows every step
        res = self.client.get(f"/api/accounting/journal-entries/{entry_id}/activity/")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(
            [e["event_type"] for e in res.data["events"]],
            [
                "journal_entry.created",
                "journal_entry.review_requested",
                "journal_entry.posted",
                "journal_entry.voided",
            ],
        )

    def test_unbalanced_entry_rejected(self):
        self._as(self.accountant)
        res = self._create_draft(lines=self._lines(credit="90.00"))
        self.assertEqual(res.status_code, 400, res.data)
        self.assertEqual(res.data["code"], "unbalanced_entry")
        self.assertEqual(res.data["difference"], "10.00")

    def test_single_line_rejected(self):
        self._as(self.accountant)
        res = self._create_draft(lines=self._lines()[:1])
        self.assertEqual(res.status_code, 400, res.data)
        self.assertEqual(res.data["code"], "insufficient_lines")

    def test_validate_endpoint_writes_nothing(self):
        self._as(self.accountant)
        res = self.client.post(
            "/api/accounting/journal-entries/validate/",
            {"lines": self._lines(credit="99.995")},
            format="json",
        )
        self.assertEqual(res.status_code, 200, res.data)
        self.assertTrue(res.data["is_balanced"])
        self.assertTrue(res.data["has_minimum_lines"])

        res = self.client.get("/api/accounting/journal-entries/")
        self.assertEqual(res.data["total"], 0)

    def test_oversized_amounts_are_rejected(self):
        self._as(self.accountant)
        lines = self._lines(debit="1e30", credit="1e30")

        res = self.client.post("/api/accounting/journal-entries/validate/", {"lines": lines}, format="json")
        self.assertEqual(res.status_code, 400, res.data)
        self.assertEqual(res.data["code"], "validation_error")
        self.assertEqual(res.data["field"], "debit")

        res = self._create_draft(lines=self._lines(debit="12345678901234567890.12", credit="12345678901234567890.12"))
        self.assertEqual(res.status_code, 400, res.data)
        self.assertEqual(res.data["code"], "validation_error")

        res = self.client.get("/api/accounting/journal-entries/")
        self.assertEqual(res.data["total"], 0)

    def test_allowed_actions_follow_permissions(self):
        self._as(self.supervisor)
        entry_id = self._create_draft(auto_post=True).data["public_id"]

        self._as(self.accountant)
        res = self.client.get(f"/api/accounting/journal-entries/{entry_id}/")
        self.assertEqual(res.status_code, 200, res.data)
        self.assertEqual(res.data["allowed_actions"], [])

        self._as(self.supervisor)
        res = self.client.get(f"/api/accounting/journal-entries/{entry_id}/")
        self.assertEqual(res.data["allowed_actions"], ["void"])

    def test_owner_cannot_auto_post(self):
        self._as(self.owner)
        res = self._create_draft(auto_post=True)
        self.assertEqual(res.status_code, 403, res.data)
        self.assertEqual(res.data["code"], "forbidden")

    def test_delete_draft(self):
        self._as(self.accountant)
        entry_id = self._create_draft().data["public_id"]

        res = self.client.delete(f"/api/accounting/journal-entries/{entry_id}/")
        self.assertEqual(res.status_code, 204)

        res = self.client.get(f"/api/accounting/journal-entries/{entry_id}/")
        self.assertEqual(res.status_code, 404)

    def test_edit_draft_replaces_lines(self):
        self._as(self.accountant)
        entry_id = self._create_draft().data["public_id"]

        res = self.client.put(
            f"/api/accounting/journal-entries/{entry_id}/",
            {"entry_date": "2026-03-02", "lines": self._lines(debit="40.00", credit="40.00")},
            format="json",
        )
        self.assertEqual(res.status_code, 200, res.data)
        self.assertEqual(res.data["entry_date"], "2026-03-02")
        self.assertEqual(res.data["total_credit"], "40.00")
        self.assertEqual(res.data["version"], 2)

    def test_unknown_entry(self):
        self._as(self.supervisor)
        res = self.client.post("/api/accounting/journal-entries/00000000-0000-4000-8000-000000000000/post/")
        self.assertEqual(res.status_code, 404, res.data)
        self.assertEqual(res.data["code"], "not_found")

    def test_accountant_cannot_void(self):
        self._as(self.supervisor)
        entry_id = self._create_draft(auto_post=True).data["public_id"]

        self._as(self.accountant)
        res = self.client.post(
            f"/api/accounting/journal-entries/{entry_id}/void/",
            {"reason": "Mistake"},
            format="json",
        )
        self.assertEqual(res.status_code, 403)

    def test_other_business_cannot_see_entry(self):
        self._as(self.accountant)
        entry_id = self._create_draft().data["public_id"]

        other = Business.objects.create(name="Other Co", slug="otherco")
        User = get_user_model()
        outsider = User.objects.create_user(email="outsider@example.com", password="pass12345")
        BusinessMembership.objects.create(user=outsider, business=other, role=BusinessMembership.Role.OWNER)

        self._as(outsider)
        res = self.client.get(
            f"/api/accounting/journal-entries/{entry_id}/",
            HTTP_X_BUSINESS_ID=str(other.public_id),
        )
        self.assertEqual(res.status_code, 404)

        res = self.client.get(
            f"/api/accounting/journal-entries/{entry_id}/",
            HTTP_X_BUSINESS_ID=str(self.business.public_id),
        )
        self.assertEqual(res.status_code, 403)
