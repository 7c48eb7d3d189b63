# accounting/tests/test_supervisor_queue.py
"""
API-level tests for the supervisor review queue.

A supervisor seated in two businesses sees entries from both without
switching X-Business-ID, and still posts each one under its own business.
"""
from django.contrib.auth import get_user_model
from django.test import TransactionTestCase
from rest_framework.test import APIClient

from accounts.models import Business, BusinessMembership
from accounts.permissions import grant_role_defaults

QUEUE_URL = "/api/accounting/supervisor/journal-entries/"
SUMMARY_URL = "/api/accounting/supervisor/summary/"


class TestSupervisorQueue(TransactionTestCase):

    def setUp(self):
        self.client = APIClient()
        User = get_user_model()
        self.supervisor = User.objects.create_user(email="supervisor@example.com", password="pass12345")
        self.accountant = User.objects.create_user(email="accountant@example.com", password="pass12345")
        self.owner = User.objects.create_user(email="owner@example.com", password="pass12345")

        self.bakery = self._business("Bakery", "bakery", supervised=True)
        self.garage = self._business("Garage", "garage", supervised=True)
        self.florist = self._business("Florist", "florist", supervised=False)

        self.entries = {}
        for business, descriptions in (
            (self.bakery, ["Flour delivery", "Oven repair"]),
            (self.garage, ["Rent"]),
            (self.florist, ["Seeds"]),
        ):
            self.entries[business.slug] = [self._submit(business, d) for d in descriptions]

        # One plain draft that never went to review.
        self._as(self.accountant, self.bakery)
        res = self.client.post(
            "/api/accounting/journal-entries/",
            {"entry_date": "2026-03-03", "description": "Unsent", "lines": self._lines(self.bakery)},
            format="json",
        )
        self.assertEqual(res.status_code, 201, res.data)

    def _seat(self, user, business, role):
        membership = BusinessMembership.objects.create(user=user, business=business, role=role)
        grant_role_defaults(membership)

    def _business(self, name, slug, supervised):
        business = Business.objects.create(name=name, slug=slug)
        self._seat(self.owner, business, BusinessMembership.Role.OWNER)
        self._seat(self.accountant, business, BusinessMembership.Role.ACCOUNTANT)
        if supervised:
            self._seat(self.supervisor, business, BusinessMembership.Role.ACCOUNTANT_SUPERVISOR)

        self._as(self.owner, business)
        business.account_ids = {}
        for code, account_name, account_type in (("1000", "Cash", "asset"), ("5000", "Expenses", "expense")):
            res = self.client.post(
                "/api/accounting/accounts/",
                {"code": code, "name": account_name, "account_type": account_type},
                format="json",
            )
            self.assertEqual(res.status_code, 201, res.data)
            business.account_ids[code] = res.data["public_id"]
        return business

    def _as(self, user, business=None):
        self.client.force_authenticate(user=user)
        if business is None:
            self.client.credentials()
        else:
            self.client.credentials(HTTP_X_BUSINESS_ID=str(business.public_id))

    def _lines(self, business, amount="25.00"):
        return [
            {"account_id": business.account_ids["5000"], "debit": amount, "credit": "0"},
            {"account_id": business.account_ids["1000"], "debit": "0", "credit": amount},
        ]

    def _submit(self, business, description):
        self._as(self.accountant, business)
        res = self.client.post(
            "/api/accounting/journal-entries/",
            {"entry_date": "2026-03-02", "description": description, "lines": self._lines(business)},
            format="json",
        )
        self.assertEqual(res.status_code, 201, res.data)
        entry_id = res.data["public_id"]
        res = self.client.post(f"/api/accounting/journal-entries/{entry_id}/ask-for-review/")
        self.assertEqual(res.status_code, 200, res.data)
        return entry_id

    def test_queue_spans_supervised_businesses_only(self):
        self._as(self.supervisor)
        res = self.client.get(QUEUE_URL, {"status": "ask_for_review"})

        self.assertEqual(res.status_code, 200, res.data)
        self.assertEqual(res.data["total"], 3)
        self.assertEqual(
            sorted(item["public_id"] for item in res.data["items"]),
            sorted(self.entries["bakery"] + self.entries["garage"]),
        )
        for item in res.data["items"]:
            self.assertIn(item["business_name"], ("Bakery", "Garage"))
            self.assertIn("post", item["allowed_actions"])

    def test_filters_and_business_name_sort(self):
        self._as(self.supervisor)

        res = self.client.get(QUEUE_URL, {"sort_by": "business_name", "sort_order": "asc"})
        self.assertEqual(
            [item["business_name"] for item in res.data["items"]],
            ["Bakery", "Bakery", "Bakery", "Garage"],
        )

        res = self.client.get(QUEUE_URL, {"business_id": str(self.garage.public_id)})
        self.assertEqual([item["description"] for item in res.data["items"]], ["Rent"])

        res = self.client.get(QUEUE_URL, {"search": "oven"})
        self.assertEqual([item["public_id"] for item in res.data["items"]], [self.entries["bakery"][1]])

        res = self.client.get(QUEUE_URL, {"page_size": 2, "page": 2, "sort_by": "business_name"})
        self.assertEqual(res.data["total_pages"], 2)
        self.assertEqual(len(res.data["items"]), 2)

    def test_business_filter_must_be_supervised(self):
        self._as(self.supervisor)

        res = self.client.get(QUEUE_URL, {"business_id": str(self.florist.public_id)})
        self.assertEqual(res.status_code, 403)

        res = self.client.get(QUEUE_URL, {"business_id": "florist"})
        self.assertEqual(res.status_code, 400)

    def test_non_supervisors_are_refused(self):
        for user in (self.accountant, self.owner):
            self._as(user)
            self.assertEqual(self.client.get(QUEUE_URL).status_code, 403)
            self.assertEqual(self.client.get(SUMMARY_URL).status_code, 403)

    def test_posting_from_the_queue(self):
        self._as(self.supervisor)
        item = self.client.get(QUEUE_URL, {"status": "ask_for_review", "business_id": str(self.garage.public_id)}).data[
            "items"
        ][0]

        self.client.credentials(HTTP_X_BUSINESS_ID=item["business_id"])
        res = self.client.post(f"/api/accounting/journal-entries/{item['public_id']}/post/")
        self.assertEqual(res.status_code, 200, res.data)
        self.assertEqual(res.data["status"], "posted")

        self._as(self.supervisor)
        res = self.client.get(QUEUE_URL, {"status": "ask_for_review"})
        self.assertEqual(res.data["total"], 2)

    def test_summary_counts_by_status(self):
        self._as(self.supervisor)
        res = self.client.get(SUMMARY_URL)

        self.assertEqual(res.status_code, 200, res.data)
        self.assertEqual(res.data["total_awaiting_review"], 3)
        self.assertEqual(
            [(b["business_name"], b["awaiting_review"]) for b in res.data["businesses"]],
            [("Bakery", 2), ("Garage", 1)],
        )
        self.assertEqual(
            res.data["businesses"][0]["status_counts"],
            {"draft": 1, "ask_for_review": 2, "posted": 0, "voided": 0},
        )

    def test_inactive_seat_drops_the_business(self):
        BusinessMembership.objects.filter(user=self.supervisor, business=self.garage).update(is_active=False)

        self._as(self.supervisor)
        res = self.client.get(SUMMARY_URL)
        self.assertEqual([b["business_name"] for b in res.data["businesses"]], ["Bakery"])
