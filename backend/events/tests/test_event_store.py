from django.test import TestCase, override_settings
from django.contrib.auth import get_user_model

from accounts.authz import actor_for
from accounts.models import Business, BusinessMembership
from events.emitter import emit_event, get_aggregate_events, AggregateVersionConflict
from events.models import BusinessEvent
from events.types import (
    EventTypes,
    AccountCreatedData,
    InvalidEventPayload,
    validate_event_payload,
)


class TestEventEmitter(TestCase):
    def setUp(self):
        User = get_user_model()
        self.user = User.objects.create_user(email="u1@test.com", password="pass12345")
        self.business = Business.objects.create(name="B1", slug="b1")
        BusinessMembership.objects.create(
            user=self.user,
            business=self.business,
            role=BusinessMembership.Role.OWNER,
        )
        self.actor = actor_for(self.user, self.business)

    def _account_data(self, account_id: str = "A-1") -> dict:
        return AccountCreatedData(
            account_public_id=account_id,
            code="1000",
            name="Cash",
            account_type="asset",
        ).to_dict()

    def _emit(self, aggregate_id, key, **kwargs):
        return emit_event(
            self.actor,
            EventTypes.ACCOUNT_CREATED,
            "Account",
            aggregate_id,
            self._account_data(aggregate_id),
            idempotency_key=key,
            **kwargs,
        )

    def test_idempotency_returns_same_event(self):
        e1 = self._emit("A-1", "k-1")
        e2 = self._emit("A-1", "k-1")
        self.assertEqual(e1.id, e2.id)
        self.assertEqual(BusinessEvent.objects.filter(business=self.business).count(), 1)

    def test_idempotency_key_required(self):
        with self.assertRaises(ValueError):
            self._emit("A-1", "  ")

    def test_business_sequence_monotonic(self):
        events = [self._emit(f"A-{i}", f"k-{i}") for i in range(5)]
        seqs = [e.business_sequence for e in events]
        self.assertEqual(seqs, sorted(seqs))
        self.assertEqual(len(set(seqs)), len(seqs))

    def test_aggregate_sequence_increments(self):
        e1 = self._emit("1", "k-a1")
        e2 = emit_event(
            self.actor,
            EventTypes.ACCOUNT_DEACTIVATED,
            "Account",
            "1",
            {"account_public_id": "1", "code": "1000"},
            idempotency_key="k-a2",
        )
        self.assertEqual(e1.sequence, 1)
        self.assertEqual(e2.sequence, 2)
        self.assertEqual(
            [e.id for e in get_aggregate_events(self.business, "Account", "1")],
            [e1.id, e2.id],
        )

    def test_expected_version_places_event(self):
        event = self._emit("V-1", "k-v1", expected_version=0)
        self.assertEqual(event.sequence, 1)

    def test_stale_expected_version_conflicts(self):
        self._emit("V-1", "k-v1", expected_version=0)
        with self.assertRaises(AggregateVersionConflict) as ctx:
            self._emit("V-1", "k-v2", expected_version=0)
        self.assertEqual(ctx.exception.expected_version, 0)
        self.assertEqual(len(get_aggregate_events(self.business, "Account", "V-1")), 1)

    def test_replayed_key_wins_over_version_check(self):
        first = self._emit("V-1", "k-v1", expected_version=0)
        again = self._emit("V-1", "k-v1", expected_version=0)
        self.assertEqual(first.id, again.id)

    def test_events_record_actor(self):
        event = self._emit("A-1", "k-1")
        self.assertEqual(event.caused_by_user, self.user)
        self.assertEqual(event.origin, BusinessEvent.EventOrigin.HUMAN)


@override_settings(DISABLE_EVENT_VALIDATION=False)
class TestEventPayloadValidation(TestCase):
    """Payloads are checked against events/types.py before they are stored."""

    def setUp(self):
        User = get_user_model()
        self.user = User.objects.create_user(email="u1@test.com", password="pass12345")
        self.business = Business.objects.create(name="B1", slug="b1")
        BusinessMembership.objects.create(
            user=self.user,
            business=self.business,
            role=BusinessMembership.Role.OWNER,
        )
        self.actor = actor_for(self.user, self.business)

    def test_valid_payload_passes(self):
        validate_event_payload(EventTypes.ACCOUNT_CREATED, {
            "account_public_id": "A-1",
            "code": "1000",
            "name": "Cash",
            "account_type": "asset",
        })

    def test_missing_field(self):
        with self.assertRaises(InvalidEventPayload) as ctx:
            validate_event_payload(EventTypes.ACCOUNT_CREATED, {
                "account_public_id": "A-1",
                "code": "1000",
                "account_type": "asset",
            })
        self.assertIn("Missing required field: 'name'", ctx.exception.errors)

    def test_unexpected_field(self):
        with self.assertRaises(InvalidEventPayload) as ctx:
            validate_event_payload(EventTypes.ACCOUNT_DEACTIVATED, {
                "account_public_id": "A-1",
                "code": "1000",
                "reason": "closed",
            })
        self.assertTrue(any("Unexpected fields" in e for e in ctx.exception.errors))

    def test_enum_value(self):
        with self.assertRaises(InvalidEventPayload):
            validate_event_payload(EventTypes.ACCOUNT_CREATED, {
                "account_public_id": "A-1",
                "code": "1000",
                "name": "Cash",
                "account_type": "ASSET",
            })

    def test_nested_line_amounts_must_be_decimals(self):
        with self.assertRaises(InvalidEventPayload) as ctx:
            validate_event_payload(EventTypes.JOURNAL_ENTRY_POSTED, {
                "entry_public_id": "E-1",
                "entry_number": "JE-000001",
                "entry_date": "2026-03-01",
                "posted_at": "2026-03-01T10:00:00+00:00",
                "posted_by_id": 1,
                "posted_by_email": "u1@test.com",
                "total_debit": "10.00",
                "total_credit": "10.00",
                "lines": [
                    {"line_order": 1, "account_public_id": "A-1", "account_code": "1000",
                     "debit": "ten", "credit": "0", "description": ""},
                ],
            })
        self.assertTrue(any("'debit'" in e for e in ctx.exception.errors))

    def test_bad_reconciliation_date(self):
        with self.assertRaises(InvalidEventPayload):
            validate_event_payload(EventTypes.RECONCILIATION_STARTED, {
                "reconciliation_public_id": "R-1",
                "bank_account_public_id": "B-1",
                "statement_date": "31/03/2026",
                "statement_balance": "620.00",
                "opening_balance": "500.00",
            })

    def test_unknown_event_type(self):
        with self.assertRaises(ValueError):
            validate_event_payload("ledger.exploded", {})

    def test_emit_rejects_invalid_payload(self):
        with self.assertRaises(InvalidEventPayload):
            emit_event(
                self.actor,
                EventTypes.ACCOUNT_CREATED,
                "Account",
                "A-1",
                {"account_public_id": "A-1"},
                idempotency_key="bad-1",
            )
        self.assertFalse(BusinessEvent.objects.exists())
