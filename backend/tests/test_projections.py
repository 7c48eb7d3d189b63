# tests/test_projections.py
"""
Tests for projections.

Tests cover:
- AccountBalance after post and void
- Idempotent event handling
- Rebuild from events matches incremental processing
- Projected and derived trial balances agree
"""

from datetime import date
from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from accounting.commands import create_journal_entry, void_journal_entry
from accounting.ledger import get_trial_balance
from accounting.models import JournalEntry
from events.models import BusinessEvent, EventBookmark
from events.types import EventTypes
from projections.base import projection_registry
from projections.models import AccountBalance
from projections.tasks import rebuild_business_projection, process_business_projections


@pytest.fixture
def balance_projection():
    return projection_registry.get("account_balance")


@pytest.fixture
def entry_projection():
    return projection_registry.get("journal_entry_read_model")


def _balances(business):
    return {
        b.account.code: (b.debit_total, b.credit_total, b.balance, b.entry_count)
        for b in AccountBalance.objects.filter(business=business).select_related("account")
    }


@pytest.fixture
def activity(supervisor_actor, chart, line):
    """Three posted entries and one draft."""
    specs = [
        (date(2026, 1, 5), [line(chart["cash"], debit="500.00"), line(chart["equity"], credit="500.00")], True),
        (date(2026, 1, 9), [line(chart["expense"], debit="75.25"), line(chart["cash"], credit="75.25")], True),
        (date(2026, 1, 12), [line(chart["cash"], debit="120.00"), line(chart["revenue"], credit="120.00")], True),
        (date(2026, 1, 15), [line(chart["expense"], debit="9.99"), line(chart["payable"], credit="9.99")], False),
    ]
    entries = []
    for entry_date, lines, auto_post in specs:
        result = create_journal_entry(supervisor_actor, entry_date=entry_date, lines=lines, auto_post=auto_post)
        assert result.success, result.error
        entries.append(result.data)
    return entries


# =============================================================================
# Account Balance
# =============================================================================

@pytest.mark.django_db
class TestAccountBalanceProjection:

    def test_posted_entry_updates_balances(self, business, posted_entry):
        balances = _balances(business)
        assert balances["1000"] == (Decimal("100.00"), Decimal("0.00"), Decimal("100.00"), 1)
        # Revenue is credit-normal: a credit raises its balance.
        assert balances["4000"] == (Decimal("0.00"), Decimal("100.00"), Decimal("100.00"), 1)

    def test_draft_does_not_touch_balances(self, business, draft_entry):
        assert not AccountBalance.objects.filter(business=business).exists()

    def test_void_reverses_balances(self, business, supervisor_actor, posted_entry):
        result = void_journal_entry(supervisor_actor, posted_entry.public_id, reason="Duplicate")
        assert result.success, result.error

        for debit_total, credit_total, balance, entry_count in _balances(business).values():
            assert debit_total == credit_total
            assert balance == Decimal("0.00")
            assert entry_count == 0

    def test_same_line_account_twice_is_summed(self, business, supervisor_actor, chart, line):
        result = create_journal_entry(
            supervisor_actor,
            entry_date=date(2026, 2, 1),
            lines=[
                line(chart["cash"], debit="30.00"),
                line(chart["cash"], debit="20.00"),
                line(chart["revenue"], credit="50.00"),
            ],
            auto_post=True,
        )
        assert result.success, result.error
        assert _balances(business)["1000"][:3] == (Decimal("50.00"), Decimal("0.00"), Decimal("50.00"))

    def test_handling_an_event_twice_is_harmless(self, business, balance_projection, posted_entry):
        before = _balances(business)
        event = BusinessEvent.objects.get(
            business=business,
            event_type=EventTypes.JOURNAL_ENTRY_POSTED,
            aggregate_id=str(posted_entry.public_id),
        )

        balance_projection.handle(event)

        assert _balances(business) == before

    def test_nothing_pending_after_commands(self, business, activity):
        for projection in projection_registry.all():
            assert projection.get_lag(business) == 0
            assert projection.process_pending(business) == 0

    def test_paused_projection_skips(self, business, balance_projection, activity):
        bookmark = balance_projection.get_bookmark(business)
        bookmark.is_paused = True
        bookmark.save()
        EventBookmark.objects.filter(pk=bookmark.pk).update(last_event=None)

        assert balance_projection.process_pending(business) == 0

    def test_verify_all_balances(self, business, supervisor_actor, balance_projection, activity):
        void_journal_entry(supervisor_actor, activity[1].public_id, reason="Wrong account")

        report = balance_projection.verify_all_balances(business)

        assert report["mismatches"] == []
        assert report["events_processed"] == 4

    def test_verify_detects_drift(self, business, balance_projection, activity):
        AccountBalance.objects.filter(business=business, account__code="1000").update(debit_total=Decimal("1.00"))

        report = balance_projection.verify_all_balances(business)

        assert [m["account_code"] for m in report["mismatches"]] == ["1000"]


# =============================================================================
# Rebuild
# =============================================================================

@pytest.mark.django_db
class TestRebuild:

    def test_balance_rebuild_matches_incremental(self, business, supervisor_actor, balance_projection, activity):
        void_journal_entry(supervisor_actor, activity[2].public_id, reason="Reversed sale")
        incremental = _balances(business)

        processed = balance_projection.rebuild(business)

        assert processed == 4
        assert _balances(business) == incremental

    def test_entry_rebuild_restores_read_model(self, business, supervisor_actor, entry_projection, activity):
        void_journal_entry(supervisor_actor, activity[0].public_id, reason="Opening balance typo")

        def snapshot():
            return [
                (e.entry_number, e.status, e.version, [(ln.account.code, ln.debit, ln.credit) for ln in e.lines.all()])
                for e in JournalEntry.objects.filter(business=business).order_by("entry_number")
            ]

        before = snapshot()
        entry_projection.rebuild(business)
        assert snapshot() == before

    def test_rebuild_task(self, business, activity):
        AccountBalance.objects.filter(business=business).delete()

        result = rebuild_business_projection(business_id=business.id, projection_name="account_balance")

        assert result["status"] == "success"
        assert _balances(business)["1000"][2] == Decimal("544.75")

    def test_rebuild_task_unknown_projection(self, business):
        result = rebuild_business_projection(business_id=business.id, projection_name="nope")
        assert "error" in result

    def test_process_task_reports_each_projection(self, business, activity):
        result = process_business_projections(business_id=business.id)
        assert result["total_processed"] == 0
        assert set(result["projections"]) == set(projection_registry.names())


# =============================================================================
# Projected vs derived
# =============================================================================

@pytest.mark.django_db
class TestTrialBalanceAgreement:

    def test_projected_totals_match_derived(self, business, supervisor_actor, owner_actor, balance_projection, activity):
        void_journal_entry(supervisor_actor, activity[1].public_id, reason="Wrong account")

        projected = balance_projection.get_trial_balance(business)
        derived = get_trial_balance(owner_actor).as_dict()

        assert projected["is_balanced"]
        assert Decimal(projected["total_debit"]) == Decimal(derived["total_debits"])
        assert Decimal(projected["total_credit"]) == Decimal(derived["total_credits"])
        assert Decimal(derived["total_debits"]) == Decimal("620.00")


# =============================================================================
# Management command
# =============================================================================

@pytest.mark.django_db
class TestRebuildCommand:

    def test_rebuild_all_and_verify(self, business, activity):
        out = StringIO()
        call_command("rebuild_projection", "--all", "--business", business.slug, "--verify", stdout=out)

        output = out.getvalue()
        assert "REBUILD COMPLETE" in output
        assert "Verified" in output
        assert _balances(business)["1000"][2] == Decimal("544.75")

    def test_requires_a_target(self, business):
        with pytest.raises(CommandError):
            call_command("rebuild_projection", "--business", business.slug)

    def test_unknown_business(self):
        with pytest.raises(CommandError, match="not found"):
            call_command("rebuild_projection", "--all", "--business", "nobody")
