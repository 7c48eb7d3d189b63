# tests/conftest.py
"""
Pytest fixtures for Tallybook tests.

- Businesses and one user per role, each with the role's default grants
- ActorContext objects built the same way requests build them (actor_for)
- A small chart of accounts created through the command layer, so the
  read models are produced by projections exactly as in production
"""

from datetime import date

import pytest
from django.conf import settings
from django.contrib.auth import get_user_model

from accounts.authz import actor_for
from accounts.models import Business, BusinessMembership
from accounts.permissions import grant_role_defaults, grant_permission
from accounting.commands import create_account, create_journal_entry


User = get_user_model()


@pytest.fixture(autouse=True, scope="session")
def _testing_settings():
    """Read-model guards are relaxed in tests; payload validation stays on."""
    settings.TESTING = True
    settings.DISABLE_EVENT_VALIDATION = False


# =============================================================================
# Business & User Fixtures
# =============================================================================

@pytest.fixture
def business(db):
    return Business.objects.create(name="Test Business", slug="test-business")


@pytest.fixture
def other_business(db):
    """Second tenant for isolation tests."""
    return Business.objects.create(name="Other Business", slug="other-business", default_currency="EUR")


@pytest.fixture
def make_member(db):
    """make_member(business, role, email) -> user with the role's default permissions."""

    def _make(business, role, email=None):
        email = email or f"{role}@{business.slug}.test"
        user = User.objects.create_user(email=email, password="pass12345", name=role.title())
        membership = BusinessMembership.objects.create(
            business=business,
            user=user,
            role=role,
            is_active=True,
        )
        grant_role_defaults(membership)
        user.active_business = business
        user.save(update_fields=["active_business"])
        return user

    return _make


@pytest.fixture
def owner(business, make_member):
    return make_member(business, BusinessMembership.Role.OWNER)


@pytest.fixture
def manager(business, make_member):
    return make_member(business, BusinessMembership.Role.MANAGER)


@pytest.fixture
def accountant(business, make_member):
    return make_member(business, BusinessMembership.Role.ACCOUNTANT)


@pytest.fixture
def supervisor(business, make_member):
    return make_member(business, BusinessMembership.Role.ACCOUNTANT_SUPERVISOR)


@pytest.fixture
def owner_actor(owner, business):
    return actor_for(owner, business)


@pytest.fixture
def manager_actor(manager, business):
    return actor_for(manager, business)


@pytest.fixture
def accountant_actor(accountant, business):
    return actor_for(accountant, business)


@pytest.fixture
def supervisor_actor(supervisor, business):
    return actor_for(supervisor, business)


@pytest.fixture
def posting_accountant_actor(business, make_member):
    """An accountant holding an explicit journal.post grant."""
    user = make_member(business, BusinessMembership.Role.ACCOUNTANT, email="poster@test-business.test")
    membership = BusinessMembership.objects.get(business=business, user=user)
    grant_permission(membership, "journal.post")
    return actor_for(user, business)


@pytest.fixture
def other_owner_actor(other_business, make_member):
    user = make_member(other_business, BusinessMembership.Role.OWNER)
    return actor_for(user, other_business)


# =============================================================================
# Chart of Accounts
# =============================================================================

CHART = [
    ("cash", "1000", "Cash", "asset"),
    ("bank", "1010", "Operating Bank", "asset"),
    ("payable", "2000", "Accounts Payable", "liability"),
    ("equity", "3000", "Owner Equity", "equity"),
    ("revenue", "4000", "Sales Revenue", "revenue"),
    ("expense", "5000", "Office Expense", "expense"),
]


def _make_chart(actor):
    accounts = {}
    for key, code, name, account_type in CHART:
        result = create_account(actor, code=code, name=name, account_type=account_type)
        assert result.success, result.error
        accounts[key] = result.data
    return accounts


@pytest.fixture
def chart(owner_actor):
    return _make_chart(owner_actor)


@pytest.fixture
def other_chart(other_owner_actor):
    return _make_chart(other_owner_actor)


@pytest.fixture
def cash_account(chart):
    return chart["cash"]


@pytest.fixture
def revenue_account(chart):
    return chart["revenue"]


# =============================================================================
# Journal helpers
# =============================================================================

def _line(account, debit="0", credit="0", description=""):
    return {
        "account_id": str(account.public_id),
        "debit": debit,
        "credit": credit,
        "description": description,
    }


@pytest.fixture
def line():
    """line(account, debit=..., credit=...) -> request-shaped journal line."""
    return _line


@pytest.fixture
def sale_lines(cash_account, revenue_account):
    """Cash 100.00 debit against Revenue 100.00 credit."""
    return [
        _line(cash_account, debit="100.00"),
        _line(revenue_account, credit="100.00"),
    ]


@pytest.fixture
def draft_entry(accountant_actor, sale_lines):
    result = create_journal_entry(
        accountant_actor,
        entry_date=date(2026, 3, 1),
        lines=sale_lines,
        description="Cash sale",
    )
    assert result.success, result.error
    return result.data


@pytest.fixture
def posted_entry(supervisor_actor, sale_lines):
    result = create_journal_entry(
        supervisor_actor,
        entry_date=date(2026, 3, 1),
        lines=sale_lines,
        description="Cash sale",
        auto_post=True,
    )
    assert result.success, result.error
    return result.data
