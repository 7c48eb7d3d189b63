# tests/test_authz.py
"""
Tests for ActorContext resolution and permission checks.
"""

from dataclasses import FrozenInstanceError
from uuid import uuid4

import pytest
from django.contrib.auth.models import AnonymousUser
from django.core.exceptions import PermissionDenied
from rest_framework.exceptions import NotAuthenticated

from accounts.authz import actor_for, actors_for_role, resolve_actor, require, require_any, BUSINESS_HEADER
from accounts.models import Business, BusinessMembership
from accounts.permissions import grant_role_defaults, revoke_permission, grant_permission


def _request(rf, user, business_id=None):
    headers = {BUSINESS_HEADER: str(business_id)} if business_id else {}
    request = rf.get("/api/accounting/entries/", headers=headers)
    request.user = user
    return request


@pytest.mark.django_db
class TestActorFor:

    def test_context_carries_role_and_tenant(self, accountant, business):
        actor = actor_for(accountant, business)
        assert actor.role == BusinessMembership.Role.ACCOUNTANT
        assert actor.tenant_id == business.id
        assert "journal.create" in actor.perms
        assert not actor.is_owner

    def test_non_member_is_denied(self, accountant, other_business):
        with pytest.raises(PermissionDenied):
            actor_for(accountant, other_business)

    def test_inactive_membership_is_denied(self, accountant, business):
        BusinessMembership.objects.filter(user=accountant, business=business).update(is_active=False)
        with pytest.raises(PermissionDenied):
            actor_for(accountant, business)

    def test_context_is_immutable(self, accountant_actor, other_business):
        with pytest.raises(FrozenInstanceError):
            accountant_actor.business = other_business


@pytest.mark.django_db
class TestRequire:

    def test_owner_holds_everything(self, owner_actor):
        require(owner_actor, "banking.manage")
        require(owner_actor, "some.future_permission")

    def test_explicit_grants_only(self, accountant_actor):
        require(accountant_actor, "journal.review")
        with pytest.raises(PermissionDenied, match="journal.void"):
            require(accountant_actor, "journal.void")

    def test_manager_cannot_review(self, manager_actor):
        with pytest.raises(PermissionDenied):
            require(manager_actor, "journal.review")

    def test_require_any(self, accountant_actor):
        require_any(accountant_actor, "journal.void", "journal.view")
        with pytest.raises(PermissionDenied):
            require_any(accountant_actor, "journal.void", "banking.manage")

    def test_revocation_applies_to_next_context(self, accountant, business):
        membership = BusinessMembership.objects.get(user=accountant, business=business)
        revoke_permission(membership, "journal.create")

        with pytest.raises(PermissionDenied):
            require(actor_for(accountant, business), "journal.create")


@pytest.mark.django_db
class TestPostingRights:

    def test_supervisor_default_grant(self, supervisor_actor):
        assert supervisor_actor.posting_rights

    def test_accountant_needs_explicit_grant(self, accountant, business, accountant_actor):
        assert not accountant_actor.posting_rights

        membership = BusinessMembership.objects.get(user=accountant, business=business)
        grant_permission(membership, "journal.post")

        assert actor_for(accountant, business).posting_rights

    def test_owner_is_not_implied(self, owner_actor):
        assert owner_actor.has("journal.post")
        assert not owner_actor.posting_rights


@pytest.mark.django_db
class TestResolveActor:

    def test_anonymous_rejected(self, rf):
        with pytest.raises(NotAuthenticated):
            resolve_actor(_request(rf, AnonymousUser()))

    def test_falls_back_to_active_business(self, rf, accountant, business):
        actor = resolve_actor(_request(rf, accountant))
        assert actor.business == business

    def test_header_selects_business(self, rf, accountant, business, other_business):
        membership = BusinessMembership.objects.create(
            business=other_business,
            user=accountant,
            role=BusinessMembership.Role.OWNER,
        )

        actor = resolve_actor(_request(rf, accountant, other_business.public_id))

        assert actor.business == other_business
        assert actor.membership == membership
        assert actor.is_owner

    def test_header_for_foreign_business_denied(self, rf, accountant, other_business):
        with pytest.raises(PermissionDenied):
            resolve_actor(_request(rf, accountant, other_business.public_id))

    def test_unknown_business_denied(self, rf, accountant):
        with pytest.raises(PermissionDenied, match="No business selected"):
            resolve_actor(_request(rf, accountant, uuid4()))

    def test_malformed_header_denied(self, rf, accountant):
        with pytest.raises(PermissionDenied, match="UUID"):
            resolve_actor(_request(rf, accountant, "not-a-uuid"))

    def test_no_business_at_all(self, rf, make_member, business):
        user = make_member(business, BusinessMembership.Role.MANAGER)
        user.active_business = None
        user.save(update_fields=["active_business"])

        with pytest.raises(PermissionDenied, match="No business selected"):
            resolve_actor(_request(rf, user))


@pytest.mark.django_db
class TestActorsForRole:

    def test_one_context_per_supervised_business(self, supervisor, business, other_business):
        seat = BusinessMembership.objects.create(
            user=supervisor, business=other_business, role=BusinessMembership.Role.ACCOUNTANT_SUPERVISOR,
        )
        grant_role_defaults(seat)
        closed = Business.objects.create(name="Closed", slug="closed", is_active=False)
        BusinessMembership.objects.create(
            user=supervisor, business=closed, role=BusinessMembership.Role.ACCOUNTANT_SUPERVISOR,
        )

        actors = actors_for_role(supervisor, BusinessMembership.Role.ACCOUNTANT_SUPERVISOR)

        assert set(actors) == {business.id, other_business.id}
        assert actors[other_business.id].tenant_id == other_business.id
        assert actors[other_business.id].posting_rights

    def test_other_roles_are_ignored(self, accountant):
        assert actors_for_role(accountant, BusinessMembership.Role.ACCOUNTANT_SUPERVISOR) == {}
