# accounts/authz.py
"""
Authorization utilities for Tallybook.

Provides:
- ActorContext: immutable request-scoped context (tenant, role, credentials)
- resolve_actor: build the context from an authenticated request
- require: check a permission code and raise if not granted

Permissions are checked:
1. OWNER: implicit allow
2. every other role: explicit grants only (role defaults + manual grants)

The context is always passed explicitly to commands. Nothing in the
codebase keeps a "current business" in module or thread state, so acting
for another business means building another context.
"""

import uuid
from dataclasses import dataclass
from typing import Dict, FrozenSet

from django.core.exceptions import PermissionDenied
from rest_framework.exceptions import NotAuthenticated

from accounts.models import BusinessMembership, Business


BUSINESS_HEADER = "X-Business-ID"


@dataclass(frozen=True)
class ActorContext:
    """
    Immutable context for the current actor (user + business).

    Attributes:
        user: The authenticated user (the request's credentials)
        business: The tenant the request acts on
        membership: The user's membership in that business
        perms: Explicit permission codes granted to the membership
    """
    user: object
    business: Business
    membership: BusinessMembership
    perms: FrozenSet[str]

    def has(self, code: str) -> bool:
        if not self.membership.is_active:
            return False
        if self.membership.role == BusinessMembership.Role.OWNER:
            return True
        return code in self.perms

    @property
    def tenant_id(self) -> int:
        return self.business.id

    @property
    def role(self) -> str:
        """The actor's role in this business."""
        return self.membership.role

    @property
    def is_owner(self) -> bool:
        return self.membership.role == BusinessMembership.Role.OWNER

    @property
    def posting_rights(self) -> bool:
        """Explicit journal.post grant (owners are not implied here)."""
        return self.membership.is_active and "journal.post" in self.perms


def _requested_business(request, user):
    raw = request.headers.get(BUSINESS_HEADER)
    if not raw:
        return getattr(user, "active_business", None)
    try:
        public_id = uuid.UUID(str(raw))
    except ValueError:
        raise PermissionDenied(f"{BUSINESS_HEADER} must be a business UUID.")
    return Business.objects.filter(public_id=public_id, is_active=True).first()


def authenticated_user(request):
    user = getattr(request, "user", None)
    if not user or not user.is_authenticated:
        raise NotAuthenticated("Authentication required.")
    return user


def resolve_actor(request) -> ActorContext:
    """
    Extract ActorContext from the current request.

    The business comes from the X-Business-ID header, falling back to the
    user's active business. Membership and permissions are loaded fresh on
    every request so changes take effect immediately.

    Raises:
        NotAuthenticated: If user is not authenticated
        PermissionDenied: If no business is selected or the user is not an
            active member of it
    """
    user = authenticated_user(request)

    business = _requested_business(request, user)
    if not business:
        raise PermissionDenied("No business selected. Send X-Business-ID or select a business first.")

    return actor_for(user, business)


def actor_for(user, business) -> ActorContext:
    """Build the context for a user acting inside a business."""
    try:
        membership = BusinessMembership.objects.select_related(
            "business"
        ).get(
            user=user,
            business=business,
            is_active=True,
        )
    except BusinessMembership.DoesNotExist:
        raise PermissionDenied("You are not an active member of the selected business.")

    perms = frozenset(
        membership.permissions.values_list("code", flat=True)
    )

    return ActorContext(
        user=user,
        business=business,
        membership=membership,
        perms=perms,
    )


def require(actor: ActorContext, code: str) -> None:
    """
    Require that the actor has a specific permission.

    Raises:
        PermissionDenied: If permission is not granted
    """
    if not actor.has(code):
        raise PermissionDenied(f"Permission denied: {code}")


def require_any(actor: ActorContext, *codes: str) -> None:
    """Require that the actor has AT LEAST ONE of the specified permissions."""
    for code in codes:
        if actor.has(code):
            return

    raise PermissionDenied(f"Permission denied: requires one of {', '.join(codes)}")


def actors_for_role(user, role: str) -> Dict[int, ActorContext]:
    """
    One context per active business in which `user` holds `role`, keyed by
    business id.

    Cross-business reads (the supervisor review queue) use this instead of
    switching X-Business-ID; anything done to a single entry still goes
    through that entry's own context.
    """
    memberships = BusinessMembership.objects.select_related(
        "business"
    ).prefetch_related(
        "permissions"
    ).filter(
        user=user,
        role=role,
        is_active=True,
        business__is_active=True,
    )

    return {
        membership.business_id: ActorContext(
            user=user,
            business=membership.business,
            membership=membership,
            perms=frozenset(grant.code for grant in membership.permissions.all()),
        )
        for membership in memberships
    }
