# accounts/permissions.py
from __future__ import annotations

from typing import Iterable, Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction

from accounts.models import Permission, BusinessMembership, MembershipPermission
from accounts.permission_defaults import ROLE_DEFAULTS, all_permission_codes
from projections.write_barrier import write_context_allowed

User = get_user_model()


def _require_write_context() -> None:
    if getattr(settings, "TESTING", False):
        return
    if not write_context_allowed({"command", "bootstrap"}):
        raise RuntimeError(
            "Permission grants can only be written within an allowed write context."
        )


def ensure_permissions(codes: Iterable[str]) -> list[Permission]:
    """Create any missing Permission rows and return them all."""
    codes = set(codes)
    existing = set(Permission.objects.filter(code__in=codes).values_list("code", flat=True))
    missing = [c for c in sorted(codes) if c not in existing]
    if missing:
        Permission.objects.bulk_create(
            [Permission(code=c, name=c, module=c.split(".")[0]) for c in missing],
            ignore_conflicts=True,
        )
    return list(Permission.objects.filter(code__in=codes))


@transaction.atomic
def grant_permissions(
    membership: BusinessMembership,
    codes: Iterable[str],
    granted_by: Optional[User] = None,
) -> int:
    """Grant codes to a membership. Idempotent; returns number newly granted."""
    _require_write_context()

    perms = ensure_permissions(codes)
    already = set(
        MembershipPermission.objects.filter(
            membership=membership,
            permission__in=perms,
        ).values_list("permission__code", flat=True)
    )
    to_grant = [p for p in perms if p.code not in already]
    if not to_grant:
        return 0

    MembershipPermission.objects.bulk_create(
        [
            MembershipPermission(
                membership=membership,
                permission=p,
                granted_by=granted_by if (granted_by and granted_by.is_authenticated) else None,
            )
            for p in to_grant
        ],
        ignore_conflicts=True,
    )
    return len(to_grant)


def grant_permission(membership: BusinessMembership, code: str, granted_by: Optional[User] = None) -> bool:
    return grant_permissions(membership, [code], granted_by=granted_by) == 1


@transaction.atomic
def revoke_permission(membership: BusinessMembership, code: str) -> bool:
    _require_write_context()
    deleted, _ = MembershipPermission.objects.filter(
        membership=membership,
        permission__code=code,
    ).delete()
    return deleted > 0


@transaction.atomic
def grant_role_defaults(
    membership: BusinessMembership,
    granted_by: Optional[User] = None,
    overwrite: bool = False,
) -> int:
    """
    Grant the default permissions for membership.role.

    - Idempotent by default: only grants missing codes.
    - overwrite=True first removes every explicit grant.
    Returns number of permissions newly granted.
    """
    _require_write_context()

    if overwrite:
        MembershipPermission.objects.filter(membership=membership).delete()

    return grant_permissions(
        membership,
        ROLE_DEFAULTS.get(membership.role, set()),
        granted_by=granted_by,
    )


def seed_permissions() -> int:
    """Make sure every known permission code has a row."""
    before = Permission.objects.count()
    ensure_permissions(all_permission_codes())
    return Permission.objects.count() - before
