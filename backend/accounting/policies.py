# accounting/policies.py
"""
Business policy functions for accounting operations.

Policies answer: "Is this action allowed given the current state?"
They do NOT perform the action; that's the command's job.

Lifecycle rules (which status may move to which, and who may move it)
live in accounting/lifecycle.py. The policies here cover everything
else a command has to check before emitting: tenant boundaries and
whether lines may reference a given account.

Design Principles:
1. Policies are pure functions (no side effects)
2. Policies return (bool, str) tuples for clear error messages
3. Policies check ONE thing conceptually
4. Commands compose policies as needed
"""


# =============================================================================
# Tenant Boundary Policies
# =============================================================================

def check_tenant_boundary(actor, entity) -> bool:
    """
    Verify entity belongs to actor's business.
    This is the fundamental multi-tenant security check.
    """
    entity_business_id = getattr(entity, "business_id", None)
    if entity_business_id is None:
        business = getattr(entity, "business", None)
        entity_business_id = getattr(business, "id", None) if business else None
    return entity_business_id == actor.business.id


# =============================================================================
# Account Policies
# =============================================================================

def can_post_to_account(account) -> tuple[bool, str]:
    """
    Check if journal lines can reference this account.

    Rules:
    - Cannot use inactive accounts
    """
    if not account.is_active:
        return False, f"Cannot post to inactive account: {account.code}"
    return True, ""


def can_deactivate_account(actor, account) -> tuple[bool, str]:
    """
    Rules:
    - Must belong to actor's business
    - Must still be active
    """
    if not check_tenant_boundary(actor, account):
        return False, "Cross-business action denied."
    if not account.is_active:
        return False, f"Account {account.code} is already inactive."
    return True, ""
