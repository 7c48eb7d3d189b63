# accounts/permission_defaults.py
#
# Role -> default permission codes. Owners hold every code implicitly
# (see ActorContext.has); the set is listed so seeding creates the rows.
#
# Posting is not only a permission: accounting.lifecycle additionally
# restricts it to accountant_supervisor, or an accountant explicitly
# granted journal.post.

_ACCOUNTANT = {
    "accounts.view",
    "accounts.manage",
    "journal.view",
    "journal.create",
    "journal.edit_draft",
    "journal.review",
    "journal.delete",
    "reports.view",
    "banking.view",
    "banking.reconcile",
}

ROLE_DEFAULTS = {
    "owner": {
        "business.view",
        "business.manage_users",

        "accounts.view",
        "accounts.manage",
        "journal.view",
        "journal.create",
        "journal.edit_draft",
        "journal.void",
        "journal.delete",

        "reports.view",

        "banking.view",
        "banking.manage",
        "banking.reconcile",
    },
    "manager": {
        "business.view",

        "accounts.view",
        "journal.view",
        "journal.create",
        "journal.edit_draft",
        "journal.void",
        "journal.delete",

        "reports.view",

        "banking.view",
        "banking.manage",
        "banking.reconcile",
    },
    "accountant": set(_ACCOUNTANT),
    "accountant_supervisor": _ACCOUNTANT | {
        "journal.post",
        "journal.void",
    },
}


def all_permission_codes() -> set[str]:
    codes: set[str] = {"journal.post"}
    for s in ROLE_DEFAULTS.values():
        codes |= set(s)
    return codes
