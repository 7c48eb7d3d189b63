# accounting/lifecycle.py
"""
Journal entry lifecycle.

All status rules and all role rules for journal entries live in
`transition()`. Commands call it before emitting anything; if it raises,
nothing has been written yet.

    (none) --create--------> draft
    (none) --create_posted-> posted
    draft  --edit----------> draft
    draft  --ask_for_review> ask_for_review
    ask_for_review --edit--> ask_for_review
    draft | ask_for_review --post--> posted
    posted --void----------> voided
    draft  --delete--------> (removed)

Permission codes (journal.create, journal.void, ...) are checked by the
commands through accounts.authz.require. The rules below are the ones
that depend on role rather than on explicit grants.
"""
from typing import Optional

from accounting.errors import InvalidStateTransition, Forbidden


class EntryState:
    DRAFT = "draft"
    ASK_FOR_REVIEW = "ask_for_review"
    POSTED = "posted"
    VOIDED = "voided"

    ALL = (DRAFT, ASK_FOR_REVIEW, POSTED, VOIDED)
    EDITABLE = (DRAFT, ASK_FOR_REVIEW)
    TERMINAL = (POSTED, VOIDED)


class JournalEvent:
    CREATE = "create"
    CREATE_POSTED = "create_posted"
    EDIT = "edit"
    ASK_FOR_REVIEW = "ask_for_review"
    POST = "post"
    VOID = "void"
    DELETE = "delete"

    ALL = (CREATE, CREATE_POSTED, EDIT, ASK_FOR_REVIEW, POST, VOID, DELETE)


ACCOUNTANT = "accountant"
ACCOUNTANT_SUPERVISOR = "accountant_supervisor"

# Roles allowed to send an entry for review and to edit it while in review.
REVIEW_ROLES = frozenset({ACCOUNTANT, ACCOUNTANT_SUPERVISOR})


# Permission code each command requires on top of the lifecycle rule.
# Posting has none: the lifecycle alone decides who posts.
EVENT_PERMISSIONS = {
    JournalEvent.CREATE: "journal.create",
    JournalEvent.CREATE_POSTED: "journal.create",
    JournalEvent.EDIT: "journal.edit_draft",
    JournalEvent.ASK_FOR_REVIEW: "journal.review",
    JournalEvent.POST: None,
    JournalEvent.VOID: "journal.void",
    JournalEvent.DELETE: "journal.delete",
}

# (from_state, event) -> to_state. A to_state of None means the entry is removed.
_TRANSITIONS = {
    (None, JournalEvent.CREATE): EntryState.DRAFT,
    (None, JournalEvent.CREATE_POSTED): EntryState.POSTED,
    (EntryState.DRAFT, JournalEvent.EDIT): EntryState.DRAFT,
    (EntryState.ASK_FOR_REVIEW, JournalEvent.EDIT): EntryState.ASK_FOR_REVIEW,
    (EntryState.DRAFT, JournalEvent.ASK_FOR_REVIEW): EntryState.ASK_FOR_REVIEW,
    (EntryState.DRAFT, JournalEvent.POST): EntryState.POSTED,
    (EntryState.ASK_FOR_REVIEW, JournalEvent.POST): EntryState.POSTED,
    (EntryState.POSTED, JournalEvent.VOID): EntryState.VOIDED,
    (EntryState.DRAFT, JournalEvent.DELETE): None,
}


def can_post(role: str, posting_rights: bool = False) -> bool:
    """Supervisors always post; accountants only with an explicit journal.post grant."""
    if role == ACCOUNTANT_SUPERVISOR:
        return True
    return role == ACCOUNTANT and bool(posting_rights)


def _role_allows(state, event: str, role: str, posting_rights: bool) -> bool:
    if event in (JournalEvent.POST, JournalEvent.CREATE_POSTED):
        return can_post(role, posting_rights)
    if event == JournalEvent.ASK_FOR_REVIEW:
        return role in REVIEW_ROLES
    if event == JournalEvent.EDIT and state == EntryState.ASK_FOR_REVIEW:
        return role in REVIEW_ROLES
    return True


def transition(
    state: Optional[str],
    event: str,
    role: str,
    *,
    posting_rights: bool = False,
) -> Optional[str]:
    """
    Apply `event` to an entry in `state` on behalf of `role`.

    Returns the new state (None for delete). Raises InvalidStateTransition
    when the event is not valid from `state`, and Forbidden when it is
    valid but `role` may not perform it. State is checked first, so posting
    a voided entry is reported as a state problem regardless of role.
    """
    if event not in JournalEvent.ALL:
        raise ValueError(f"Unknown journal event: {event}")

    key = (state, event)
    if key not in _TRANSITIONS:
        raise InvalidStateTransition(state, event)

    if not _role_allows(state, event, role, posting_rights):
        raise Forbidden(role, event)

    return _TRANSITIONS[key]


def allowed_events(state: Optional[str], role: str, *, posting_rights: bool = False) -> list:
    """Events `role` may apply to an entry in `state`, in declaration order."""
    allowed = []
    for event in JournalEvent.ALL:
        key = (state, event)
        if key in _TRANSITIONS and _role_allows(state, event, role, posting_rights):
            allowed.append(event)
    return allowed
