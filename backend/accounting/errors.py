# accounting/errors.py
"""
Typed failures for journal and reconciliation operations.

Every error carries a stable `code` (what API clients switch on) and the
HTTP status the views render it with. Commands catch these at their
boundary and return them inside CommandResult; nothing here is retried.
"""
from decimal import Decimal


class JournalError(Exception):
    code = "journal_error"
    http_status = 400

    def __init__(self, message: str = "", **context):
        self.message = message or self.default_message()
        self.context = context
        super().__init__(self.message)

    def default_message(self) -> str:
        return "Journal operation failed."

    def as_dict(self) -> dict:
        payload = {"detail": self.message, "code": self.code}
        for key, value in self.context.items():
            payload[key] = str(value) if isinstance(value, Decimal) else value
        return payload


class ValidationError(JournalError):
    """Client-correctable input problem."""
    code = "validation_error"

    def default_message(self) -> str:
        return "Invalid input."


class InsufficientLines(ValidationError):
    code = "insufficient_lines"

    def __init__(self, line_count: int):
        super().__init__(
            f"A journal entry needs at least 2 lines, got {line_count}.",
            line_count=line_count,
        )


class UnbalancedEntry(JournalError):
    code = "unbalanced_entry"

    def __init__(self, total_debit: Decimal, total_credit: Decimal):
        self.total_debit = total_debit
        self.total_credit = total_credit
        super().__init__(
            f"Entry is not balanced. Debit={total_debit} Credit={total_credit}",
            total_debit=total_debit,
            total_credit=total_credit,
            difference=total_debit - total_credit,
        )


class InvalidStateTransition(JournalError):
    code = "invalid_state_transition"
    http_status = 409

    def __init__(self, current_state, action: str):
        self.current_state = current_state
        self.action = action
        state = current_state or "none"
        super().__init__(
            f"Cannot {action.replace('_', ' ')} a journal entry in state '{state}'.",
            current_state=current_state,
            action=action,
        )


class Forbidden(JournalError):
    code = "forbidden"
    http_status = 403

    def __init__(self, role: str, action: str, message: str = ""):
        self.role = role
        self.action = action
        super().__init__(
            message or f"Role '{role}' may not {action.replace('_', ' ')} journal entries.",
            role=role,
            action=action,
        )


class NotFound(JournalError):
    code = "not_found"
    http_status = 404

    def __init__(self, kind: str, identifier):
        super().__init__(f"{kind} {identifier} not found.", kind=kind, id=str(identifier))


class ConcurrencyConflict(JournalError):
    code = "concurrency_conflict"
    http_status = 409

    def __init__(self, aggregate_id, expected_version: int):
        super().__init__(
            f"{aggregate_id} was modified concurrently (expected version {expected_version}). Reload and retry.",
            expected_version=expected_version,
        )


class ReconciliationNotBalanced(JournalError):
    code = "reconciliation_not_balanced"

    def __init__(self, difference: Decimal):
        self.difference = difference
        super().__init__(
            f"Reconciliation difference is {difference}; it must be zero to complete.",
            difference=difference,
        )
