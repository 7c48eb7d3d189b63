# projections/write_barrier.py
"""
Write contexts for guarded models.

Read models (Account, JournalEntry, JournalLine, AccountBalance) only
accept writes inside projection_writes_allowed(). Command-owned write
models (BusinessSequence, the banking tables, permission grants) only
accept writes inside command_writes_allowed() or, for management
commands, bootstrap_writes_allowed().

The stack is thread-local so nested contexts unwind correctly.
"""

from contextlib import contextmanager
import threading


_state = threading.local()


def _context_stack() -> list[str]:
    stack = getattr(_state, "write_context_stack", None)
    if stack is None:
        stack = []
        _state.write_context_stack = stack
    return stack


def current_write_context() -> str | None:
    stack = _context_stack()
    return stack[-1] if stack else None


def write_context_allowed(allowed_contexts: set[str]) -> bool:
    return current_write_context() in allowed_contexts


@contextmanager
def _push_write_context(name: str):
    stack = _context_stack()
    stack.append(name)
    try:
        yield
    finally:
        stack.pop()


@contextmanager
def command_writes_allowed():
    with _push_write_context("command"):
        yield


@contextmanager
def projection_writes_allowed():
    with _push_write_context("projection"):
        yield


@contextmanager
def bootstrap_writes_allowed():
    with _push_write_context("bootstrap"):
        yield
