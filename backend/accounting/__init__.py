# accounting/__init__.py
"""
Accounting app - double-entry bookkeeping for Tallybook.

This app provides:
- Account: chart of accounts
- JournalEntry / JournalLine: double-entry journal entries
- balance: the shared balance validator
- lifecycle: the journal entry state machine
- ledger: ledger and trial balance derivation

Commands handle all mutations to ensure events are emitted.
"""
