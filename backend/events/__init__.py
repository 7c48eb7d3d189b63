# events/__init__.py
"""
Events app - event sourcing infrastructure for Tallybook.

This app provides:
- BusinessEvent: immutable event records
- EventBookmark: consumer progress tracking
- emit_event: the single way to append to the store
- Event type definitions with canonical schemas, validated at emission time

Usage:
    from events.emitter import emit_event
    from events.types import EventTypes, AccountCreatedData

    emit_event(
        actor=actor,
        event_type=EventTypes.ACCOUNT_CREATED,
        aggregate_type="Account",
        aggregate_id=public_id,
        data=AccountCreatedData(
            account_public_id=str(public_id),
            code="1000",
            name="Cash",
            account_type="asset",
        ),
        idempotency_key=f"account.created:{public_id}",
    )
"""
