# accounts/__init__.py
"""
Accounts app - authentication and multi-tenancy for Tallybook.

This app provides:
- Business: the tenant
- User: custom user model with an optional active_business
- BusinessMembership: user-business relationship carrying the role
- Permission: explicit permission grants
- ActorContext: the request-scoped context passed to every command

Multi-tenancy is enforced at every layer through ActorContext.
"""
