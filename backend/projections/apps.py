from django.apps import AppConfig


class ProjectionsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "projections"

    def ready(self):
        # Registration order is processing order: accounts and entries
        # must exist before balances reference them.
        from projections import accounting  # noqa: F401
        from projections import account_balance  # noqa: F401
