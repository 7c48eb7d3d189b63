"""
URL configuration for the reports API.

Endpoints:
- /reports/trial-balance/ - Trial balance (derived, optional as_of_date)
- /reports/ledger/ - Ledger with running balances
- /reports/account-balances/ - Projected account balances
- /reports/projection-status/ - Projection health monitoring
"""

from django.urls import path

from .views import (
    TrialBalanceView,
    LedgerView,
    AccountBalanceListView,
    ProjectionStatusView,
)

app_name = "reports"

urlpatterns = [
    path("trial-balance/", TrialBalanceView.as_view(), name="trial-balance"),
    path("ledger/", LedgerView.as_view(), name="ledger"),
    path("account-balances/", AccountBalanceListView.as_view(), name="account-balances"),
    path("projection-status/", ProjectionStatusView.as_view(), name="projection-status"),
]
