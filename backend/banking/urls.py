# banking/urls.py
from django.urls import path

from . import views

app_name = "banking"

urlpatterns = [
    path("bank-accounts/", views.BankAccountListCreateView.as_view(), name="bank-account-list"),
    path(
        "bank-accounts/<uuid:public_id>/transactions/",
        views.BankTransactionListCreateView.as_view(),
        name="bank-transaction-list",
    ),
    path("reconciliations/", views.ReconciliationListCreateView.as_view(), name="reconciliation-list"),
    path("reconciliations/<uuid:public_id>/", views.ReconciliationDetailView.as_view(), name="reconciliation-detail"),
    path(
        "reconciliations/<uuid:public_id>/complete/",
        views.ReconciliationCompleteView.as_view(),
        name="reconciliation-complete",
    ),
]
