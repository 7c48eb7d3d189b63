# accounting/urls.py
"""
URL configuration for accounting API.

Endpoints:
- /accounts/ - Chart of accounts (list, create, deactivate)
- /journal-entries/ - Journal entries with lifecycle actions
- /journal-entries/validate/ - Live balance indicator
- /supervisor/ - Cross-business review queue for accountant supervisors
"""

from django.urls import path

from .views import (
    # Account views
    AccountListCreateView,
    AccountDeactivateView,
    # Journal entry views
    JournalEntryListCreateView,
    JournalEntryValidateView,
    JournalEntryDetailView,
    JournalEntryAskForReviewView,
    JournalEntryPostView,
    JournalEntryVoidView,
    JournalEntryActivityView,
    # Supervisor review queue
    SupervisorJournalEntryListView,
    SupervisorReviewSummaryView,
)

app_name = "accounting"

urlpatterns = [
    # ==========================================================================
    # Accounts (Chart of Accounts)
    # ==========================================================================
    path("accounts/", AccountListCreateView.as_view(), name="account-list"),
    path(
        "accounts/<uuid:public_id>/deactivate/",
        AccountDeactivateView.as_view(),
        name="account-deactivate",
    ),

    # ==========================================================================
    # Journal Entries
    # ==========================================================================
    path("journal-entries/", JournalEntryListCreateView.as_view(), name="journal-entry-list"),
    path("journal-entries/validate/", JournalEntryValidateView.as_view(), name="journal-entry-validate"),
    path("journal-entries/<uuid:public_id>/", JournalEntryDetailView.as_view(), name="journal-entry-detail"),
    path(
        "journal-entries/<uuid:public_id>/ask-for-review/",
        JournalEntryAskForReviewView.as_view(),
        name="journal-entry-ask-for-review",
    ),
    path("journal-entries/<uuid:public_id>/post/", JournalEntryPostView.as_view(), name="journal-entry-post"),
    path("journal-entries/<uuid:public_id>/void/", JournalEntryVoidView.as_view(), name="journal-entry-void"),
    path(
        "journal-entries/<uuid:public_id>/activity/",
        JournalEntryActivityView.as_view(),
        name="journal-entry-activity",
    ),

    # ==========================================================================
    # Supervisor review queue (every supervised business at once)
    # ==========================================================================
    path(
        "supervisor/journal-entries/",
        SupervisorJournalEntryListView.as_view(),
        name="supervisor-journal-entry-list",
    ),
    path("supervisor/summary/", SupervisorReviewSummaryView.as_view(), name="supervisor-summary"),
]
