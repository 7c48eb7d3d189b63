# accounting/views.py
"""
Thin views that delegate to the commands layer.

Views handle: HTTP parsing, authentication, response formatting.
Commands handle: business logic, validation, events.

CRITICAL: All mutations (create, update, delete, transitions) MUST go
through commands to ensure events are emitted. Views should never
directly call .save() on models.

Failed commands carry a typed JournalError; its as_dict() is the
response body and its http_status the response status.
"""

import math
import uuid
from datetime import date

from django.conf import settings
from django.core.exceptions import PermissionDenied
from django.db.models import Count, Q
from django.http import Http404
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.authz import actors_for_role, authenticated_user, resolve_actor, require
from accounts.models import BusinessMembership
from events.emitter import get_aggregate_events
from .balance import normalize_lines, summarize_lines, MIN_LINES
from .errors import JournalError
from .models import Account, JournalEntry
from .serializers import (
    AccountSerializer,
    AccountCreateSerializer,
    JournalEntrySerializer,
    SupervisorJournalEntrySerializer,
    JournalEntryCreateSerializer,
    JournalEntryInputSerializer,
    JournalEntryValidateSerializer,
    VoidSerializer,
)
from .commands import (
    create_account,
    deactivate_account,
    create_journal_entry,
    update_journal_entry,
    ask_for_review_journal_entry,
    post_journal_entry,
    void_journal_entry,
    delete_journal_entry,
)


def error_response(exc: JournalError) -> Response:
    return Response(exc.as_dict(), status=exc.http_status)


def command_response(result, serializer_class=None, context=None, success_status=status.HTTP_200_OK):
    if not result.success:
        return error_response(result.exception)
    if serializer_class is None:
        return Response(status=status.HTTP_204_NO_CONTENT)
    return Response(serializer_class(result.data, context=context or {}).data, status=success_status)


def _lines_payload(lines):
    return [dict(line) for line in lines]


# =============================================================================
# Account Views
# =============================================================================

class AccountListCreateView(APIView):
    """
    GET /api/accounting/accounts/ -> list accounts for the request's business
    POST /api/accounting/accounts/ -> create account

    POST goes through the command layer to emit events.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "accounts.view")

        accounts = Account.objects.filter(
            business=actor.business,
        ).select_related("projected_balance").order_by("code")

        is_active = request.query_params.get("is_active")
        if is_active in ("true", "false"):
            accounts = accounts.filter(is_active=(is_active == "true"))

        serializer = AccountSerializer(accounts, many=True)
        return Response(serializer.data)

    def post(self, request):
        actor = resolve_actor(request)
        # Permission check happens in command

        input_serializer = AccountCreateSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        result = create_account(actor, **input_serializer.validated_data)
        return command_response(result, AccountSerializer, success_status=status.HTTP_201_CREATED)


class AccountDeactivateView(APIView):
    """POST /api/accounting/accounts/<uuid>/deactivate/"""
    permission_classes = [IsAuthenticated]

    def post(self, request, public_id):
        actor = resolve_actor(request)
        result = deactivate_account(actor, public_id)
        return command_response(result, AccountSerializer)


# =============================================================================
# Journal Entry Views
# =============================================================================

SORT_FIELDS = {
    "entry_date": "entry_date",
    "entry_number": "entry_number",
    "created_at": "created_at",
}
SUPERVISOR_SORT_FIELDS = {**SORT_FIELDS, "business_name": "business__name"}


def _parse_query_date(value):
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _filter_entries(entries, params):
    """Apply the list filters shared by the per-business and supervisor lists."""
    if params.get("status"):
        entries = entries.filter(status=params["status"])
    if params.get("source_type"):
        entries = entries.filter(source_type=params["source_type"])

    date_from = _parse_query_date(params.get("date_from"))
    date_to = _parse_query_date(params.get("date_to"))
    if date_from:
        entries = entries.filter(entry_date__gte=date_from)
    if date_to:
        entries = entries.filter(entry_date__lte=date_to)

    search = (params.get("search") or "").strip()
    if search:
        entries = entries.filter(
            Q(entry_number__icontains=search) | Q(description__icontains=search)
        )
    return entries


def _entry_page(entries, params, serializer_class, context, sort_fields):
    sort_by = params.get("sort_by", "entry_date")
    if sort_by not in sort_fields:
        sort_by = "entry_date"
    prefix = "" if params.get("sort_order") == "asc" else "-"
    entries = entries.order_by(f"{prefix}{sort_fields[sort_by]}", f"{prefix}id")

    try:
        page = max(int(params.get("page", 1)), 1)
        page_size = min(max(int(params.get("page_size", settings.JOURNAL_ENTRY_PAGE_SIZE)), 1), 200)
    except (TypeError, ValueError):
        return Response({"detail": "page and page_size must be integers."}, status=status.HTTP_400_BAD_REQUEST)

    total = entries.count()
    offset = (page - 1) * page_size
    items = entries.select_related(
        "business", "created_by", "posted_by", "voided_by",
    ).prefetch_related("lines__account")[offset:offset + page_size]

    serializer = serializer_class(items, many=True, context=context)
    return Response({
        "items": serializer.data,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": math.ceil(total / page_size) if total else 0,
    })


class JournalEntryListCreateView(APIView):
    """
    GET /api/accounting/journal-entries/ -> list journal entries
    POST /api/accounting/journal-entries/ -> create journal entry

    Query params (GET):
        status, source_type: exact filters
        date_from, date_to: entry_date range (YYYY-MM-DD)
        search: entry number or description contains
        sort_by: entry_date | entry_number | created_at (default entry_date)
        sort_order: asc | desc (default desc)
        page, page_size
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "journal.view")

        entries = _filter_entries(JournalEntry.objects.filter(business=actor.business), request.query_params)
        return _entry_page(
            entries, request.query_params, JournalEntrySerializer, {"actor": actor}, SORT_FIELDS,
        )

    def post(self, request):
        actor = resolve_actor(request)
        # Permission check happens in command

        input_serializer = JournalEntryCreateSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)
        data = input_serializer.validated_data

        result = create_journal_entry(
            actor,
            entry_date=data["entry_date"],
            lines=_lines_payload(data["lines"]),
            description=data.get("description", ""),
            auto_post=data.get("auto_post", False),
            source_type=data.get("source_type", JournalEntry.SourceType.MANUAL),
            source_id=data.get("source_id"),
        )
        return command_response(
            result, JournalEntrySerializer, context={"actor": actor}, success_status=status.HTTP_201_CREATED,
        )


class JournalEntryValidateView(APIView):
    """
    POST /api/accounting/journal-entries/validate/

    Live balanced/unbalanced indicator for the entry editor. Runs the same
    rounding and balance function the create and update commands use, and
    never writes anything.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        actor = resolve_actor(request)
        require(actor, "journal.view")

        input_serializer = JournalEntryValidateSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)
        lines = _lines_payload(input_serializer.validated_data["lines"])

        try:
            summary = summarize_lines(normalize_lines(lines))
        except JournalError as exc:
            return error_response(exc)

        payload = summary.as_dict()
        payload["line_count"] = len(lines)
        payload["has_minimum_lines"] = len(lines) >= MIN_LINES
        return Response(payload)


class JournalEntryDetailView(APIView):
    """
    GET /api/accounting/journal-entries/<uuid>/ -> retrieve
    PUT /api/accounting/journal-entries/<uuid>/ -> replace date, description and lines
    DELETE /api/accounting/journal-entries/<uuid>/ -> delete (drafts only)
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, public_id):
        actor = resolve_actor(request)
        require(actor, "journal.view")

        entry = JournalEntry.objects.filter(
            business=actor.business, public_id=public_id,
        ).select_related(
            "created_by", "posted_by", "voided_by",
        ).prefetch_related("lines__account").first()
        if entry is None:
            raise Http404
        return Response(JournalEntrySerializer(entry, context={"actor": actor}).data)

    def put(self, request, public_id):
        actor = resolve_actor(request)

        input_serializer = JournalEntryInputSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)
        data = input_serializer.validated_data

        result = update_journal_entry(
            actor,
            public_id,
            entry_date=data["entry_date"],
            lines=_lines_payload(data["lines"]),
            description=data.get("description"),
        )
        return command_response(result, JournalEntrySerializer, context={"actor": actor})

    def delete(self, request, public_id):
        actor = resolve_actor(request)
        result = delete_journal_entry(actor, public_id)
        return command_response(result)


class JournalEntryAskForReviewView(APIView):
    """POST /api/accounting/journal-entries/<uuid>/ask-for-review/"""
    permission_classes = [IsAuthenticated]

    def post(self, request, public_id):
        actor = resolve_actor(request)
        result = ask_for_review_journal_entry(actor, public_id)
        return command_response(result, JournalEntrySerializer, context={"actor": actor})


class JournalEntryPostView(APIView):
    """POST /api/accounting/journal-entries/<uuid>/post/"""
    permission_classes = [IsAuthenticated]

    def post(self, request, public_id):
        actor = resolve_actor(request)
        result = post_journal_entry(actor, public_id)
        return command_response(result, JournalEntrySerializer, context={"actor": actor})


class JournalEntryVoidView(APIView):
    """POST /api/accounting/journal-entries/<uuid>/void/  body: {"reason": "..."}"""
    permission_classes = [IsAuthenticated]

    def post(self, request, public_id):
        actor = resolve_actor(request)

        input_serializer = VoidSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        result = void_journal_entry(actor, public_id, input_serializer.validated_data["reason"])
        return command_response(result, JournalEntrySerializer, context={"actor": actor})


class JournalEntryActivityView(APIView):
    """
    GET /api/accounting/journal-entries/<uuid>/activity/

    Who did what to the entry, straight from its event stream. Deleted
    drafts still have a history, so this does not require the read model.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, public_id):
        actor = resolve_actor(request)
        require(actor, "journal.view")

        try:
            aggregate_id = str(uuid.UUID(str(public_id)))
        except ValueError:
            raise Http404

        events = get_aggregate_events(actor.business, "JournalEntry", aggregate_id)
        if not events:
            raise Http404

        return Response({
            "entry_public_id": aggregate_id,
            "events": [
                {
                    "event_type": event.event_type,
                    "sequence": event.sequence,
                    "occurred_at": event.occurred_at.isoformat(),
                    "recorded_at": event.recorded_at.isoformat(),
                    "caused_by": event.caused_by_user.email if event.caused_by_user else None,
                    "data": event.data,
                }
                for event in events
            ],
        })


# =============================================================================
# Supervisor Review Queue
# =============================================================================

def _supervised_actors(request):
    """Contexts for every business in which the user supervises and may read journals."""
    user = authenticated_user(request)
    actors = {
        business_id: actor
        for business_id, actor in actors_for_role(user, BusinessMembership.Role.ACCOUNTANT_SUPERVISOR).items()
        if actor.has("journal.view")
    }
    if not actors:
        raise PermissionDenied("Only accountant supervisors can read the review queue.")
    return actors


class SupervisorJournalEntryListView(APIView):
    """
    GET /api/accounting/supervisor/journal-entries/

    Entries from every business the user supervises, without switching
    X-Business-ID. Posting still goes through the per-business post
    endpoint with that business selected.

    Query params: the journal entry list filters, plus
        business_id: narrow to one supervised business (public UUID)
        sort_by: also accepts business_name
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actors = _supervised_actors(request)
        params = request.query_params

        business_ids = list(actors)
        raw_business = params.get("business_id")
        if raw_business:
            try:
                public_id = uuid.UUID(str(raw_business))
            except ValueError:
                return Response({"detail": "business_id must be a UUID."}, status=status.HTTP_400_BAD_REQUEST)
            business_ids = [
                business_id for business_id, actor in actors.items()
                if actor.business.public_id == public_id
            ]
            if not business_ids:
                raise PermissionDenied("You do not supervise the requested business.")

        entries = _filter_entries(JournalEntry.objects.filter(business_id__in=business_ids), params)
        return _entry_page(
            entries, params, SupervisorJournalEntrySerializer, {"actors": actors}, SUPERVISOR_SORT_FIELDS,
        )


class SupervisorReviewSummaryView(APIView):
    """
    GET /api/accounting/supervisor/summary/

    Entry counts by status for each supervised business.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actors = _supervised_actors(request)

        counts = {
            business_id: {value: 0 for value in JournalEntry.Status.values}
            for business_id in actors
        }
        rows = JournalEntry.objects.filter(
            business_id__in=list(actors),
        ).order_by().values("business_id", "status").annotate(count=Count("id"))
        for row in rows:
            counts[row["business_id"]][row["status"]] = row["count"]

        businesses = []
        for actor in sorted(actors.values(), key=lambda a: (a.business.name, a.business.id)):
            status_counts = counts[actor.business.id]
            businesses.append({
                "business_id": str(actor.business.public_id),
                "business_name": actor.business.name,
                "status_counts": status_counts,
                "awaiting_review": status_counts[JournalEntry.Status.ASK_FOR_REVIEW],
            })

        return Response({
            "businesses": businesses,
            "total_awaiting_review": sum(b["awaiting_review"] for b in businesses),
        })
