"""
API views for reports.

Trial balance and ledger are derived from posted journal lines by
accounting.ledger, so they can be asked for any date. Account balances
read the AccountBalance projection, which already did the computation;
the view just reads.
"""

from decimal import Decimal, InvalidOperation

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.authz import resolve_actor, require
from accounting.errors import JournalError
from accounting.ledger import get_trial_balance, get_ledger
from projections.base import projection_registry
from projections.models import AccountBalance


class TrialBalanceView(APIView):
    """
    GET /api/reports/trial-balance/?as_of_date=YYYY-MM-DD

    Net debit or credit per account with activity, totals, and whether
    the two totals agree.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)

        try:
            trial_balance = get_trial_balance(actor, as_of_date=request.query_params.get("as_of_date"))
        except JournalError as exc:
            return Response(exc.as_dict(), status=exc.http_status)

        return Response(trial_balance.as_dict())


class LedgerView(APIView):
    """
    GET /api/reports/ledger/?account_id=<uuid>&start_date=&end_date=

    Without account_id every account's postings are listed, each with its
    own running balance.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        params = request.query_params

        try:
            rows = get_ledger(
                actor,
                account_id=params.get("account_id") or None,
                start_date=params.get("start_date"),
                end_date=params.get("end_date"),
            )
        except JournalError as exc:
            return Response(exc.as_dict(), status=exc.http_status)

        return Response({
            "account_id": params.get("account_id") or None,
            "start_date": params.get("start_date") or None,
            "end_date": params.get("end_date") or None,
            "entries": [row.as_dict() for row in rows],
            "count": len(rows),
        })


class AccountBalanceListView(APIView):
    """
    GET /api/reports/account-balances/

    Returns all projected account balances with filtering options.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "reports.view")

        balances = AccountBalance.objects.filter(
            business=actor.business,
        ).select_related("account").order_by("account__code")

        account_type = request.query_params.get("type")
        if account_type:
            balances = balances.filter(account__account_type=account_type)

        min_balance = request.query_params.get("min_balance")
        if min_balance:
            try:
                balances = balances.filter(balance__gte=Decimal(min_balance))
            except InvalidOperation:
                return Response(
                    {"detail": "min_balance must be a decimal."},
                    status=status.HTTP_400_BAD_REQUEST,
                )

        if request.query_params.get("has_activity") == "true":
            balances = balances.filter(entry_count__gt=0)

        data = [
            {
                "account_id": str(bal.account.public_id),
                "account_code": bal.account.code,
                "account_name": bal.account.name,
                "account_type": bal.account.account_type,
                "normal_balance": bal.account.normal_balance,
                "balance": str(bal.balance),
                "debit_total": str(bal.debit_total),
                "credit_total": str(bal.credit_total),
                "entry_count": bal.entry_count,
                "last_entry_date": bal.last_entry_date.isoformat() if bal.last_entry_date else None,
            }
            for bal in balances
        ]

        return Response({
            "balances": data,
            "count": len(data),
        })


class ProjectionStatusView(APIView):
    """
    GET /api/reports/projection-status/

    Returns status of all projections for monitoring.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "reports.view")

        projections = []

        for projection in projection_registry.all():
            bookmark = projection.get_bookmark(actor.business)
            lag = projection.get_lag(actor.business)

            projections.append({
                "name": projection.name,
                "consumes": projection.consumes,
                "lag": lag,
                "is_healthy": lag == 0,
                "is_paused": bookmark.is_paused if bookmark else False,
                "error_count": bookmark.error_count if bookmark else 0,
                "last_error": bookmark.last_error if bookmark else "",
                "last_processed_at": (
                    bookmark.last_processed_at.isoformat()
                    if bookmark and bookmark.last_processed_at
                    else None
                ),
            })

        return Response({
            "projections": projections,
            "total_lag": sum(p["lag"] for p in projections),
            "all_healthy": all(p["is_healthy"] for p in projections),
        })
