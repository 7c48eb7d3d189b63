# banking/views.py
"""
Thin banking views. Reads filter by the actor's business; every write
goes through banking.commands.
"""

from django.http import Http404
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.authz import resolve_actor, require
from accounting.views import command_response
from .commands import (
    create_bank_account,
    record_bank_transaction,
    start_reconciliation,
    select_reconciliation_transactions,
    complete_reconciliation,
)
from .models import BankAccount, BankTransaction, Reconciliation
from .serializers import (
    BankAccountSerializer,
    BankAccountCreateSerializer,
    BankTransactionSerializer,
    BankTransactionCreateSerializer,
    ReconciliationSerializer,
    ReconciliationCreateSerializer,
    ReconciliationSelectSerializer,
)


class BankAccountListCreateView(APIView):
    """
    GET /api/banking/bank-accounts/
    POST /api/banking/bank-accounts/
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "banking.view")

        accounts = BankAccount.objects.filter(business=actor.business).select_related("gl_account")
        return Response(BankAccountSerializer(accounts, many=True).data)

    def post(self, request):
        actor = resolve_actor(request)

        input_serializer = BankAccountCreateSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        result = create_bank_account(actor, **input_serializer.validated_data)
        return command_response(result, BankAccountSerializer, success_status=status.HTTP_201_CREATED)


class BankTransactionListCreateView(APIView):
    """
    GET /api/banking/bank-accounts/<uuid>/transactions/?is_reconciled=true|false
    POST /api/banking/bank-accounts/<uuid>/transactions/
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, public_id):
        actor = resolve_actor(request)
        require(actor, "banking.view")

        bank_account = BankAccount.objects.filter(business=actor.business, public_id=public_id).first()
        if bank_account is None:
            raise Http404

        transactions = BankTransaction.objects.filter(
            business=actor.business,
            bank_account=bank_account,
        ).select_related("bank_account")

        is_reconciled = request.query_params.get("is_reconciled")
        if is_reconciled in ("true", "false"):
            transactions = transactions.filter(is_reconciled=(is_reconciled == "true"))

        return Response(BankTransactionSerializer(transactions, many=True).data)

    def post(self, request, public_id):
        actor = resolve_actor(request)

        input_serializer = BankTransactionCreateSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        result = record_bank_transaction(actor, public_id, **input_serializer.validated_data)
        return command_response(result, BankTransactionSerializer, success_status=status.HTTP_201_CREATED)


class ReconciliationListCreateView(APIView):
    """
    GET /api/banking/reconciliations/?bank_account_id=<uuid>&status=in_progress|completed
    POST /api/banking/reconciliations/
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        require(actor, "banking.view")

        reconciliations = Reconciliation.objects.filter(
            business=actor.business,
        ).select_related("bank_account", "completed_by")

        params = request.query_params
        if params.get("bank_account_id"):
            reconciliations = reconciliations.filter(bank_account__public_id=params["bank_account_id"])
        if params.get("status"):
            reconciliations = reconciliations.filter(status=params["status"])

        return Response(ReconciliationSerializer(reconciliations, many=True).data)

    def post(self, request):
        actor = resolve_actor(request)

        input_serializer = ReconciliationCreateSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        result = start_reconciliation(actor, **input_serializer.validated_data)
        return command_response(result, ReconciliationSerializer, success_status=status.HTTP_201_CREATED)


class ReconciliationDetailView(APIView):
    """
    GET /api/banking/reconciliations/<uuid>/ -> reconciliation with live summary
    PUT /api/banking/reconciliations/<uuid>/ -> replace selected transactions
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, public_id):
        actor = resolve_actor(request)
        require(actor, "banking.view")

        reconciliation = Reconciliation.objects.filter(
            business=actor.business, public_id=public_id,
        ).select_related("bank_account", "completed_by").first()
        if reconciliation is None:
            raise Http404
        return Response(ReconciliationSerializer(reconciliation).data)

    def put(self, request, public_id):
        actor = resolve_actor(request)

        input_serializer = ReconciliationSelectSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        result = select_reconciliation_transactions(
            actor, public_id, input_serializer.validated_data["transaction_ids"],
        )
        return command_response(result, ReconciliationSerializer)


class ReconciliationCompleteView(APIView):
    """POST /api/banking/reconciliations/<uuid>/complete/"""
    permission_classes = [IsAuthenticated]

    def post(self, request, public_id):
        actor = resolve_actor(request)
        result = complete_reconciliation(actor, public_id)
        return command_response(result, ReconciliationSerializer)
