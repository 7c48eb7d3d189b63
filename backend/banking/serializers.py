# banking/serializers.py
"""
Serializers for the banking API. Input serializers check shape only;
amount parsing and every business rule live in banking.commands.
"""

from rest_framework import serializers

from .models import BankAccount, BankTransaction, Reconciliation


class BankAccountSerializer(serializers.ModelSerializer):
    gl_account_id = serializers.UUIDField(source="gl_account.public_id", read_only=True)
    gl_account_code = serializers.CharField(source="gl_account.code", read_only=True)
    reconciled_balance = serializers.SerializerMethodField()

    class Meta:
        model = BankAccount
        fields = [
            "public_id", "name", "gl_account_id", "gl_account_code",
            "opening_balance", "reconciled_balance", "is_active", "created_at",
        ]
        read_only_fields = fields

    def get_reconciled_balance(self, obj):
        return str(obj.reconciled_balance())


class BankAccountCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    gl_account_id = serializers.UUIDField()
    opening_balance = serializers.CharField(required=False, default="0.00")


class BankTransactionSerializer(serializers.ModelSerializer):
    bank_account_id = serializers.UUIDField(source="bank_account.public_id", read_only=True)

    class Meta:
        model = BankTransaction
        fields = [
            "public_id", "bank_account_id", "transaction_date", "description",
            "amount", "is_reconciled", "created_at",
        ]
        read_only_fields = fields


class BankTransactionCreateSerializer(serializers.Serializer):
    transaction_date = serializers.DateField()
    amount = serializers.CharField()
    description = serializers.CharField(required=False, allow_blank=True, default="")


class ReconciliationSerializer(serializers.ModelSerializer):
    bank_account_id = serializers.UUIDField(source="bank_account.public_id", read_only=True)
    transaction_ids = serializers.SerializerMethodField()
    summary = serializers.SerializerMethodField()
    completed_by = serializers.SerializerMethodField()

    class Meta:
        model = Reconciliation
        fields = [
            "public_id", "bank_account_id", "statement_date", "statement_balance",
            "opening_balance", "status", "transaction_ids", "summary",
            "completed_at", "completed_by", "created_at",
        ]
        read_only_fields = fields

    def get_transaction_ids(self, obj):
        return [str(pid) for pid in obj.selected_transactions.values_list("public_id", flat=True)]

    def get_summary(self, obj):
        return obj.summary().as_dict()

    def get_completed_by(self, obj):
        return obj.completed_by.email if obj.completed_by else None


class ReconciliationCreateSerializer(serializers.Serializer):
    bank_account_id = serializers.UUIDField()
    statement_date = serializers.DateField()
    statement_balance = serializers.CharField()


class ReconciliationSelectSerializer(serializers.Serializer):
    transaction_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=True)
