# accounting/serializers.py
"""
Serializers for accounting API.

Note: These serializers are used for:
1. Input validation (shape only)
2. Output formatting

The actual business logic happens in commands.py. Amounts are passed
through as strings: accounting.balance.parse_amount is the one place that
decides whether an amount is acceptable.
"""

from rest_framework import serializers

from .balance import summarize_lines
from .lifecycle import allowed_events, EVENT_PERMISSIONS
from .models import Account, JournalEntry, JournalLine


class AccountSerializer(serializers.ModelSerializer):
    normal_balance = serializers.CharField(read_only=True)
    balance = serializers.SerializerMethodField()

    class Meta:
        model = Account
        fields = [
            "public_id", "code", "name", "account_type", "normal_balance",
            "is_active", "description", "balance", "created_at", "updated_at",
        ]
        read_only_fields = fields

    def get_balance(self, obj):
        projected = getattr(obj, "projected_balance", None)
        return str(projected.balance) if projected else "0.00"


class AccountCreateSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=20)
    name = serializers.CharField(max_length=255)
    account_type = serializers.ChoiceField(choices=Account.AccountType.choices)
    description = serializers.CharField(required=False, allow_blank=True, default="")


class JournalLineSerializer(serializers.ModelSerializer):
    """Serializer for individual journal lines."""
    account_id = serializers.UUIDField(source="account.public_id", read_only=True)
    account_code = serializers.CharField(source="account.code", read_only=True)
    account_name = serializers.CharField(source="account.name", read_only=True)

    class Meta:
        model = JournalLine
        fields = [
            "public_id", "line_order", "account_id", "account_code", "account_name",
            "description", "debit", "credit",
        ]
        read_only_fields = fields


class JournalLineInputSerializer(serializers.Serializer):
    """
    Serializer for journal line input (creation/update/validate).

    account_id is the account's public UUID.
    """
    account_id = serializers.CharField(required=False, allow_blank=True, default="")
    description = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    debit = serializers.CharField(required=False, allow_blank=True, allow_null=True, default="0")
    credit = serializers.CharField(required=False, allow_blank=True, allow_null=True, default="0")


class JournalEntrySerializer(serializers.ModelSerializer):
    lines = JournalLineSerializer(many=True, read_only=True)
    total_debit = serializers.SerializerMethodField()
    total_credit = serializers.SerializerMethodField()
    is_balanced = serializers.SerializerMethodField()
    allowed_actions = serializers.SerializerMethodField()
    posted_by_email = serializers.EmailField(source="posted_by.email", read_only=True, default=None)
    voided_by_email = serializers.EmailField(source="voided_by.email", read_only=True, default=None)
    created_by_email = serializers.EmailField(source="created_by.email", read_only=True, default=None)

    class Meta:
        model = JournalEntry
        fields = [
            "public_id", "entry_number", "entry_date", "description", "status",
            "source_type", "source_id",
            "total_debit", "total_credit", "is_balanced", "allowed_actions",
            "review_requested_at", "posted_at", "posted_by_email",
            "voided_at", "voided_by_email", "void_reason",
            "version", "created_at", "created_by_email", "updated_at", "lines",
        ]
        read_only_fields = fields

    def _summary(self, obj):
        # Computed from the prefetched lines so list views stay one query per table.
        cache = getattr(obj, "_summary_cache", None)
        if cache is None:
            cache = summarize_lines(
                {"debit": line.debit, "credit": line.credit} for line in obj.lines.all()
            )
            obj._summary_cache = cache
        return cache

    def get_total_debit(self, obj):
        return str(self._summary(obj).total_debit)

    def get_total_credit(self, obj):
        return str(self._summary(obj).total_credit)

    def get_is_balanced(self, obj):
        return self._summary(obj).is_balanced

    def _actor(self, obj):
        return self.context.get("actor")

    def get_allowed_actions(self, obj):
        actor = self._actor(obj)
        if actor is None:
            return []
        return [
            event
            for event in allowed_events(obj.status, actor.role, posting_rights=actor.posting_rights)
            if EVENT_PERMISSIONS[event] is None or actor.has(EVENT_PERMISSIONS[event])
        ]


class SupervisorJournalEntrySerializer(JournalEntrySerializer):
    """Entry row in the cross-business review queue."""
    business_id = serializers.UUIDField(source="business.public_id", read_only=True)
    business_name = serializers.CharField(source="business.name", read_only=True)

    class Meta(JournalEntrySerializer.Meta):
        fields = ["business_id", "business_name"] + JournalEntrySerializer.Meta.fields
        read_only_fields = fields

    def _actor(self, obj):
        # One context per supervised business, keyed by business id.
        return self.context.get("actors", {}).get(obj.business_id)


class JournalEntryInputSerializer(serializers.Serializer):
    entry_date = serializers.CharField()
    description = serializers.CharField(max_length=255, required=False, allow_blank=True)
    lines = JournalLineInputSerializer(many=True)


class JournalEntryCreateSerializer(JournalEntryInputSerializer):
    auto_post = serializers.BooleanField(required=False, default=False)
    source_type = serializers.ChoiceField(
        choices=JournalEntry.SourceType.choices,
        required=False,
        default=JournalEntry.SourceType.MANUAL,
    )
    source_id = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)


class JournalEntryValidateSerializer(serializers.Serializer):
    lines = JournalLineInputSerializer(many=True)


class VoidSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")
