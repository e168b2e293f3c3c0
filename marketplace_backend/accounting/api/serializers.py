# accounting/api/serializers.py

from rest_framework import serializers

from accounting.models import Account, JournalEntry, JournalEntryLine


class AccountSerializer(serializers.ModelSerializer):
    parent_code = serializers.CharField(source="parent.code", read_only=True, default=None)

    class Meta:
        model = Account
        fields = ("id", "code", "name", "account_type", "parent_code", "is_active")
        read_only_fields = fields


class JournalLineSerializer(serializers.ModelSerializer):
    account_code = serializers.CharField(source="account.code", read_only=True)
    account_name = serializers.CharField(source="account.name", read_only=True)

    class Meta:
        model = JournalEntryLine
        fields = ("account_code", "account_name", "debit_amount", "credit_amount", "description")
        read_only_fields = fields


class JournalEntrySerializer(serializers.ModelSerializer):
    lines = JournalLineSerializer(many=True, read_only=True)

    class Meta:
        model = JournalEntry
        fields = (
            "id",
            "entry_number",
            "reference_type",
            "reference_id",
            "description",
            "total_debit",
            "total_credit",
            "posted_at",
            "created_by",
            "lines",
        )
        read_only_fields = fields


class TrialBalanceQuerySerializer(serializers.Serializer):
    as_of = serializers.DateTimeField(required=False)
