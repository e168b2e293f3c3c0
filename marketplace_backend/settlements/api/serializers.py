# settlements/api/serializers.py

from rest_framework import serializers

from settlements.models import RECIPIENT_TYPES, Settlement, SettlementItem


class SettlementItemSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source="order.order_number", read_only=True)

    class Meta:
        model = SettlementItem
        fields = (
            "id",
            "item_type",
            "order",
            "order_number",
            "refund",
            "order_total",
            "tax_amount",
            "platform_commission",
            "commission_vat",
            "net_amount",
            "created_at",
        )
        read_only_fields = fields


class SettlementSerializer(serializers.ModelSerializer):
    items = SettlementItemSerializer(many=True, read_only=True)

    class Meta:
        model = Settlement
        fields = (
            "id",
            "settlement_number",
            "recipient_type",
            "recipient_id",
            "total_amount",
            "total_commission_collected",
            "total_vat_on_commission",
            "payment_method",
            "payment_reference",
            "status",
            "notes",
            "settled_by",
            "settled_at",
            "journal_entry",
            "created_at",
            "items",
        )
        read_only_fields = fields


class SettlementCommandSerializer(serializers.Serializer):
    """
    Input only. Amount rules (positive, <= outstanding due) live in the ledger.
    """

    recipient_type = serializers.ChoiceField(choices=[c for c, _ in RECIPIENT_TYPES])
    recipient_id = serializers.CharField(max_length=64)
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    payment_method = serializers.CharField(required=False, default="bank_transfer", max_length=32)
    payment_reference = serializers.CharField(max_length=100)
    notes = serializers.CharField(required=False, allow_blank=True)


class RecipientQuerySerializer(serializers.Serializer):
    recipient_type = serializers.ChoiceField(choices=[c for c, _ in RECIPIENT_TYPES])
    recipient_id = serializers.CharField(max_length=64)
