# orders/api/serializers/commands.py

"""
Command serializers.

These serializers do NOT touch the database.
They only validate input shape; money rules live in the services.
"""

from rest_framework import serializers

from orders.models import Order, OrderRefund


class CartLineInputSerializer(serializers.Serializer):
    product_id = serializers.CharField(required=False, allow_blank=True, max_length=64)
    product_name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    unit_price_inc_vat = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    quantity = serializers.IntegerField(min_value=0)


class CheckoutCommandSerializer(serializers.Serializer):
    store_id = serializers.CharField(max_length=64)
    customer_id = serializers.CharField(max_length=64)
    payment_method = serializers.CharField(required=False, default="cash", max_length=32)
    checkout_reference = serializers.CharField(
        required=False, allow_blank=True, max_length=64
    )
    delivery_fee = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False, default=0
    )
    items = CartLineInputSerializer(many=True, allow_empty=False)


class TransitionCommandSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c for c, _ in Order.STATUS_CHOICES])
    courier_id = serializers.CharField(required=False, allow_blank=True, max_length=64)


class RefundCommandSerializer(serializers.Serializer):
    scope = serializers.ChoiceField(choices=[c for c, _ in OrderRefund.TYPE_CHOICES])
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, allow_null=True
    )
    refund_reference = serializers.CharField(required=False, allow_blank=True, max_length=64)
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)

    def validate(self, attrs):
        if attrs["scope"] == OrderRefund.TYPE_PARTIAL:
            errors = {}
            if attrs.get("amount") is None:
                errors["amount"] = "amount is required for partial refunds"
            # A full refund is naturally idempotent; partials need a retry key
            if not (attrs.get("refund_reference") or "").strip():
                errors["refund_reference"] = "refund_reference is required for partial refunds"
            if errors:
                raise serializers.ValidationError(errors)
        return attrs


class SummaryQuerySerializer(serializers.Serializer):
    store_id = serializers.CharField(required=False, allow_blank=True)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
