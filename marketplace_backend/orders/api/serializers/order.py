# orders/api/serializers/order.py

from rest_framework import serializers

from orders.models import Order, OrderItemDetail, OrderRefund


class OrderItemDetailSerializer(serializers.ModelSerializer):
    refund_status = serializers.CharField(read_only=True)

    class Meta:
        model = OrderItemDetail
        fields = (
            "id",
            "product_id",
            "product_name",
            "quantity",
            "unit_price_inc_vat",
            "unit_price_ex_vat",
            "vat_rate",
            "commission_rate",
            "line_subtotal_ex_vat",
            "line_vat_amount",
            "line_total",
            "commission_ex_vat",
            "commission_vat",
            "commission_total",
            "merchant_payout",
            "refunded_amount",
            "is_refunded",
            "refunded_at",
            "refund_status",
        )
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemDetailSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = (
            "id",
            "order_number",
            "checkout_reference",
            "store_id",
            "customer_id",
            "courier_id",
            "payment_method",
            "status",
            "vat_rate",
            "delivery_vat_rate",
            "commission_rate",
            "subtotal_inc_vat",
            "subtotal_ex_vat",
            "vat_on_products",
            "delivery_fee",
            "delivery_fee_ex_vat",
            "vat_on_delivery",
            "commission_total",
            "commission_ex_vat",
            "commission_vat",
            "merchant_payout",
            "order_total",
            "refunded_total",
            "refunded_merchant_payout",
            "refunded_commission_total",
            "refunded_delivery_fee",
            "is_fully_refunded",
            "journal_entry",
            "created_at",
            "delivered_at",
            "items",
        )
        read_only_fields = fields


class OrderRefundSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderRefund
        fields = (
            "id",
            "refund_number",
            "refund_reference",
            "order",
            "order_item_detail",
            "refund_type",
            "status",
            "refund_amount",
            "original_line_total",
            "original_subtotal_ex_vat",
            "original_vat_amount",
            "original_commission_ex_vat",
            "original_commission_vat",
            "original_commission_total",
            "original_merchant_payout",
            "reversed_subtotal_ex_vat",
            "reversed_vat_amount",
            "reversed_commission_ex_vat",
            "reversed_commission_vat",
            "reversed_commission_total",
            "reversed_merchant_payout",
            "reversed_delivery_fee",
            "reason",
            "processed_by",
            "processed_at",
            "journal_entry",
        )
        read_only_fields = fields
