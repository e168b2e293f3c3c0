# orders/admin.py

from django.contrib import admin

from orders.models import CommissionSetting, Order, OrderItemDetail, OrderRefund, TaxSetting

# ======================================================
# RATE CONFIGURATION (EDITABLE)
# ======================================================


@admin.register(CommissionSetting)
class CommissionSettingAdmin(admin.ModelAdmin):
    list_display = ("name", "applies_to", "percentage", "fixed_amount", "is_active", "updated_at")
    list_filter = ("applies_to", "is_active")
    search_fields = ("name",)


@admin.register(TaxSetting)
class TaxSettingAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "percentage",
        "applies_to_products",
        "applies_to_delivery",
        "is_active",
        "updated_at",
    )
    list_filter = ("is_active",)
    search_fields = ("name",)


# ======================================================
# FINANCIAL SNAPSHOTS (READ-ONLY)
# ======================================================


class ReadOnlyAdminMixin:
    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class OrderItemDetailInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = OrderItemDetail
    extra = 0
    fields = (
        "product_name",
        "quantity",
        "line_total",
        "line_vat_amount",
        "commission_total",
        "merchant_payout",
        "refunded_amount",
        "is_refunded",
    )
    readonly_fields = fields


@admin.register(Order)
class OrderAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = (
        "order_number",
        "store_id",
        "status",
        "order_total",
        "merchant_payout",
        "refunded_total",
        "is_fully_refunded",
        "created_at",
    )
    list_filter = ("status", "is_fully_refunded", "created_at")
    search_fields = ("order_number", "store_id", "customer_id", "courier_id")
    inlines = [OrderItemDetailInline]


@admin.register(OrderRefund)
class OrderRefundAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = (
        "refund_number",
        "order",
        "refund_type",
        "refund_amount",
        "reversed_merchant_payout",
        "reversed_delivery_fee",
        "processed_at",
    )
    list_filter = ("refund_type", "processed_at")
    search_fields = ("refund_number", "order__order_number")
