# settlements/admin.py

from django.contrib import admin

from settlements.models import PayoutRecipient, Settlement, SettlementItem


class SettlementItemInline(admin.TabularInline):
    model = SettlementItem
    extra = 0
    can_delete = False
    fields = ("item_type", "order", "refund", "order_total", "platform_commission", "net_amount")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Settlement)
class SettlementAdmin(admin.ModelAdmin):
    list_display = (
        "settlement_number",
        "recipient_type",
        "recipient_id",
        "total_amount",
        "payment_method",
        "status",
        "settled_at",
    )
    list_filter = ("recipient_type", "status", "payment_method")
    search_fields = ("settlement_number", "recipient_id", "payment_reference")
    inlines = [SettlementItemInline]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(PayoutRecipient)
class PayoutRecipientAdmin(admin.ModelAdmin):
    list_display = ("recipient_type", "recipient_id", "created_at")
    list_filter = ("recipient_type",)
    search_fields = ("recipient_id",)
