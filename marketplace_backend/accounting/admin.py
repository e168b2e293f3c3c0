# accounting/admin.py
"""
Journal data is append-only: entries and lines are browsable for audit but
never added, edited or removed from the admin. The chart and its accounts
stay editable so finance can rename or deactivate accounts.
"""

from django.contrib import admin
from django.db.models import Count

from accounting.models.account import Account
from accounting.models.chart import ChartOfAccounts
from accounting.models.journal import JournalEntry
from accounting.models.journal_line import JournalEntryLine


class ReadOnlyAdminMixin:
    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(ChartOfAccounts)
class ChartOfAccountsAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "is_active", "account_count", "updated_at")
    list_filter = ("is_active",)
    search_fields = ("code", "name")
    readonly_fields = ("created_at", "updated_at")

    def get_queryset(self, request):
        return super().get_queryset(request).annotate(_account_count=Count("accounts"))

    @admin.display(description="Accounts", ordering="_account_count")
    def account_count(self, obj):
        return obj._account_count


@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "account_type", "parent", "chart", "is_active")
    list_filter = ("chart", "account_type", "is_active")
    list_select_related = ("chart", "parent")
    search_fields = ("code", "name")
    ordering = ("chart", "code")
    readonly_fields = ("created_at", "updated_at")
    fieldsets = (
        (None, {"fields": ("chart", "code", "name", "account_type", "parent")}),
        ("Status", {"fields": ("is_active", "created_at", "updated_at")}),
    )


class JournalEntryLineInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = JournalEntryLine
    extra = 0
    fields = ("account", "debit_amount", "credit_amount", "description")
    readonly_fields = fields


@admin.register(JournalEntry)
class JournalEntryAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = (
        "entry_number",
        "reference_type",
        "reference_id",
        "total_debit",
        "total_credit",
        "posted_at",
    )
    list_filter = ("reference_type",)
    search_fields = ("entry_number", "reference_id", "description")
    date_hierarchy = "posted_at"
    ordering = ("-posted_at",)
    inlines = [JournalEntryLineInline]
