# accounting/management/commands/seed_marketplace_chart.py

from django.core.management.base import BaseCommand
from django.db import transaction

from accounting.models.chart import ChartOfAccounts
from accounting.services.account_resolver import (
    DEFAULT_CHART_CODE,
    DEFAULT_CHART_NAME,
    clear_active_chart_cache,
    seed_marketplace_accounts,
)


def _activate_only_this_chart(chart: ChartOfAccounts) -> None:
    ChartOfAccounts.objects.exclude(id=chart.id).filter(is_active=True).update(
        is_active=False
    )
    if not chart.is_active:
        chart.is_active = True
        chart.save(update_fields=["is_active", "updated_at"])


class Command(BaseCommand):
    help = "Seed the marketplace Chart of Accounts (cash, bank, payables, VAT, commission)"

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write("Seeding Marketplace Chart of Accounts...")

        chart, _ = ChartOfAccounts.objects.get_or_create(
            code=DEFAULT_CHART_CODE,
            defaults={"name": DEFAULT_CHART_NAME, "is_active": True},
        )

        _activate_only_this_chart(chart)
        created_count, updated_count = seed_marketplace_accounts(chart)
        clear_active_chart_cache()

        self.stdout.write(
            self.style.SUCCESS(
                f"✔ Marketplace chart seeded ({created_count} new accounts, {updated_count} updated)."
            )
        )
