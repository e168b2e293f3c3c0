# accounting/models/chart.py

from __future__ import annotations

from django.db import models, transaction


class ChartOfAccounts(models.Model):
    """
    The set of accounts postings resolve against.

    At most one chart is active. Saving a chart as active deactivates the
    others in the same transaction; the resolver's cached chart is dropped
    whenever the active chart may have changed.
    """

    name = models.CharField(max_length=100, unique=True)
    code = models.SlugField(
        max_length=64,
        unique=True,
        help_text="Lookup key for the resolver and seed command (e.g. marketplace_standard).",
    )
    is_active = models.BooleanField(default=False, db_index=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Chart of Accounts"
        verbose_name_plural = "Charts of Accounts"
        ordering = ["name"]

    def __str__(self):
        return self.code

    def clean(self):
        self.name = (self.name or "").strip()
        self.code = (self.code or "").strip()

    def save(self, *args, **kwargs):
        from accounting.services.account_resolver import clear_active_chart_cache

        self.full_clean()
        with transaction.atomic():
            previously_active = bool(
                self.pk
                and ChartOfAccounts.objects.filter(pk=self.pk, is_active=True).exists()
            )
            if self.is_active:
                ChartOfAccounts.objects.filter(is_active=True).exclude(pk=self.pk).update(
                    is_active=False
                )
            super().save(*args, **kwargs)

        if self.is_active or previously_active:
            clear_active_chart_cache()
