"""
Retry key for refunds: a non-empty refund_reference is unique per order line.
"""

from __future__ import annotations

from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="orderrefund",
            name="refund_reference",
            field=models.CharField(
                blank=True,
                default="",
                help_text="Client-supplied key; a retried request with the same key replays this refund",
                max_length=64,
            ),
        ),
        migrations.AddConstraint(
            model_name="orderrefund",
            constraint=models.UniqueConstraint(
                condition=models.Q(("refund_reference", ""), _negated=True),
                fields=("order_item_detail", "refund_reference"),
                name="uniq_refund_reference_per_line",
            ),
        ),
    ]
