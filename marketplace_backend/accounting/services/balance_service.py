# accounting/services/balance_service.py

"""
Account balances, computed from journal lines only.

Balances are signed by the account's normal side: a payable with more
credits than debits has a positive balance, so "VAT Payable = 15.00"
means 15.00 is owed to the tax authority.
"""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from django.db.models import Sum, Value
from django.db.models.functions import Coalesce

from accounting.models.account import Account
from accounting.models.journal_line import JournalEntryLine

ZERO = Decimal("0.00")
_TOTALS = {
    "debit": Coalesce(Sum("debit_amount"), Value(ZERO)),
    "credit": Coalesce(Sum("credit_amount"), Value(ZERO)),
}


def _money(value) -> Decimal:
    return Decimal(value or 0).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _posted_lines(as_of: datetime | None):
    lines = JournalEntryLine.objects.all()
    if as_of is not None:
        lines = lines.filter(journal_entry__posted_at__lte=as_of)
    return lines


def signed_balance(account: Account, debit, credit) -> Decimal:
    if account.normal_side == Account.DEBIT:
        return _money(debit) - _money(credit)
    return _money(credit) - _money(debit)


def get_account_balance(account: Account, *, as_of: datetime | None = None) -> Decimal:
    totals = _posted_lines(as_of).filter(account=account).aggregate(**_TOTALS)
    return signed_balance(account, totals["debit"], totals["credit"])


def get_trial_balance(chart, *, as_of: datetime | None = None) -> dict:
    """
    Per-account debit/credit totals for ``chart`` plus the grand totals.

    Every account of the chart is listed, including ones with no postings.
    ``is_balanced`` is False only if something bypassed the journal engine.
    """
    totals_by_account = {
        row["account_id"]: row
        for row in _posted_lines(as_of)
        .filter(account__chart=chart)
        .values("account_id")
        .annotate(**_TOTALS)
    }

    rows = []
    total_debit = total_credit = ZERO
    for account in chart.accounts.order_by("code"):
        totals = totals_by_account.get(account.id, {})
        debit = _money(totals.get("debit"))
        credit = _money(totals.get("credit"))
        total_debit += debit
        total_credit += credit
        rows.append(
            {
                "account_id": account.id,
                "code": account.code,
                "name": account.name,
                "account_type": account.account_type,
                "debit_total": debit,
                "credit_total": credit,
                "balance": signed_balance(account, debit, credit),
            }
        )

    return {
        "accounts": rows,
        "total_debit": total_debit,
        "total_credit": total_credit,
        "is_balanced": total_debit == total_credit,
    }
