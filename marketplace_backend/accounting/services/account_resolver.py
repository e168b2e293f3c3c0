# PATH: accounting/services/account_resolver.py

"""
PATH: accounting/services/account_resolver.py

ACCOUNT RESOLVER (AUTHORITATIVE)

This module answers ONE question:
"Which account should be used for this purpose?"

Design goals:
- deterministic
- chart-safe
- hard-fail on a missing or inactive mapped account (so we don't post to wrong accounts)

Bootstrap:
- If no active chart exists, the marketplace chart and its accounts are
  created idempotently (logged).
- If multiple active charts exist, hard-fail (do NOT auto-fix silently).
"""

from __future__ import annotations

import logging
from functools import lru_cache

from django.core.exceptions import MultipleObjectsReturned, ObjectDoesNotExist
from django.db import transaction

from accounting.models.account import Account
from accounting.models.chart import ChartOfAccounts
from accounting.services.exceptions import AccountResolutionError

logger = logging.getLogger(__name__)

# ------------------------------------------------------------
# SEMANTIC CODES
# ------------------------------------------------------------

CASH = "CASH"
BANK = "BANK"
MERCHANT_PAYABLE = "MERCHANT_PAYABLE"
COURIER_PAYABLE = "COURIER_PAYABLE"
VAT_PAYABLE = "VAT_PAYABLE"
COMMISSION_REVENUE = "COMMISSION_REVENUE"

DEFAULT_CODES = {
    CASH: "1000",
    BANK: "1010",
    MERCHANT_PAYABLE: "2000",
    COURIER_PAYABLE: "2010",
    VAT_PAYABLE: "2100",
    COMMISSION_REVENUE: "4000",
}

DEFAULT_CHART_NAME = "Marketplace Standard Chart"
DEFAULT_CHART_CODE = "marketplace_standard"

# (code, name, account_type, parent_code)
MARKETPLACE_ACCOUNTS = [
    ("1000", "Cash", Account.ASSET, None),
    ("1010", "Bank", Account.ASSET, None),
    ("2000", "Merchant Payables", Account.LIABILITY, None),
    ("2010", "Courier Payables", Account.LIABILITY, "2000"),
    ("2100", "VAT Payable", Account.LIABILITY, None),
    ("3000", "Platform Equity", Account.EQUITY, None),
    ("4000", "Commission Revenue", Account.REVENUE, None),
]


def seed_marketplace_accounts(chart: ChartOfAccounts) -> tuple[int, int]:
    """
    Create or repair the marketplace accounts inside `chart`.

    Returns (created_count, updated_count). Idempotent.
    """
    created_count = 0
    updated_count = 0
    by_code: dict[str, Account] = {}

    for code, name, account_type, parent_code in MARKETPLACE_ACCOUNTS:
        parent = by_code.get(parent_code) if parent_code else None
        acc, created = Account.objects.get_or_create(
            chart=chart,
            code=code,
            defaults={
                "name": name,
                "account_type": account_type,
                "parent": parent,
                "is_active": True,
            },
        )
        by_code[code] = acc

        if created:
            created_count += 1
            continue

        changed = []
        if acc.name != name:
            acc.name = name
            changed.append("name")
        if acc.account_type != account_type:
            acc.account_type = account_type
            changed.append("account_type")
        if acc.parent_id != (parent.id if parent else None):
            acc.parent = parent
            changed.append("parent")
        if not acc.is_active:
            acc.is_active = True
            changed.append("is_active")

        if changed:
            acc.save(update_fields=changed + ["updated_at"])
            updated_count += 1

    return created_count, updated_count


def _ensure_single_active_chart() -> ChartOfAccounts:
    """
    - If exactly one active chart exists -> return it
    - If none active -> create (or reactivate) the marketplace chart and seed its accounts
    - If multiple active -> hard-fail
    """
    with transaction.atomic():
        active_qs = ChartOfAccounts.objects.select_for_update().filter(is_active=True)
        active_count = active_qs.count()

        if active_count == 1:
            return active_qs.first()

        if active_count > 1:
            raise AccountResolutionError(
                "Multiple active Charts of Accounts found. Only one active chart is allowed."
            )

        chart, created = ChartOfAccounts.objects.get_or_create(
            code=DEFAULT_CHART_CODE,
            defaults={"name": DEFAULT_CHART_NAME, "is_active": True},
        )
        if not chart.is_active:
            chart.is_active = True
            chart.save(update_fields=["is_active", "updated_at"])

        seeded, repaired = seed_marketplace_accounts(chart)
        logger.warning(
            "Bootstrapped marketplace chart of accounts",
            extra={
                "chart_id": chart.id,
                "chart_created": created,
                "accounts_created": seeded,
                "accounts_repaired": repaired,
            },
        )
        return chart


@lru_cache(maxsize=1)
def get_active_chart() -> ChartOfAccounts:
    """
    Cached resolver for the *single* active chart.

    NOTE:
    If you toggle active charts in admin or tests, call clear_active_chart_cache().
    """
    try:
        return ChartOfAccounts.objects.get(is_active=True)
    except ObjectDoesNotExist:
        chart = _ensure_single_active_chart()
        clear_active_chart_cache()
        return chart
    except MultipleObjectsReturned as exc:
        raise AccountResolutionError(
            "Multiple active Charts of Accounts found. Only one active chart is allowed."
        ) from exc


def clear_active_chart_cache() -> None:
    get_active_chart.cache_clear()


def _get_account_by_code(*, chart: ChartOfAccounts, code: str) -> Account:
    try:
        return Account.objects.get(chart=chart, code=code, is_active=True)
    except ObjectDoesNotExist as exc:
        raise AccountResolutionError(
            f"Account with code={code} not found (or inactive) in active chart '{chart.name}'. "
            "Run `manage.py seed_marketplace_chart` and ensure is_active=True."
        ) from exc


def resolve_account(semantic_key: str) -> Account:
    semantic_key = (semantic_key or "").strip().upper()
    code = DEFAULT_CODES.get(semantic_key)
    if not code:
        raise AccountResolutionError(f"Unknown semantic account key '{semantic_key}'")

    chart = get_active_chart()
    try:
        # A cached chart may have been deleted/replaced underneath us (tests, admin)
        chart.refresh_from_db(fields=["is_active"])
    except ObjectDoesNotExist:
        clear_active_chart_cache()
        chart = get_active_chart()
    if not chart.is_active:
        clear_active_chart_cache()
        chart = get_active_chart()
    return _get_account_by_code(chart=chart, code=code)


# ------------------------------------------------------------
# PUBLIC RESOLVERS
# ------------------------------------------------------------


def get_cash_account() -> Account:
    return resolve_account(CASH)


def get_bank_account() -> Account:
    return resolve_account(BANK)


def get_merchant_payable_account() -> Account:
    return resolve_account(MERCHANT_PAYABLE)


def get_courier_payable_account() -> Account:
    return resolve_account(COURIER_PAYABLE)


def get_vat_payable_account() -> Account:
    return resolve_account(VAT_PAYABLE)


def get_commission_revenue_account() -> Account:
    return resolve_account(COMMISSION_REVENUE)


def get_settlement_account_for_method(method: str) -> Account:
    """
    Resolve the money account a payment leg moves through.

    - cash                              -> Cash
    - bank / transfer / card / gateway  -> Bank
    """
    m = (method or "").strip().lower()
    if m in ("bank", "bank_transfer", "transfer", "card", "gateway", "online"):
        return get_bank_account()
    return get_cash_account()
