# accounting/services/journal_entry_service.py

"""
======================================================
PATH: accounting/services/journal_entry_service.py
======================================================
JOURNAL ENTRY SERVICE (ACCOUNTING ENGINE)

This module is the ONLY place allowed to:
- Create JournalEntry
- Create JournalEntryLine
- Enforce debit == credit
- Guarantee atomicity
- Enforce idempotency via (reference_type, reference_id)

Order capture, settlement payouts and refund reversals all pass through here
(see accounting/services/posting.py for the business-event -> postings mapping).
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from accounting.models.account import Account
from accounting.models.journal import JournalEntry, generate_entry_number
from accounting.models.journal_line import JournalEntryLine
from accounting.services.exceptions import (
    IdempotencyError,
    JournalEntryCreationError,
    UnbalancedEntryError,
)

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")

VALID_REFERENCE_TYPES = {code for code, _ in JournalEntry.REFERENCE_TYPES}


def _money(value) -> Decimal:
    if value is None or value == "":
        return ZERO

    if isinstance(value, Decimal):
        amt = value
    else:
        try:
            amt = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError) as exc:
            raise JournalEntryCreationError(f"Invalid money value: {value!r}") from exc

    if not amt.is_finite():
        raise JournalEntryCreationError(f"Invalid money value: {value!r}")

    return amt.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def _as_aware_dt(dt: datetime | None) -> datetime:
    if dt is None:
        return timezone.now()
    if timezone.is_naive(dt):
        return timezone.make_aware(dt, timezone.get_current_timezone())
    return dt


def _resolve_line_account(line: dict) -> Account:
    account = line.get("account")
    if account is None:
        account_id = line.get("account_id")
        if account_id is None:
            raise JournalEntryCreationError("Journal line missing account")
        try:
            account = Account.objects.get(pk=account_id)
        except Account.DoesNotExist as exc:
            raise JournalEntryCreationError(f"Account {account_id} does not exist") from exc

    if not getattr(account, "is_active", True):
        raise JournalEntryCreationError(
            f"Account {getattr(account, 'code', 'UNKNOWN')} is inactive"
        )
    return account


def _normalize_lines(lines) -> tuple[list[dict], Decimal, Decimal]:
    if not lines:
        raise JournalEntryCreationError("Journal entry must contain at least one line")

    total_debits = ZERO
    total_credits = ZERO
    normalized: list[dict] = []

    for line in lines:
        if not isinstance(line, dict):
            raise JournalEntryCreationError("Each journal line must be a dict")

        account = _resolve_line_account(line)
        debit = _money(line.get("debit"))
        credit = _money(line.get("credit"))

        if debit < 0 or credit < 0:
            raise JournalEntryCreationError("Debit or credit cannot be negative")
        if debit > 0 and credit > 0:
            raise JournalEntryCreationError("A line cannot have both debit and credit")
        if debit == 0 and credit == 0:
            raise JournalEntryCreationError("A line must have either debit or credit")

        total_debits += debit
        total_credits += credit
        normalized.append(
            {
                "account": account,
                "debit": debit,
                "credit": credit,
                "description": str(line.get("description") or "").strip()[:255],
            }
        )

    chart_ids = {acc["account"].chart_id for acc in normalized}
    if len(chart_ids) > 1:
        raise JournalEntryCreationError(
            "All lines must belong to the same chart. Cross-chart journal entries are not allowed."
        )

    return (
        normalized,
        total_debits.quantize(TWOPLACES, rounding=ROUND_HALF_UP),
        total_credits.quantize(TWOPLACES, rounding=ROUND_HALF_UP),
    )


@transaction.atomic
def record_entry(
    *,
    reference_type: str,
    reference_id,
    lines: list,
    description: str = "",
    posted_at: datetime | None = None,
    created_by: str | None = None,
) -> JournalEntry:
    """
    Record one balanced journal entry (header + lines) atomically.

    Each line is a dict: {"account" | "account_id", "debit"?, "credit"?, "description"?}
    """
    reference_type = (reference_type or "").strip().lower()
    if reference_type not in VALID_REFERENCE_TYPES:
        raise JournalEntryCreationError(f"Invalid reference_type: {reference_type!r}")

    reference_id = str(reference_id or "").strip()
    if not reference_id:
        raise JournalEntryCreationError("reference_id is required")

    normalized, total_debits, total_credits = _normalize_lines(lines)

    if total_debits != total_credits:
        logger.error(
            "Unbalanced journal entry rejected",
            extra={
                "reference_type": reference_type,
                "reference_id": reference_id,
                "total_debit": str(total_debits),
                "total_credit": str(total_credits),
            },
        )
        raise UnbalancedEntryError(
            f"Unbalanced entry for {reference_type}:{reference_id}: "
            f"debits={total_debits} credits={total_credits}"
        )

    # Clear error before DB constraint race handling
    if JournalEntry.objects.filter(
        reference_type=reference_type, reference_id=reference_id
    ).exists():
        raise IdempotencyError(
            f"Journal entry already exists for reference {reference_type}:{reference_id}"
        )

    try:
        with transaction.atomic():
            journal_entry = JournalEntry.objects.create(
                entry_number=generate_entry_number(),
                reference_type=reference_type,
                reference_id=reference_id,
                description=description or "",
                total_debit=total_debits,
                total_credit=total_credits,
                posted_at=_as_aware_dt(posted_at),
                created_by=(created_by or "").strip(),
            )
    except (IntegrityError, ValidationError) as exc:
        if JournalEntry.objects.filter(
            reference_type=reference_type, reference_id=reference_id
        ).exists():
            raise IdempotencyError(
                f"Journal entry already exists for reference {reference_type}:{reference_id}"
            ) from exc
        raise JournalEntryCreationError(f"Failed to create journal entry: {exc}") from exc

    JournalEntryLine.objects.bulk_create(
        [
            JournalEntryLine(
                journal_entry=journal_entry,
                account=line["account"],
                debit_amount=line["debit"],
                credit_amount=line["credit"],
                description=line["description"],
            )
            for line in normalized
        ]
    )

    logger.info(
        "Journal entry recorded",
        extra={
            "entry_number": journal_entry.entry_number,
            "reference_type": reference_type,
            "reference_id": reference_id,
            "total": str(total_debits),
        },
    )
    return journal_entry


def list_journal_entries(*, reference_type: str | None = None, reference_id=None):
    """
    Read-only listing used by the accounting dashboard.
    """
    qs = JournalEntry.objects.prefetch_related("lines", "lines__account")
    if reference_type:
        qs = qs.filter(reference_type=reference_type.strip().lower())
    if reference_id is not None and str(reference_id).strip():
        qs = qs.filter(reference_id=str(reference_id).strip())
    return qs.order_by("-posted_at", "-created_at")
