# accounting/services/exceptions.py

"""
Journal errors. Every one of them means the posting was not written;
callers inside a larger transaction let it propagate so their own rows
roll back with it.
"""


class AccountingServiceError(Exception):
    pass


class AccountResolutionError(AccountingServiceError):
    """A system account (cash, payables, VAT, ...) is missing from the active chart."""


class JournalEntryCreationError(AccountingServiceError):
    """Malformed lines, unknown reference type, or accounts from another chart."""


class UnbalancedEntryError(JournalEntryCreationError):
    """Debits and credits differ after rounding. A bug in a posting rule."""


class IdempotencyError(AccountingServiceError):
    """(reference_type, reference_id) already has an entry."""
