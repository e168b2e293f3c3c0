# settlements/services/exceptions.py

"""
SETTLEMENT LEDGER ERRORS

Amount validation reuses orders.services.exceptions.InvalidAmountError.
"""


class SettlementError(Exception):
    """Base exception for settlement ledger failures."""


class OverpaymentError(SettlementError):
    """Requested amount exceeds the recipient's outstanding due."""


class DuplicateSettlementError(SettlementError):
    """The same payment reference was already settled for this recipient."""
