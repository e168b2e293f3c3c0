# settlements/models/__init__.py

from .settlement import (
    RECIPIENT_COURIER,
    RECIPIENT_MERCHANT,
    RECIPIENT_TYPES,
    PayoutRecipient,
    Settlement,
)
from .settlement_item import SettlementItem

__all__ = [
    "RECIPIENT_COURIER",
    "RECIPIENT_MERCHANT",
    "RECIPIENT_TYPES",
    "PayoutRecipient",
    "Settlement",
    "SettlementItem",
]
