# orders/services/exceptions.py

"""
ORDER FINANCE ERRORS

Centralized domain errors for the order financial engine
(rates, decomposition, snapshot store, lifecycle, refunds).
"""


class OrderFinanceError(Exception):
    """Base exception for all order finance failures."""


class ConfigurationMissing(OrderFinanceError):
    """
    Raised when no active rate configuration exists.

    Handled inside the rate provider: checkout falls back to defaults.
    """


class InvalidRateError(OrderFinanceError):
    """Raised when a configured or supplied rate is negative or not a number."""


class InvalidAmountError(OrderFinanceError):
    """Raised on bad monetary input, before any write happens."""


class PersistenceFailure(OrderFinanceError):
    """
    Raised when a transactional write failed and was rolled back.

    The caller must not treat the operation as applied.
    """


class InvalidOrderTransitionError(OrderFinanceError):
    pass


class RefundError(OrderFinanceError):
    pass


class AlreadyRefundedError(RefundError):
    pass


class OverRefundError(RefundError):
    pass


class RefundReferenceConflictError(RefundError):
    """refund_reference was already used on the line for a different refund."""
