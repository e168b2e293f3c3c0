# orders/api/errors.py

"""
API ERROR NORMALIZATION

Canonical body: {"error": {"code": ..., "message": ...}}

- 400: invalid input (amounts, rates, scope, transitions)
- 409: business-rule rejections (already refunded, over-refund,
       overpayment, duplicate settlement)
- 503: persistence failure (nothing was applied, retry is safe)
"""

from rest_framework import status
from rest_framework.response import Response

from accounting.services.exceptions import AccountingServiceError
from orders.services.exceptions import (
    AlreadyRefundedError,
    InvalidAmountError,
    InvalidOrderTransitionError,
    InvalidRateError,
    OrderFinanceError,
    OverRefundError,
    PersistenceFailure,
    RefundReferenceConflictError,
)
from settlements.services.exceptions import (
    DuplicateSettlementError,
    OverpaymentError,
    SettlementError,
)

ERROR_MAP = (
    (AlreadyRefundedError, "already_refunded", status.HTTP_409_CONFLICT),
    (OverRefundError, "over_refund", status.HTTP_409_CONFLICT),
    (RefundReferenceConflictError, "refund_reference_conflict", status.HTTP_409_CONFLICT),
    (OverpaymentError, "overpayment", status.HTTP_409_CONFLICT),
    (DuplicateSettlementError, "duplicate_settlement", status.HTTP_409_CONFLICT),
    (PersistenceFailure, "persistence_failure", status.HTTP_503_SERVICE_UNAVAILABLE),
    (InvalidAmountError, "invalid_amount", status.HTTP_400_BAD_REQUEST),
    (InvalidRateError, "invalid_rate", status.HTTP_400_BAD_REQUEST),
    (InvalidOrderTransitionError, "invalid_transition", status.HTTP_400_BAD_REQUEST),
    (SettlementError, "settlement_error", status.HTTP_400_BAD_REQUEST),
    (OrderFinanceError, "order_finance_error", status.HTTP_400_BAD_REQUEST),
    (AccountingServiceError, "accounting_error", status.HTTP_500_INTERNAL_SERVER_ERROR),
)

HANDLED_ERRORS = tuple(exc_class for exc_class, _, _ in ERROR_MAP)


def error_response(*, code: str, message: str, http_status: int):
    """
    Canonical API error response.
    """
    return Response(
        {"error": {"code": code, "message": message}},
        status=http_status,
    )


def domain_error_response(exc: Exception):
    for exc_class, code, http_status in ERROR_MAP:
        if isinstance(exc, exc_class):
            return error_response(code=code, message=str(exc), http_status=http_status)
    raise exc
