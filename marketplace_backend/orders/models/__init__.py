# orders/models/__init__.py

from .order import Order
from .order_item_detail import OrderItemDetail
from .order_refund import OrderRefund
from .rate_settings import CommissionSetting, TaxSetting

__all__ = [
    "Order",
    "OrderItemDetail",
    "OrderRefund",
    "CommissionSetting",
    "TaxSetting",
]
