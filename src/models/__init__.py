"""Database model type definitions."""

from src.models.fiscal import FiscalReceipt, FiscalReceiptStatus, FiscalShift, FiscalShiftStatus
from src.models.order import Order, OrderItem, OrderStatus
from src.models.payment import Payment, PaymentProvider, PaymentStatus

__all__ = [
    "Order",
    "OrderItem",
    "OrderStatus",
    "Payment",
    "PaymentProvider",
    "PaymentStatus",
    "FiscalReceipt",
    "FiscalReceiptStatus",
    "FiscalShift",
    "FiscalShiftStatus",
]
