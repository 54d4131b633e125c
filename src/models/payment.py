"""Payment model type definitions for database operations."""

from datetime import datetime
from enum import Enum
from typing import Any, TypedDict


class PaymentStatus(str, Enum):
    """Internal payment status.

    Provider status strings are mapped onto this enum as soon as they are
    received and never stored raw in the status column.
    """

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentProvider(str, Enum):
    """How the customer pays for an order."""

    LIQPAY = "liqpay"
    COD = "cod"


class Payment(TypedDict):
    """Payment table row representation.

    One row per order. The metadata column keeps the last provider payload
    verbatim for audit and replay.
    """

    id: str
    order_id: str
    provider: str
    amount: int
    currency: str
    status: str
    transaction_id: str | None
    metadata: dict[str, Any] | None
    liqpay_data: dict[str, Any] | None
    created_at: datetime
    updated_at: datetime


class PaymentCreate(TypedDict, total=False):
    """Data required to create a payment when checkout starts."""

    order_id: str
    provider: str
    amount: int
    currency: str
    status: str
    liqpay_data: dict[str, Any] | None


class PaymentUpdate(TypedDict, total=False):
    """Data the reconciliation workflow writes to a payment."""

    status: str
    transaction_id: str | None
    metadata: dict[str, Any] | None
    updated_at: str
