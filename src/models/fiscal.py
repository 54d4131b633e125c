"""Fiscal receipt and cash register shift type definitions."""

from datetime import datetime
from enum import Enum
from typing import Any, TypedDict


class FiscalReceiptStatus(str, Enum):
    """Lifecycle of a fiscal receipt row.

    Rows are append-only: an error row is superseded by a new attempt,
    never rewritten into a success row.
    """

    CREATED = "created"
    SENT = "sent"
    ERROR = "error"
    CANCELLED = "cancelled"


class FiscalShiftStatus(str, Enum):
    """Local record of a Checkbox shift."""

    OPENED = "opened"
    CLOSED = "closed"


class FiscalReceipt(TypedDict):
    """Fiscal receipt table row representation."""

    id: str
    order_id: str
    payment_id: str
    receipt_id: str | None
    fiscal_code: str | None
    receipt_url: str | None
    status: str
    checkbox_data: dict[str, Any] | None
    error_message: str | None
    shift_id: str | None
    cash_register_id: str | None
    created_at: datetime
    updated_at: datetime


class FiscalShift(TypedDict):
    """Fiscal shift table row representation."""

    id: str
    shift_id: str
    cash_register_id: str | None
    status: str
    opened_by: str | None
    opened_at: datetime
    closed_by: str | None
    closed_at: datetime | None
    balance: dict[str, Any] | None
