"""Fiscal receipt and shift Pydantic schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.models.fiscal import FiscalReceiptStatus, FiscalShiftStatus


class FiscalReceiptResponse(BaseModel):
    """Schema for fiscal receipt API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Receipt row identifier")
    order_id: str = Field(description="Order UUID")
    payment_id: str | None = Field(default=None, description="Payment UUID")
    receipt_id: str | None = Field(default=None, description="Checkbox receipt id")
    fiscal_code: str | None = Field(default=None, description="Fiscal number assigned by the tax service")
    receipt_url: str | None = Field(default=None, description="Public receipt URL")
    status: FiscalReceiptStatus = Field(description="Receipt status")
    error_message: str | None = Field(default=None, description="Checkbox error for error rows")
    shift_id: str | None = Field(default=None, description="Shift the receipt was issued in")
    cash_register_id: str | None = Field(default=None, description="Cash register id")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")


class FiscalizeResponse(BaseModel):
    """Schema for the manual fiscalization response."""

    model_config = ConfigDict(from_attributes=True)

    success: bool = Field(description="False when Checkbox failed and an error row was recorded")
    created: bool = Field(description="False when an existing receipt was returned")
    receipt: FiscalReceiptResponse = Field(description="The receipt row")
    error: str | None = Field(default=None, description="Checkbox error message")


class FiscalReceiptListResponse(BaseModel):
    """Schema for paginated receipt list responses."""

    model_config = ConfigDict(from_attributes=True)

    receipts: list[FiscalReceiptResponse] = Field(description="Receipts on this page")
    total: int = Field(description="Total matching receipts")
    page: int = Field(description="Page number, starting at 1")
    page_size: int = Field(description="Page size")
    total_pages: int = Field(description="Number of pages")


class ShiftInfo(BaseModel):
    """Checkbox view of a shift."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Checkbox shift id")
    serial: int | None = Field(default=None, description="Shift serial number")
    status: str = Field(description="Checkbox shift status")
    opened_at: str | None = Field(default=None, description="Opening time")
    closed_at: str | None = Field(default=None, description="Closing time")
    balance: dict[str, Any] | None = Field(default=None, description="Shift balance")


class FiscalShiftRecord(BaseModel):
    """Local record of a shift."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Row identifier")
    shift_id: str = Field(description="Checkbox shift id")
    cash_register_id: str | None = Field(default=None, description="Cash register id")
    status: FiscalShiftStatus = Field(description="Local shift status")
    opened_by: str | None = Field(default=None, description="User who opened the shift")
    opened_at: datetime | None = Field(default=None, description="Opening time")
    closed_by: str | None = Field(default=None, description="User who closed the shift")
    closed_at: datetime | None = Field(default=None, description="Closing time")
    balance: dict[str, Any] | None = Field(default=None, description="Balance at closing")


class CurrentShiftResponse(BaseModel):
    """Schema for GET /fiscal/shifts/current."""

    model_config = ConfigDict(from_attributes=True)

    is_open: bool = Field(description="Whether a shift is open")
    shift: ShiftInfo | None = Field(default=None, description="The open shift")
    record: FiscalShiftRecord | None = Field(default=None, description="Local record of the open shift")


class ShiftActionResponse(BaseModel):
    """Schema for opening and closing shifts."""

    model_config = ConfigDict(from_attributes=True)

    shift: ShiftInfo = Field(description="Checkbox shift after the action")
    record: FiscalShiftRecord = Field(description="Local shift record")


class FiscalShiftListResponse(BaseModel):
    """Schema for paginated shift list responses."""

    model_config = ConfigDict(from_attributes=True)

    shifts: list[FiscalShiftRecord] = Field(description="Shifts on this page")
    total: int = Field(description="Total shifts")
    page: int = Field(description="Page number, starting at 1")
    page_size: int = Field(description="Page size")
    total_pages: int = Field(description="Number of pages")
