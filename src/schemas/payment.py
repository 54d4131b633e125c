"""Payment Pydantic schemas for API request/response models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.models.payment import PaymentProvider, PaymentStatus
from src.schemas.fiscal import FiscalReceiptResponse


class PaymentCreateRequest(BaseModel):
    """Schema for starting a payment via POST /payments."""

    model_config = ConfigDict(from_attributes=True)

    order_id: str = Field(description="Order UUID")
    method: PaymentProvider = Field(description="Payment method: liqpay or cod")


class PaymentResponse(BaseModel):
    """Schema for payment API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Payment unique identifier")
    order_id: str = Field(description="Order this payment belongs to")
    provider: PaymentProvider = Field(description="Payment provider")
    amount: int = Field(description="Amount in minor units (kopiykas)")
    currency: str = Field(default="UAH", description="Currency code")
    status: PaymentStatus = Field(description="Internal payment status")
    transaction_id: str | None = Field(default=None, description="LiqPay payment or transaction id")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")
    updated_at: datetime | None = Field(default=None, description="Last update timestamp")


class PaymentStartResponse(BaseModel):
    """Schema for the payment start response."""

    model_config = ConfigDict(from_attributes=True)

    payment: PaymentResponse = Field(description="The order's payment")
    checkout_url: str | None = Field(default=None, description="LiqPay checkout URL to redirect to")
    created: bool = Field(description="False when the payment already existed")


class PaymentStatusResponse(BaseModel):
    """Schema for an explicit status check."""

    model_config = ConfigDict(from_attributes=True)

    payment_status: PaymentStatus = Field(description="Payment status after the check")
    order_status: str = Field(description="Order status after the check")
    changed: bool = Field(description="Whether the check moved the payment to a new status")
    message: str | None = Field(default=None, description="Informational message")
    details: dict[str, Any] | None = Field(default=None, description="Provider response, for operators")


class RefundResponse(BaseModel):
    """Schema for refund responses."""

    model_config = ConfigDict(from_attributes=True)

    success: bool = Field(default=True, description="Refund status")
    message: str = Field(description="Human-readable result")
    payment: PaymentResponse = Field(description="Payment after the refund")
    order_status: str = Field(description="Order status after the refund")


class WebhookAckResponse(BaseModel):
    """Acknowledgement returned to LiqPay."""

    model_config = ConfigDict(from_attributes=True)

    status: str = Field(default="received", description="Acknowledgement")
    order_number: str = Field(description="Order number from the callback")
    payment_status: PaymentStatus = Field(description="Payment status after processing")
    order_status: str = Field(description="Order status after processing")
    receipt: FiscalReceiptResponse | None = Field(default=None, description="Receipt issued or found, if any")
