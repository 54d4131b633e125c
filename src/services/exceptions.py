"""Domain errors raised by the payment and fiscal services.

Each error is a distinct subclass so callers can tell a missing record from
a rejected precondition or a provider failure. They inherit from the API
error hierarchy, so routes can let them propagate to the error handler.
"""

from typing import Any

from src.api.middleware.error_handler import (
    BadRequestError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ServiceUnavailableError,
)


class OrderNotFoundError(NotFoundError):
    """No order with the given id or order number."""

    def __init__(self, reference: str) -> None:
        super().__init__(f"Order not found: {reference}")
        self.reference = reference


class PaymentNotFoundError(NotFoundError):
    """The order exists but no payment was ever started for it."""

    def __init__(self, order_id: str) -> None:
        super().__init__(f"Payment not found for order {order_id}")
        self.order_id = order_id


class ReceiptNotFoundError(NotFoundError):
    """No fiscal receipt has been recorded for the order."""

    def __init__(self, order_id: str) -> None:
        super().__init__(f"Fiscal receipt not found for order {order_id}")
        self.order_id = order_id


class InvalidWebhookSignatureError(BadRequestError):
    """Webhook payload failed signature verification."""

    def __init__(self) -> None:
        super().__init__("Invalid webhook signature")


class OrderClosedError(ConflictError):
    """The order is cancelled or refunded and cannot start a payment."""

    def __init__(self, order_id: str, status: str) -> None:
        super().__init__(f"Order {order_id} is {status} and cannot be paid")
        self.order_id = order_id
        self.status = status


class PaymentNotCompletedError(ConflictError):
    """The operation needs a completed payment."""

    def __init__(self, order_id: str, status: str) -> None:
        super().__init__(f"Payment for order {order_id} is {status}, expected completed")
        self.order_id = order_id
        self.status = status


class FiscalizationNotAllowedError(ConflictError):
    """Receipts are only issued for completed LiqPay payments."""

    def __init__(self, order_id: str, provider: str, status: str) -> None:
        super().__init__(
            f"Receipt can only be created for completed LiqPay payments "
            f"(order {order_id}: provider={provider}, status={status})"
        )
        self.order_id = order_id
        self.provider = provider
        self.status = status


class RefundRejectedError(ConflictError):
    """The gateway declined the refund."""

    def __init__(self, order_id: str, reason: str, raw: dict[str, Any] | None = None) -> None:
        super().__init__(
            f"Refund rejected for order {order_id}: {reason}",
            details=[{"msg": reason, "type": "refund_rejected"}],
        )
        self.order_id = order_id
        self.reason = reason
        self.raw = raw or {}


class ShiftAlreadyOpenError(ConflictError):
    """A cash register shift is already open."""

    def __init__(self, shift_id: str) -> None:
        super().__init__(f"Shift already open: {shift_id}")
        self.shift_id = shift_id


class NoOpenShiftError(ConflictError):
    """There is no open cash register shift to close."""

    def __init__(self) -> None:
        super().__init__("No open shift found")


class PaymentGatewayError(ExternalServiceError):
    """LiqPay could not be reached or returned an HTTP error."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Payment gateway error: {message}")


class FiscalServiceError(ExternalServiceError):
    """Checkbox could not be reached or rejected the call."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Fiscal service error: {message}")


class GatewayNotConfiguredError(ServiceUnavailableError):
    """LiqPay keys are missing from the configuration."""

    def __init__(self) -> None:
        super().__init__(
            "LiqPay credentials not configured. Set LIQPAY_PUBLIC_KEY and LIQPAY_PRIVATE_KEY environment variables."
        )


class FiscalNotConfiguredError(ServiceUnavailableError):
    """Checkbox credentials are missing from the configuration."""

    def __init__(self) -> None:
        super().__init__(
            "Checkbox credentials not configured. Set CHECKBOX_LOGIN, CHECKBOX_PASSWORD, "
            "and CHECKBOX_LICENSE_KEY environment variables."
        )
