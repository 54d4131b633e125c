"""Payment reconciliation workflow.

Moves an order through pending -> paid -> fiscalized in response to LiqPay
callbacks, explicit status checks and admin refunds. All state lives in the
orders, payments and fiscal_receipts tables, so every entry point can be
re-run safely after a crash or a duplicate delivery.
"""

import logging
from dataclasses import dataclass
from typing import Any

from supabase import Client

from src.core.config import Settings
from src.core.liqpay import LiqPayClient, LiqPayError
from src.core.order_locks import OrderLockRegistry, get_order_locks
from src.models.order import CLOSED_ORDER_STATUSES, Order, OrderStatus, OrderUpdate
from src.models.payment import Payment, PaymentProvider, PaymentStatus, PaymentUpdate
from src.services.email_service import EmailService
from src.services.exceptions import (
    GatewayNotConfiguredError,
    InvalidWebhookSignatureError,
    OrderClosedError,
    OrderNotFoundError,
    PaymentGatewayError,
    PaymentNotCompletedError,
    PaymentNotFoundError,
    RefundRejectedError,
)
from src.services.fiscal_service import FiscalizeResult, FiscalService
from src.services.payment_status import is_valid_transition, map_provider_status
from src.stores.order_store import OrderStore
from src.stores.payment_store import PaymentStore

logger = logging.getLogger(__name__)

COD_STATUS_MESSAGE = "Cash on delivery - payment collected on delivery"


@dataclass(frozen=True)
class TransitionResult:
    """Payment and order rows after a status update attempt."""

    payment: Payment
    order: Order
    applied: bool


@dataclass(frozen=True)
class WebhookOutcome:
    """Result of processing one LiqPay callback."""

    order_number: str
    payment_status: PaymentStatus
    order_status: str
    applied: bool
    receipt: FiscalizeResult | None = None


@dataclass(frozen=True)
class StatusCheckResult:
    """Result of an explicit status check."""

    payment_status: PaymentStatus
    order_status: str
    changed: bool
    message: str | None = None
    details: dict[str, Any] | None = None


@dataclass(frozen=True)
class RefundOutcome:
    """Result of a successful refund."""

    payment: Payment
    order: Order
    message: str


def order_changes_for(order: Order, payment_status: PaymentStatus) -> OrderUpdate:
    """Order fields needed so the order reflects payment_status.

    payment_status is always mirrored. A completed payment only moves the
    order from pending to processing, never back over a status an admin has
    already advanced. A refunded payment refunds the order.
    """
    changes: OrderUpdate = {}
    if order.get("payment_status") != payment_status.value:
        changes["payment_status"] = payment_status.value
    if payment_status == PaymentStatus.COMPLETED and order["status"] == OrderStatus.PENDING.value:
        changes["status"] = OrderStatus.PROCESSING.value
    elif payment_status == PaymentStatus.REFUNDED and order["status"] != OrderStatus.REFUNDED.value:
        changes["status"] = OrderStatus.REFUNDED.value
    return changes


class PaymentService:
    """Service for starting payments and reconciling their status."""

    def __init__(
        self,
        client: Client,
        liqpay: LiqPayClient | None,
        fiscal_service: FiscalService,
        settings: Settings,
        email_service: EmailService | None = None,
        locks: OrderLockRegistry | None = None,
    ) -> None:
        """Initialize payment service.

        Args:
            client: Supabase client used by the stores.
            liqpay: LiqPay client, or None when LiqPay is not configured.
            fiscal_service: Service used to fiscalize completed payments.
            settings: Application settings.
            email_service: Optional service for order confirmation emails.
            locks: Lock registry; defaults to the process-wide one.
        """
        self.orders = OrderStore(client)
        self.payments = PaymentStore(client)
        self.liqpay = liqpay
        self.fiscal_service = fiscal_service
        self.settings = settings
        self.email_service = email_service
        self.locks = locks or get_order_locks()

    def _require_liqpay(self) -> LiqPayClient:
        if self.liqpay is None:
            raise GatewayNotConfiguredError()
        return self.liqpay

    def _load(self, order_id: str) -> tuple[Order, Payment]:
        order = self.orders.get(order_id)
        if not order:
            raise OrderNotFoundError(order_id)
        payment = self.payments.get_for_order(order_id)
        if not payment:
            raise PaymentNotFoundError(order_id)
        return order, payment

    async def start_payment(self, order_id: str, method: PaymentProvider) -> dict[str, Any]:
        """Create the payment for an order and, for LiqPay, its checkout URL.

        Calling this again for the same order returns the payment created the
        first time; the gateway request is never built twice.

        Args:
            order_id: Internal order id.
            method: LiqPay or cash on delivery.

        Returns:
            dict: payment row, checkout_url (None for COD) and created flag.

        Raises:
            OrderNotFoundError: If the order does not exist.
            OrderClosedError: If the order is cancelled or refunded.
            GatewayNotConfiguredError: If LiqPay is requested but not configured.
        """
        order = self.orders.get(order_id)
        if not order:
            raise OrderNotFoundError(order_id)

        async with self.locks.lock(f"payment:{order_id}"):
            existing = self.payments.get_for_order(order_id)
            if existing:
                checkout_url = (existing.get("liqpay_data") or {}).get("checkout_url")
                return {"payment": existing, "checkout_url": checkout_url, "created": False}

            if order["status"] in {s.value for s in CLOSED_ORDER_STATUSES}:
                raise OrderClosedError(order_id, order["status"])

            currency = order.get("currency") or self.settings.store_currency

            if method == PaymentProvider.COD:
                payment = self.payments.create(
                    {
                        "order_id": order_id,
                        "provider": PaymentProvider.COD.value,
                        "amount": order["total"],
                        "currency": currency,
                        "status": PaymentStatus.PENDING.value,
                    }
                )
                logger.info("Cash on delivery payment created for order %s", order["order_number"])
                return {"payment": payment, "checkout_url": None, "created": True}

            liqpay = self._require_liqpay()
            checkout = liqpay.create_checkout(
                order["order_number"],
                order["total"],
                f"Order {order['order_number']}",
                currency=currency,
                email=order.get("customer_email"),
                phone=order.get("customer_phone"),
                result_url=self.settings.liqpay_result_url,
                server_url=self.settings.liqpay_server_url,
            )
            payment = self.payments.create(
                {
                    "order_id": order_id,
                    "provider": PaymentProvider.LIQPAY.value,
                    "amount": order["total"],
                    "currency": currency,
                    "status": PaymentStatus.PENDING.value,
                    "liqpay_data": {
                        "data": checkout.data,
                        "signature": checkout.signature,
                        "checkout_url": checkout.redirect_url,
                    },
                }
            )
            logger.info("LiqPay payment created for order %s", order["order_number"])
            return {"payment": payment, "checkout_url": checkout.redirect_url, "created": True}

    def get_payment_for_order(self, order_id: str) -> Payment:
        """Get the payment of an order.

        Raises:
            PaymentNotFoundError: If no payment was started for the order.
        """
        payment = self.payments.get_for_order(order_id)
        if not payment:
            raise PaymentNotFoundError(order_id)
        return payment

    async def _apply_status(
        self,
        order_id: str,
        new_status: PaymentStatus,
        *,
        transaction_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> TransitionResult:
        """Move an order's payment to new_status under the order's lock."""
        async with self.locks.lock(f"payment:{order_id}"):
            order, payment = self._load(order_id)
            return self._transition(order, payment, new_status, transaction_id=transaction_id, metadata=metadata)

    def _transition(
        self,
        order: Order,
        payment: Payment,
        new_status: PaymentStatus,
        *,
        transaction_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> TransitionResult:
        """Move the payment to new_status and keep the order in step.

        The caller holds the order's payment lock and passes rows read under
        it. Repeating the current status writes nothing to the payment.
        Transitions other than pending -> completed/failed and
        completed -> refunded are ignored. The payment write is conditional
        on the status read.
        """
        order_id = order["id"]
        current = PaymentStatus(payment["status"])

        if new_status != current and not is_valid_transition(current, new_status):
            logger.warning(
                "Ignoring payment transition %s -> %s for order %s",
                current.value,
                new_status.value,
                order["order_number"],
            )
            return TransitionResult(payment=payment, order=order, applied=False)

        applied = False
        if new_status != current:
            update: PaymentUpdate = {"status": new_status.value}
            if transaction_id:
                update["transaction_id"] = transaction_id
            if metadata is not None:
                update["metadata"] = metadata

            updated = self.payments.update_if_status(payment["id"], current.value, update)
            if updated is None:
                logger.warning(
                    "Payment %s changed while updating to %s, leaving it as is",
                    payment["id"],
                    new_status.value,
                )
                payment = self.payments.get_for_order(order_id) or payment
                return TransitionResult(payment=payment, order=order, applied=False)

            payment = updated
            applied = True
            logger.info(
                "Payment for order %s: %s -> %s",
                order["order_number"],
                current.value,
                new_status.value,
            )

        # Also repairs an order left behind by an interrupted earlier update
        changes = order_changes_for(order, PaymentStatus(payment["status"]))
        if changes:
            order = self.orders.update(order_id, changes) or {**order, **changes}

        return TransitionResult(payment=payment, order=order, applied=applied)

    async def handle_webhook(self, data: str, signature: str) -> WebhookOutcome:
        """Process a LiqPay status callback.

        Args:
            data: Base64 encoded payload from the callback form.
            signature: Signature from the callback form.

        Returns:
            WebhookOutcome: Statuses after processing and the fiscalization
            result, if one was attempted.

        Raises:
            InvalidWebhookSignatureError: If the signature does not verify.
                Nothing is read or written in that case.
            OrderNotFoundError: If no order has the callback's order number.
            PaymentNotFoundError: If the order never started a payment.
        """
        liqpay = self._require_liqpay()
        decoded = liqpay.verify_and_decode_webhook(data, signature)
        if decoded is None:
            raise InvalidWebhookSignatureError()

        order_number = decoded.order_id or ""
        order = self.orders.get_by_number(order_number)
        if not order:
            raise OrderNotFoundError(order_number)

        payment = self.payments.get_for_order(order["id"])
        if not payment:
            raise PaymentNotFoundError(order["id"])

        if decoded.amount_minor is not None and decoded.amount_minor != payment["amount"]:
            logger.warning(
                "LiqPay amount %s differs from payment amount %s for order %s",
                decoded.amount_minor,
                payment["amount"],
                order_number,
            )

        new_status = map_provider_status(decoded.status)
        result = await self._apply_status(
            order["id"],
            new_status,
            transaction_id=decoded.external_id,
            metadata=decoded.raw,
        )

        receipt = None
        if (
            new_status == PaymentStatus.COMPLETED
            and result.payment["status"] == PaymentStatus.COMPLETED.value
            and result.payment["provider"] == PaymentProvider.LIQPAY.value
        ):
            receipt = await self.fiscal_service.fiscalize_paid_order(result.order, result.payment)

        if result.applied and new_status == PaymentStatus.COMPLETED and self.email_service:
            await self.email_service.send_order_confirmation(result.order)

        return WebhookOutcome(
            order_number=order_number,
            payment_status=PaymentStatus(result.payment["status"]),
            order_status=result.order["status"],
            applied=result.applied,
            receipt=receipt,
        )

    async def check_status(self, order_id: str) -> StatusCheckResult:
        """Poll LiqPay for an order's payment status and apply it.

        Cash on delivery payments are reported as stored. No receipt is
        issued from here; fiscalization stays an explicit admin action.

        Raises:
            OrderNotFoundError: If the order does not exist.
            PaymentNotFoundError: If the order never started a payment.
            PaymentGatewayError: If LiqPay cannot be reached.
        """
        order, payment = self._load(order_id)

        if payment["provider"] == PaymentProvider.COD.value:
            return StatusCheckResult(
                payment_status=PaymentStatus(payment["status"]),
                order_status=order["status"],
                changed=False,
                message=COD_STATUS_MESSAGE,
            )

        liqpay = self._require_liqpay()
        try:
            decoded = await liqpay.query_status(order["order_number"])
        except LiqPayError as e:
            raise PaymentGatewayError(e.message) from e

        result = await self._apply_status(
            order_id,
            map_provider_status(decoded.status),
            transaction_id=decoded.external_id,
            metadata=decoded.raw,
        )
        return StatusCheckResult(
            payment_status=PaymentStatus(result.payment["status"]),
            order_status=result.order["status"],
            changed=result.applied,
            details=decoded.raw,
        )

    async def refund(self, order_id: str) -> RefundOutcome:
        """Refund a completed payment.

        Cash on delivery refunds are bookkeeping only. LiqPay refunds are
        sent to the gateway and recorded only if LiqPay confirms them. The
        order's payment lock is held from the status check through the
        local update, so concurrent refunds reach the gateway at most once.

        Raises:
            OrderNotFoundError: If the order does not exist.
            PaymentNotFoundError: If the order never started a payment.
            PaymentNotCompletedError: If the payment is not completed.
            RefundRejectedError: If LiqPay declines the refund.
            PaymentGatewayError: If LiqPay cannot be reached.
        """
        async with self.locks.lock(f"payment:{order_id}"):
            order, payment = self._load(order_id)
            if payment["status"] != PaymentStatus.COMPLETED.value:
                raise PaymentNotCompletedError(order_id, payment["status"])

            if payment["provider"] == PaymentProvider.COD.value:
                result = self._transition(order, payment, PaymentStatus.REFUNDED)
                logger.info("Manual refund recorded for order %s", order["order_number"])
                return RefundOutcome(payment=result.payment, order=result.order, message="Manual refund recorded")

            liqpay = self._require_liqpay()
            try:
                refund = await liqpay.refund(order["order_number"], payment["amount"])
            except LiqPayError as e:
                raise PaymentGatewayError(e.message) from e

            if not refund.success:
                reason = refund.error_description or refund.error_code or refund.status or "Failed to process refund"
                raise RefundRejectedError(order_id, reason, refund.raw)

            result = self._transition(order, payment, PaymentStatus.REFUNDED, metadata=refund.raw)
            logger.info("LiqPay refund processed for order %s", order["order_number"])
            return RefundOutcome(payment=result.payment, order=result.order, message="Refund processed successfully")
