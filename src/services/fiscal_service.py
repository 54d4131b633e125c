"""Fiscal receipt issuing and cash register shift management."""

import json
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from supabase import Client

from src.core.checkbox import CheckboxClient, CheckboxError, IssuedReceipt, Shift
from src.core.config import Settings
from src.core.order_locks import OrderLockRegistry, get_order_locks
from src.models.fiscal import FiscalReceipt, FiscalReceiptStatus, FiscalShift, FiscalShiftStatus
from src.models.order import Order
from src.models.payment import Payment, PaymentProvider, PaymentStatus
from src.services.exceptions import (
    FiscalizationNotAllowedError,
    FiscalNotConfiguredError,
    FiscalServiceError,
    NoOpenShiftError,
    OrderNotFoundError,
    PaymentNotFoundError,
    ReceiptNotFoundError,
    ShiftAlreadyOpenError,
)
from src.stores.fiscal_store import FiscalReceiptStore, FiscalShiftStore
from src.stores.order_store import OrderStore
from src.stores.payment_store import PaymentStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReceiptIssued:
    """Checkbox accepted the sale receipt."""

    issued: IssuedReceipt


@dataclass(frozen=True)
class ReceiptFailed:
    """Checkbox could not be reached or rejected the receipt."""

    error_message: str


ReceiptAttempt = ReceiptIssued | ReceiptFailed


@dataclass(frozen=True)
class FiscalizeResult:
    """What fiscalize() did for an order.

    created is False when an existing receipt was returned untouched.
    error carries the Checkbox message when the new row is an error row.
    """

    receipt: FiscalReceipt
    created: bool
    error: str | None = None


def parse_order_items(raw_items: Any) -> list[dict[str, Any]]:
    """Return the order's item snapshot as a list of dicts.

    Older rows keep the snapshot as a JSON string instead of JSONB.
    """
    if isinstance(raw_items, str):
        raw_items = json.loads(raw_items)
    if not isinstance(raw_items, list):
        raise ValueError("Order items must be a list")
    return raw_items


def build_receipt_goods(raw_items: Any, vat_rate: int) -> list[dict[str, Any]]:
    """Build Checkbox line items from an order's item snapshot.

    Prices are already minor units. cost is price * quantity.
    """
    goods = []
    for item in parse_order_items(raw_items):
        price = int(item["price"])
        quantity = int(item["quantity"])
        goods.append(
            {
                "code": str(item.get("product_id") or item.get("productId")),
                "name": item["name"],
                "price": price,
                "quantity": quantity,
                "cost": price * quantity,
                "tax": [vat_rate],
            }
        )
    return goods


def receipt_delivery(order: Order) -> dict[str, str] | None:
    """Contact details Checkbox should send the receipt to, if any."""
    delivery = {}
    if order.get("customer_email"):
        delivery["email"] = order["customer_email"]
    if order.get("customer_phone"):
        delivery["phone"] = order["customer_phone"]
    return delivery or None


class FiscalService:
    """Service for issuing fiscal receipts and managing Checkbox shifts."""

    def __init__(
        self,
        client: Client,
        checkbox: CheckboxClient | None,
        settings: Settings,
        locks: OrderLockRegistry | None = None,
    ) -> None:
        """Initialize fiscal service with its stores and the Checkbox client.

        Args:
            client: Supabase client used by the stores.
            checkbox: Checkbox client, or None when Checkbox is not configured.
            settings: Application settings (VAT rate).
            locks: Lock registry; defaults to the process-wide one.
        """
        self.orders = OrderStore(client)
        self.payments = PaymentStore(client)
        self.receipts = FiscalReceiptStore(client)
        self.shifts = FiscalShiftStore(client)
        self.checkbox = checkbox
        self.settings = settings
        self.locks = locks or get_order_locks()

    def _require_checkbox(self) -> CheckboxClient:
        if self.checkbox is None:
            raise FiscalNotConfiguredError()
        return self.checkbox

    # Receipts

    async def fiscalize(self, order_id: str) -> FiscalizeResult:
        """Issue a fiscal receipt for a paid order (admin action).

        Args:
            order_id: Internal order id.

        Returns:
            FiscalizeResult: The existing receipt, the new receipt, or the
            new error row when Checkbox failed.

        Raises:
            OrderNotFoundError: If the order does not exist.
            PaymentNotFoundError: If no payment was started for the order.
            FiscalizationNotAllowedError: If the payment is not a completed
                LiqPay payment.
        """
        order = self.orders.get(order_id)
        if not order:
            raise OrderNotFoundError(order_id)

        payment = self.payments.get_for_order(order_id)
        if not payment:
            raise PaymentNotFoundError(order_id)

        return await self.fiscalize_paid_order(order, payment)

    async def fiscalize_paid_order(self, order: Order, payment: Payment) -> FiscalizeResult:
        """Issue a receipt for already loaded order and payment rows.

        A Checkbox failure never raises: it is stored as an error row so it
        can be found and retried, and returned in the result.
        """
        if payment["provider"] != PaymentProvider.LIQPAY.value or payment["status"] != PaymentStatus.COMPLETED.value:
            raise FiscalizationNotAllowedError(order["id"], payment["provider"], payment["status"])

        async with self.locks.lock(f"fiscal:{order['id']}"):
            existing = self.receipts.find_active_for_order(order["id"])
            if existing:
                logger.info("Receipt already exists for order %s: %s", order["order_number"], existing["id"])
                return FiscalizeResult(receipt=existing, created=False)

            attempt = await self._attempt_receipt(order)

            if isinstance(attempt, ReceiptFailed):
                logger.error(
                    "Failed to create fiscal receipt for order %s: %s",
                    order["order_number"],
                    attempt.error_message,
                )
                row = self.receipts.create(
                    {
                        "order_id": order["id"],
                        "payment_id": payment["id"],
                        "status": FiscalReceiptStatus.ERROR.value,
                        "error_message": attempt.error_message,
                    }
                )
                return FiscalizeResult(receipt=row, created=True, error=attempt.error_message)

            row = self._record_issued(order, payment, attempt.issued)
            return FiscalizeResult(receipt=row, created=True)

    async def _attempt_receipt(self, order: Order) -> ReceiptAttempt:
        if self.checkbox is None:
            return ReceiptFailed(FiscalNotConfiguredError().message)

        try:
            goods = build_receipt_goods(order["items"], self.settings.fiscal_vat_rate)
        except (KeyError, TypeError, ValueError) as e:
            return ReceiptFailed(f"Invalid order items: {e}")

        try:
            issued = await self.checkbox.create_sale_receipt(
                goods,
                payments=[{"type": "CASHLESS", "value": order["total"]}],
                delivery=receipt_delivery(order),
                order_ref=order["order_number"],
                open_shift_if_needed=True,
            )
        except CheckboxError as e:
            return ReceiptFailed(e.message)
        except Exception as e:
            # The payment is already committed; any client failure becomes an error row
            logger.exception("Unexpected error from Checkbox client for order %s", order["order_number"])
            return ReceiptFailed(f"Unexpected fiscal client error: {type(e).__name__}: {e}")

        return ReceiptIssued(issued)

    def _record_issued(self, order: Order, payment: Payment, issued: IssuedReceipt) -> FiscalReceipt:
        receipt = issued.receipt
        shift = issued.shift
        row = self.receipts.create(
            {
                "order_id": order["id"],
                "payment_id": payment["id"],
                "receipt_id": receipt.id,
                "fiscal_code": receipt.fiscal_code,
                "receipt_url": receipt.receipt_url,
                "status": FiscalReceiptStatus.CREATED.value,
                "checkbox_data": receipt.model_dump(mode="json"),
                "shift_id": shift.id if shift else None,
                "cash_register_id": (shift.cash_register_id if shift else None) or self.checkbox.cash_register_id,
            }
        )
        logger.info("Fiscal receipt %s created for order %s", receipt.id, order["order_number"])

        if receipt_delivery(order):
            row = self.receipts.update_status(row["id"], FiscalReceiptStatus.SENT) or row
        return row

    def get_receipt_for_order(self, order_id: str) -> FiscalReceipt:
        """Get the receipt of record for an order.

        The active receipt wins; otherwise the latest error row is returned so
        an operator can see why fiscalization failed.
        """
        receipt = self.receipts.find_active_for_order(order_id) or self.receipts.latest_for_order(order_id)
        if not receipt:
            raise ReceiptNotFoundError(order_id)
        return receipt

    def list_receipts(
        self,
        status: str | None = None,
        order_number: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> dict[str, Any]:
        """List receipts with optional status and order number filters."""
        order_id = None
        if order_number:
            order = self.orders.get_by_number(order_number)
            if not order:
                return {"receipts": [], "total": 0, "page": page, "page_size": page_size, "total_pages": 0}
            order_id = order["id"]

        rows, total = self.receipts.list_page(status=status, order_id=order_id, page=page, page_size=page_size)
        return {
            "receipts": rows,
            "total": total,
            "page": page,
            "page_size": page_size,
            "total_pages": math.ceil(total / page_size) if page_size else 0,
        }

    # Shifts

    async def get_current_shift(self) -> dict[str, Any] | None:
        """Get the open Checkbox shift and its local record, if any."""
        checkbox = self._require_checkbox()
        try:
            shift = await checkbox.get_current_open_shift()
        except CheckboxError as e:
            raise FiscalServiceError(e.message) from e
        if shift is None:
            return None
        return {"shift": shift, "record": self.shifts.get_by_shift_id(shift.id)}

    async def open_shift(self, opened_by: str | None) -> tuple[FiscalShift, Shift]:
        """Open a shift after checking that none is open.

        Raises:
            ShiftAlreadyOpenError: If a shift is already open.
            FiscalServiceError: If Checkbox fails.
        """
        checkbox = self._require_checkbox()
        try:
            current = await checkbox.get_current_open_shift()
            if current is not None:
                raise ShiftAlreadyOpenError(current.id)
            shift = await checkbox.open_shift()
        except CheckboxError as e:
            raise FiscalServiceError(e.message) from e

        record = self.shifts.create(
            {
                "shift_id": shift.id,
                "cash_register_id": shift.cash_register_id or checkbox.cash_register_id,
                "status": FiscalShiftStatus.OPENED.value,
                "opened_by": opened_by,
                "opened_at": datetime.now(timezone.utc).isoformat(),
            }
        )
        logger.info("Shift %s opened by %s", shift.id, opened_by)
        return record, shift

    async def close_shift(self, closed_by: str | None) -> tuple[FiscalShift, Shift]:
        """Close the open shift after checking that one is open.

        Shifts opened automatically during fiscalization have no local row
        yet; one is created on close.

        Raises:
            NoOpenShiftError: If no shift is open.
            FiscalServiceError: If Checkbox fails.
        """
        checkbox = self._require_checkbox()
        try:
            current = await checkbox.get_current_open_shift()
            if current is None:
                raise NoOpenShiftError()
            closed = await checkbox.close_shift()
        except CheckboxError as e:
            raise FiscalServiceError(e.message) from e

        closed_fields = {
            "status": FiscalShiftStatus.CLOSED.value,
            "closed_by": closed_by,
            "closed_at": datetime.now(timezone.utc).isoformat(),
            "balance": closed.balance,
        }
        record = self.shifts.update_by_shift_id(current.id, closed_fields)
        if record is None:
            record = self.shifts.create(
                {
                    "shift_id": current.id,
                    "cash_register_id": current.cash_register_id or checkbox.cash_register_id,
                    "opened_by": None,
                    "opened_at": current.opened_at or closed_fields["closed_at"],
                    **closed_fields,
                }
            )
        logger.info("Shift %s closed by %s", current.id, closed_by)
        return record, closed

    def list_shifts(self, page: int = 1, page_size: int = 20) -> dict[str, Any]:
        """List locally recorded shifts."""
        rows, total = self.shifts.list_page(page=page, page_size=page_size)
        return {
            "shifts": rows,
            "total": total,
            "page": page,
            "page_size": page_size,
            "total_pages": math.ceil(total / page_size) if page_size else 0,
        }

    async def get_cashier_info(self) -> dict[str, Any]:
        """Get the Checkbox cashier profile."""
        checkbox = self._require_checkbox()
        try:
            return await checkbox.get_cashier_info()
        except CheckboxError as e:
            raise FiscalServiceError(e.message) from e

    async def get_cash_registers(self) -> list[dict[str, Any]]:
        """List the cash registers available to the cashier."""
        checkbox = self._require_checkbox()
        try:
            return await checkbox.get_cash_registers()
        except CheckboxError as e:
            raise FiscalServiceError(e.message) from e

    async def retry_failed_receipts(self, limit: int = 50) -> list[FiscalizeResult]:
        """Fiscalize again every order whose receipts so far are all error rows.

        Orders that meanwhile got a receipt, or whose payment is no longer a
        completed LiqPay payment, are skipped.

        Args:
            limit: Number of most recent error rows to look at.

        Returns:
            list[FiscalizeResult]: One result per retried order.
        """
        rows, _ = self.receipts.list_page(status=FiscalReceiptStatus.ERROR.value, page=1, page_size=limit)

        results: list[FiscalizeResult] = []
        seen: set[str] = set()
        for row in rows:
            order_id = row["order_id"]
            if order_id in seen:
                continue
            seen.add(order_id)

            if self.receipts.find_active_for_order(order_id):
                continue

            try:
                results.append(await self.fiscalize(order_id))
            except (OrderNotFoundError, PaymentNotFoundError, FiscalizationNotAllowedError) as e:
                logger.warning("Skipping receipt retry for order %s: %s", order_id, e.message)
        return results
