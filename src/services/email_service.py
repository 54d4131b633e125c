"""Email service using Resend for transactional emails."""

import logging
from typing import Any

import resend

from src.core.config import Settings
from src.core.money import minor_to_major
from src.models.order import Order
from src.services.fiscal_service import parse_order_items

logger = logging.getLogger(__name__)


class EmailService:
    """Service for sending transactional emails via Resend."""

    def __init__(self, settings: Settings) -> None:
        """Initialize email service with Resend API key."""
        resend.api_key = settings.resend_api_key
        self.enabled = bool(settings.resend_api_key)
        self.from_email = settings.email_from_address

    async def send_order_confirmation(self, order: Order) -> dict[str, Any]:
        """Send a payment confirmation to the order's customer.

        Never raises; the result says whether the email went out.

        Args:
            order: The paid order.

        Returns:
            dict: {"success": True, "email_id": ...} or {"success": False, "error": ...}.
        """
        to_email = order.get("customer_email")
        if not to_email:
            return {"success": False, "error": "Order has no customer email"}
        if not self.enabled:
            logger.debug("Resend not configured, skipping confirmation for %s", order["order_number"])
            return {"success": False, "error": "Email not configured"}

        currency = order.get("currency") or "UAH"
        lines = []
        try:
            for item in parse_order_items(order.get("items") or []):
                line_total = int(item["price"]) * int(item["quantity"])
                lines.append(f"- {item['name']} x {item['quantity']}: {minor_to_major(line_total)} {currency}")
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Could not list items of order %s in email: %s", order["order_number"], str(e))

        greeting = f"Hello {order['customer_name']}," if order.get("customer_name") else "Hello,"
        text_content = "\n".join(
            [
                greeting,
                "",
                f"We have received your payment for order {order['order_number']}.",
                "",
                *lines,
                "",
                f"Total: {minor_to_major(order['total'])} {currency}",
                "",
                "We will let you know when your order ships.",
            ]
        )

        try:
            response = resend.Emails.send({
                "from": self.from_email,
                "to": [to_email],
                "subject": f"Order {order['order_number']} confirmed",
                "text": text_content,
            })

            logger.info("Order confirmation sent to %s, id: %s", to_email, response.get("id"))
            return {"success": True, "email_id": response.get("id")}

        except Exception as e:
            logger.error("Failed to send order confirmation to %s: %s", to_email, str(e))
            return {"success": False, "error": str(e)}
