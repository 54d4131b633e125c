"""Table access for orders."""

import logging
from datetime import datetime, timezone
from typing import Any

from supabase import Client

from src.models.order import Order, OrderUpdate

logger = logging.getLogger(__name__)


class OrderStore:
    """Reads and updates rows in the orders table.

    Orders are created by the storefront checkout; the payment workflow
    only reads them and writes status fields.
    """

    table = "orders"

    def __init__(self, client: Client) -> None:
        self.client = client

    def get(self, order_id: str) -> Order | None:
        """Get an order by its internal id."""
        response = (
            self.client.table(self.table)
            .select("*")
            .eq("id", order_id)
            .maybe_single()
            .execute()
        )
        return response.data if response and response.data else None

    def get_by_number(self, order_number: str) -> Order | None:
        """Get an order by the human-readable number given to the gateway."""
        response = (
            self.client.table(self.table)
            .select("*")
            .eq("order_number", order_number)
            .maybe_single()
            .execute()
        )
        return response.data if response and response.data else None

    def update(self, order_id: str, data: OrderUpdate) -> Order | None:
        """Apply a partial update and return the updated row."""
        payload: dict[str, Any] = {**data, "updated_at": datetime.now(timezone.utc).isoformat()}
        response = self.client.table(self.table).update(payload).eq("id", order_id).execute()
        if not response.data:
            logger.warning("Order not found for update: %s", order_id)
            return None
        return response.data[0]
