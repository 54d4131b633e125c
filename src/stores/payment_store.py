"""Table access for payments."""

from datetime import datetime, timezone
from typing import Any

from supabase import Client

from src.models.payment import Payment, PaymentCreate, PaymentUpdate


class PaymentStore:
    """Reads and writes rows in the payments table (one row per order)."""

    table = "payments"

    def __init__(self, client: Client) -> None:
        self.client = client

    def get_for_order(self, order_id: str) -> Payment | None:
        """Get the payment started for an order, if any."""
        response = (
            self.client.table(self.table)
            .select("*")
            .eq("order_id", order_id)
            .maybe_single()
            .execute()
        )
        return response.data if response and response.data else None

    def create(self, data: PaymentCreate) -> Payment:
        """Insert a new payment row."""
        now = datetime.now(timezone.utc).isoformat()
        payload: dict[str, Any] = {**data, "created_at": now, "updated_at": now}
        response = self.client.table(self.table).insert(payload).execute()
        return response.data[0]

    def update_if_status(
        self,
        payment_id: str,
        expected_status: str,
        data: PaymentUpdate,
    ) -> Payment | None:
        """Update a payment only if its status is still expected_status.

        Returns:
            Payment | None: The updated row, or None if the row's status
            changed in the meantime and nothing was written.
        """
        payload: dict[str, Any] = {**data, "updated_at": datetime.now(timezone.utc).isoformat()}
        response = (
            self.client.table(self.table)
            .update(payload)
            .eq("id", payment_id)
            .eq("status", expected_status)
            .execute()
        )
        return response.data[0] if response.data else None
