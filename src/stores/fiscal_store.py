"""Table access for fiscal receipts and cash register shifts."""

from datetime import datetime, timezone
from typing import Any

from supabase import Client

from src.models.fiscal import FiscalReceipt, FiscalReceiptStatus, FiscalShift


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class FiscalReceiptStore:
    """Append-only access to the fiscal_receipts table.

    Failed attempts stay as error rows; a retry inserts a new row.
    """

    table = "fiscal_receipts"

    def __init__(self, client: Client) -> None:
        self.client = client

    def find_active_for_order(self, order_id: str) -> FiscalReceipt | None:
        """Get the most recent non-error receipt for an order."""
        response = (
            self.client.table(self.table)
            .select("*")
            .eq("order_id", order_id)
            .neq("status", FiscalReceiptStatus.ERROR.value)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    def latest_for_order(self, order_id: str) -> FiscalReceipt | None:
        """Get the most recent receipt row of any status for an order."""
        response = (
            self.client.table(self.table)
            .select("*")
            .eq("order_id", order_id)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    def create(self, data: dict[str, Any]) -> FiscalReceipt:
        """Insert a receipt row."""
        now = _now()
        response = (
            self.client.table(self.table)
            .insert({**data, "created_at": now, "updated_at": now})
            .execute()
        )
        return response.data[0]

    def update_status(self, receipt_row_id: str, status: FiscalReceiptStatus) -> FiscalReceipt | None:
        """Move a successful receipt along (created -> sent)."""
        response = (
            self.client.table(self.table)
            .update({"status": status.value, "updated_at": _now()})
            .eq("id", receipt_row_id)
            .execute()
        )
        return response.data[0] if response.data else None

    def list_page(
        self,
        status: str | None = None,
        order_id: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[FiscalReceipt], int]:
        """List receipts newest first.

        Returns:
            tuple: (rows on the requested page, total matching rows)
        """
        query = self.client.table(self.table).select("*", count="exact")
        if status:
            query = query.eq("status", status)
        if order_id:
            query = query.eq("order_id", order_id)
        offset = (page - 1) * page_size
        response = query.order("created_at", desc=True).range(offset, offset + page_size - 1).execute()
        rows = response.data or []
        total = response.count if response.count is not None else len(rows)
        return rows, total


class FiscalShiftStore:
    """Local log of the shifts opened and closed through the admin API."""

    table = "fiscal_shifts"

    def __init__(self, client: Client) -> None:
        self.client = client

    def create(self, data: dict[str, Any]) -> FiscalShift:
        """Insert a shift row."""
        response = self.client.table(self.table).insert(data).execute()
        return response.data[0]

    def get_by_shift_id(self, shift_id: str) -> FiscalShift | None:
        """Get the local row for a Checkbox shift id."""
        response = (
            self.client.table(self.table)
            .select("*")
            .eq("shift_id", shift_id)
            .maybe_single()
            .execute()
        )
        return response.data if response and response.data else None

    def update_by_shift_id(self, shift_id: str, data: dict[str, Any]) -> FiscalShift | None:
        """Update the local row for a Checkbox shift id."""
        response = self.client.table(self.table).update(data).eq("shift_id", shift_id).execute()
        return response.data[0] if response.data else None

    def list_page(self, page: int = 1, page_size: int = 20) -> tuple[list[FiscalShift], int]:
        """List shifts, most recently opened first."""
        offset = (page - 1) * page_size
        response = (
            self.client.table(self.table)
            .select("*", count="exact")
            .order("opened_at", desc=True)
            .range(offset, offset + page_size - 1)
            .execute()
        )
        rows = response.data or []
        total = response.count if response.count is not None else len(rows)
        return rows, total
