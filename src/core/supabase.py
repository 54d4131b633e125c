"""Supabase client for the orders, payments and fiscal tables."""

import logging
from functools import lru_cache
from typing import Any

from supabase import Client, create_client

from src.core.config import get_settings

logger = logging.getLogger(__name__)

READINESS_TABLES = ("orders", "payments", "fiscal_receipts")


@lru_cache
def get_supabase_client() -> Client:
    """Get the shared Supabase client.

    Uses the secret key, which bypasses RLS. Payment routes rely on
    admin checks or LiqPay signatures instead.
    """
    settings = get_settings()
    return create_client(settings.supabase_url, settings.supabase_secret_key)


async def check_database_connection() -> dict[str, Any]:
    """Query each table the workflow writes to.

    Returns:
        dict: {"healthy": True} or {"healthy": False, "error": "<table>: <message>"}.
    """
    try:
        client = get_supabase_client()
    except Exception as e:
        logger.error("Could not create Supabase client: %s", str(e))
        return {"healthy": False, "error": str(e)}

    for table in READINESS_TABLES:
        try:
            client.table(table).select("id").limit(1).execute()
        except Exception as e:
            logger.error("Readiness query on %s failed: %s", table, str(e))
            return {"healthy": False, "error": f"{table}: {e}"}
    return {"healthy": True}
