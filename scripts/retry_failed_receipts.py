#!/usr/bin/env python
"""Script to retry fiscalization of paid orders whose receipts failed.

Fiscalization failures never fail a payment; they leave an error row in
fiscal_receipts. This script finds orders that have only error rows and
asks Checkbox for a receipt again. Successful attempts append a new row.

Usage:
    python scripts/retry_failed_receipts.py [--limit 50]

Requirements:
    - SUPABASE_* and CHECKBOX_* environment variables must be set
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.core.checkbox import close_checkbox_client, get_checkbox_client
from src.core.config import get_settings
from src.core.supabase import get_supabase_client
from src.services.fiscal_service import FiscalService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def main(limit: int) -> int:
    """Retry failed receipts and report the outcome.

    Returns:
        int: Process exit code, 1 if any retry failed again.
    """
    settings = get_settings()
    if not settings.is_checkbox_configured:
        logger.error("Checkbox is not configured, nothing to retry with")
        return 1

    service = FiscalService(get_supabase_client(), get_checkbox_client(), settings)
    try:
        results = await service.retry_failed_receipts(limit=limit)
    finally:
        await close_checkbox_client()

    failed = [r for r in results if r.error]
    for result in results:
        if result.error:
            logger.warning("Order %s: still failing: %s", result.receipt["order_id"], result.error)
        else:
            logger.info("Order %s: receipt %s", result.receipt["order_id"], result.receipt.get("fiscal_code"))

    logger.info("Retried %d orders, %d succeeded, %d failed", len(results), len(results) - len(failed), len(failed))
    return 1 if failed else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--limit", type=int, default=50, help="Number of recent error rows to inspect")
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.limit)))
