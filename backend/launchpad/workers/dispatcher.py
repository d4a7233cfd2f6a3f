"""
Outbox dispatcher worker.

Delivers the value transfers queued by ledger operations (payouts, refunds,
delegations, owner settlements). Ledger state is final when the operation
commits; this loop only moves funds on chain and records the outcome on the
message row.
"""

import asyncio
import logging

from launchpad.core.config import settings
from launchpad.services.outbox import outbox_dispatcher

logger = logging.getLogger(__name__)


async def _do_dispatch() -> int:
    """Drain pending messages batch by batch; returns how many were sent."""
    total = 0
    while True:
        sent = await outbox_dispatcher.dispatch_pending()
        total += sent
        if sent < settings.dispatch_batch_size:
            return total


async def outbox_dispatch_loop() -> None:
    """Background loop that delivers pending outbound messages."""
    logger.info(
        f"dispatcher: started, polling every {settings.dispatch_interval_seconds}s"
    )
    while True:
        try:
            sent = await _do_dispatch()
            if sent:
                logger.info(f"dispatcher: delivered {sent} messages")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"dispatcher: unhandled error: {e}")

        await asyncio.sleep(settings.dispatch_interval_seconds)
