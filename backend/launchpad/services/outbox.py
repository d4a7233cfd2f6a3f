"""
Outbox of value transfers.

Ledger operations never move funds directly: they enqueue an
``OutboundMessage`` inside their own transaction, so the message exists if
and only if the ledger change committed. The dispatcher worker delivers
pending messages afterwards through the registered collaborators.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from launchpad.chain.base import TxReceipt
from launchpad.chain.registry import CollaboratorRegistry, collaborator_registry
from launchpad.core.config import settings
from launchpad.models.outbox import MessageKind, MessageStatus, OutboundMessage

logger = logging.getLogger(__name__)


async def enqueue(
    kind: MessageKind,
    recipient: str,
    asset: str,
    amount: int,
    origin: str,
    payload: Optional[Dict[str, Any]] = None,
) -> OutboundMessage:
    """Record a message; call from inside the operation's transaction."""
    message = await OutboundMessage.create(
        kind=kind,
        recipient=recipient,
        asset=asset,
        amount=amount,
        origin=origin,
        payload=payload or {},
    )
    logger.info(f"outbox: queued {kind.value} of {amount} {asset} to {recipient} ({origin})")
    return message


class OutboxDispatcher:
    """Delivers pending outbound messages through the collaborators."""

    def __init__(self, registry: CollaboratorRegistry = collaborator_registry):
        self._registry = registry

    async def _deliver(self, message: OutboundMessage) -> TxReceipt:
        kind = MessageKind(message.kind)
        payload = message.payload or {}

        if kind == MessageKind.TOKEN_TRANSFER:
            return await self._registry.get_token(message.asset).transfer(
                message.recipient, message.amount
            )

        staking = self._registry.get_staking()
        if kind == MessageKind.BANK_SEND:
            return await staking.send(message.recipient, message.amount, message.asset)
        if kind == MessageKind.DELEGATE:
            return await staking.delegate(message.recipient, message.amount, message.asset)
        if kind == MessageKind.UNDELEGATE:
            return await staking.undelegate(message.recipient, message.amount, message.asset)
        if kind == MessageKind.REDELEGATE:
            return await staking.redelegate(
                payload["src_validator"], message.recipient, message.amount, message.asset
            )
        if kind == MessageKind.WITHDRAW_REWARDS:
            return await staking.withdraw_rewards(payload["validator"], message.recipient)
        raise ValueError(f"Unknown message kind {kind}")

    async def dispatch_pending(self, limit: Optional[int] = None) -> int:
        """
        Send up to ``limit`` pending messages in creation order.

        Returns the number delivered. A failed delivery stays pending until it
        has been attempted ``dispatch_max_attempts`` times.
        """
        limit = limit or settings.dispatch_batch_size
        pending = (
            await OutboundMessage.filter(status=MessageStatus.PENDING)
            .order_by("id")
            .limit(limit)
        )
        sent = 0
        for message in pending:
            message.attempts += 1
            try:
                receipt = await self._deliver(message)
            except Exception as e:
                message.last_error = str(e)
                if message.attempts >= settings.dispatch_max_attempts:
                    message.status = MessageStatus.FAILED
                    logger.error(
                        f"dispatcher: giving up on message {message.id} "
                        f"after {message.attempts} attempts: {e}"
                    )
                else:
                    logger.warning(f"dispatcher: message {message.id} failed: {e}")
                await message.save()
                continue

            message.status = MessageStatus.SENT
            message.tx_hash = receipt.tx_hash
            message.last_error = None
            message.sent_at = datetime.now(timezone.utc)
            await message.save()
            sent += 1
            logger.info(f"dispatcher: message {message.id} sent, tx={receipt.tx_hash}")
        return sent


# Singleton instance
outbox_dispatcher = OutboxDispatcher()
