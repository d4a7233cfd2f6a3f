"""
Outbound messages written in the same transaction as the ledger change that
produced them and delivered afterwards by the dispatcher worker.
"""

from enum import Enum

from tortoise import fields, models

from launchpad.models.fields import AmountField


class MessageKind(str, Enum):
    BANK_SEND = "bank_send"
    TOKEN_TRANSFER = "token_transfer"
    DELEGATE = "delegate"
    UNDELEGATE = "undelegate"
    REDELEGATE = "redelegate"
    WITHDRAW_REWARDS = "withdraw_rewards"


class MessageStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class OutboundMessage(models.Model):
    """
    ``asset`` is the denom for bank sends and staking messages, or the token
    contract for token transfers. ``payload`` holds kind-specific extras
    (validators for staking messages).
    """
    id = fields.IntField(pk=True)

    kind = fields.CharEnumField(MessageKind, max_length=32)
    recipient = fields.CharField(max_length=128)
    asset = fields.CharField(max_length=128)
    amount = AmountField()
    payload = fields.JSONField(default=dict)
    origin = fields.CharField(max_length=64)

    status = fields.CharEnumField(MessageStatus, max_length=16, default=MessageStatus.PENDING, index=True)
    attempts = fields.IntField(default=0)
    last_error = fields.TextField(null=True)
    tx_hash = fields.CharField(max_length=128, null=True)

    created_at = fields.DatetimeField(auto_now_add=True)
    sent_at = fields.DatetimeField(null=True)

    class Meta:
        table = "outbound_messages"
