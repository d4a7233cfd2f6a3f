"""
Tortoise ORM models for the sale registry.

These models track:
- The registry configuration (payment cap ladder, lock periods, admin)
- Sale events with their running aggregates
- Whitelist membership, per sale and shared across sales
- Live purchase records and the append-only archive of received ones
- Per-participant totals, per sale and across all sales
"""

from enum import Enum

from tortoise import fields, models

from launchpad.core.context import AdminConfig, ContractStatus
from launchpad.models.fields import AmountField


class UnlockAnchor(str, Enum):
    """Which timestamp a purchase's lock period is added to."""
    SALE_END = "sale_end"
    PURCHASE_TIME = "purchase_time"


class AllocationMode(str, Enum):
    """Basis of the per-tier cap ladder of a sale."""
    GLOBAL = "global"      # registry max_payments ladder, shared token pool
    PER_TIER = "per_tier"  # price * tokens_per_tier[tier], pool per tier


class WhitelistMode(str, Enum):
    PRIVATE = "private"  # per-sale entries only
    SHARED = "shared"    # per-sale entries, then the shared whitelist
    OPEN = "open"        # everyone not explicitly removed


class PaymentKind(str, Enum):
    NATIVE = "native"
    TOKEN = "token"


class RegistryConfig(models.Model):
    """
    Singleton configuration row of the sale registry.

    ``max_payments[i]`` is the cumulative payment cap of tier ``i + 1``;
    the last entry is the cap of the lowest (ungraded) tier.
    """
    id = fields.IntField(pk=True)

    admin = fields.CharField(max_length=128)
    status = fields.CharEnumField(ContractStatus, max_length=16, default=ContractStatus.ACTIVE)

    max_payments = fields.JSONField()
    lock_periods = fields.JSONField()
    unlock_anchor = fields.CharEnumField(UnlockAnchor, max_length=16, default=UnlockAnchor.SALE_END)
    native_denom = fields.CharField(max_length=32)

    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "registry_config"

    @property
    def tier_count(self) -> int:
        return len(self.max_payments)

    def admin_config(self) -> AdminConfig:
        return AdminConfig(admin=self.admin, status=ContractStatus(self.status))


class SaleEvent(models.Model):
    """One token sale. Invariant: sold_amount <= total_amount."""
    id = fields.IntField(pk=True)

    owner = fields.CharField(max_length=128, index=True)
    start_time = fields.BigIntField()
    end_time = fields.BigIntField()
    price = AmountField()

    token_contract = fields.CharField(max_length=128)
    payment_kind = fields.CharEnumField(PaymentKind, max_length=16, default=PaymentKind.NATIVE)
    payment_token = fields.CharField(max_length=128, null=True)

    total_amount = AmountField()
    allocation_mode = fields.CharEnumField(AllocationMode, max_length=16, default=AllocationMode.GLOBAL)
    # Per-tier allocation and what is left of it (per-tier mode only); index 0 = tier 1
    tokens_per_tier = fields.JSONField(null=True)
    remaining_per_tier = fields.JSONField(null=True)
    unlock_anchor = fields.CharEnumField(UnlockAnchor, max_length=16, default=UnlockAnchor.SALE_END)
    whitelist_mode = fields.CharEnumField(WhitelistMode, max_length=16, default=WhitelistMode.PRIVATE)

    sold_amount = AmountField()
    total_payment = AmountField()
    participants = fields.IntField(default=0)
    withdrawn = fields.BooleanField(default=False)

    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "sale_events"

    def is_active(self, now: int) -> bool:
        return self.start_time <= now < self.end_time


class WhitelistEntry(models.Model):
    """
    Membership of an address in a sale's whitelist (sale null = shared).

    Removal keeps the row with ``allowed = False`` so it overrides any
    earlier add, per sale or shared.
    """
    id = fields.IntField(pk=True)

    sale = fields.ForeignKeyField("models.SaleEvent", related_name="whitelist", null=True)
    address = fields.CharField(max_length=128)
    allowed = fields.BooleanField(default=True)
    updated_at = fields.BigIntField(default=0)

    class Meta:
        table = "whitelist_entries"
        unique_together = [("sale", "address")]


class PurchaseRecord(models.Model):
    """A purchase whose tokens have not been received yet."""
    id = fields.IntField(pk=True)

    sale = fields.ForeignKeyField("models.SaleEvent", related_name="purchases")
    address = fields.CharField(max_length=128)
    seq = fields.IntField()
    tier = fields.SmallIntField()

    payment_amount = AmountField()
    tokens_amount = AmountField()
    timestamp = fields.BigIntField()
    # Fixed at creation, never recomputed
    unlock_time = fields.BigIntField()

    class Meta:
        table = "purchase_records"
        unique_together = [("sale", "address", "seq")]
        indexes = [("address", "sale", "unlock_time")]


class ArchivedPurchaseRecord(models.Model):
    """Immutable copy of a purchase whose tokens were received."""
    id = fields.IntField(pk=True)

    sale = fields.ForeignKeyField("models.SaleEvent", related_name="archived_purchases")
    address = fields.CharField(max_length=128)
    archive_seq = fields.IntField()
    purchase_seq = fields.IntField()
    tier = fields.SmallIntField()

    payment_amount = AmountField()
    tokens_amount = AmountField()
    timestamp = fields.BigIntField()
    unlock_time = fields.BigIntField()
    received_at = fields.BigIntField()

    class Meta:
        table = "archived_purchase_records"
        unique_together = [("sale", "address", "archive_seq")]


class ParticipantSaleInfo(models.Model):
    """Per-sale totals of one participant; also owns the purchase counters."""
    id = fields.IntField(pk=True)

    sale = fields.ForeignKeyField("models.SaleEvent", related_name="participant_infos")
    address = fields.CharField(max_length=128)

    total_payment = AmountField()
    total_tokens_bought = AmountField()
    total_tokens_received = AmountField()
    next_purchase_seq = fields.IntField(default=0)
    next_archive_seq = fields.IntField(default=0)

    class Meta:
        table = "participant_sale_info"
        unique_together = [("sale", "address")]


class ParticipantTotals(models.Model):
    """Totals of one participant across every sale."""
    id = fields.IntField(pk=True)

    address = fields.CharField(max_length=128, unique=True)
    total_payment = AmountField()
    total_tokens_bought = AmountField()
    total_tokens_received = AmountField()

    class Meta:
        table = "participant_totals"
