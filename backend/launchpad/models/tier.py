"""
Tortoise ORM models for the tier ledger.

These models track:
- The ledger configuration (thresholds, lock periods, admin, variant tags)
- Each participant's locked collateral and derived tier
- Withdrawals waiting for the unbonding delay to pass
"""

from enum import Enum

from tortoise import fields, models

from launchpad.core.context import AdminConfig, ContractStatus
from launchpad.models.fields import AmountField


class LedgerKind(str, Enum):
    """How deposits are valued and where collateral goes."""
    DELEGATED = "delegated"  # USD value via the oracle, delegated to a validator
    FLAT = "flat"            # raw native amount, kept by the ledger


class ExcessPolicy(str, Enum):
    """What happens to value deposited above the top tier threshold."""
    CAP = "cap"        # keep the full payment, saturate the credited value
    REFUND = "refund"  # return the excess to the depositor


class TierLedgerConfig(models.Model):
    """
    Singleton configuration row of the tier ledger.

    ``thresholds[i]`` is the minimum credited deposit of tier ``i + 1`` and
    ``lock_periods[i]`` its lock period in seconds. Thresholds are strictly
    decreasing, so tier 1 is the best tier.
    """
    id = fields.IntField(pk=True)

    admin = fields.CharField(max_length=128)
    status = fields.CharEnumField(ContractStatus, max_length=16, default=ContractStatus.ACTIVE)

    kind = fields.CharEnumField(LedgerKind, max_length=16, default=LedgerKind.DELEGATED)
    excess_policy = fields.CharEnumField(ExcessPolicy, max_length=16, default=ExcessPolicy.CAP)
    collateral_denom = fields.CharField(max_length=32)
    validator = fields.CharField(max_length=128, null=True)

    thresholds = fields.JSONField()
    lock_periods = fields.JSONField()
    unbonding_delay = fields.BigIntField()

    # Collateral currently delegated (delegated kind) or held (flat kind)
    total_delegated = AmountField()
    total_collateral = AmountField()

    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "tier_ledger_config"

    @property
    def tier_count(self) -> int:
        return len(self.thresholds)

    def admin_config(self) -> AdminConfig:
        return AdminConfig(admin=self.admin, status=ContractStatus(self.status))


class ParticipantStake(models.Model):
    """
    Locked collateral of one participant.

    ``usd_deposit`` is the credited value tiers are derived from (USD for the
    delegated kind, native units for the flat kind); ``native_deposit`` is
    the collateral actually held for the participant.
    """
    id = fields.IntField(pk=True)

    address = fields.CharField(max_length=128, unique=True)
    tier = fields.SmallIntField(default=0)

    usd_deposit = AmountField()
    native_deposit = AmountField()

    deposit_time = fields.BigIntField()
    withdraw_time = fields.BigIntField()

    class Meta:
        table = "participant_stakes"


class WithdrawalRecord(models.Model):
    """Collateral waiting for the unbonding delay before it can be claimed."""
    id = fields.IntField(pk=True)

    address = fields.CharField(max_length=128, index=True)
    amount = AmountField()
    request_time = fields.BigIntField()
    claim_time = fields.BigIntField()

    class Meta:
        table = "withdrawal_records"
        indexes = [("address", "claim_time")]
