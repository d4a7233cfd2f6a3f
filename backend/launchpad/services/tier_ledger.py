"""
Tier ledger.

Grades participants by the collateral they lock. Two ledger kinds exist:
``delegated`` values deposits in USD through the price oracle and delegates
the collateral to a validator; ``flat`` uses the raw native amount and keeps
the collateral itself. Each operation is one transaction: any raised error
leaves every row as it was.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from tortoise.transactions import in_transaction

from launchpad.chain.registry import CollaboratorRegistry, collaborator_registry
from launchpad.core.config import settings
from launchpad.core.constants import UNGRADED_TIER
from launchpad.core.context import AdminConfig, CallContext, ContractStatus
from launchpad.core.exceptions import (
    AlreadyInitialized,
    BelowMinimum,
    DelegationNotFound,
    InvalidConfig,
    LockPeriodNotElapsed,
    NotFound,
    NothingToClaim,
    ReachedMaxTier,
    StakeNotFound,
    UnsupportedOperation,
)
from launchpad.models.outbox import MessageKind
from launchpad.models.tier import (
    ExcessPolicy,
    LedgerKind,
    ParticipantStake,
    TierLedgerConfig,
    WithdrawalRecord,
)
from launchpad.services import outbox
from launchpad.services.numeric import (
    native_from_usd,
    page_bounds,
    tier_by_deposit,
    usd_from_native,
    validate_descending,
    validate_periods,
)

logger = logging.getLogger(__name__)


@dataclass
class DepositResult:
    tier: int
    usd_deposit: int
    native_deposit: int
    accepted: int
    refund: int
    withdraw_time: int


@dataclass
class StakeInfo:
    address: str
    tier: int
    usd_deposit: int
    native_deposit: int
    deposit_time: int
    withdraw_time: int


class TierLedgerService:
    """Deposits, withdrawals and admin operations of the tier ledger."""

    def __init__(self, registry: CollaboratorRegistry = collaborator_registry):
        self._registry = registry

    # --- configuration ---

    async def get_config(self) -> TierLedgerConfig:
        config = await TierLedgerConfig.first()
        if config is None:
            raise NotFound("Tier ledger is not initialized")
        return config

    async def load_admin(self) -> AdminConfig:
        return (await self.get_config()).admin_config()

    async def _locked_config(self) -> TierLedgerConfig:
        config = await TierLedgerConfig.all().select_for_update().first()
        if config is None:
            raise NotFound("Tier ledger is not initialized")
        return config

    async def initialize(
        self,
        ctx: CallContext,
        thresholds: list[int],
        lock_periods: list[int],
        kind: LedgerKind = LedgerKind.DELEGATED,
        excess_policy: ExcessPolicy = ExcessPolicy.CAP,
        validator: Optional[str] = None,
        admin: Optional[str] = None,
        collateral_denom: Optional[str] = None,
        unbonding_delay: Optional[int] = None,
    ) -> TierLedgerConfig:
        thresholds = validate_descending(thresholds, "deposits")
        lock_periods = validate_periods(lock_periods, len(thresholds))
        if kind == LedgerKind.DELEGATED and not validator:
            raise InvalidConfig("A delegated ledger needs a validator")
        if unbonding_delay is None:
            unbonding_delay = settings.unbonding_delay_seconds
        if unbonding_delay < 0:
            raise InvalidConfig("unbonding_delay cannot be negative")

        async with in_transaction():
            if await TierLedgerConfig.exists():
                raise AlreadyInitialized()
            config = await TierLedgerConfig.create(
                admin=admin or ctx.sender,
                status=ContractStatus.ACTIVE,
                kind=kind,
                excess_policy=excess_policy,
                collateral_denom=collateral_denom or settings.native_denom,
                validator=validator,
                thresholds=thresholds,
                lock_periods=lock_periods,
                unbonding_delay=unbonding_delay,
            )
        logger.info(
            f"tier_ledger: initialized {kind.value} ledger with thresholds {thresholds}, "
            f"admin {config.admin}"
        )
        return config

    # --- participant operations ---

    async def _usd_rate(self) -> int:
        oracle = self._registry.get_oracle()
        return await oracle.rate(settings.oracle_base_symbol, settings.oracle_quote_symbol)

    async def deposit(self, ctx: CallContext, admin: AdminConfig) -> DepositResult:
        """
        Lock the attached collateral and raise (or hold) the caller's tier.

        Credit above the top threshold never counts. With the ``cap`` policy
        the whole payment stays locked; with ``refund`` the excess is sent
        back.
        """
        admin.assert_active()

        async with in_transaction():
            config = await self._locked_config()
            amount = ctx.attached(config.collateral_denom)
            if amount == 0:
                raise InvalidConfig("Deposit zero tokens")

            stake = await ParticipantStake.filter(address=ctx.sender).select_for_update().first()
            if stake is not None and stake.tier == 1:
                raise ReachedMaxTier()

            delegated = config.kind == LedgerKind.DELEGATED
            rate = await self._usd_rate() if delegated else None
            credit = usd_from_native(amount, rate) if delegated else amount

            total = (stake.usd_deposit if stake else 0) + credit
            thresholds = config.thresholds
            new_tier = tier_by_deposit(thresholds, total)
            if new_tier == UNGRADED_TIER:
                raise BelowMinimum(f"You should deposit at least {thresholds[-1]} to reach a tier")

            accepted, refund = amount, 0
            top = thresholds[0]
            if total > top:
                excess = total - top
                total = top
                if config.excess_policy == ExcessPolicy.REFUND:
                    refund = native_from_usd(excess, rate, round_up=False) if delegated else excess
                    refund = min(refund, amount)
                    accepted = amount - refund

            lock_period = config.lock_periods[new_tier - 1]
            if stake is None:
                stake = ParticipantStake(address=ctx.sender, native_deposit=0)
            stake.tier = new_tier
            stake.usd_deposit = total
            stake.native_deposit = stake.native_deposit + accepted
            stake.deposit_time = ctx.now
            stake.withdraw_time = ctx.now + lock_period
            await stake.save()

            if delegated:
                config.total_delegated = config.total_delegated + accepted
                if accepted > 0:
                    await outbox.enqueue(
                        MessageKind.DELEGATE,
                        recipient=config.validator,
                        asset=config.collateral_denom,
                        amount=accepted,
                        origin="tier.deposit",
                    )
            else:
                config.total_collateral = config.total_collateral + accepted
            await config.save(update_fields=["total_delegated", "total_collateral", "updated_at"])

            if refund > 0:
                await outbox.enqueue(
                    MessageKind.BANK_SEND,
                    recipient=ctx.sender,
                    asset=config.collateral_denom,
                    amount=refund,
                    origin="tier.deposit.refund",
                )

        logger.info(
            f"tier_ledger: {ctx.sender} deposited {accepted} {config.collateral_denom} "
            f"(refund {refund}), tier {new_tier}"
        )
        return DepositResult(
            tier=new_tier,
            usd_deposit=stake.usd_deposit,
            native_deposit=stake.native_deposit,
            accepted=accepted,
            refund=refund,
            withdraw_time=stake.withdraw_time,
        )

    async def withdraw(self, ctx: CallContext, admin: AdminConfig) -> WithdrawalRecord:
        """Release the caller's whole stake into the unbonding queue."""
        admin.assert_active()

        async with in_transaction():
            config = await self._locked_config()
            stake = await ParticipantStake.filter(address=ctx.sender).select_for_update().first()
            if stake is None:
                raise StakeNotFound()
            if ctx.now < stake.withdraw_time:
                raise LockPeriodNotElapsed(
                    f"You can withdraw your tokens after {stake.withdraw_time}"
                )

            amount = stake.native_deposit
            await stake.delete()
            record = await WithdrawalRecord.create(
                address=ctx.sender,
                amount=amount,
                request_time=ctx.now,
                claim_time=ctx.now + config.unbonding_delay,
            )

            if config.kind == LedgerKind.DELEGATED:
                config.total_delegated = config.total_delegated - amount
                await config.save(update_fields=["total_delegated", "updated_at"])
                if amount > 0:
                    await outbox.enqueue(
                        MessageKind.UNDELEGATE,
                        recipient=config.validator,
                        asset=config.collateral_denom,
                        amount=amount,
                        origin="tier.withdraw",
                    )

        logger.info(
            f"tier_ledger: {ctx.sender} withdrew {amount}, claimable at {record.claim_time}"
        )
        return record

    async def claim(
        self,
        ctx: CallContext,
        admin: AdminConfig,
        recipient: Optional[str] = None,
        start: int = 0,
        limit: Optional[int] = None,
    ) -> int:
        """Pay out every matured withdrawal in the page; returns the amount."""
        admin.assert_active()
        start, limit = page_bounds(start, limit, settings.default_page_limit)

        async with in_transaction():
            config = await self._locked_config()
            records = (
                await WithdrawalRecord.filter(address=ctx.sender)
                .order_by("claim_time", "id")
                .offset(start)
                .limit(limit)
                .select_for_update()
            )
            due = [r for r in records if r.claim_time <= ctx.now]
            if not due:
                raise NothingToClaim()

            amount = sum(r.amount for r in due)
            await WithdrawalRecord.filter(id__in=[r.id for r in due]).delete()

            if config.kind == LedgerKind.FLAT:
                config.total_collateral = config.total_collateral - amount
                await config.save(update_fields=["total_collateral", "updated_at"])
            if amount > 0:
                await outbox.enqueue(
                    MessageKind.BANK_SEND,
                    recipient=recipient or ctx.sender,
                    asset=config.collateral_denom,
                    amount=amount,
                    origin="tier.claim",
                )

        logger.info(f"tier_ledger: {ctx.sender} claimed {amount} from {len(due)} withdrawals")
        return amount

    # --- admin operations ---

    async def redelegate(
        self,
        ctx: CallContext,
        admin: AdminConfig,
        validator: str,
        recipient: Optional[str] = None,
    ) -> int:
        """Move the whole delegation to ``validator``; returns the amount moved."""
        admin.assert_admin(ctx)

        async with in_transaction():
            config = await self._locked_config()
            if config.kind != LedgerKind.DELEGATED:
                raise UnsupportedOperation("Flat ledgers do not delegate")
            if validator == config.validator:
                raise InvalidConfig("Redelegation to the same validator")

            old_validator = config.validator
            staking = self._registry.get_staking()
            delegation = await staking.delegation(settings.custody_address, old_validator)
            if delegation is None:
                raise DelegationNotFound(f"No delegation to {old_validator}")
            if delegation.can_redelegate < delegation.amount:
                raise UnsupportedOperation("Cannot redelegate full delegation amount")

            if delegation.accumulated_rewards > 0:
                await outbox.enqueue(
                    MessageKind.WITHDRAW_REWARDS,
                    recipient=recipient or ctx.sender,
                    asset=config.collateral_denom,
                    amount=delegation.accumulated_rewards,
                    origin="tier.redelegate",
                    payload={"validator": old_validator},
                )
            if delegation.amount > 0:
                await outbox.enqueue(
                    MessageKind.REDELEGATE,
                    recipient=validator,
                    asset=config.collateral_denom,
                    amount=delegation.amount,
                    origin="tier.redelegate",
                    payload={"src_validator": old_validator},
                )

            config.validator = validator
            await config.save(update_fields=["validator", "updated_at"])

        logger.info(
            f"tier_ledger: redelegating {delegation.amount} from {old_validator} to {validator}"
        )
        return delegation.amount

    async def withdraw_rewards(
        self,
        ctx: CallContext,
        admin: AdminConfig,
        recipient: Optional[str] = None,
    ) -> int:
        admin.assert_admin(ctx)

        async with in_transaction():
            config = await self._locked_config()
            if config.kind != LedgerKind.DELEGATED:
                raise UnsupportedOperation("Flat ledgers earn no rewards")
            staking = self._registry.get_staking()
            delegation = await staking.delegation(settings.custody_address, config.validator)
            rewards = delegation.accumulated_rewards if delegation else 0
            if rewards == 0:
                raise NothingToClaim("There are no rewards to withdraw")
            await outbox.enqueue(
                MessageKind.WITHDRAW_REWARDS,
                recipient=recipient or ctx.sender,
                asset=config.collateral_denom,
                amount=rewards,
                origin="tier.withdraw_rewards",
                payload={"validator": config.validator},
            )
        logger.info(f"tier_ledger: withdrawing {rewards} rewards to {recipient or ctx.sender}")
        return rewards

    async def change_status(self, ctx: CallContext, admin: AdminConfig, status: ContractStatus) -> None:
        admin.assert_admin(ctx)
        async with in_transaction():
            config = await self._locked_config()
            config.status = status
            await config.save(update_fields=["status", "updated_at"])
        logger.info(f"tier_ledger: status changed to {status.value}")

    async def change_admin(self, ctx: CallContext, admin: AdminConfig, new_admin: str) -> None:
        admin.assert_admin(ctx)
        async with in_transaction():
            config = await self._locked_config()
            config.admin = new_admin
            await config.save(update_fields=["admin", "updated_at"])
        logger.info(f"tier_ledger: admin changed to {new_admin}")

    # --- queries ---

    async def user_info(self, address: str) -> StakeInfo:
        stake = await ParticipantStake.get_or_none(address=address)
        if stake is None:
            return StakeInfo(address, UNGRADED_TIER, 0, 0, 0, 0)
        return StakeInfo(
            address=address,
            tier=stake.tier,
            usd_deposit=stake.usd_deposit,
            native_deposit=stake.native_deposit,
            deposit_time=stake.deposit_time,
            withdraw_time=stake.withdraw_time,
        )

    async def tier_of(self, address: str) -> int:
        stake = await ParticipantStake.get_or_none(address=address)
        return stake.tier if stake else UNGRADED_TIER

    async def withdrawals(
        self, address: str, start: int = 0, limit: Optional[int] = None
    ) -> tuple[int, list[WithdrawalRecord]]:
        start, limit = page_bounds(start, limit, settings.default_page_limit)
        query = WithdrawalRecord.filter(address=address)
        total = await query.count()
        page = await query.order_by("claim_time", "id").offset(start).limit(limit)
        return total, page


# Singleton instance
tier_ledger = TierLedgerService()
