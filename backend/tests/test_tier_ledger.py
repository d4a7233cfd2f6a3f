import pytest

from launchpad.chain.base import Delegation
from launchpad.core.constants import ONE_USD
from launchpad.core.context import ContractStatus
from launchpad.core.exceptions import (
    AlreadyInitialized,
    BelowMinimum,
    CollaboratorError,
    ContractStopped,
    DelegationNotFound,
    InvalidConfig,
    LockPeriodNotElapsed,
    NothingToClaim,
    ReachedMaxTier,
    StakeNotFound,
    Unauthorized,
    UnsupportedDenom,
    UnsupportedOperation,
)
from launchpad.models.outbox import MessageKind, OutboundMessage
from launchpad.models.tier import ExcessPolicy, ParticipantStake, WithdrawalRecord
from launchpad.services.numeric import usd_from_native
from launchpad.services.tier_ledger import tier_ledger

from support import ADMIN, DENOM, THRESHOLDS, TIER_LOCKS, VALIDATOR, make_ctx

ALICE = "alice"


async def deposit(sender: str, amount: int, now: int = 0, denom: str = DENOM):
    admin = await tier_ledger.load_admin()
    return await tier_ledger.deposit(make_ctx(sender, now, amount, denom), admin)


class TestInitialize:
    """Threshold table validation."""

    async def test_thresholds_must_decrease(self):
        with pytest.raises(InvalidConfig, match="decreasing order"):
            await tier_ledger.initialize(
                make_ctx(ADMIN), thresholds=[100, 200], lock_periods=[1, 2], validator=VALIDATOR
            )

    async def test_lock_period_per_threshold(self):
        with pytest.raises(InvalidConfig):
            await tier_ledger.initialize(
                make_ctx(ADMIN), thresholds=THRESHOLDS, lock_periods=[1], validator=VALIDATOR
            )

    async def test_admin_defaults_to_caller(self, delegated_ledger):
        admin = await tier_ledger.load_admin()
        assert admin.admin == ADMIN
        assert admin.status == ContractStatus.ACTIVE

    async def test_only_once(self, delegated_ledger):
        with pytest.raises(AlreadyInitialized):
            await tier_ledger.initialize(
                make_ctx(ADMIN), thresholds=THRESHOLDS, lock_periods=TIER_LOCKS, validator=VALIDATOR
            )


class TestDeposit:
    """Deposits against thresholds [1000, 500, 200, 100] USD at 1 USD per unit."""

    async def test_scenario_100_then_400_reaches_tier_two(self, delegated_ledger):
        first = await deposit(ALICE, 100, now=0)
        assert first.tier == 4
        assert first.withdraw_time == 60

        second = await deposit(ALICE, 400, now=10)
        assert second.tier == 2
        assert second.usd_deposit == 500
        assert second.native_deposit == 500
        assert second.withdraw_time == 10 + 40

    async def test_tier_never_decreases(self, delegated_ledger):
        tiers = []
        for amount in (100, 50, 60, 300, 1, 500):
            tiers.append((await deposit(ALICE, amount)).tier)
        assert tiers == sorted(tiers, reverse=True)
        assert tiers[-1] == 1

    async def test_below_minimum(self, delegated_ledger):
        with pytest.raises(BelowMinimum):
            await deposit(ALICE, 99)
        assert await ParticipantStake.filter(address=ALICE).count() == 0

    async def test_unsupported_denom(self, delegated_ledger):
        with pytest.raises(UnsupportedDenom):
            await deposit(ALICE, 100, denom="uatom")

    async def test_nothing_attached(self, delegated_ledger):
        with pytest.raises(InvalidConfig):
            await deposit(ALICE, 0)

    async def test_stopped(self, delegated_ledger):
        await tier_ledger.change_status(
            make_ctx(ADMIN), await tier_ledger.load_admin(), ContractStatus.STOPPED
        )
        with pytest.raises(ContractStopped):
            await deposit(ALICE, 100)

    async def test_excess_saturates_with_cap_policy(self, delegated_ledger):
        result = await deposit(ALICE, 1500)
        assert result.tier == 1
        assert result.usd_deposit == 1000
        assert result.native_deposit == 1500
        assert result.refund == 0

    async def test_refund_keeps_collateral_worth_the_credit(self, fakes):
        await tier_ledger.initialize(
            make_ctx(ADMIN),
            thresholds=THRESHOLDS,
            lock_periods=TIER_LOCKS,
            excess_policy=ExcessPolicy.REFUND,
            validator=VALIDATOR,
            collateral_denom=DENOM,
        )
        rate = 3 * ONE_USD
        fakes.oracle.value = rate

        # 400 units are worth 1200 USD; 200 USD of excess is 66.67 units
        result = await deposit(ALICE, 400)
        assert (result.usd_deposit, result.refund, result.accepted) == (1000, 66, 334)
        assert usd_from_native(result.native_deposit, rate) >= THRESHOLDS[0]

    async def test_reached_max_tier(self, delegated_ledger):
        await deposit(ALICE, 1000)
        with pytest.raises(ReachedMaxTier):
            await deposit(ALICE, 1)

    async def test_oracle_converts_to_usd(self, delegated_ledger, fakes):
        fakes.oracle.value = 2 * ONE_USD
        result = await deposit(ALICE, 50)
        assert result.tier == 4
        assert result.usd_deposit == 100
        assert result.native_deposit == 50

    async def test_delegates_accepted_collateral(self, delegated_ledger):
        await deposit(ALICE, 300)
        message = await OutboundMessage.get(kind=MessageKind.DELEGATE)
        assert (message.recipient, message.asset, message.amount) == (VALIDATOR, DENOM, 300)
        config = await tier_ledger.get_config()
        assert config.total_delegated == 300

    async def test_oracle_failure_leaves_no_trace(self, delegated_ledger, fakes):
        fakes.oracle.fail = True
        with pytest.raises(CollaboratorError):
            await deposit(ALICE, 300)
        assert await ParticipantStake.all().count() == 0
        assert await OutboundMessage.all().count() == 0


class TestFlatLedger:
    """Flat ledger: raw native credit, collateral kept, excess refunded."""

    async def test_raw_amount_is_the_credit(self, flat_ledger):
        result = await deposit(ALICE, 200)
        assert result.tier == 3
        assert result.usd_deposit == 200
        config = await tier_ledger.get_config()
        assert config.total_collateral == 200
        assert await OutboundMessage.filter(kind=MessageKind.DELEGATE).count() == 0

    async def test_refund_policy_returns_excess(self, flat_ledger):
        result = await deposit(ALICE, 1200)
        assert result.tier == 1
        assert result.accepted == 1000
        assert result.refund == 200
        assert result.native_deposit == 1000
        refund = await OutboundMessage.get(kind=MessageKind.BANK_SEND)
        assert (refund.recipient, refund.amount) == (ALICE, 200)

    async def test_withdraw_and_claim_without_undelegation(self, flat_ledger):
        await deposit(ALICE, 100, now=0)
        await tier_ledger.withdraw(make_ctx(ALICE, 60), await tier_ledger.load_admin())
        assert await OutboundMessage.filter(kind=MessageKind.UNDELEGATE).count() == 0
        amount = await tier_ledger.claim(make_ctx(ALICE, 160), await tier_ledger.load_admin())
        assert amount == 100
        config = await tier_ledger.get_config()
        assert config.total_collateral == 0


class TestWithdrawAndClaim:
    """Lock period, unbonding queue and single payout."""

    async def test_lock_period_not_elapsed(self, delegated_ledger):
        await deposit(ALICE, 100, now=0)
        with pytest.raises(LockPeriodNotElapsed) as exc_info:
            await tier_ledger.withdraw(make_ctx(ALICE, 59), await tier_ledger.load_admin())
        assert exc_info.value.retryable

    async def test_withdraw_zeroes_stake_and_queues(self, delegated_ledger):
        await deposit(ALICE, 500, now=0)
        record = await tier_ledger.withdraw(make_ctx(ALICE, 40), await tier_ledger.load_admin())
        assert record.amount == 500
        assert record.claim_time == 140

        info = await tier_ledger.user_info(ALICE)
        assert info.tier == 0
        assert info.native_deposit == 0

        undelegate = await OutboundMessage.get(kind=MessageKind.UNDELEGATE)
        assert (undelegate.recipient, undelegate.amount) == (VALIDATOR, 500)
        assert (await tier_ledger.get_config()).total_delegated == 0

    async def test_withdraw_without_stake(self, delegated_ledger):
        with pytest.raises(StakeNotFound):
            await tier_ledger.withdraw(make_ctx(ALICE, 0), await tier_ledger.load_admin())

    async def test_claim_only_after_unbonding(self, delegated_ledger):
        admin = await tier_ledger.load_admin()
        await deposit(ALICE, 100, now=0)
        await tier_ledger.withdraw(make_ctx(ALICE, 60), admin)

        with pytest.raises(NothingToClaim):
            await tier_ledger.claim(make_ctx(ALICE, 159), admin)

        assert await tier_ledger.claim(make_ctx(ALICE, 160), admin) == 100
        payout = await OutboundMessage.get(kind=MessageKind.BANK_SEND)
        assert (payout.recipient, payout.amount) == (ALICE, 100)

        with pytest.raises(NothingToClaim):
            await tier_ledger.claim(make_ctx(ALICE, 161), admin)

    async def test_claim_leaves_immature_records(self, delegated_ledger):
        admin = await tier_ledger.load_admin()
        await deposit(ALICE, 100, now=0)
        await tier_ledger.withdraw(make_ctx(ALICE, 60), admin)
        await deposit(ALICE, 200, now=100)
        await tier_ledger.withdraw(make_ctx(ALICE, 150), admin)

        assert await tier_ledger.claim(make_ctx(ALICE, 200), admin, recipient="vault") == 100
        remaining = await WithdrawalRecord.filter(address=ALICE)
        assert [r.amount for r in remaining] == [200]

    async def test_withdrawals_paging(self, delegated_ledger):
        admin = await tier_ledger.load_admin()
        for i in range(3):
            await deposit(ALICE, 100, now=i * 100)
            await tier_ledger.withdraw(make_ctx(ALICE, i * 100 + 60), admin)

        total, page = await tier_ledger.withdrawals(ALICE, start=1, limit=1)
        assert total == 3
        assert [r.claim_time for r in page] == [260]


class TestAdmin:
    """Admin-only operations."""

    async def test_change_status_requires_admin(self, delegated_ledger):
        with pytest.raises(Unauthorized):
            await tier_ledger.change_status(
                make_ctx(ALICE), await tier_ledger.load_admin(), ContractStatus.STOPPED
            )

    async def test_change_admin(self, delegated_ledger):
        await tier_ledger.change_admin(make_ctx(ADMIN), await tier_ledger.load_admin(), "new-admin")
        admin = await tier_ledger.load_admin()
        assert admin.admin == "new-admin"
        with pytest.raises(Unauthorized):
            await tier_ledger.change_status(make_ctx(ADMIN), admin, ContractStatus.STOPPED)

    async def test_redelegate_moves_everything(self, delegated_ledger, fakes):
        fakes.staking.delegations[VALIDATOR] = Delegation(VALIDATOR, 500, 500, accumulated_rewards=7)
        moved = await tier_ledger.redelegate(
            make_ctx(ADMIN), await tier_ledger.load_admin(), "validator-2"
        )
        assert moved == 500
        assert (await tier_ledger.get_config()).validator == "validator-2"

        redelegate = await OutboundMessage.get(kind=MessageKind.REDELEGATE)
        assert redelegate.recipient == "validator-2"
        assert redelegate.payload == {"src_validator": VALIDATOR}
        rewards = await OutboundMessage.get(kind=MessageKind.WITHDRAW_REWARDS)
        assert (rewards.recipient, rewards.amount) == (ADMIN, 7)

    async def test_redelegate_without_delegation(self, delegated_ledger):
        with pytest.raises(DelegationNotFound):
            await tier_ledger.redelegate(make_ctx(ADMIN), await tier_ledger.load_admin(), "validator-2")

    async def test_redelegate_partial_is_refused(self, delegated_ledger, fakes):
        fakes.staking.delegations[VALIDATOR] = Delegation(VALIDATOR, 500, 100)
        with pytest.raises(UnsupportedOperation):
            await tier_ledger.redelegate(make_ctx(ADMIN), await tier_ledger.load_admin(), "validator-2")
        assert (await tier_ledger.get_config()).validator == VALIDATOR

    async def test_redelegate_to_same_validator(self, delegated_ledger):
        with pytest.raises(InvalidConfig):
            await tier_ledger.redelegate(make_ctx(ADMIN), await tier_ledger.load_admin(), VALIDATOR)

    async def test_redelegate_requires_admin(self, delegated_ledger):
        with pytest.raises(Unauthorized):
            await tier_ledger.redelegate(make_ctx(ALICE), await tier_ledger.load_admin(), "validator-2")

    async def test_flat_ledger_cannot_redelegate(self, flat_ledger):
        with pytest.raises(UnsupportedOperation):
            await tier_ledger.redelegate(make_ctx(ADMIN), await tier_ledger.load_admin(), "validator-2")

    async def test_withdraw_rewards(self, delegated_ledger, fakes):
        admin = await tier_ledger.load_admin()
        with pytest.raises(NothingToClaim):
            await tier_ledger.withdraw_rewards(make_ctx(ADMIN), admin)

        fakes.staking.delegations[VALIDATOR] = Delegation(VALIDATOR, 500, 500, accumulated_rewards=42)
        assert await tier_ledger.withdraw_rewards(make_ctx(ADMIN), admin, recipient="treasury") == 42
        message = await OutboundMessage.get(kind=MessageKind.WITHDRAW_REWARDS)
        assert message.recipient == "treasury"
