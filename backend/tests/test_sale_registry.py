import pytest

from launchpad.core.context import ContractStatus
from launchpad.core.exceptions import (
    AlreadyInitialized,
    AlreadyWithdrawn,
    CollaboratorError,
    ContractStopped,
    InvalidConfig,
    NotFound,
    SaleNotFinished,
    Unauthorized,
    UnresolvableAsset,
)
from launchpad.models.ido import AllocationMode, SaleEvent, UnlockAnchor
from launchpad.models.outbox import MessageKind, OutboundMessage
from launchpad.services.purchase_ledger import purchase_ledger
from launchpad.services.sale_registry import PaymentMethod, sale_registry

from support import (
    ADMIN,
    DENOM,
    MAX_PAYMENTS,
    OWNER,
    PAY_TOKEN,
    SALE_END,
    SALE_LOCKS,
    SALE_TOKEN,
    make_ctx,
    start_sale,
)


class TestRegistryConfig:
    async def test_ladder_must_decrease(self, delegated_ledger):
        with pytest.raises(InvalidConfig, match="decreasing order"):
            await sale_registry.initialize(make_ctx(ADMIN), [1000, 2000], [0, 0])

    async def test_lock_periods_match_ladder(self, delegated_ledger):
        with pytest.raises(InvalidConfig):
            await sale_registry.initialize(make_ctx(ADMIN), MAX_PAYMENTS, [0, 0])

    async def test_only_once(self, registry_config):
        with pytest.raises(AlreadyInitialized):
            await sale_registry.initialize(make_ctx(ADMIN), MAX_PAYMENTS, SALE_LOCKS)

    async def test_defaults(self, registry_config):
        config = await sale_registry.get_config()
        assert config.tier_count == 5
        assert config.unlock_anchor == UnlockAnchor.SALE_END
        assert config.native_denom == DENOM


class TestStartSale:
    """Sale creation pulls the full token amount from the owner."""

    async def test_pulls_tokens_into_custody(self, registry_config, fakes):
        sale = await start_sale(total_amount=5000)
        assert sale.owner == OWNER
        assert sale.allocation_mode == AllocationMode.GLOBAL
        assert len(fakes.sale_token.pulls) == 1
        owner, _, amount = fakes.sale_token.pulls[0]
        assert (owner, amount) == (OWNER, 5000)

    async def test_ids_increase(self, registry_config):
        first = await start_sale()
        second = await start_sale()
        assert second.id > first.id
        assert await sale_registry.sale_amount() == 2

    async def test_start_must_precede_end(self, registry_config):
        with pytest.raises(InvalidConfig):
            await start_sale(start_time=500, end_time=500)

    async def test_end_in_the_past(self, registry_config):
        with pytest.raises(InvalidConfig):
            await start_sale(now=SALE_END)

    async def test_tokens_per_tier_length(self, registry_config):
        with pytest.raises(InvalidConfig):
            await start_sale(tokens_per_tier=[10, 10])

    async def test_tokens_per_tier_sum(self, registry_config):
        with pytest.raises(InvalidConfig, match="exceeds"):
            await start_sale(total_amount=100, tokens_per_tier=[50, 20, 20, 10, 10])

    async def test_tokens_per_tier_order(self, registry_config):
        with pytest.raises(InvalidConfig, match="non-increasing"):
            await start_sale(total_amount=150, tokens_per_tier=[10, 20, 30, 40, 50])
        assert await SaleEvent.all().count() == 0

    async def test_equal_tokens_per_tier(self, registry_config):
        sale = await start_sale(total_amount=50, tokens_per_tier=[10, 10, 10, 10, 10])
        assert sale.remaining_per_tier == [10] * 5

    async def test_total_amount_wider_than_decimal_context(self, registry_config):
        sale = await start_sale(total_amount=10**30)
        assert (await sale_registry.sale_info(sale.id)).total_amount == 10**30

    async def test_per_tier_allocation(self, registry_config):
        sale = await start_sale(total_amount=100, tokens_per_tier=[50, 20, 10, 10, 10])
        assert sale.allocation_mode == AllocationMode.PER_TIER
        assert sale.remaining_per_tier == [50, 20, 10, 10, 10]

    async def test_unknown_tokens(self, registry_config):
        with pytest.raises(UnresolvableAsset):
            await start_sale(token_contract="unknown")
        with pytest.raises(UnresolvableAsset):
            await start_sale(payment=PaymentMethod.token("unknown"))
        assert await SaleEvent.all().count() == 0

    async def test_failed_pull_rolls_back(self, registry_config, fakes):
        fakes.sale_token.fail = True
        with pytest.raises(CollaboratorError):
            await start_sale()
        assert await sale_registry.sale_amount() == 0

    async def test_stopped_registry(self, registry_config):
        await sale_registry.change_status(
            make_ctx(ADMIN), await sale_registry.load_admin(), ContractStatus.STOPPED
        )
        with pytest.raises(ContractStopped):
            await start_sale()

    async def test_owned_sales_paging(self, registry_config):
        ids = [(await start_sale()).id for _ in range(3)]
        await start_sale(owner="someone-else")
        total, page = await sale_registry.sale_list_owned_by(OWNER, start=1, limit=5)
        assert total == 3
        assert page == ids[1:]

    async def test_missing_sale(self, registry_config):
        with pytest.raises(NotFound):
            await sale_registry.sale_info(404)


class TestWithdraw:
    """Settlement of unsold tokens and collected payment."""

    async def test_settles_once_after_end(self, registry_config):
        sale = await start_sale(total_amount=1000)
        await purchase_ledger.buy(
            make_ctx("alice", 20, 500), await sale_registry.load_admin(), sale.id
        )
        admin = await sale_registry.load_admin()

        with pytest.raises(Unauthorized):
            await sale_registry.withdraw(make_ctx("alice", SALE_END), admin, sale.id)
        with pytest.raises(SaleNotFinished):
            await sale_registry.withdraw(make_ctx(OWNER, SALE_END - 1), admin, sale.id)

        settlement = await sale_registry.withdraw(make_ctx(OWNER, SALE_END), admin, sale.id)
        assert settlement.unsold_tokens == 950
        assert settlement.payment == 500

        tokens = await OutboundMessage.get(kind=MessageKind.TOKEN_TRANSFER)
        assert (tokens.recipient, tokens.asset, tokens.amount) == (OWNER, SALE_TOKEN, 950)
        payment = await OutboundMessage.get(kind=MessageKind.BANK_SEND)
        assert (payment.asset, payment.amount) == (DENOM, 500)

        with pytest.raises(AlreadyWithdrawn):
            await sale_registry.withdraw(make_ctx(OWNER, SALE_END + 1), admin, sale.id)

    async def test_token_payment_is_returned_as_token(self, registry_config):
        sale = await start_sale(total_amount=1000, payment=PaymentMethod.token(PAY_TOKEN))
        admin = await sale_registry.load_admin()
        await purchase_ledger.buy(make_ctx("alice", 20), admin, sale.id, amount=300)

        await sale_registry.withdraw(make_ctx(OWNER, SALE_END), admin, sale.id)
        payment = await OutboundMessage.get(kind=MessageKind.TOKEN_TRANSFER, asset=PAY_TOKEN)
        assert (payment.recipient, payment.amount) == (OWNER, 300)

    async def test_change_admin(self, registry_config):
        admin = await sale_registry.load_admin()
        with pytest.raises(Unauthorized):
            await sale_registry.change_admin(make_ctx(OWNER), admin, OWNER)
        await sale_registry.change_admin(make_ctx(ADMIN), admin, OWNER)
        assert (await sale_registry.load_admin()).admin == OWNER
