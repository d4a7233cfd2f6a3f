"""
Sale registry.

Owns the registry configuration (the per-tier payment cap ladder and lock
periods) and the sale events. Sale tokens are pulled into custody when a
sale starts and settled back to the owner, together with the collected
payment, once the sale has ended.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from tortoise.transactions import in_transaction

from launchpad.chain.registry import CollaboratorRegistry, collaborator_registry
from launchpad.core.config import settings
from launchpad.core.context import AdminConfig, CallContext, ContractStatus
from launchpad.core.exceptions import (
    AlreadyInitialized,
    AlreadyWithdrawn,
    InvalidConfig,
    NotFound,
    SaleNotFinished,
    Unauthorized,
    UnresolvableAsset,
)
from launchpad.models.ido import (
    AllocationMode,
    PaymentKind,
    RegistryConfig,
    SaleEvent,
    UnlockAnchor,
    WhitelistMode,
)
from launchpad.models.outbox import MessageKind
from launchpad.services import outbox
from launchpad.services.eligibility import EligibilityGate, eligibility_gate
from launchpad.services.numeric import page_bounds, validate_descending, validate_periods

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentMethod:
    """Native currency, or a fungible token identified by its contract."""
    kind: PaymentKind = PaymentKind.NATIVE
    contract: Optional[str] = None

    @classmethod
    def native(cls) -> "PaymentMethod":
        return cls(PaymentKind.NATIVE)

    @classmethod
    def token(cls, contract: str) -> "PaymentMethod":
        return cls(PaymentKind.TOKEN, contract)


@dataclass
class SaleConfig:
    start_time: int
    end_time: int
    price: int
    total_amount: int
    token_contract: str
    payment: PaymentMethod = field(default_factory=PaymentMethod.native)
    tokens_per_tier: Optional[list[int]] = None
    whitelist_mode: WhitelistMode = WhitelistMode.PRIVATE
    whitelist: list[str] = field(default_factory=list)
    # None means the registry default
    unlock_anchor: Optional[UnlockAnchor] = None


@dataclass
class Settlement:
    sale_id: int
    unsold_tokens: int
    payment: int


class SaleRegistryService:
    def __init__(
        self,
        registry: CollaboratorRegistry = collaborator_registry,
        gate: EligibilityGate = eligibility_gate,
    ):
        self._registry = registry
        self._gate = gate

    # --- configuration ---

    async def get_config(self) -> RegistryConfig:
        config = await RegistryConfig.first()
        if config is None:
            raise NotFound("Sale registry is not initialized")
        return config

    async def load_admin(self) -> AdminConfig:
        return (await self.get_config()).admin_config()

    async def _locked_config(self) -> RegistryConfig:
        config = await RegistryConfig.all().select_for_update().first()
        if config is None:
            raise NotFound("Sale registry is not initialized")
        return config

    async def initialize(
        self,
        ctx: CallContext,
        max_payments: list[int],
        lock_periods: list[int],
        unlock_anchor: UnlockAnchor = UnlockAnchor.SALE_END,
        admin: Optional[str] = None,
        native_denom: Optional[str] = None,
    ) -> RegistryConfig:
        """
        ``max_payments[i]`` is the cumulative payment cap of tier ``i + 1``;
        better tiers must allow strictly more.
        """
        max_payments = validate_descending(max_payments, "max_payments")
        lock_periods = validate_periods(lock_periods, len(max_payments))

        async with in_transaction():
            if await RegistryConfig.exists():
                raise AlreadyInitialized()
            config = await RegistryConfig.create(
                admin=admin or ctx.sender,
                status=ContractStatus.ACTIVE,
                max_payments=max_payments,
                lock_periods=lock_periods,
                unlock_anchor=unlock_anchor,
                native_denom=native_denom or settings.native_denom,
            )
        logger.info(f"sale_registry: initialized with ladder {max_payments}, admin {config.admin}")
        return config

    # --- sales ---

    def _validate(self, ctx: CallContext, config: RegistryConfig, sale: SaleConfig) -> Optional[list[int]]:
        if sale.start_time >= sale.end_time:
            raise InvalidConfig("Start time must be before end time")
        if sale.end_time <= ctx.now:
            raise InvalidConfig("Sale ends in the past")
        if sale.price <= 0:
            raise InvalidConfig("Price must be positive")
        if sale.total_amount <= 0:
            raise InvalidConfig("Total amount must be positive")

        tokens_per_tier = None
        if sale.tokens_per_tier is not None:
            tokens_per_tier = [int(t) for t in sale.tokens_per_tier]
            if len(tokens_per_tier) != config.tier_count:
                raise InvalidConfig(
                    f"tokens_per_tier must have {config.tier_count} entries, got {len(tokens_per_tier)}"
                )
            if any(t < 0 for t in tokens_per_tier):
                raise InvalidConfig("tokens_per_tier cannot be negative")
            for better, worse in zip(tokens_per_tier, tokens_per_tier[1:]):
                if better < worse:
                    raise InvalidConfig("Specify tokens_per_tier in non-increasing order")
            if sum(tokens_per_tier) > sale.total_amount:
                raise InvalidConfig("Sum of tokens_per_tier exceeds total amount")

        if not self._registry.has_token(sale.token_contract):
            raise UnresolvableAsset(f"Sale token {sale.token_contract} is not registered")
        if sale.payment.kind == PaymentKind.TOKEN:
            if not sale.payment.contract or not self._registry.has_token(sale.payment.contract):
                raise UnresolvableAsset(f"Payment token {sale.payment.contract} is not registered")
        return tokens_per_tier

    async def start_sale(self, ctx: CallContext, admin: AdminConfig, sale: SaleConfig) -> SaleEvent:
        """Create a sale owned by the caller and pull its tokens into custody."""
        admin.assert_active()

        async with in_transaction():
            config = await self.get_config()
            tokens_per_tier = self._validate(ctx, config, sale)
            event = await SaleEvent.create(
                owner=ctx.sender,
                start_time=sale.start_time,
                end_time=sale.end_time,
                price=sale.price,
                token_contract=sale.token_contract,
                payment_kind=sale.payment.kind,
                payment_token=sale.payment.contract,
                total_amount=sale.total_amount,
                allocation_mode=AllocationMode.PER_TIER if tokens_per_tier else AllocationMode.GLOBAL,
                tokens_per_tier=tokens_per_tier,
                remaining_per_tier=list(tokens_per_tier) if tokens_per_tier else None,
                unlock_anchor=sale.unlock_anchor or config.unlock_anchor,
                whitelist_mode=sale.whitelist_mode,
            )
            await self._gate.seed(event, sale.whitelist, ctx.now)

            token = self._registry.get_token(sale.token_contract)
            await token.transfer_from(ctx.sender, settings.custody_address, sale.total_amount)

        logger.info(
            f"sale_registry: sale {event.id} started by {ctx.sender}: "
            f"{sale.total_amount} tokens at {sale.price}, {event.allocation_mode.value} allocation"
        )
        return event

    async def sale_info(self, sale_id: int) -> SaleEvent:
        sale = await SaleEvent.get_or_none(id=sale_id)
        if sale is None:
            raise NotFound(f"Sale {sale_id} does not exist")
        return sale

    async def sale_list_owned_by(
        self, owner: str, start: int = 0, limit: Optional[int] = None
    ) -> tuple[int, list[int]]:
        start, limit = page_bounds(start, limit, settings.default_page_limit)
        query = SaleEvent.filter(owner=owner)
        total = await query.count()
        ids = await query.order_by("id").offset(start).limit(limit).values_list("id", flat=True)
        return total, list(ids)

    async def sale_amount(self) -> int:
        return await SaleEvent.all().count()

    async def withdraw(self, ctx: CallContext, admin: AdminConfig, sale_id: int) -> Settlement:
        """Send unsold tokens and the collected payment to the sale owner."""
        admin.assert_active()

        async with in_transaction():
            config = await self.get_config()
            sale = await SaleEvent.filter(id=sale_id).select_for_update().first()
            if sale is None:
                raise NotFound(f"Sale {sale_id} does not exist")
            if ctx.sender != sale.owner:
                raise Unauthorized()
            if ctx.now < sale.end_time:
                raise SaleNotFinished()
            if sale.withdrawn:
                raise AlreadyWithdrawn()

            unsold = sale.total_amount - sale.sold_amount
            payment = sale.total_payment
            sale.withdrawn = True
            await sale.save(update_fields=["withdrawn"])

            if unsold > 0:
                await outbox.enqueue(
                    MessageKind.TOKEN_TRANSFER,
                    recipient=sale.owner,
                    asset=sale.token_contract,
                    amount=unsold,
                    origin="sale.withdraw",
                )
            if payment > 0:
                if sale.payment_kind == PaymentKind.NATIVE:
                    kind, asset = MessageKind.BANK_SEND, config.native_denom
                else:
                    kind, asset = MessageKind.TOKEN_TRANSFER, sale.payment_token
                await outbox.enqueue(
                    kind, recipient=sale.owner, asset=asset, amount=payment, origin="sale.withdraw"
                )

        logger.info(f"sale_registry: sale {sale_id} settled, unsold {unsold}, payment {payment}")
        return Settlement(sale_id=sale_id, unsold_tokens=unsold, payment=payment)

    # --- admin ---

    async def change_status(self, ctx: CallContext, admin: AdminConfig, status: ContractStatus) -> None:
        admin.assert_admin(ctx)
        async with in_transaction():
            config = await self._locked_config()
            config.status = status
            await config.save(update_fields=["status", "updated_at"])
        logger.info(f"sale_registry: status changed to {status.value}")

    async def change_admin(self, ctx: CallContext, admin: AdminConfig, new_admin: str) -> None:
        admin.assert_admin(ctx)
        async with in_transaction():
            config = await self._locked_config()
            config.admin = new_admin
            await config.save(update_fields=["admin", "updated_at"])
        logger.info(f"sale_registry: admin changed to {new_admin}")


# Singleton instance
sale_registry = SaleRegistryService()
