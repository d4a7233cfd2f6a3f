"""
Purchase ledger: buys against a sale and the release of vested tokens.

A buy is accepted only if it fits both the participant's cumulative cap for
their tier and the allocation still left for that tier. Tokens are bought at
``amount // price``; the whole payment is kept. Every accepted buy becomes a
``PurchaseRecord`` whose unlock time is fixed at creation. ``recv_tokens``
pays out due records once and moves them to the vesting archive.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from tortoise.transactions import in_transaction

from launchpad.chain.registry import CollaboratorRegistry, collaborator_registry
from launchpad.core.config import settings
from launchpad.core.context import AdminConfig, CallContext
from launchpad.core.exceptions import (
    ExceedsTierCap,
    InsufficientAllocation,
    InvalidConfig,
    NotFound,
    NotWhitelisted,
    NothingToReceive,
    SaleNotActive,
    TierSoldOut,
    UnsupportedDenom,
    ZeroTokens,
)
from launchpad.models.ido import (
    AllocationMode,
    ParticipantSaleInfo,
    ParticipantTotals,
    PaymentKind,
    PurchaseRecord,
    RegistryConfig,
    SaleEvent,
    UnlockAnchor,
)
from launchpad.models.outbox import MessageKind
from launchpad.services import outbox
from launchpad.services.eligibility import EligibilityGate, NftProof, eligibility_gate
from launchpad.services.numeric import ladder_cap, page_bounds
from launchpad.services.sale_registry import SaleRegistryService, sale_registry
from launchpad.services.vesting_archive import VestingArchive, vesting_archive

logger = logging.getLogger(__name__)


@dataclass
class BuyResult:
    sale_id: int
    seq: int
    tier: int
    payment: int
    tokens: int
    unlock_time: int


@dataclass
class ReceiveResult:
    sale_id: int
    amount: int
    records: int


@dataclass
class UserTotals:
    total_payment: int = 0
    total_tokens_bought: int = 0
    total_tokens_received: int = 0


def tier_cap(sale: SaleEvent, config: RegistryConfig, tier: int) -> int:
    if sale.allocation_mode == AllocationMode.PER_TIER:
        return ladder_cap(sale.tokens_per_tier, tier, scale=sale.price)
    return ladder_cap(config.max_payments, tier)


def remaining_allocation(sale: SaleEvent, tier: int) -> int:
    """Tokens still purchasable by ``tier`` across all participants."""
    if sale.allocation_mode == AllocationMode.PER_TIER:
        return int(sale.remaining_per_tier[tier - 1])
    return sale.total_amount - sale.sold_amount


def unlock_time(sale: SaleEvent, config: RegistryConfig, tier: int, now: int) -> int:
    anchor = sale.end_time if sale.unlock_anchor == UnlockAnchor.SALE_END else now
    return anchor + int(config.lock_periods[tier - 1])


class PurchaseLedgerService:
    def __init__(
        self,
        registry: CollaboratorRegistry = collaborator_registry,
        gate: EligibilityGate = eligibility_gate,
        sales: SaleRegistryService = sale_registry,
        archive: VestingArchive = vesting_archive,
    ):
        self._registry = registry
        self._gate = gate
        self._sales = sales
        self._archive = archive

    @staticmethod
    def _payment_amount(
        ctx: CallContext, sale: SaleEvent, config: RegistryConfig, amount: Optional[int]
    ) -> int:
        if sale.payment_kind == PaymentKind.NATIVE:
            attached = ctx.attached(config.native_denom)
            if amount is not None and amount != attached:
                raise InvalidConfig(f"Attached {attached} {config.native_denom}, expected {amount}")
            return attached

        if ctx.funds:
            raise UnsupportedDenom(f"Sale {sale.id} is paid in token {sale.payment_token}")
        if amount is None:
            raise InvalidConfig("Payment amount is required for token sales")
        if amount < 0:
            raise InvalidConfig("Payment amount cannot be negative")
        return amount

    async def buy(
        self,
        ctx: CallContext,
        admin: AdminConfig,
        sale_id: int,
        amount: Optional[int] = None,
        nft_proof: Optional[NftProof] = None,
    ) -> BuyResult:
        admin.assert_active()

        async with in_transaction():
            config = await self._sales.get_config()
            sale = await SaleEvent.filter(id=sale_id).select_for_update().first()
            if sale is None:
                raise NotFound(f"Sale {sale_id} does not exist")
            if not sale.is_active(ctx.now):
                raise SaleNotActive()
            payment = self._payment_amount(ctx, sale, config, amount)

            if not await self._gate.is_eligible(ctx.sender, sale):
                raise NotWhitelisted()
            tier = await self._gate.effective_tier(ctx.sender, config.tier_count, nft_proof)

            remaining = remaining_allocation(sale, tier)
            if remaining == 0:
                raise TierSoldOut()

            info = (
                await ParticipantSaleInfo.filter(sale_id=sale.id, address=ctx.sender)
                .select_for_update()
                .first()
            )
            current = info.total_payment if info else 0
            if current + payment > tier_cap(sale, config, tier):
                raise ExceedsTierCap()

            tokens = payment // sale.price
            if tokens == 0:
                raise ZeroTokens()
            if tokens > remaining:
                raise InsufficientAllocation(f"Only {remaining} tokens are left for your tier")

            if sale.payment_kind == PaymentKind.TOKEN:
                token = self._registry.get_token(sale.payment_token)
                await token.transfer_from(ctx.sender, settings.custody_address, payment)

            first_purchase = current == 0
            if info is None:
                info = ParticipantSaleInfo(sale=sale, address=ctx.sender)
            seq = info.next_purchase_seq
            unlock = unlock_time(sale, config, tier, ctx.now)
            await PurchaseRecord.create(
                sale=sale,
                address=ctx.sender,
                seq=seq,
                tier=tier,
                payment_amount=payment,
                tokens_amount=tokens,
                timestamp=ctx.now,
                unlock_time=unlock,
            )

            info.next_purchase_seq = seq + 1
            info.total_payment = current + payment
            info.total_tokens_bought = info.total_tokens_bought + tokens
            await info.save()

            totals, _ = await ParticipantTotals.get_or_create(address=ctx.sender)
            totals.total_payment = totals.total_payment + payment
            totals.total_tokens_bought = totals.total_tokens_bought + tokens
            await totals.save()

            sale.sold_amount = sale.sold_amount + tokens
            sale.total_payment = sale.total_payment + payment
            if first_purchase:
                sale.participants += 1
            if sale.allocation_mode == AllocationMode.PER_TIER:
                left = list(sale.remaining_per_tier)
                left[tier - 1] = int(left[tier - 1]) - tokens
                sale.remaining_per_tier = left
            await sale.save(
                update_fields=["sold_amount", "total_payment", "participants", "remaining_per_tier"]
            )

        logger.info(
            f"purchase_ledger: {ctx.sender} bought {tokens} tokens of sale {sale_id} "
            f"for {payment} at tier {tier}, unlock at {unlock}"
        )
        return BuyResult(
            sale_id=sale_id, seq=seq, tier=tier, payment=payment, tokens=tokens, unlock_time=unlock
        )

    async def recv_tokens(
        self,
        ctx: CallContext,
        admin: AdminConfig,
        sale_id: int,
        start: int = 0,
        limit: Optional[int] = None,
        purchase_seqs: Optional[Iterable[int]] = None,
    ) -> ReceiveResult:
        """
        Pay out every due purchase in the page and archive it.

        ``purchase_seqs`` restricts the payout to those purchases; records
        that are not due yet are never touched.
        """
        admin.assert_active()
        start, limit = page_bounds(start, limit, settings.recv_page_limit)
        wanted = set(purchase_seqs) if purchase_seqs is not None else None

        async with in_transaction():
            sale = await SaleEvent.get_or_none(id=sale_id)
            if sale is None:
                raise NotFound(f"Sale {sale_id} does not exist")
            info = (
                await ParticipantSaleInfo.filter(sale_id=sale_id, address=ctx.sender)
                .select_for_update()
                .first()
            )
            if info is None:
                raise NothingToReceive()

            records = (
                await PurchaseRecord.filter(sale_id=sale_id, address=ctx.sender)
                .order_by("seq")
                .offset(start)
                .limit(limit)
                .select_for_update()
            )
            due = [
                r for r in records
                if r.unlock_time <= ctx.now and (wanted is None or r.seq in wanted)
            ]
            if not due:
                raise NothingToReceive()

            amount = sum(r.tokens_amount for r in due)
            await self._archive.archive(info, due, ctx.now)
            await PurchaseRecord.filter(id__in=[r.id for r in due]).delete()

            info.total_tokens_received = info.total_tokens_received + amount
            await info.save()
            totals = await ParticipantTotals.filter(address=ctx.sender).select_for_update().first()
            totals.total_tokens_received = totals.total_tokens_received + amount
            await totals.save()

            await outbox.enqueue(
                MessageKind.TOKEN_TRANSFER,
                recipient=ctx.sender,
                asset=sale.token_contract,
                amount=amount,
                origin="sale.recv_tokens",
            )

        logger.info(
            f"purchase_ledger: {ctx.sender} received {amount} tokens of sale {sale_id} "
            f"from {len(due)} purchases"
        )
        return ReceiveResult(sale_id=sale_id, amount=amount, records=len(due))

    # --- queries ---

    async def user_info(self, address: str, sale_id: Optional[int] = None) -> UserTotals:
        if sale_id is None:
            row = await ParticipantTotals.get_or_none(address=address)
        else:
            row = await ParticipantSaleInfo.get_or_none(sale_id=sale_id, address=address)
        if row is None:
            return UserTotals()
        return UserTotals(
            total_payment=row.total_payment,
            total_tokens_bought=row.total_tokens_bought,
            total_tokens_received=row.total_tokens_received,
        )

    async def purchases(
        self, address: str, sale_id: int, start: int = 0, limit: Optional[int] = None
    ) -> tuple[int, list[PurchaseRecord]]:
        start, limit = page_bounds(start, limit, settings.default_page_limit)
        query = PurchaseRecord.filter(address=address, sale_id=sale_id)
        total = await query.count()
        page = await query.order_by("seq").offset(start).limit(limit)
        return total, page

    async def archived_purchases(self, address: str, sale_id: int, start: int = 0, limit: Optional[int] = None):
        return await self._archive.archived_purchases(address, sale_id, start, limit)


# Singleton instance
purchase_ledger = PurchaseLedgerService()
