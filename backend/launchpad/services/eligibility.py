"""
Eligibility gate: whitelist membership and tier resolution for sales.

Whitelist entries are never deleted. Removing an address stores an explicit
``allowed = False`` entry, which beats any add on the shared list and any
open sale. A per-sale entry takes precedence over the shared one.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from tortoise.transactions import in_transaction

from launchpad.chain.base import TokenMetadata
from launchpad.chain.registry import CollaboratorRegistry, collaborator_registry
from launchpad.core.config import settings
from launchpad.core.constants import NFT_TIER_TRAIT, UNGRADED_TIER
from launchpad.core.context import AdminConfig, CallContext
from launchpad.core.exceptions import (
    CollaboratorRejected,
    InvalidConfig,
    InvalidNftTier,
    NotFound,
    Unauthorized,
)
from launchpad.models.ido import SaleEvent, WhitelistEntry, WhitelistMode
from launchpad.services.numeric import page_bounds
from launchpad.services.tier_ledger import TierLedgerService, tier_ledger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NftProof:
    token_id: str
    viewing_key: str


def _attributes(section: Optional[Dict[str, Any]]) -> list:
    if not section:
        return []
    attributes = section.get("attributes")
    if attributes is None and isinstance(section.get("extension"), dict):
        attributes = section["extension"].get("attributes")
    return attributes if isinstance(attributes, list) else []


def tier_attribute(section: Optional[Dict[str, Any]]) -> Optional[str]:
    """Raw value of the case-insensitive "tier" trait, or None if absent."""
    for attribute in _attributes(section):
        if not isinstance(attribute, dict):
            continue
        trait = attribute.get("trait_type")
        if isinstance(trait, str) and trait.lower() == NFT_TIER_TRAIT:
            value = attribute.get("value")
            return None if value is None else str(value)
    return None


def parse_nft_tier(metadata: TokenMetadata, tier_count: int) -> int:
    """Tier from private metadata, else public; InvalidNftTier otherwise."""
    raw = tier_attribute(metadata.private)
    if raw is None:
        raw = tier_attribute(metadata.public)
    if raw is None:
        raise InvalidNftTier("NFT has no tier attribute")
    try:
        tier = int(raw.strip())
    except ValueError:
        raise InvalidNftTier(f"NFT tier attribute is malformed: {raw!r}")
    if not 1 <= tier <= tier_count:
        raise InvalidNftTier(f"NFT tier {tier} is out of range 1..{tier_count}")
    return tier


class EligibilityGate:
    """Whitelists plus the staking/NFT tier resolution used by purchases."""

    def __init__(
        self,
        registry: CollaboratorRegistry = collaborator_registry,
        tiers: TierLedgerService = tier_ledger,
    ):
        self._registry = registry
        self._tiers = tiers

    # --- whitelist mutations ---

    async def _authorize(self, ctx: CallContext, admin: AdminConfig, sale_id: Optional[int]) -> Optional[SaleEvent]:
        if sale_id is None:
            admin.assert_admin(ctx)
            return None
        sale = await SaleEvent.get_or_none(id=sale_id)
        if sale is None:
            raise NotFound(f"Sale {sale_id} does not exist")
        if ctx.sender not in (sale.owner, admin.admin):
            raise Unauthorized()
        return sale

    async def _set_membership(
        self,
        ctx: CallContext,
        admin: AdminConfig,
        sale_id: Optional[int],
        addresses: Iterable[str],
        allowed: bool,
    ) -> int:
        admin.assert_active()
        addresses = list(dict.fromkeys(addresses))
        if not addresses:
            raise InvalidConfig("No addresses given")

        changed = 0
        async with in_transaction():
            sale = await self._authorize(ctx, admin, sale_id)
            for address in addresses:
                entry = await self._entry(sale.id if sale else None, address)
                if entry is None:
                    await WhitelistEntry.create(
                        sale=sale, address=address, allowed=allowed, updated_at=ctx.now
                    )
                    changed += 1
                elif entry.allowed != allowed:
                    entry.allowed = allowed
                    entry.updated_at = ctx.now
                    await entry.save(update_fields=["allowed", "updated_at"])
                    changed += 1

        target = f"sale {sale_id}" if sale_id is not None else "shared list"
        action = "added to" if allowed else "removed from"
        logger.info(f"eligibility: {changed} of {len(addresses)} addresses {action} {target}")
        return changed

    async def add_to_whitelist(
        self, ctx: CallContext, admin: AdminConfig, sale_id: Optional[int], addresses: Iterable[str]
    ) -> int:
        """Allow addresses; ``sale_id=None`` targets the shared whitelist."""
        return await self._set_membership(ctx, admin, sale_id, addresses, True)

    async def remove_from_whitelist(
        self, ctx: CallContext, admin: AdminConfig, sale_id: Optional[int], addresses: Iterable[str]
    ) -> int:
        return await self._set_membership(ctx, admin, sale_id, addresses, False)

    async def seed(self, sale: SaleEvent, addresses: Iterable[str], now: int) -> None:
        """Initial allowed entries of a new sale (called inside start_sale)."""
        for address in dict.fromkeys(addresses):
            await WhitelistEntry.create(sale=sale, address=address, allowed=True, updated_at=now)

    # --- membership ---

    async def _entry(self, sale_id: Optional[int], address: str) -> Optional[WhitelistEntry]:
        if sale_id is None:
            return await WhitelistEntry.get_or_none(sale_id__isnull=True, address=address)
        return await WhitelistEntry.get_or_none(sale_id=sale_id, address=address)

    async def is_eligible(self, address: str, sale: SaleEvent) -> bool:
        entry = await self._entry(sale.id, address)
        if entry is not None:
            return entry.allowed

        mode = WhitelistMode(sale.whitelist_mode)
        if mode == WhitelistMode.OPEN:
            return True
        if mode == WhitelistMode.SHARED:
            shared = await self._entry(None, address)
            return shared is not None and shared.allowed
        return False

    async def in_whitelist(self, address: str, sale_id: int) -> bool:
        sale = await SaleEvent.get_or_none(id=sale_id)
        if sale is None:
            raise NotFound(f"Sale {sale_id} does not exist")
        return await self.is_eligible(address, sale)

    async def whitelist(
        self, sale_id: Optional[int], start: int = 0, limit: Optional[int] = None
    ) -> tuple[int, list[str]]:
        """Allowed addresses of a sale (or the shared list) in insertion order."""
        start, limit = page_bounds(start, limit, settings.default_page_limit)
        if sale_id is None:
            query = WhitelistEntry.filter(sale_id__isnull=True, allowed=True)
        else:
            query = WhitelistEntry.filter(sale_id=sale_id, allowed=True)
        total = await query.count()
        entries = await query.order_by("id").offset(start).limit(limit)
        return total, [e.address for e in entries]

    # --- tiers ---

    async def staking_tier(self, address: str, tier_count: int) -> int:
        """Tier ledger grade mapped onto a ladder of ``tier_count`` tiers."""
        tier = await self._tiers.tier_of(address)
        if tier == UNGRADED_TIER or tier > tier_count:
            return tier_count
        return tier

    async def nft_tier(self, address: str, proof: NftProof, tier_count: int) -> int:
        if not self._registry.has_nft():
            raise InvalidNftTier("NFT tiers are not enabled")
        nft = self._registry.get_nft()
        try:
            owner = await nft.owner_of(proof.token_id, address, proof.viewing_key)
            if owner != address:
                logger.warning(f"eligibility: {address} presented NFT {proof.token_id} it does not own")
                raise InvalidNftTier("You are not the owner of this NFT")
            metadata = await nft.metadata_of(proof.token_id, address, proof.viewing_key)
        except CollaboratorRejected as e:
            logger.warning(f"eligibility: NFT {proof.token_id} rejected for {address}: {e}")
            raise InvalidNftTier("NFT cannot be viewed with this key") from e
        return parse_nft_tier(metadata, tier_count)

    async def effective_tier(self, address: str, tier_count: int, proof: Optional[NftProof] = None) -> int:
        """Better (numerically lower) of the staking tier and the NFT tier."""
        tier = await self.staking_tier(address, tier_count)
        if proof is not None:
            tier = min(tier, await self.nft_tier(address, proof, tier_count))
        return tier


# Singleton instance
eligibility_gate = EligibilityGate()
