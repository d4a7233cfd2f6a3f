"""
Deploy-if-absent provisioning of the ledger configurations.

A provisioning call is identified by ``(label, content_hash)``, where the hash
covers the canonical JSON of the parameters. Repeating a call is a no-op;
reusing a label with different parameters is refused.
"""

import hashlib
import json
import logging
from typing import Any, Dict

from tortoise.transactions import in_transaction

from launchpad.core.context import CallContext
from launchpad.core.exceptions import ProvisioningConflict
from launchpad.models.deployment import Deployment
from launchpad.models.ido import UnlockAnchor
from launchpad.models.tier import ExcessPolicy, LedgerKind
from launchpad.services.sale_registry import SaleRegistryService, sale_registry
from launchpad.services.tier_ledger import TierLedgerService, tier_ledger

logger = logging.getLogger(__name__)

TIER_LEDGER = "tier_ledger"
SALE_REGISTRY = "sale_registry"


def content_hash(params: Dict[str, Any]) -> str:
    canonical = json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class Provisioner:
    def __init__(
        self,
        tiers: TierLedgerService = tier_ledger,
        sales: SaleRegistryService = sale_registry,
    ):
        self._tiers = tiers
        self._sales = sales

    async def _initialize(self, ctx: CallContext, kind: str, params: Dict[str, Any]) -> None:
        if kind == TIER_LEDGER:
            await self._tiers.initialize(
                ctx,
                thresholds=params["thresholds"],
                lock_periods=params["lock_periods"],
                kind=LedgerKind(params.get("kind", LedgerKind.DELEGATED.value)),
                excess_policy=ExcessPolicy(params.get("excess_policy", ExcessPolicy.CAP.value)),
                validator=params.get("validator"),
                admin=params.get("admin"),
                collateral_denom=params.get("collateral_denom"),
                unbonding_delay=params.get("unbonding_delay"),
            )
        elif kind == SALE_REGISTRY:
            await self._sales.initialize(
                ctx,
                max_payments=params["max_payments"],
                lock_periods=params["lock_periods"],
                unlock_anchor=UnlockAnchor(params.get("unlock_anchor", UnlockAnchor.SALE_END.value)),
                admin=params.get("admin"),
                native_denom=params.get("native_denom"),
            )
        else:
            raise ValueError(f"Unknown deployment kind {kind}")

    async def provision(
        self, ctx: CallContext, label: str, kind: str, params: Dict[str, Any]
    ) -> tuple[Deployment, bool]:
        """
        Initialize ``kind`` with ``params`` unless ``label`` already holds them.

        Returns the deployment and whether this call created it.
        """
        digest = content_hash(params)
        async with in_transaction():
            existing = await Deployment.get_or_none(label=label)
            if existing is not None:
                if existing.content_hash != digest or existing.kind != kind:
                    raise ProvisioningConflict(
                        f"{label} is provisioned as {existing.kind}@{existing.content_hash[:12]}"
                    )
                logger.info(f"provisioning: {label} already at {digest[:12]}, nothing to do")
                return existing, False

            await self._initialize(ctx, kind, params)
            deployment = await Deployment.create(
                label=label, kind=kind, content_hash=digest, params=params
            )
        logger.info(f"provisioning: {label} provisioned as {kind}@{digest[:12]}")
        return deployment, True


provisioner = Provisioner()
