from launchpad.chain.base import (
    Delegation,
    FungibleToken,
    NonFungibleToken,
    PriceOracle,
    StakingModule,
    TokenMetadata,
    TxReceipt,
)
from launchpad.chain.registry import collaborator_registry

__all__ = [
    "Delegation",
    "FungibleToken",
    "NonFungibleToken",
    "PriceOracle",
    "StakingModule",
    "TokenMetadata",
    "TxReceipt",
    "collaborator_registry",
]
