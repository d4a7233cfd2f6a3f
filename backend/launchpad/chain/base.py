"""
Abstract base classes for the external contracts the ledgers talk to.

The ledgers only depend on these interfaces. To talk to a new network or a
different gateway:
1. Implement the abstract classes defined here (see chain/clients/)
2. Register the instances in the collaborator registry
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class TokenMetadata:
    """Public and private metadata of one NFT, as returned by the collection."""
    token_id: str
    public: Optional[Dict[str, Any]] = None
    private: Optional[Dict[str, Any]] = None


@dataclass
class Delegation:
    """State of the ledger's delegation to one validator."""
    validator: str
    amount: int
    can_redelegate: int
    accumulated_rewards: int = 0


@dataclass
class TxReceipt:
    """Result of a message sent on chain."""
    tx_hash: str
    extra_data: Dict[str, Any] = field(default_factory=dict)


class Collaborator(ABC):
    """Anything the registry can health-check and close."""

    async def is_connected(self) -> bool:
        return True

    async def close(self) -> None:
        pass


class PriceOracle(Collaborator):
    """Reference price feed."""

    @abstractmethod
    async def rate(self, base_symbol: str, quote_symbol: str) -> int:
        """Quote units per base unit, scaled by ONE_USD."""
        pass


class FungibleToken(Collaborator):
    """Fungible token contract (sale token or payment token)."""

    @property
    @abstractmethod
    def contract(self) -> str:
        """Contract address."""
        pass

    @abstractmethod
    async def transfer(self, recipient: str, amount: int) -> TxReceipt:
        """Send tokens held by the ledger to ``recipient``."""
        pass

    @abstractmethod
    async def transfer_from(self, owner: str, recipient: str, amount: int) -> TxReceipt:
        """Pull ``amount`` from ``owner`` using the allowance it granted."""
        pass

    @abstractmethod
    async def balance_of(self, address: str, viewing_key: str) -> int:
        pass


class NonFungibleToken(Collaborator):
    """NFT collection whose metadata may carry a tier attribute."""

    @abstractmethod
    async def owner_of(self, token_id: str, viewer: str, viewing_key: str) -> Optional[str]:
        """Current owner, or None when the viewer is not allowed to see it."""
        pass

    @abstractmethod
    async def metadata_of(self, token_id: str, viewer: str, viewing_key: str) -> TokenMetadata:
        pass


class StakingModule(Collaborator):
    """Native staking and bank module of the chain."""

    @abstractmethod
    async def delegation(self, delegator: str, validator: str) -> Optional[Delegation]:
        pass

    @abstractmethod
    async def delegate(self, validator: str, amount: int, denom: str) -> TxReceipt:
        pass

    @abstractmethod
    async def undelegate(self, validator: str, amount: int, denom: str) -> TxReceipt:
        pass

    @abstractmethod
    async def redelegate(self, src_validator: str, dst_validator: str, amount: int, denom: str) -> TxReceipt:
        pass

    @abstractmethod
    async def withdraw_rewards(self, validator: str, recipient: str) -> TxReceipt:
        pass

    @abstractmethod
    async def send(self, recipient: str, amount: int, denom: str) -> TxReceipt:
        pass
