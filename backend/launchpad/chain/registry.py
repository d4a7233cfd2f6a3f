"""
Collaborator registry.

Central place where the external contract clients are registered at startup
and looked up by the ledgers. Tests register in-memory fakes instead.
"""

import logging
from typing import Dict, Optional

from launchpad.chain.base import (
    Collaborator,
    FungibleToken,
    NonFungibleToken,
    PriceOracle,
    StakingModule,
)
from launchpad.core.exceptions import CollaboratorNotConfigured, UnresolvableAsset

logger = logging.getLogger(__name__)


class CollaboratorRegistry:
    """
    Registry of collaborator implementations.

    Usage:
        registry.register_oracle(HttpPriceOracle(...))
        registry.register_token(HttpFungibleToken("secret1..."))

        oracle = registry.get_oracle()
        token = registry.get_token("secret1...")
    """

    def __init__(self):
        self._oracle: Optional[PriceOracle] = None
        self._staking: Optional[StakingModule] = None
        self._nft: Optional[NonFungibleToken] = None
        self._tokens: Dict[str, FungibleToken] = {}

    def register_oracle(self, oracle: PriceOracle) -> None:
        self._oracle = oracle

    def register_staking(self, staking: StakingModule) -> None:
        self._staking = staking

    def register_nft(self, nft: NonFungibleToken) -> None:
        self._nft = nft

    def register_token(self, token: FungibleToken) -> None:
        self._tokens[token.contract] = token

    def has_nft(self) -> bool:
        return self._nft is not None

    def has_token(self, contract: str) -> bool:
        return contract in self._tokens

    def get_oracle(self) -> PriceOracle:
        if self._oracle is None:
            raise CollaboratorNotConfigured("Price oracle is not registered")
        return self._oracle

    def get_staking(self) -> StakingModule:
        if self._staking is None:
            raise CollaboratorNotConfigured("Staking module is not registered")
        return self._staking

    def get_nft(self) -> NonFungibleToken:
        if self._nft is None:
            raise CollaboratorNotConfigured("NFT collection is not registered")
        return self._nft

    def get_token(self, contract: str) -> FungibleToken:
        """Get the client of a fungible token contract."""
        token = self._tokens.get(contract)
        if token is None:
            raise UnresolvableAsset(f"Token contract {contract} is not registered")
        return token

    def all(self) -> Dict[str, Collaborator]:
        """Registered collaborators by name, for health checks."""
        named: Dict[str, Collaborator] = {}
        if self._oracle is not None:
            named["oracle"] = self._oracle
        if self._staking is not None:
            named["staking"] = self._staking
        if self._nft is not None:
            named["nft"] = self._nft
        for contract, token in self._tokens.items():
            named[f"token:{contract}"] = token
        return named

    def clear(self) -> None:
        self._oracle = None
        self._staking = None
        self._nft = None
        self._tokens = {}

    async def close_all(self) -> None:
        """Close every registered client."""
        for name, collaborator in self.all().items():
            try:
                await collaborator.close()
            except Exception as e:
                logger.warning(f"registry: failed to close {name}: {e}")


# Global registry instance
collaborator_registry = CollaboratorRegistry()


def register_collaborators() -> None:
    """
    Register the gateway-backed collaborators configured in settings.

    This function is called during application startup.
    """
    from launchpad.core.config import settings
    from launchpad.chain.clients.gateway import (
        HttpFungibleToken,
        HttpNonFungibleToken,
        HttpPriceOracle,
        HttpStakingModule,
    )

    collaborator_registry.register_oracle(HttpPriceOracle(settings.resolved_oracle_url))
    collaborator_registry.register_staking(HttpStakingModule(settings.gateway_url))
    if settings.nft_contract:
        collaborator_registry.register_nft(
            HttpNonFungibleToken(settings.gateway_url, settings.nft_contract)
        )
    for contract in settings.token_contracts_list:
        collaborator_registry.register_token(HttpFungibleToken(settings.gateway_url, contract))
    logger.info(
        f"registry: registered {len(collaborator_registry.all())} collaborators "
        f"via {settings.gateway_url}"
    )
