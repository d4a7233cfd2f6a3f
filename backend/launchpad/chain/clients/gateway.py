"""
Chain gateway clients.

The gateway exposes the external contracts (oracle, tokens, NFT collection,
staking and bank modules) as a small REST API and signs outgoing messages
with the custody key. Amounts travel as decimal strings since they do not
fit in a JSON double.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from launchpad.chain.base import (
    Delegation,
    FungibleToken,
    NonFungibleToken,
    PriceOracle,
    StakingModule,
    TokenMetadata,
    TxReceipt,
)
from launchpad.core.config import settings
from launchpad.core.exceptions import CollaboratorError, CollaboratorRejected

logger = logging.getLogger(__name__)


class GatewayClient:
    """Shared HTTP plumbing for the gateway-backed collaborators."""

    def __init__(self, base_url: str):
        self._base_url = base_url.rstrip("/")
        self._api_key = settings.gateway_api_key
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["x-api-key"] = self._api_key
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers,
                timeout=settings.gateway_timeout_seconds,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def is_connected(self) -> bool:
        try:
            await self._request("GET", "/status")
            return True
        except CollaboratorError:
            return False

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        client = self._get_client()
        try:
            resp = await client.request(method, path, params=params, json=json)
            if resp.status_code == 404:
                return None
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            code = e.response.status_code
            logger.warning(f"gateway: {method} {path} returned {code}")
            if 400 <= code < 500:
                raise CollaboratorRejected(f"{method} {path} rejected with {code}", code) from e
            raise CollaboratorError(f"{method} {path} failed: {e}") from e
        except httpx.HTTPError as e:
            logger.warning(f"gateway: {method} {path} failed: {e}")
            raise CollaboratorError(f"{method} {path} failed: {e}") from e
        except ValueError as e:
            raise CollaboratorError(f"{method} {path} returned invalid JSON") from e

    @staticmethod
    def _receipt(data: Optional[Dict[str, Any]]) -> TxReceipt:
        if not data or "tx_hash" not in data:
            raise CollaboratorError("Gateway did not return a transaction hash")
        extra = {k: v for k, v in data.items() if k != "tx_hash"}
        return TxReceipt(tx_hash=data["tx_hash"], extra_data=extra)


class HttpPriceOracle(GatewayClient, PriceOracle):
    """GET /oracle/reference-data (band-style reference price)."""

    async def rate(self, base_symbol: str, quote_symbol: str) -> int:
        data = await self._request(
            "GET",
            "/oracle/reference-data",
            params={"base": base_symbol, "quote": quote_symbol},
        )
        if not data or "rate" not in data:
            raise CollaboratorError(f"No reference data for {base_symbol}/{quote_symbol}")
        try:
            return int(data["rate"])
        except (TypeError, ValueError) as e:
            raise CollaboratorError(f"Malformed rate: {data['rate']!r}") from e


class HttpFungibleToken(GatewayClient, FungibleToken):
    def __init__(self, base_url: str, contract: str):
        super().__init__(base_url)
        self._contract = contract

    @property
    def contract(self) -> str:
        return self._contract

    async def transfer(self, recipient: str, amount: int) -> TxReceipt:
        """POST /tokens/{contract}/transfer"""
        data = await self._request(
            "POST",
            f"/tokens/{self._contract}/transfer",
            json={"recipient": recipient, "amount": str(amount)},
        )
        return self._receipt(data)

    async def transfer_from(self, owner: str, recipient: str, amount: int) -> TxReceipt:
        """POST /tokens/{contract}/transfer-from: spends the owner's allowance."""
        data = await self._request(
            "POST",
            f"/tokens/{self._contract}/transfer-from",
            json={"owner": owner, "recipient": recipient, "amount": str(amount)},
        )
        return self._receipt(data)

    async def balance_of(self, address: str, viewing_key: str) -> int:
        """GET /tokens/{contract}/balance/{address}"""
        data = await self._request(
            "GET",
            f"/tokens/{self._contract}/balance/{address}",
            params={"key": viewing_key},
        )
        if not data or "amount" not in data:
            raise CollaboratorError(f"Balance of {address} is not visible")
        return int(data["amount"])


class HttpNonFungibleToken(GatewayClient, NonFungibleToken):
    def __init__(self, base_url: str, contract: str):
        super().__init__(base_url)
        self._contract = contract

    async def owner_of(self, token_id: str, viewer: str, viewing_key: str) -> Optional[str]:
        """GET /nft/{contract}/tokens/{id}/owner; None when not visible."""
        data = await self._request(
            "GET",
            f"/nft/{self._contract}/tokens/{token_id}/owner",
            params={"viewer": viewer, "key": viewing_key},
        )
        if not data:
            return None
        return data.get("owner")

    async def metadata_of(self, token_id: str, viewer: str, viewing_key: str) -> TokenMetadata:
        """GET /nft/{contract}/tokens/{id}/metadata"""
        data = await self._request(
            "GET",
            f"/nft/{self._contract}/tokens/{token_id}/metadata",
            params={"viewer": viewer, "key": viewing_key},
        )
        data = data or {}
        return TokenMetadata(
            token_id=token_id,
            public=data.get("public"),
            private=data.get("private"),
        )


class HttpStakingModule(GatewayClient, StakingModule):
    async def delegation(self, delegator: str, validator: str) -> Optional[Delegation]:
        """GET /staking/delegations/{delegator}/{validator}"""
        data = await self._request("GET", f"/staking/delegations/{delegator}/{validator}")
        if not data:
            return None
        return Delegation(
            validator=data["validator"],
            amount=int(data["amount"]),
            can_redelegate=int(data["can_redelegate"]),
            accumulated_rewards=int(data.get("accumulated_rewards", 0)),
        )

    async def delegate(self, validator: str, amount: int, denom: str) -> TxReceipt:
        data = await self._request(
            "POST",
            "/staking/delegate",
            json={"validator": validator, "amount": str(amount), "denom": denom},
        )
        return self._receipt(data)

    async def undelegate(self, validator: str, amount: int, denom: str) -> TxReceipt:
        data = await self._request(
            "POST",
            "/staking/undelegate",
            json={"validator": validator, "amount": str(amount), "denom": denom},
        )
        return self._receipt(data)

    async def redelegate(self, src_validator: str, dst_validator: str, amount: int, denom: str) -> TxReceipt:
        data = await self._request(
            "POST",
            "/staking/redelegate",
            json={
                "src_validator": src_validator,
                "dst_validator": dst_validator,
                "amount": str(amount),
                "denom": denom,
            },
        )
        return self._receipt(data)

    async def withdraw_rewards(self, validator: str, recipient: str) -> TxReceipt:
        data = await self._request(
            "POST",
            "/distribution/withdraw-rewards",
            json={"validator": validator, "recipient": recipient},
        )
        return self._receipt(data)

    async def send(self, recipient: str, amount: int, denom: str) -> TxReceipt:
        data = await self._request(
            "POST",
            "/bank/send",
            json={"recipient": recipient, "amount": str(amount), "denom": denom},
        )
        return self._receipt(data)
