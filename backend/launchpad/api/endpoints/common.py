import time
from typing import Iterable

from fastapi import Depends, Header

from launchpad.core.context import AdminConfig, CallContext, Coin
from launchpad.schemas.common import CoinSchema
from launchpad.services.sale_registry import sale_registry
from launchpad.services.tier_ledger import tier_ledger


def get_block_time() -> int:
    """Caller-visible current time in unix seconds."""
    return int(time.time())


async def get_sender(x_sender: str = Header(..., min_length=1)) -> str:
    """Caller address, authenticated by the gateway in front of the API."""
    return x_sender.strip()


async def get_tier_admin() -> AdminConfig:
    return await tier_ledger.load_admin()


async def get_registry_admin() -> AdminConfig:
    return await sale_registry.load_admin()


def build_context(sender: str, now: int, funds: Iterable[CoinSchema] = ()) -> CallContext:
    return CallContext.build(sender, now, (Coin(c.denom, c.amount) for c in funds))


class Caller:
    """Sender plus block time, resolved per request."""

    def __init__(
        self,
        sender: str = Depends(get_sender),
        now: int = Depends(get_block_time),
    ):
        self.sender = sender
        self.now = now

    def context(self, funds: Iterable[CoinSchema] = ()) -> CallContext:
        return build_context(self.sender, self.now, funds)
