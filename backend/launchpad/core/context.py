"""
Per-call context and explicit admin configuration.

Every mutating ledger operation receives the caller, the caller-visible
current time and the funds attached to the call as a ``CallContext``, and the
contract's admin/status as an ``AdminConfig``. Nothing reads them from
ambient global state.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from launchpad.core.exceptions import (
    ContractStopped,
    InvalidConfig,
    Unauthorized,
    UnsupportedDenom,
)


class ContractStatus(str, Enum):
    ACTIVE = "active"
    STOPPED = "stopped"


@dataclass(frozen=True, slots=True)
class Coin:
    denom: str
    amount: int


@dataclass(frozen=True)
class CallContext:
    sender: str
    now: int
    funds: tuple[Coin, ...] = field(default_factory=tuple)

    @classmethod
    def build(cls, sender: str, now: int, funds: Iterable[Coin] = ()) -> "CallContext":
        return cls(sender=sender, now=now, funds=tuple(funds))

    def attached(self, denom: str) -> int:
        """
        Sum of the attached funds, all of which must be in ``denom``.

        Raises UnsupportedDenom if any coin has another denomination.
        """
        total = 0
        for coin in self.funds:
            if coin.denom != denom:
                raise UnsupportedDenom(f"Only {denom} is accepted, got {coin.denom}")
            if coin.amount < 0:
                raise InvalidConfig("Attached amount cannot be negative")
            total += coin.amount
        return total


@dataclass(frozen=True)
class AdminConfig:
    admin: str
    status: ContractStatus = ContractStatus.ACTIVE

    def assert_admin(self, ctx: CallContext) -> None:
        if ctx.sender != self.admin:
            raise Unauthorized()

    def assert_active(self) -> None:
        if self.status != ContractStatus.ACTIVE:
            raise ContractStopped()
