"""In-memory fakes of the external contracts plus shared test constants."""

from dataclasses import dataclass, field
from typing import Optional

from launchpad.chain.base import (
    Delegation,
    FungibleToken,
    NonFungibleToken,
    PriceOracle,
    StakingModule,
    TokenMetadata,
    TxReceipt,
)
from launchpad.core.constants import ONE_USD
from launchpad.core.context import CallContext, Coin
from launchpad.core.exceptions import CollaboratorError

ADMIN = "admin"
DENOM = "uscrt"
VALIDATOR = "validator-1"
SALE_TOKEN = "sale-token"
PAY_TOKEN = "pay-token"
THRESHOLDS = [1000, 500, 200, 100]
TIER_LOCKS = [30, 40, 50, 60]
MAX_PAYMENTS = [10000, 5000, 3000, 2000, 1000]
SALE_LOCKS = [100, 200, 300, 400, 500]

# ── Fake collaborators ─────────────────────────────────────────

class FakeOracle(PriceOracle):
    def __init__(self, rate: int = ONE_USD):
        self.value = rate
        self.fail = False

    async def rate(self, base_symbol: str, quote_symbol: str) -> int:
        if self.fail:
            raise CollaboratorError("oracle down")
        return self.value

class FakeToken(FungibleToken):
    def __init__(self, contract: str):
        self._contract = contract
        self.pulls: list[tuple[str, str, int]] = []
        self.transfers: list[tuple[str, int]] = []
        self.fail = False

    @property
    def contract(self) -> str:
        return self._contract

    async def transfer(self, recipient: str, amount: int) -> TxReceipt:
        self.transfers.append((recipient, amount))
        return TxReceipt(tx_hash=f"tx-{len(self.transfers)}")

    async def transfer_from(self, owner: str, recipient: str, amount: int) -> TxReceipt:
        if self.fail:
            raise CollaboratorError("insufficient allowance")
        self.pulls.append((owner, recipient, amount))
        return TxReceipt(tx_hash=f"pull-{len(self.pulls)}")

    async def balance_of(self, address: str, viewing_key: str) -> int:
        return 0

class FakeNft(NonFungibleToken):
    def __init__(self):
        self.owners: dict[str, str] = {}
        self.metadata: dict[str, TokenMetadata] = {}

    def mint(self, token_id: str, owner: str, public: Optional[dict] = None, private: Optional[dict] = None):
        self.owners[token_id] = owner
        self.metadata[token_id] = TokenMetadata(token_id=token_id, public=public, private=private)

    async def owner_of(self, token_id: str, viewer: str, viewing_key: str) -> Optional[str]:
        return self.owners.get(token_id)

    async def metadata_of(self, token_id: str, viewer: str, viewing_key: str) -> TokenMetadata:
        return self.metadata.get(token_id, TokenMetadata(token_id=token_id))

class FakeStaking(StakingModule):
    def __init__(self):
        self.delegations: dict[str, Delegation] = {}
        self.sent: list[tuple[str, tuple]] = []
        self.fail = False

    def _record(self, name: str, *args) -> TxReceipt:
        if self.fail:
            raise CollaboratorError("node unavailable")
        self.sent.append((name, args))
        return TxReceipt(tx_hash=f"{name}-{len(self.sent)}")

    async def delegation(self, delegator: str, validator: str) -> Optional[Delegation]:
        return self.delegations.get(validator)

    async def delegate(self, validator, amount, denom):
        return self._record("delegate", validator, amount, denom)

    async def undelegate(self, validator, amount, denom):
        return self._record("undelegate", validator, amount, denom)

    async def redelegate(self, src_validator, dst_validator, amount, denom):
        return self._record("redelegate", src_validator, dst_validator, amount, denom)

    async def withdraw_rewards(self, validator, recipient):
        return self._record("withdraw_rewards", validator, recipient)

    async def send(self, recipient, amount, denom):
        return self._record("send", recipient, amount, denom)

@dataclass
class Fakes:
    oracle: FakeOracle = field(default_factory=FakeOracle)
    staking: FakeStaking = field(default_factory=FakeStaking)
    nft: FakeNft = field(default_factory=FakeNft)
    sale_token: FakeToken = field(default_factory=lambda: FakeToken(SALE_TOKEN))
    pay_token: FakeToken = field(default_factory=lambda: FakeToken(PAY_TOKEN))

def make_ctx(sender: str, now: int = 0, funds: int = 0, denom: str = DENOM) -> CallContext:
    coins = [Coin(denom, funds)] if funds else []
    return CallContext.build(sender, now, coins)


OWNER = "owner"
SALE_START = 10
SALE_END = 1000
PRICE = 10


async def start_sale(owner: str = OWNER, now: int = 0, **overrides):
    """Start a sale of SALE_TOKEN open to everyone unless overridden."""
    from launchpad.models.ido import WhitelistMode
    from launchpad.services.sale_registry import SaleConfig, sale_registry

    params = dict(
        start_time=SALE_START,
        end_time=SALE_END,
        price=PRICE,
        total_amount=100_000,
        token_contract=SALE_TOKEN,
        whitelist_mode=WhitelistMode.OPEN,
    )
    params.update(overrides)
    admin = await sale_registry.load_admin()
    return await sale_registry.start_sale(make_ctx(owner, now), admin, SaleConfig(**params))
