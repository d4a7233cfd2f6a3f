from pydantic import BaseModel, Field, model_validator
from typing import Optional

from launchpad.core.context import ContractStatus
from launchpad.models.ido import AllocationMode, PaymentKind, UnlockAnchor, WhitelistMode
from launchpad.schemas.common import FundedRequest, PageResponse


class RegistryConfigResponse(BaseModel):
    admin: str
    status: ContractStatus
    max_payments: list[int] = Field(..., description="Cumulative payment cap per tier, tier 1 first")
    lock_periods: list[int]
    unlock_anchor: UnlockAnchor
    native_denom: str


class PaymentMethodSchema(BaseModel):
    kind: PaymentKind = PaymentKind.NATIVE
    contract: Optional[str] = Field(None, description="Payment token contract (token payments only)")

    @model_validator(mode="after")
    def check_contract(self):
        if self.kind == PaymentKind.TOKEN and not self.contract:
            raise ValueError("contract is required for token payments")
        return self


class StartSaleRequest(BaseModel):
    start_time: int = Field(..., ge=0)
    end_time: int = Field(..., ge=0)
    price: int = Field(..., gt=0, description="Payment units per token")
    total_amount: int = Field(..., gt=0, description="Tokens offered")
    token_contract: str = Field(..., min_length=1)
    payment: PaymentMethodSchema = Field(default_factory=PaymentMethodSchema)
    tokens_per_tier: Optional[list[int]] = Field(None, description="Per-tier allocation, tier 1 first")
    whitelist_mode: WhitelistMode = WhitelistMode.PRIVATE
    whitelist: list[str] = Field(default_factory=list)
    unlock_anchor: Optional[UnlockAnchor] = None


class SaleResponse(BaseModel):
    id: int
    owner: str
    start_time: int
    end_time: int
    price: int
    token_contract: str
    payment_kind: PaymentKind
    payment_token: Optional[str] = None
    total_amount: int
    allocation_mode: AllocationMode
    tokens_per_tier: Optional[list[int]] = None
    remaining_per_tier: Optional[list[int]] = None
    unlock_anchor: UnlockAnchor
    whitelist_mode: WhitelistMode
    sold_amount: int
    total_payment: int
    participants: int
    withdrawn: bool
    is_active: bool


class SaleCountResponse(PageResponse):
    pass


class OwnedSalesResponse(PageResponse):
    ids: list[int]


class SettlementResponse(BaseModel):
    sale_id: int
    unsold_tokens: int
    payment: int


class WhitelistRequest(BaseModel):
    sale_id: Optional[int] = Field(None, description="Omit to target the shared whitelist")
    addresses: list[str] = Field(..., min_length=1)


class WhitelistChangeResponse(BaseModel):
    changed: int


class WhitelistResponse(PageResponse):
    addresses: list[str]


class InWhitelistResponse(BaseModel):
    sale_id: int
    address: str
    in_whitelist: bool


class NftProofSchema(BaseModel):
    token_id: str
    viewing_key: str


class BuyRequest(FundedRequest):
    amount: Optional[int] = Field(
        None, ge=0, description="Payment amount; required for token sales, must match funds for native ones"
    )
    nft: Optional[NftProofSchema] = None


class BuyResponse(BaseModel):
    sale_id: int
    seq: int
    tier: int
    payment: int
    tokens: int
    unlock_time: int


class RecvRequest(BaseModel):
    start: int = Field(0, ge=0)
    limit: Optional[int] = Field(None, gt=0)
    purchase_seqs: Optional[list[int]] = None


class RecvResponse(BaseModel):
    sale_id: int
    amount: int
    records: int


class PurchaseResponse(BaseModel):
    seq: int
    tier: int
    payment_amount: int
    tokens_amount: int
    timestamp: int
    unlock_time: int


class PurchasesResponse(PageResponse):
    purchases: list[PurchaseResponse]


class ArchivedPurchaseResponse(PurchaseResponse):
    archive_seq: int
    received_at: int


class ArchivedPurchasesResponse(PageResponse):
    purchases: list[ArchivedPurchaseResponse]


class UserTotalsResponse(BaseModel):
    address: str
    sale_id: Optional[int] = None
    total_payment: int
    total_tokens_bought: int
    total_tokens_received: int
