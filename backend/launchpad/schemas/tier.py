from pydantic import BaseModel, Field
from typing import Optional

from launchpad.core.context import ContractStatus
from launchpad.models.tier import ExcessPolicy, LedgerKind
from launchpad.schemas.common import FundedRequest, PageResponse


class TierConfigResponse(BaseModel):
    """Current tier ledger configuration."""
    admin: str
    status: ContractStatus
    kind: LedgerKind
    excess_policy: ExcessPolicy
    collateral_denom: str
    validator: Optional[str] = None
    thresholds: list[int] = Field(..., description="Minimum credited deposit per tier, tier 1 first")
    lock_periods: list[int] = Field(..., description="Lock period in seconds per tier, tier 1 first")
    unbonding_delay: int
    total_delegated: int
    total_collateral: int


class DepositRequest(FundedRequest):
    """Deposit collateral; the amount is the attached funds."""


class DepositResponse(BaseModel):
    tier: int
    usd_deposit: int = Field(..., description="Credited value the tier is derived from")
    native_deposit: int = Field(..., description="Collateral held for the participant")
    accepted: int
    refund: int
    withdraw_time: int


class UserInfoResponse(BaseModel):
    address: str
    tier: int = Field(..., description="0 when the participant has no stake")
    usd_deposit: int
    native_deposit: int
    deposit_time: int
    withdraw_time: int


class WithdrawalResponse(BaseModel):
    amount: int
    request_time: int
    claim_time: int


class WithdrawalsResponse(PageResponse):
    withdrawals: list[WithdrawalResponse]


class ClaimRequest(BaseModel):
    recipient: Optional[str] = Field(None, description="Defaults to the caller")
    start: int = Field(0, ge=0)
    limit: Optional[int] = Field(None, gt=0)


class ClaimResponse(BaseModel):
    amount: int


class RedelegateRequest(BaseModel):
    validator: str = Field(..., min_length=1)
    recipient: Optional[str] = Field(None, description="Receives pending rewards; defaults to the caller")


class RedelegateResponse(BaseModel):
    validator: str
    amount: int


class WithdrawRewardsRequest(BaseModel):
    recipient: Optional[str] = None


class WithdrawRewardsResponse(BaseModel):
    amount: int
