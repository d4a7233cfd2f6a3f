from pydantic import BaseModel, Field
from typing import Optional

from launchpad.core.context import ContractStatus


class CoinSchema(BaseModel):
    """Funds attached to a call."""
    denom: str = Field(..., description="Currency denomination, e.g. uscrt")
    amount: int = Field(..., ge=0, description="Amount in smallest units")


class FundedRequest(BaseModel):
    """Base of requests that may carry attached funds."""
    funds: list[CoinSchema] = Field(default_factory=list, description="Attached funds")


class ChangeStatusRequest(BaseModel):
    status: ContractStatus


class ChangeAdminRequest(BaseModel):
    admin: str = Field(..., min_length=1, description="Address of the new admin")


class AdminConfigResponse(BaseModel):
    admin: str
    status: ContractStatus


class PageResponse(BaseModel):
    """Total item count of a paged query."""
    amount: int = Field(..., description="Total number of items, not only this page")


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    retryable: bool = False
