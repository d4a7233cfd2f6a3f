from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, Query

from launchpad.core.context import AdminConfig
from launchpad.schemas.common import AdminConfigResponse, ChangeAdminRequest, ChangeStatusRequest
from launchpad.schemas.tier import (
    ClaimRequest,
    ClaimResponse,
    DepositRequest,
    DepositResponse,
    RedelegateRequest,
    RedelegateResponse,
    TierConfigResponse,
    UserInfoResponse,
    WithdrawalResponse,
    WithdrawalsResponse,
    WithdrawRewardsRequest,
    WithdrawRewardsResponse,
)
from launchpad.services.tier_ledger import tier_ledger

from .common import Caller, get_tier_admin

router = APIRouter(prefix="/tier", tags=["tier"])


@router.get("/config", response_model=TierConfigResponse, summary="Get tier ledger configuration")
async def get_config() -> TierConfigResponse:
    config = await tier_ledger.get_config()
    return TierConfigResponse(
        admin=config.admin,
        status=config.status,
        kind=config.kind,
        excess_policy=config.excess_policy,
        collateral_denom=config.collateral_denom,
        validator=config.validator,
        thresholds=config.thresholds,
        lock_periods=config.lock_periods,
        unbonding_delay=config.unbonding_delay,
        total_delegated=config.total_delegated,
        total_collateral=config.total_collateral,
    )


@router.get("/users/{address}", response_model=UserInfoResponse, summary="Get participant stake")
async def get_user_info(address: str) -> UserInfoResponse:
    info = await tier_ledger.user_info(address)
    return UserInfoResponse(**asdict(info))


@router.get(
    "/users/{address}/withdrawals",
    response_model=WithdrawalsResponse,
    summary="List pending withdrawals",
)
async def get_withdrawals(
    address: str,
    start: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, gt=0),
) -> WithdrawalsResponse:
    total, records = await tier_ledger.withdrawals(address, start, limit)
    return WithdrawalsResponse(
        amount=total,
        withdrawals=[
            WithdrawalResponse(amount=r.amount, request_time=r.request_time, claim_time=r.claim_time)
            for r in records
        ],
    )


@router.post("/deposit", response_model=DepositResponse, summary="Deposit collateral")
async def deposit(
    request: DepositRequest,
    caller: Caller = Depends(),
    admin: AdminConfig = Depends(get_tier_admin),
) -> DepositResponse:
    result = await tier_ledger.deposit(caller.context(request.funds), admin)
    return DepositResponse(**asdict(result))


@router.post("/withdraw", response_model=WithdrawalResponse, summary="Withdraw the whole stake")
async def withdraw(
    caller: Caller = Depends(),
    admin: AdminConfig = Depends(get_tier_admin),
) -> WithdrawalResponse:
    record = await tier_ledger.withdraw(caller.context(), admin)
    return WithdrawalResponse(
        amount=record.amount, request_time=record.request_time, claim_time=record.claim_time
    )


@router.post("/claim", response_model=ClaimResponse, summary="Claim unbonded withdrawals")
async def claim(
    request: ClaimRequest,
    caller: Caller = Depends(),
    admin: AdminConfig = Depends(get_tier_admin),
) -> ClaimResponse:
    amount = await tier_ledger.claim(
        caller.context(), admin, request.recipient, request.start, request.limit
    )
    return ClaimResponse(amount=amount)


@router.post("/redelegate", response_model=RedelegateResponse, summary="Move delegation (admin)")
async def redelegate(
    request: RedelegateRequest,
    caller: Caller = Depends(),
    admin: AdminConfig = Depends(get_tier_admin),
) -> RedelegateResponse:
    amount = await tier_ledger.redelegate(caller.context(), admin, request.validator, request.recipient)
    return RedelegateResponse(validator=request.validator, amount=amount)


@router.post(
    "/withdraw-rewards",
    response_model=WithdrawRewardsResponse,
    summary="Withdraw staking rewards (admin)",
)
async def withdraw_rewards(
    request: WithdrawRewardsRequest,
    caller: Caller = Depends(),
    admin: AdminConfig = Depends(get_tier_admin),
) -> WithdrawRewardsResponse:
    amount = await tier_ledger.withdraw_rewards(caller.context(), admin, request.recipient)
    return WithdrawRewardsResponse(amount=amount)


@router.post("/status", response_model=AdminConfigResponse, summary="Change status (admin)")
async def change_status(
    request: ChangeStatusRequest,
    caller: Caller = Depends(),
    admin: AdminConfig = Depends(get_tier_admin),
) -> AdminConfigResponse:
    await tier_ledger.change_status(caller.context(), admin, request.status)
    updated = await tier_ledger.load_admin()
    return AdminConfigResponse(admin=updated.admin, status=updated.status)


@router.post("/admin", response_model=AdminConfigResponse, summary="Change admin (admin)")
async def change_admin(
    request: ChangeAdminRequest,
    caller: Caller = Depends(),
    admin: AdminConfig = Depends(get_tier_admin),
) -> AdminConfigResponse:
    await tier_ledger.change_admin(caller.context(), admin, request.admin)
    updated = await tier_ledger.load_admin()
    return AdminConfigResponse(admin=updated.admin, status=updated.status)
