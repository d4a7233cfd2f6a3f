from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, Query

from launchpad.core.context import AdminConfig
from launchpad.models.ido import SaleEvent
from launchpad.schemas.common import AdminConfigResponse, ChangeAdminRequest, ChangeStatusRequest
from launchpad.schemas.ido import (
    OwnedSalesResponse,
    RegistryConfigResponse,
    SaleCountResponse,
    SaleResponse,
    SettlementResponse,
    StartSaleRequest,
)
from launchpad.services.sale_registry import PaymentMethod, SaleConfig, sale_registry

from .common import Caller, get_block_time, get_registry_admin

router = APIRouter()


def sale_response(sale: SaleEvent, now: int) -> SaleResponse:
    return SaleResponse(
        id=sale.id,
        owner=sale.owner,
        start_time=sale.start_time,
        end_time=sale.end_time,
        price=sale.price,
        token_contract=sale.token_contract,
        payment_kind=sale.payment_kind,
        payment_token=sale.payment_token,
        total_amount=sale.total_amount,
        allocation_mode=sale.allocation_mode,
        tokens_per_tier=sale.tokens_per_tier,
        remaining_per_tier=sale.remaining_per_tier,
        unlock_anchor=sale.unlock_anchor,
        whitelist_mode=sale.whitelist_mode,
        sold_amount=sale.sold_amount,
        total_payment=sale.total_payment,
        participants=sale.participants,
        withdrawn=sale.withdrawn,
        is_active=sale.is_active(now),
    )


@router.get("/config", response_model=RegistryConfigResponse, summary="Get registry configuration")
async def get_config() -> RegistryConfigResponse:
    config = await sale_registry.get_config()
    return RegistryConfigResponse(
        admin=config.admin,
        status=config.status,
        max_payments=config.max_payments,
        lock_periods=config.lock_periods,
        unlock_anchor=config.unlock_anchor,
        native_denom=config.native_denom,
    )


@router.get("/sales", response_model=SaleCountResponse, summary="Count sales")
async def get_sale_amount() -> SaleCountResponse:
    return SaleCountResponse(amount=await sale_registry.sale_amount())


@router.get("/sales/{sale_id}", response_model=SaleResponse, summary="Get sale info")
async def get_sale(sale_id: int, now: int = Depends(get_block_time)) -> SaleResponse:
    sale = await sale_registry.sale_info(sale_id)
    return sale_response(sale, now)


@router.get(
    "/owners/{owner}/sales",
    response_model=OwnedSalesResponse,
    summary="List sales owned by an address",
)
async def get_owned_sales(
    owner: str,
    start: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, gt=0),
) -> OwnedSalesResponse:
    total, ids = await sale_registry.sale_list_owned_by(owner, start, limit)
    return OwnedSalesResponse(amount=total, ids=ids)


@router.post("/sales", response_model=SaleResponse, summary="Start a sale")
async def start_sale(
    request: StartSaleRequest,
    caller: Caller = Depends(),
    admin: AdminConfig = Depends(get_registry_admin),
) -> SaleResponse:
    config = SaleConfig(
        start_time=request.start_time,
        end_time=request.end_time,
        price=request.price,
        total_amount=request.total_amount,
        token_contract=request.token_contract,
        payment=PaymentMethod(request.payment.kind, request.payment.contract),
        tokens_per_tier=request.tokens_per_tier,
        whitelist_mode=request.whitelist_mode,
        whitelist=request.whitelist,
        unlock_anchor=request.unlock_anchor,
    )
    sale = await sale_registry.start_sale(caller.context(), admin, config)
    return sale_response(sale, caller.now)


@router.post(
    "/sales/{sale_id}/withdraw",
    response_model=SettlementResponse,
    summary="Settle a finished sale (owner)",
)
async def withdraw(
    sale_id: int,
    caller: Caller = Depends(),
    admin: AdminConfig = Depends(get_registry_admin),
) -> SettlementResponse:
    settlement = await sale_registry.withdraw(caller.context(), admin, sale_id)
    return SettlementResponse(**asdict(settlement))


@router.post("/status", response_model=AdminConfigResponse, summary="Change status (admin)")
async def change_status(
    request: ChangeStatusRequest,
    caller: Caller = Depends(),
    admin: AdminConfig = Depends(get_registry_admin),
) -> AdminConfigResponse:
    await sale_registry.change_status(caller.context(), admin, request.status)
    updated = await sale_registry.load_admin()
    return AdminConfigResponse(admin=updated.admin, status=updated.status)


@router.post("/admin", response_model=AdminConfigResponse, summary="Change admin (admin)")
async def change_admin(
    request: ChangeAdminRequest,
    caller: Caller = Depends(),
    admin: AdminConfig = Depends(get_registry_admin),
) -> AdminConfigResponse:
    await sale_registry.change_admin(caller.context(), admin, request.admin)
    updated = await sale_registry.load_admin()
    return AdminConfigResponse(admin=updated.admin, status=updated.status)
