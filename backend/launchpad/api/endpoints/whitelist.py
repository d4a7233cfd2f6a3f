from typing import Optional

from fastapi import APIRouter, Depends, Query

from launchpad.core.context import AdminConfig
from launchpad.schemas.ido import (
    InWhitelistResponse,
    WhitelistChangeResponse,
    WhitelistRequest,
    WhitelistResponse,
)
from launchpad.services.eligibility import eligibility_gate

from .common import Caller, get_registry_admin

router = APIRouter()


@router.post("/whitelist/add", response_model=WhitelistChangeResponse, summary="Add to a whitelist")
async def add_to_whitelist(
    request: WhitelistRequest,
    caller: Caller = Depends(),
    admin: AdminConfig = Depends(get_registry_admin),
) -> WhitelistChangeResponse:
    changed = await eligibility_gate.add_to_whitelist(
        caller.context(), admin, request.sale_id, request.addresses
    )
    return WhitelistChangeResponse(changed=changed)


@router.post(
    "/whitelist/remove",
    response_model=WhitelistChangeResponse,
    summary="Remove from a whitelist",
)
async def remove_from_whitelist(
    request: WhitelistRequest,
    caller: Caller = Depends(),
    admin: AdminConfig = Depends(get_registry_admin),
) -> WhitelistChangeResponse:
    changed = await eligibility_gate.remove_from_whitelist(
        caller.context(), admin, request.sale_id, request.addresses
    )
    return WhitelistChangeResponse(changed=changed)


@router.get("/whitelist", response_model=WhitelistResponse, summary="List a whitelist")
async def get_whitelist(
    sale_id: Optional[int] = Query(None, description="Omit for the shared whitelist"),
    start: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, gt=0),
) -> WhitelistResponse:
    total, addresses = await eligibility_gate.whitelist(sale_id, start, limit)
    return WhitelistResponse(amount=total, addresses=addresses)


@router.get(
    "/sales/{sale_id}/whitelist/{address}",
    response_model=InWhitelistResponse,
    summary="Check sale eligibility",
)
async def in_whitelist(sale_id: int, address: str) -> InWhitelistResponse:
    eligible = await eligibility_gate.in_whitelist(address, sale_id)
    return InWhitelistResponse(sale_id=sale_id, address=address, in_whitelist=eligible)
