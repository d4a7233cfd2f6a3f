from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, Query

from launchpad.core.context import AdminConfig
from launchpad.schemas.ido import (
    ArchivedPurchaseResponse,
    ArchivedPurchasesResponse,
    BuyRequest,
    BuyResponse,
    PurchaseResponse,
    PurchasesResponse,
    RecvRequest,
    RecvResponse,
    UserTotalsResponse,
)
from launchpad.services.eligibility import NftProof
from launchpad.services.purchase_ledger import purchase_ledger

from .common import Caller, get_registry_admin

router = APIRouter()


@router.post("/sales/{sale_id}/buy", response_model=BuyResponse, summary="Buy sale tokens")
async def buy(
    sale_id: int,
    request: BuyRequest,
    caller: Caller = Depends(),
    admin: AdminConfig = Depends(get_registry_admin),
) -> BuyResponse:
    proof = NftProof(request.nft.token_id, request.nft.viewing_key) if request.nft else None
    result = await purchase_ledger.buy(
        caller.context(request.funds), admin, sale_id, request.amount, proof
    )
    return BuyResponse(**asdict(result))


@router.post("/sales/{sale_id}/recv", response_model=RecvResponse, summary="Receive unlocked tokens")
async def recv_tokens(
    sale_id: int,
    request: RecvRequest,
    caller: Caller = Depends(),
    admin: AdminConfig = Depends(get_registry_admin),
) -> RecvResponse:
    result = await purchase_ledger.recv_tokens(
        caller.context(), admin, sale_id, request.start, request.limit, request.purchase_seqs
    )
    return RecvResponse(**asdict(result))


@router.get(
    "/sales/{sale_id}/purchases/{address}",
    response_model=PurchasesResponse,
    summary="List live purchases",
)
async def get_purchases(
    sale_id: int,
    address: str,
    start: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, gt=0),
) -> PurchasesResponse:
    total, records = await purchase_ledger.purchases(address, sale_id, start, limit)
    return PurchasesResponse(
        amount=total,
        purchases=[
            PurchaseResponse(
                seq=r.seq,
                tier=r.tier,
                payment_amount=r.payment_amount,
                tokens_amount=r.tokens_amount,
                timestamp=r.timestamp,
                unlock_time=r.unlock_time,
            )
            for r in records
        ],
    )


@router.get(
    "/sales/{sale_id}/archived-purchases/{address}",
    response_model=ArchivedPurchasesResponse,
    summary="List received purchases",
)
async def get_archived_purchases(
    sale_id: int,
    address: str,
    start: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, gt=0),
) -> ArchivedPurchasesResponse:
    total, records = await purchase_ledger.archived_purchases(address, sale_id, start, limit)
    return ArchivedPurchasesResponse(
        amount=total,
        purchases=[
            ArchivedPurchaseResponse(
                seq=r.purchase_seq,
                archive_seq=r.archive_seq,
                tier=r.tier,
                payment_amount=r.payment_amount,
                tokens_amount=r.tokens_amount,
                timestamp=r.timestamp,
                unlock_time=r.unlock_time,
                received_at=r.received_at,
            )
            for r in records
        ],
    )


@router.get("/users/{address}", response_model=UserTotalsResponse, summary="Get participant totals")
async def get_user_info(
    address: str,
    sale_id: Optional[int] = Query(None, description="Omit for totals across all sales"),
) -> UserTotalsResponse:
    totals = await purchase_ledger.user_info(address, sale_id)
    return UserTotalsResponse(address=address, sale_id=sale_id, **asdict(totals))
