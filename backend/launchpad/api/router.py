from fastapi import APIRouter

from launchpad.api.endpoints.purchases import router as purchases_router
from launchpad.api.endpoints.sales import router as sales_router
from launchpad.api.endpoints.tier import router as tier_router
from launchpad.api.endpoints.whitelist import router as whitelist_router

ido_router = APIRouter(prefix="/ido", tags=["ido"])

ido_router.include_router(sales_router)
ido_router.include_router(whitelist_router)
ido_router.include_router(purchases_router)

router = APIRouter()

router.include_router(tier_router)
router.include_router(ido_router)
