import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from tortoise.contrib.fastapi import register_tortoise

from launchpad.core.config import settings
from launchpad.core.exceptions import LaunchpadError
from launchpad.api import health, router as api_router
from launchpad.chain.registry import collaborator_registry, register_collaborators
from launchpad.schemas.common import ErrorResponse
from launchpad.workers.dispatcher import outbox_dispatch_loop

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    register_collaborators()
    worker_task = None
    if settings.dispatcher_enabled:
        worker_task = asyncio.create_task(outbox_dispatch_loop())
        logger.info("Started outbox dispatcher worker")
    yield
    # Shutdown - cancel worker and close connections
    if worker_task is not None:
        worker_task.cancel()
        try:
            await worker_task
        except asyncio.CancelledError:
            pass
    await collaborator_registry.close_all()


app = FastAPI(
    title=settings.app_name,
    description="""
    Launchpad API: tier-gated, vesting token sales

    This API provides endpoints for:
    - Locking collateral in the tier ledger and withdrawing it after unbonding
    - Starting sales, managing whitelists and settling finished sales
    - Buying within the per-tier payment cap and receiving vested tokens

    ## Call context

    Mutating endpoints read the caller address from the `X-Sender` header
    (authenticated by the gateway) and attached funds from the `funds` field
    of the body. Value transfers are queued and delivered by the dispatcher.
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LaunchpadError)
async def launchpad_error_handler(request: Request, exc: LaunchpadError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.kind}: {exc.message}")
    body = ErrorResponse(error=exc.kind, detail=exc.message, retryable=exc.retryable)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


# Include routers
app.include_router(health.router)
app.include_router(api_router.router, prefix=settings.api_v1_prefix)


@app.get("/", tags=["root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "api": [f"{settings.api_v1_prefix}/tier", f"{settings.api_v1_prefix}/ido"],
    }


# Register Tortoise ORM with FastAPI
register_tortoise(
    app,
    config=settings.tortoise_config,
    generate_schemas=False,
    add_exception_handlers=True,
)
