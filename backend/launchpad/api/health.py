from fastapi import APIRouter
from datetime import datetime, timezone
from tortoise import connections

from launchpad.chain import collaborator_registry
from launchpad.models.outbox import MessageStatus, OutboundMessage

router = APIRouter(tags=["health"])


@router.get("/health", summary="Health check")
async def health_check():
    """Liveness plus the names of the registered collaborators."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "collaborators": sorted(collaborator_registry.all()),
    }


@router.get("/ready", summary="Readiness check")
async def readiness_check():
    """
    Database and collaborator reachability, plus the outbox backlog.

    Failed outbound messages need an operator; they mark the service
    degraded until resolved.
    """
    checks = {}
    outbox = None

    try:
        await connections.get("default").execute_query("SELECT 1")
        outbox = {
            "pending": await OutboundMessage.filter(status=MessageStatus.PENDING).count(),
            "failed": await OutboundMessage.filter(status=MessageStatus.FAILED).count(),
        }
        checks["database"] = True
        checks["outbox"] = outbox["failed"] == 0
    except Exception:
        checks["database"] = False

    for name, collaborator in collaborator_registry.all().items():
        try:
            checks[name] = await collaborator.is_connected()
        except Exception:
            checks[name] = False

    return {
        "status": "ready" if all(checks.values()) else "degraded",
        "checks": checks,
        "outbox": outbox,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
