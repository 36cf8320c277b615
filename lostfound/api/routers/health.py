"""Health check endpoints.

Provides container-style health probes:
- /health: Basic health check
- /health/live: Liveness probe (is the app running?)
- /health/ready: Readiness probe (can the workflow serve requests?)

Checks:
- Request storage reachability
- Approver directory contents
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from lostfound import __version__
from lostfound.api.deps import get_workflow_service
from lostfound.core.clock import utcnow
from lostfound.core.workflow.service import WorkflowService

router = APIRouter(tags=["health"])


def check_storage(service: WorkflowService) -> Dict[str, Any]:
    """Check that the request store answers queries."""
    try:
        stats = service.get_statistics()
        return {"status": "healthy", "requests": stats.total}
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}


def check_directory(service: WorkflowService) -> Dict[str, Any]:
    """Check that at least one active approver is registered."""
    try:
        active = [a for a in service.routing.directory.find_all() if a.active]
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}

    if not active:
        return {"status": "unhealthy", "error": "No active approvers registered"}
    return {"status": "healthy", "active_approvers": len(active)}


@router.get("/health")
def health_check():
    """
    Basic health check endpoint.

    Returns 200 if the application is running.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": utcnow().isoformat(),
    }


@router.get("/health/live")
def liveness_probe():
    """Liveness probe; does not touch storage."""
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={
            "status": "alive",
            "timestamp": utcnow().isoformat(),
        },
    )


@router.get("/health/ready")
def readiness_probe(service: WorkflowService = Depends(get_workflow_service)):
    """
    Readiness probe.

    Returns 503 when storage is unreachable or no approver can be routed to.
    """
    checks = {
        "storage": check_storage(service),
        "directory": check_directory(service),
    }

    unhealthy = [name for name, check in checks.items() if check["status"] == "unhealthy"]

    if unhealthy:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "checks": checks,
                "failed": unhealthy,
                "timestamp": utcnow().isoformat(),
            },
        )

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={
            "status": "ready",
            "checks": checks,
            "timestamp": utcnow().isoformat(),
        },
    )
