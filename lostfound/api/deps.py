from fastapi import HTTPException, Request, status

from lostfound.core.workflow.service import WorkflowService


def get_workflow_service(request: Request) -> WorkflowService:
    """Workflow service dependency."""
    service = getattr(request.app.state, "workflow_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Workflow service not initialised",
        )
    return service
