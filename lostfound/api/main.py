import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lostfound import __version__
from lostfound.api.routers import health, work_requests
from lostfound.api.schemas.common import ErrorResponse
from lostfound.common.logger import setup_logger
from lostfound.core.config import Settings, get_settings
from lostfound.core.workflow.errors import (
    InvalidApproverError,
    InvalidStateError,
    NoApproverAvailableError,
    RequestNotFoundError,
    UnauthorizedError,
    ValidationError,
    WorkflowError,
)
from lostfound.core.workflow.service import WorkflowService

logger = logging.getLogger(__name__)

# Error type -> (HTTP status, error code)
ERROR_STATUS = {
    ValidationError: (status.HTTP_422_UNPROCESSABLE_ENTITY, "validation_error"),
    InvalidStateError: (status.HTTP_409_CONFLICT, "invalid_state"),
    InvalidApproverError: (status.HTTP_403_FORBIDDEN, "invalid_approver"),
    UnauthorizedError: (status.HTTP_403_FORBIDDEN, "unauthorized"),
    NoApproverAvailableError: (status.HTTP_503_SERVICE_UNAVAILABLE, "no_approver_available"),
    RequestNotFoundError: (status.HTTP_404_NOT_FOUND, "not_found"),
}


async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    status_code, code = status.HTTP_400_BAD_REQUEST, "workflow_error"
    for error_type, mapped in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            status_code, code = mapped
            break

    data = None
    if isinstance(exc, NoApproverAvailableError):
        data = {
            "request_id": exc.request_id,
            "role": exc.role.value,
            "organization_id": exc.organization_id,
        }

    logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    body = ErrorResponse(error=type(exc).__name__, detail=str(exc), code=code, data=data)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def create_app(
    service: Optional[WorkflowService] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        service: Workflow service to expose; built from settings if omitted
        settings: Defaults to the environment-driven settings
    """
    settings = settings or get_settings()
    setup_logger(settings)

    if service is None:
        from lostfound.services.bootstrap import build_workflow_service
        service = build_workflow_service(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Approval workflow for lost and found items",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.workflow_service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(WorkflowError, workflow_error_handler)

    app.include_router(health.router)
    app.include_router(work_requests.router, prefix="/api")

    @app.get("/")
    def root():
        return {
            "name": settings.app_name,
            "version": __version__,
            "docs": "/docs" if settings.debug else None,
        }

    return app
