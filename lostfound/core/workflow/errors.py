"""Errors raised by the approval workflow engine."""

from typing import Optional

from .states import RequestStatus, Role, Transition


class WorkflowError(Exception):
    """Base class for workflow errors."""


class ValidationError(WorkflowError):
    """Raised when a payload or argument fails validation."""


class InvalidStateError(WorkflowError):
    """Raised when a transition is not allowed from the current state."""

    def __init__(
        self,
        message: str,
        from_state: RequestStatus,
        transition: Optional[Transition] = None,
    ):
        super().__init__(message)
        self.from_state = from_state
        self.transition = transition


class InvalidApproverError(WorkflowError):
    """Raised when the caller is not the approver assigned to the current step."""

    def __init__(self, approver_id: str, expected_approver_id: Optional[str]):
        super().__init__(
            f"Approver {approver_id} is not assigned to this step "
            f"(assigned: {expected_approver_id or 'nobody'})"
        )
        self.approver_id = approver_id
        self.expected_approver_id = expected_approver_id


class UnauthorizedError(WorkflowError):
    """Raised when the caller does not own the request."""

    def __init__(self, caller_id: str, owner_id: Optional[str]):
        super().__init__(f"User {caller_id} is not the requester of this request")
        self.caller_id = caller_id
        self.owner_id = owner_id


class NoApproverAvailableError(WorkflowError):
    """Raised when routing finds no eligible approver for a step."""

    def __init__(
        self,
        role: Role,
        organization_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        scope = f" in organization {organization_id}" if organization_id else ""
        super().__init__(f"No approver available for role {role.value}{scope}")
        self.role = role
        self.organization_id = organization_id
        self.request_id = request_id


class RequestNotFoundError(WorkflowError, LookupError):
    """Raised when a request id is unknown to the store."""

    def __init__(self, request_id: str):
        super().__init__(f"Work request {request_id} not found")
        self.request_id = request_id
