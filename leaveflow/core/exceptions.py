from typing import Any, Dict, Optional

class AppException(Exception):
    def __init__(
        self, 
        message: str, 
        status_code: int = 400, 
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)

class NotFoundError(AppException):
    def __init__(self, entity: str, entity_id: Any):
        super().__init__(
            message=f"{entity} {entity_id} not found",
            status_code=404,
            error_code="NOT_FOUND",
            details={"entity": entity, "id": entity_id}
        )

class UnknownRoleError(AppException):
    def __init__(self, role: Any):
        super().__init__(
            message=f"Unsupported role: {role!r}",
            status_code=400,
            error_code="UNKNOWN_ROLE",
            details={"role": str(role)}
        )

class NoCurrentStepError(AppException):
    """Raised when a decision targets a request that has nothing awaiting approval."""
    def __init__(self, request_id: int, message: Optional[str] = None):
        super().__init__(
            message=message or f"Leave request {request_id} has no step awaiting a decision",
            status_code=409,
            error_code="NO_CURRENT_STEP",
            details={"request_id": request_id}
        )

class UnauthorizedActionError(AppException):
    """Named UnauthorizedActionError so it is not confused with HTTP 401 authentication failures."""
    def __init__(self, message: str = "Actor is not allowed to act on the current step"):
        super().__init__(
            message=message,
            status_code=403,
            error_code="UNAUTHORIZED_ACTION"
        )

class ConcurrentModificationError(AppException):
    """The transition lost a race against another writer. Safe to retry."""
    def __init__(self, message: str = "The record was modified concurrently, retry the operation"):
        super().__init__(
            message=message,
            status_code=409,
            error_code="CONCURRENT_MODIFICATION",
            details={"retryable": True}
        )

class InvalidLeaveRequestError(AppException):
    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=400,
            error_code="INVALID_LEAVE_REQUEST"
        )

class InvalidTransitionError(AppException):
    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=409,
            error_code="INVALID_TRANSITION"
        )

class WorkflowStateError(AppException):
    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=409,
            error_code="WORKFLOW_STATE"
        )
