from fastapi import APIRouter, Depends, status
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type
import logging

from leaveflow.core.config import settings
from leaveflow.core.exceptions import ConcurrentModificationError
from leaveflow.dependencies import get_actor_id, get_leave_service
from leaveflow.schemas.leave import (
    DecisionOutcome, DecisionRequest, LeaveRequestCreate, LeaveRequestStatus
)
from leaveflow.services.leave_service import LeaveWorkflowService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/leave/requests", tags=["leave"])


@retry(
    stop=stop_after_attempt(settings.decision_retry_attempts),
    wait=wait_exponential(multiplier=0.05, min=0.05, max=1),
    retry=retry_if_exception_type(ConcurrentModificationError),
    reraise=True
)
def _decide_with_retry(service: LeaveWorkflowService, request_id: int, actor_id: int, body: DecisionRequest) -> DecisionOutcome:
    """Replays the same decision after a lost race; a replay of an applied decision is a no-op."""
    return service.decide(
        request_id,
        actor_id,
        body.decision,
        step_order=body.step_order,
        comment=body.comment,
    )


@router.post("", response_model=LeaveRequestStatus, status_code=status.HTTP_201_CREATED)
def create_leave_request(
    request: LeaveRequestCreate,
    service: LeaveWorkflowService = Depends(get_leave_service),
):
    request_id = service.create_request(
        employee_id=request.employee_id,
        leave_type=request.leave_type,
        start_date=request.start_date,
        end_date=request.end_date,
        reason=request.reason,
    )
    return service.get_status(request_id)


@router.get("/{request_id}", response_model=LeaveRequestStatus)
def get_leave_request(request_id: int, service: LeaveWorkflowService = Depends(get_leave_service)):
    return service.get_status(request_id)


@router.post("/{request_id}/decision", response_model=DecisionOutcome)
def decide_leave_request(
    request_id: int,
    body: DecisionRequest,
    actor_id: int = Depends(get_actor_id),
    service: LeaveWorkflowService = Depends(get_leave_service),
):
    return _decide_with_retry(service, request_id, actor_id, body)


@router.post("/{request_id}/cancel", response_model=LeaveRequestStatus)
def cancel_leave_request(
    request_id: int,
    actor_id: int = Depends(get_actor_id),
    service: LeaveWorkflowService = Depends(get_leave_service),
):
    return service.cancel_request(request_id, actor_id)
