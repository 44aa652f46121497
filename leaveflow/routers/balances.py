from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from leaveflow.dependencies import get_actor_id, get_leave_service
from leaveflow.schemas.leave import CarryForwardRequest, LeaveBalanceResponse
from leaveflow.services.leave_service import LeaveWorkflowService

router = APIRouter(prefix="/leave/balances", tags=["leave-balances"])


@router.get("/{employee_id}", response_model=LeaveBalanceResponse)
def get_leave_balance(
    employee_id: int,
    leave_type: str = Query(..., min_length=1),
    year: Optional[int] = Query(None, ge=1900),
    service: LeaveWorkflowService = Depends(get_leave_service),
):
    return service.get_balance(employee_id, leave_type, year or date.today().year)


@router.post("/carry-forward", response_model=LeaveBalanceResponse)
def carry_forward_balance(
    body: CarryForwardRequest,
    actor_id: int = Depends(get_actor_id),
    service: LeaveWorkflowService = Depends(get_leave_service),
):
    return service.carry_forward(body.employee_id, body.leave_type, body.from_year, actor_id)
