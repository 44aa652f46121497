from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from typing import List, Optional

from leaveflow.models.approval_step import Decision

class LeaveRequestCreate(BaseModel):
    employee_id: int
    leave_type: str = Field(min_length=1)
    start_date: date
    end_date: date
    reason: Optional[str] = None

class DecisionRequest(BaseModel):
    decision: Decision
    step_order: Optional[int] = Field(default=None, ge=1)
    comment: Optional[str] = None

class ApprovalStepResponse(BaseModel):
    step_order: int
    approver_role: str
    status: str
    is_current: bool
    decided_by_id: Optional[int] = None
    decided_at: Optional[datetime] = None
    comment: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

class LeaveRequestStatus(BaseModel):
    id: int
    employee_id: int
    leave_type: str
    start_date: date
    end_date: date
    days_count: float
    reason: Optional[str] = None
    status: str
    steps: List[ApprovalStepResponse] = []

    model_config = ConfigDict(from_attributes=True)

class DecisionOutcome(BaseModel):
    request_id: int
    request_status: str
    step_order: int
    step_status: str
    next_step_order: Optional[int] = None
    already_decided: bool = False

class LeaveBalanceResponse(BaseModel):
    employee_id: int
    leave_type: str
    year: int
    total_days: float
    used_days: float
    carried_forward_days: float
    remaining_days: float

    model_config = ConfigDict(from_attributes=True)

class CarryForwardRequest(BaseModel):
    employee_id: int
    leave_type: str = Field(min_length=1)
    from_year: int = Field(ge=1900)
