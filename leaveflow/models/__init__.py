# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    department, employee,
    leave_request, approval_step, leave_balance, leave_policy,
)

# Explicit class exports for cleaner imports
from .department import Department
from .employee import Employee, UserRole
from .leave_request import LeaveRequest, LeaveStatus
from .approval_step import ApprovalStep, StepStatus, Decision
from .leave_balance import LeaveBalance
from .leave_policy import LeavePolicy

__all__ = [
    "Department",
    "Employee",
    "UserRole",
    "LeaveRequest",
    "LeaveStatus",
    "ApprovalStep",
    "StepStatus",
    "Decision",
    "LeaveBalance",
    "LeavePolicy",
]
