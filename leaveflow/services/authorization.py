from typing import Union
from sqlalchemy.orm import Session

from leaveflow.models.employee import UserRole
from leaveflow.services.approval_tracker import ApprovalTracker
from leaveflow.services.workflow_templates import coerce_role


def can_act(db: Session, actor_role: Union[UserRole, str], leave_request_id: int) -> bool:
    """
    True when the actor may decide the current step of the request:
    the step's approver role matches, or the actor is an admin.
    False when nothing is awaiting a decision. Never mutates state.
    """
    role = coerce_role(actor_role)
    current = ApprovalTracker(db).current_step(leave_request_id)
    if current is None:
        return False
    if role == UserRole.ADMIN:
        return True
    return current.approver_role == role.value
