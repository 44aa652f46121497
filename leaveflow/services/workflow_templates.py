"""
Workflow Template Resolver

Maps a requester's role to the fixed sequence of approval steps a new
leave request must pass through:

- hr            -> [hr (approved, not current)]       auto-approved
- admin         -> [hr (pending, current)]
- line_manager,
  employee      -> [line_manager (pending, current), hr (pending)]

Any other role is rejected with UnknownRoleError.
"""
from dataclasses import dataclass
from typing import List, Tuple, Union

from sqlalchemy import delete

from leaveflow.core.exceptions import UnknownRoleError
from leaveflow.models.approval_step import ApprovalStep, StepStatus
from leaveflow.models.employee import UserRole
from leaveflow.services.base import BaseService


@dataclass(frozen=True)
class StepTemplate:
    step_order: int
    approver_role: UserRole
    status: StepStatus
    is_current: bool


_REGULAR_CHAIN: Tuple[StepTemplate, ...] = (
    StepTemplate(1, UserRole.LINE_MANAGER, StepStatus.PENDING, True),
    StepTemplate(2, UserRole.HR, StepStatus.PENDING, False),
)

TEMPLATES = {
    UserRole.HR: (StepTemplate(1, UserRole.HR, StepStatus.APPROVED, False),),
    UserRole.ADMIN: (StepTemplate(1, UserRole.HR, StepStatus.PENDING, True),),
    UserRole.LINE_MANAGER: _REGULAR_CHAIN,
    UserRole.EMPLOYEE: _REGULAR_CHAIN,
}


def coerce_role(role: Union[UserRole, str, None]) -> UserRole:
    """Turn a raw role value into a UserRole, rejecting anything outside the closed set."""
    if isinstance(role, UserRole):
        return role
    try:
        return UserRole(role)
    except ValueError:
        raise UnknownRoleError(role) from None


def resolve(requester_role: Union[UserRole, str]) -> List[StepTemplate]:
    role = coerce_role(requester_role)
    return list(TEMPLATES[role])


class WorkflowTemplateService(BaseService):

    def apply(self, leave_request_id: int, requester_role: Union[UserRole, str]) -> List[ApprovalStep]:
        """
        Replace the stored steps of a request with the template for the requester's role.
        The template is resolved before anything is deleted, so an unknown role leaves
        the existing steps untouched.
        """
        from leaveflow.services.approval_tracker import ApprovalTracker

        templates = resolve(requester_role)
        self.db.execute(
            delete(ApprovalStep)
            .where(ApprovalStep.leave_request_id == leave_request_id)
            .execution_options(synchronize_session="fetch")
        )
        self.db.flush()
        steps = ApprovalTracker(self.db).initialize(leave_request_id, templates)
        self.log_info(
            f"Applied {coerce_role(requester_role).value} workflow template to leave request {leave_request_id}",
            leave_request_id=leave_request_id,
            steps=len(steps),
        )
        return steps
