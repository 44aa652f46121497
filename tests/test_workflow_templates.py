import pytest
from datetime import date

from leaveflow.core.exceptions import UnknownRoleError
from leaveflow.models.approval_step import ApprovalStep, StepStatus
from leaveflow.models.employee import UserRole
from leaveflow.services.workflow_templates import WorkflowTemplateService, coerce_role, resolve


def _shape(templates):
    return [(t.step_order, t.approver_role, t.status, t.is_current) for t in templates]


def test_regular_employee_gets_manager_then_hr():
    assert _shape(resolve(UserRole.EMPLOYEE)) == [
        (1, UserRole.LINE_MANAGER, StepStatus.PENDING, True),
        (2, UserRole.HR, StepStatus.PENDING, False),
    ]


def test_line_manager_follows_regular_chain():
    assert _shape(resolve("line_manager")) == _shape(resolve(UserRole.EMPLOYEE))


def test_hr_request_is_auto_approved():
    assert _shape(resolve(UserRole.HR)) == [(1, UserRole.HR, StepStatus.APPROVED, False)]


def test_admin_request_needs_hr():
    assert _shape(resolve(UserRole.ADMIN)) == [(1, UserRole.HR, StepStatus.PENDING, True)]


@pytest.mark.parametrize("role", ["ceo", "", None, "HR"])
def test_unknown_role_is_rejected(role):
    with pytest.raises(UnknownRoleError):
        resolve(role)


def test_coerce_role_passes_enum_through():
    assert coerce_role(UserRole.ADMIN) is UserRole.ADMIN


def test_apply_replaces_existing_steps(service, staff, policies, db_session):
    request_id = service.create_request(staff["employee"].id, "annual", date(2025, 5, 5), date(2025, 5, 6))

    WorkflowTemplateService(db_session).apply(request_id, UserRole.ADMIN)
    db_session.commit()

    steps = (
        db_session.query(ApprovalStep)
        .filter(ApprovalStep.leave_request_id == request_id)
        .order_by(ApprovalStep.step_order)
        .all()
    )
    assert [(s.step_order, s.approver_role, s.status, s.is_current) for s in steps] == [
        (1, "hr", "pending", True)
    ]


def test_apply_with_unknown_role_keeps_existing_steps(service, staff, policies, db_session):
    request_id = service.create_request(staff["employee"].id, "annual", date(2025, 5, 5), date(2025, 5, 6))

    with pytest.raises(UnknownRoleError):
        WorkflowTemplateService(db_session).apply(request_id, "contractor")

    assert db_session.query(ApprovalStep).filter(ApprovalStep.leave_request_id == request_id).count() == 2
