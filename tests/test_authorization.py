from datetime import date

from leaveflow.models.employee import UserRole
from leaveflow.services.authorization import can_act


def test_matching_role_can_act(db_session, service, staff, policies):
    request_id = service.create_request(staff["employee"].id, "annual", date(2025, 6, 2), date(2025, 6, 3))

    assert can_act(db_session, UserRole.LINE_MANAGER, request_id)
    assert not can_act(db_session, UserRole.HR, request_id)
    assert not can_act(db_session, UserRole.EMPLOYEE, request_id)


def test_admin_can_act_on_any_step(db_session, service, staff, policies):
    request_id = service.create_request(staff["employee"].id, "annual", date(2025, 6, 2), date(2025, 6, 3))
    assert can_act(db_session, "admin", request_id)

    service.decide(request_id, staff["manager"].id, "approve")
    assert can_act(db_session, UserRole.ADMIN, request_id)
    assert can_act(db_session, UserRole.HR, request_id)
    assert not can_act(db_session, UserRole.LINE_MANAGER, request_id)


def test_nobody_can_act_without_current_step(db_session, service, staff, policies):
    request_id = service.create_request(staff["hr"].id, "annual", date(2025, 6, 2), date(2025, 6, 3))

    assert not can_act(db_session, UserRole.ADMIN, request_id)
    assert not can_act(db_session, UserRole.HR, request_id)
