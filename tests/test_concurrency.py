import threading
from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from leaveflow.core.exceptions import ConcurrentModificationError, NoCurrentStepError
from leaveflow.core.init_system import seed_default_policies
from leaveflow.database import init_db
from leaveflow.models.employee import UserRole
from leaveflow.services.balance_ledger import BalanceLedger
from leaveflow.services.directory import register_employee
from leaveflow.services.leave_service import LeaveWorkflowService


@pytest.fixture(scope="function")
def file_sessions(tmp_path):
    """Session factory over a file-backed database, so every session gets its own connection."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'leaveflow-race.db'}",
        connect_args={"check_same_thread": False, "timeout": 15},
    )
    init_db(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def people(file_sessions):
    db = file_sessions()
    try:
        seed_default_policies(db)
        ids = {}
        for role in (UserRole.HR, UserRole.ADMIN, UserRole.EMPLOYEE):
            employee = register_employee(db, name=f"{role.value} user", email=f"{role.value}@example.com", role=role)
            ids[role.value] = employee.id
        db.commit()
        return ids
    finally:
        db.close()


def _run_together(*calls):
    """Start every call behind one barrier; return (result, error) per call."""
    barrier = threading.Barrier(len(calls))
    results = [None] * len(calls)

    def worker(index, call):
        barrier.wait()
        try:
            results[index] = (call(), None)
        except Exception as e:
            results[index] = (None, e)

    threads = [threading.Thread(target=worker, args=(i, c)) for i, c in enumerate(calls)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results


def test_concurrent_ledger_charges_accumulate(file_sessions, people):
    employee_id = people["employee"]

    def charge(days):
        def _charge():
            db = file_sessions()
            try:
                BalanceLedger(db).apply_approval(employee_id, "annual", 2025, days)
                db.commit()
            finally:
                db.close()
        return _charge

    results = _run_together(charge(3), charge(2))

    assert [error for _, error in results] == [None, None]
    db = file_sessions()
    try:
        balance = BalanceLedger(db).get_balance(employee_id, "annual", 2025)
    finally:
        db.close()
    assert balance.used_days == 5
    assert balance.remaining_days == 20 - 5


def test_concurrent_decisions_advance_once(file_sessions, people):
    db = file_sessions()
    try:
        request_id = LeaveWorkflowService(db).create_request(
            people["admin"], "annual", date(2025, 3, 3), date(2025, 3, 6)
        )
    finally:
        db.close()

    def approve(actor_id):
        def _approve():
            session = file_sessions()
            try:
                return LeaveWorkflowService(session).decide(request_id, actor_id, "approve", step_order=1)
            finally:
                session.close()
        return _approve

    results = _run_together(approve(people["hr"]), approve(people["admin"]))

    advanced = [r for r, e in results if r is not None and not r.already_decided]
    assert len(advanced) == 1
    for outcome, error in results:
        if error is not None:
            assert isinstance(error, (NoCurrentStepError, ConcurrentModificationError))
        elif outcome is not advanced[0]:
            assert outcome.already_decided

    db = file_sessions()
    try:
        service = LeaveWorkflowService(db)
        status = service.get_status(request_id)
        balance = service.get_balance(people["admin"], "annual", 2025)
    finally:
        db.close()
    assert status.status == "approved"
    assert [s.is_current for s in status.steps] == [False]
    assert balance.used_days == 4
