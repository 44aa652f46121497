"""
Employee directory and actor identity resolution.

The leave workflow only needs to know who an employee is and which role
they hold; everything else about the directory is managed elsewhere.
"""
import logging
import re
from typing import Optional, Union

from sqlalchemy.orm import Session

from leaveflow.core.exceptions import NotFoundError, UnauthorizedActionError
from leaveflow.models.employee import Employee, UserRole
from leaveflow.services.workflow_templates import coerce_role

logger = logging.getLogger(__name__)

_CODE_PATTERN = re.compile(r"^EMP(\d+)$")


def get_employee(db: Session, employee_id: int) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise NotFoundError("Employee", employee_id)
    return employee


def resolve_actor(db: Session, actor_id: int) -> Employee:
    """Map an acting identity to the employee record that carries its role."""
    actor = db.get(Employee, actor_id)
    if actor is None:
        logger.warning(f"Unknown actor {actor_id} attempted a leave action")
        raise UnauthorizedActionError(f"Unknown actor {actor_id}")
    if not actor.is_active:
        logger.warning(f"Inactive actor {actor_id} attempted a leave action")
        raise UnauthorizedActionError(f"Actor {actor_id} is inactive")
    return actor


def next_employee_code(db: Session) -> str:
    """Next code in the EMP001, EMP002, ... sequence."""
    codes = db.query(Employee.employee_code).filter(Employee.employee_code.like("EMP%")).all()
    highest = 0
    for (code,) in codes:
        match = _CODE_PATTERN.match(code)
        if match:
            highest = max(highest, int(match.group(1)))
    return f"EMP{highest + 1:03d}"


def register_employee(
    db: Session,
    name: str,
    email: str,
    role: Union[UserRole, str] = UserRole.EMPLOYEE,
    department_id: Optional[int] = None,
    manager_id: Optional[int] = None,
) -> Employee:
    """Add an employee to the directory. Flushes but does not commit."""
    employee = Employee(
        employee_code=next_employee_code(db),
        name=name,
        email=email,
        role=coerce_role(role),
        department_id=department_id,
        manager_id=manager_id,
        is_active=True,
    )
    db.add(employee)
    db.flush()
    logger.info(f"Registered employee {employee.employee_code} as {employee.role.value}")
    return employee
