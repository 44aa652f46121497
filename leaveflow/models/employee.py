"""
Employee directory model.
Each employee carries the role that decides their leave workflow template
and which approval steps they may act on.
"""
from sqlalchemy import Column, Integer, String, Enum, DateTime, Boolean, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from leaveflow.database import Base


class UserRole(str, enum.Enum):
    """
    Closed set of roles known to the leave workflow.

    - HR: approves the final step; own requests are auto-approved
    - ADMIN: may act on any step; own requests need HR approval
    - LINE_MANAGER: approves the first step for regular employees
    - EMPLOYEE: self-service only
    """
    HR = "hr"
    ADMIN = "admin"
    LINE_MANAGER = "line_manager"
    EMPLOYEE = "employee"


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    employee_code = Column(String, unique=True, index=True, nullable=False)  # EMP001, EMP002, ...
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    role = Column(Enum(UserRole, values_callable=lambda e: [m.value for m in e]), default=UserRole.EMPLOYEE, nullable=False)

    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True)
    manager_id = Column(Integer, ForeignKey("employees.id"), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    department = relationship("Department", back_populates="employees")
    leave_requests = relationship("LeaveRequest", back_populates="employee")

    def __repr__(self):
        return f"<Employee {self.employee_code} ({self.role.value})>"

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
