from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, Index, UniqueConstraint, text
)
from sqlalchemy.orm import relationship
from leaveflow.database import Base
import enum


class StepStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Decision(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"

    @property
    def step_status(self) -> StepStatus:
        return StepStatus.APPROVED if self is Decision.APPROVE else StepStatus.REJECTED


class ApprovalStep(Base):
    __tablename__ = "approval_steps"
    __table_args__ = (
        UniqueConstraint("leave_request_id", "step_order", name="uq_approval_steps_request_order"),
        # At most one current step per request, enforced by the database
        Index(
            "uq_approval_steps_one_current",
            "leave_request_id",
            unique=True,
            sqlite_where=text("is_current = 1"),
            postgresql_where=text("is_current"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    leave_request_id = Column(Integer, ForeignKey("leave_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    step_order = Column(Integer, nullable=False)
    approver_role = Column(String, nullable=False)
    status = Column(String, default=StepStatus.PENDING.value, nullable=False)
    is_current = Column(Boolean, default=False, nullable=False)

    # Decision trail
    decided_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)
    comment = Column(String, nullable=True)

    leave_request = relationship("LeaveRequest", back_populates="steps")

    def __repr__(self):
        flag = "*" if self.is_current else ""
        return f"<ApprovalStep {self.leave_request_id}#{self.step_order}{flag} {self.approver_role}={self.status}>"
