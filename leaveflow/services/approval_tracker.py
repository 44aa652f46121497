"""
Approval Step Tracker

Per-request state machine over the ApprovalStep rows of a leave request.

States: NO_STEPS -> IN_PROGRESS (step i current) -> APPROVED | REJECTED

Every mutation of the current step is a compare-and-set on
(is_current = true, status = pending). A writer that read the same current
step as a concurrent writer, but lost the race, matches zero rows and gets
ConcurrentModificationError instead of advancing the workflow a second time.
"""
import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Union

from sqlalchemy import update

from leaveflow.core.exceptions import (
    ConcurrentModificationError, NoCurrentStepError, WorkflowStateError
)
from leaveflow.models.approval_step import ApprovalStep, Decision, StepStatus
from leaveflow.services.base import BaseService
from leaveflow.services.workflow_templates import StepTemplate


class TrackerState(str, enum.Enum):
    NO_STEPS = "no_steps"
    IN_PROGRESS = "in_progress"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class StepAdvance:
    state: TrackerState
    decided_step: ApprovalStep
    current_step: Optional[ApprovalStep] = None


class ApprovalTracker(BaseService):

    def steps(self, leave_request_id: int) -> List[ApprovalStep]:
        return (
            self.db.query(ApprovalStep)
            .filter(ApprovalStep.leave_request_id == leave_request_id)
            .order_by(ApprovalStep.step_order)
            .populate_existing()
            .all()
        )

    def step(self, leave_request_id: int, step_order: int) -> Optional[ApprovalStep]:
        return (
            self.db.query(ApprovalStep)
            .filter(
                ApprovalStep.leave_request_id == leave_request_id,
                ApprovalStep.step_order == step_order,
            )
            .populate_existing()
            .first()
        )

    def current_step(self, leave_request_id: int) -> Optional[ApprovalStep]:
        return (
            self.db.query(ApprovalStep)
            .filter(
                ApprovalStep.leave_request_id == leave_request_id,
                ApprovalStep.is_current.is_(True),
            )
            .populate_existing()
            .one_or_none()
        )

    def last_decided_step(self, leave_request_id: int) -> Optional[ApprovalStep]:
        return (
            self.db.query(ApprovalStep)
            .filter(
                ApprovalStep.leave_request_id == leave_request_id,
                ApprovalStep.status != StepStatus.PENDING.value,
            )
            .order_by(ApprovalStep.step_order.desc())
            .populate_existing()
            .first()
        )

    def state(self, leave_request_id: int) -> TrackerState:
        steps = self.steps(leave_request_id)
        if not steps:
            return TrackerState.NO_STEPS
        if any(s.status == StepStatus.REJECTED.value for s in steps):
            return TrackerState.REJECTED
        if all(s.status == StepStatus.APPROVED.value for s in steps):
            return TrackerState.APPROVED
        return TrackerState.IN_PROGRESS

    def initialize(self, leave_request_id: int, templates: Iterable[StepTemplate]) -> List[ApprovalStep]:
        """Install a resolved template. The request must not have any steps yet."""
        templates = sorted(templates, key=lambda t: t.step_order)
        if not templates:
            raise WorkflowStateError("A workflow template needs at least one step")

        existing = (
            self.db.query(ApprovalStep.id)
            .filter(ApprovalStep.leave_request_id == leave_request_id)
            .count()
        )
        if existing:
            raise WorkflowStateError(
                f"Leave request {leave_request_id} already has {existing} approval step(s); clear them first"
            )

        orders = [t.step_order for t in templates]
        if orders[0] < 1 or len(set(orders)) != len(orders):
            raise WorkflowStateError(f"Step orders must be unique positive integers, got {orders}")
        if sum(1 for t in templates if t.is_current) > 1:
            raise WorkflowStateError("A workflow template may mark at most one step as current")

        steps = [
            ApprovalStep(
                leave_request_id=leave_request_id,
                step_order=t.step_order,
                approver_role=t.approver_role.value,
                status=t.status.value,
                is_current=t.is_current,
            )
            for t in templates
        ]
        self.db.add_all(steps)
        self.db.flush()
        return steps

    def record_decision(
        self,
        leave_request_id: int,
        decision: Union[Decision, str],
        actor_id: Optional[int] = None,
        comment: Optional[str] = None,
    ) -> StepAdvance:
        current = self.current_step(leave_request_id)
        if current is None:
            raise NoCurrentStepError(leave_request_id)
        return self.apply_decision(current, decision, actor_id=actor_id, comment=comment)

    def apply_decision(
        self,
        step: ApprovalStep,
        decision: Union[Decision, str],
        actor_id: Optional[int] = None,
        comment: Optional[str] = None,
    ) -> StepAdvance:
        """
        Decide `step`, which the caller observed as current, and advance the chain.
        """
        decision = Decision(decision)
        leave_request_id = step.leave_request_id
        step_order = step.step_order

        result = self.db.execute(
            update(ApprovalStep)
            .where(
                ApprovalStep.id == step.id,
                ApprovalStep.is_current.is_(True),
                ApprovalStep.status == StepStatus.PENDING.value,
            )
            .values(
                status=decision.step_status.value,
                is_current=False,
                decided_by_id=actor_id,
                decided_at=datetime.now(timezone.utc),
                comment=comment,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrentModificationError(
                f"Step {step_order} of leave request {leave_request_id} was decided by another actor"
            )
        self.db.expire(step)

        if decision is Decision.REJECT:
            self.log_info(
                f"Leave request {leave_request_id} rejected at step {step_order}",
                leave_request_id=leave_request_id,
            )
            return StepAdvance(TrackerState.REJECTED, step)

        next_step = (
            self.db.query(ApprovalStep)
            .filter(
                ApprovalStep.leave_request_id == leave_request_id,
                ApprovalStep.step_order > step_order,
            )
            .order_by(ApprovalStep.step_order)
            .first()
        )
        if next_step is not None:
            result = self.db.execute(
                update(ApprovalStep)
                .where(
                    ApprovalStep.id == next_step.id,
                    ApprovalStep.is_current.is_(False),
                    ApprovalStep.status == StepStatus.PENDING.value,
                )
                .values(is_current=True)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ConcurrentModificationError(
                    f"Step {next_step.step_order} of leave request {leave_request_id} changed concurrently"
                )
            self.db.expire(next_step)
            self.log_info(
                f"Leave request {leave_request_id} advanced from step {step_order} to step {next_step.step_order}",
                leave_request_id=leave_request_id,
            )
            return StepAdvance(TrackerState.IN_PROGRESS, step, next_step)

        # Last step approved: confirm the whole chain is approved rather than assume it
        if self.state(leave_request_id) != TrackerState.APPROVED:
            raise WorkflowStateError(
                f"Leave request {leave_request_id} reached its last step with unapproved steps left"
            )
        self.log_info(
            f"Leave request {leave_request_id} fully approved at step {step_order}",
            leave_request_id=leave_request_id,
        )
        return StepAdvance(TrackerState.APPROVED, step)

    def close(self, leave_request_id: int) -> int:
        """Clear the current flag without deciding the step. Used when a request is withdrawn."""
        result = self.db.execute(
            update(ApprovalStep)
            .where(
                ApprovalStep.leave_request_id == leave_request_id,
                ApprovalStep.is_current.is_(True),
            )
            .values(is_current=False)
            .execution_options(synchronize_session=False)
        )
        self.db.expire_all()
        return result.rowcount
