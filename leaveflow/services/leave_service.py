"""
Leave Request Lifecycle Service

This module orchestrates the leave workflow. It is the only place that
changes a LeaveRequest's status, and the only caller of the balance ledger.

Architecture:
- Router -> LeaveWorkflowService (this module) -> templates / tracker / authorization / ledger
- Every public operation is one transaction: commit on success, rollback and
  re-raise on failure
- Ledger charges happen on the guarded pending -> approved status edge, so a
  request is charged exactly once no matter how often a decision is replayed
"""
from contextlib import contextmanager
from datetime import date
from typing import Optional, Union

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from leaveflow.core.exceptions import (
    ConcurrentModificationError,
    InvalidLeaveRequestError,
    InvalidTransitionError,
    NoCurrentStepError,
    NotFoundError,
    UnauthorizedActionError,
)
from leaveflow.models.approval_step import ApprovalStep, Decision
from leaveflow.core.logging import leave_request_context
from leaveflow.models.employee import Employee, UserRole
from leaveflow.models.leave_request import LeaveRequest, LeaveStatus
from leaveflow.schemas.leave import (
    ApprovalStepResponse, DecisionOutcome, LeaveBalanceResponse, LeaveRequestStatus
)
from leaveflow.services import directory
from leaveflow.services.approval_tracker import ApprovalTracker, TrackerState
from leaveflow.services.authorization import can_act
from leaveflow.services.balance_ledger import BalanceLedger
from leaveflow.services.base import BaseService
from leaveflow.services.workflow_templates import WorkflowTemplateService


_LOCK_CONFLICT_MARKERS = ("database is locked", "could not serialize", "deadlock detected")


def _is_lock_conflict(error: OperationalError) -> bool:
    message = str(error.orig).lower()
    return any(marker in message for marker in _LOCK_CONFLICT_MARKERS)


def count_leave_days(start_date: date, end_date: date) -> float:
    """Inclusive calendar days between the two dates."""
    return float((end_date - start_date).days + 1)


class LeaveWorkflowService(BaseService):

    def __init__(self, db: Session):
        super().__init__(db)
        self.templates = WorkflowTemplateService(db)
        self.tracker = ApprovalTracker(db)
        self.ledger = BalanceLedger(db)

    # ------------------------------------------------------------------
    # Transaction plumbing
    # ------------------------------------------------------------------
    @contextmanager
    def _transaction(self):
        try:
            yield
            self.db.commit()
        except (IntegrityError, StaleDataError) as e:
            self.db.rollback()
            self._logger.warning(f"Leave transition aborted by a conflicting write: {e}")
            raise ConcurrentModificationError() from e
        except OperationalError as e:
            self.db.rollback()
            if not _is_lock_conflict(e):
                raise
            self._logger.warning(f"Leave transition aborted by a lock conflict: {e}")
            raise ConcurrentModificationError() from e
        except Exception:
            self.db.rollback()
            raise

    def _lock_request(self, request_id: int) -> LeaveRequest:
        leave = (
            self.db.query(LeaveRequest)
            .filter(LeaveRequest.id == request_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if leave is None:
            raise NotFoundError("Leave request", request_id)
        return leave

    def _set_status(self, leave: LeaveRequest, new_status: LeaveStatus) -> None:
        """Move a pending request to `new_status`; losing the pending state to someone else is a conflict."""
        result = self.db.execute(
            update(LeaveRequest)
            .where(LeaveRequest.id == leave.id, LeaveRequest.status == LeaveStatus.PENDING.value)
            .values(status=new_status.value, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrentModificationError(
                f"Leave request {leave.id} left the pending state concurrently"
            )
        self.db.expire(leave)

    def _approve(self, leave: LeaveRequest) -> None:
        employee_id, leave_type = leave.employee_id, leave.leave_type
        year, days = leave.balance_year, leave.days_count
        # Only the caller that wins the pending -> approved edge charges the ledger
        self._set_status(leave, LeaveStatus.APPROVED)
        self.ledger.apply_approval(employee_id, leave_type, year, days)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------
    def create_request(
        self,
        employee_id: int,
        leave_type: str,
        start_date: date,
        end_date: date,
        reason: Optional[str] = None,
    ) -> int:
        with self._transaction():
            employee = directory.get_employee(self.db, employee_id)
            if not employee.is_active:
                raise InvalidLeaveRequestError(f"Employee {employee_id} is inactive")
            leave_type = (leave_type or "").strip()
            if not leave_type:
                raise InvalidLeaveRequestError("Leave type is required")
            if end_date < start_date:
                raise InvalidLeaveRequestError("End date must be on or after the start date")

            leave = LeaveRequest(
                employee_id=employee.id,
                leave_type=leave_type,
                start_date=start_date,
                end_date=end_date,
                days_count=count_leave_days(start_date, end_date),
                reason=reason,
                status=LeaveStatus.PENDING.value,
            )
            self.db.add(leave)
            self.db.flush()

            self.templates.apply(leave.id, employee.role)
            if self.tracker.state(leave.id) == TrackerState.APPROVED:
                self.log_info(f"Leave request {leave.id} auto-approved for {employee.role.value} requester")
                self._approve(leave)
            request_id = leave.id

        self.log_info(
            f"Created leave request {request_id} for employee {employee_id}",
            leave_request_id=request_id,
        )
        return request_id

    def decide(
        self,
        request_id: int,
        actor_id: int,
        decision: Union[Decision, str],
        step_order: Optional[int] = None,
        comment: Optional[str] = None,
    ) -> DecisionOutcome:
        """
        Apply an approver's decision to the current step of a request.

        Replaying a decision that is already recorded returns an outcome with
        already_decided=True and changes nothing. Without `step_order`, a decision
        matching the last step this actor decided is treated as a replay, so an
        admin approving consecutive steps must name each step explicitly.
        """
        try:
            decision = Decision(decision)
        except ValueError:
            raise InvalidTransitionError(f"Unsupported decision: {decision!r}") from None

        with leave_request_context(request_id), self._transaction():
            leave = self._lock_request(request_id)
            actor = directory.resolve_actor(self.db, actor_id)

            repeated = self._repeated_decision(leave, actor, decision, step_order)
            if repeated is not None:
                self.log_warning(
                    f"Ignoring repeated '{decision.value}' on step {repeated.step_order} of leave request {request_id}",
                    leave_request_id=request_id,
                    actor_id=actor_id,
                )
                return DecisionOutcome(
                    request_id=request_id,
                    request_status=leave.status,
                    step_order=repeated.step_order,
                    step_status=repeated.status,
                    already_decided=True,
                )

            current = self.tracker.current_step(leave.id)
            if current is None:
                raise NoCurrentStepError(leave.id)
            if step_order is not None and current.step_order != step_order:
                raise NoCurrentStepError(
                    leave.id, f"Step {step_order} of leave request {leave.id} is not awaiting a decision"
                )
            if not can_act(self.db, actor.role, leave.id):
                raise UnauthorizedActionError(
                    f"Role '{actor.role.value}' cannot act on step {current.step_order} "
                    f"(requires '{current.approver_role}')"
                )

            decided_order = current.step_order
            advance = self.tracker.apply_decision(current, decision, actor_id=actor.id, comment=comment)
            if advance.state == TrackerState.REJECTED:
                self._set_status(leave, LeaveStatus.REJECTED)
            elif advance.state == TrackerState.APPROVED:
                self._approve(leave)

            outcome = DecisionOutcome(
                request_id=request_id,
                request_status=leave.status,
                step_order=decided_order,
                step_status=decision.step_status.value,
                next_step_order=advance.current_step.step_order if advance.current_step else None,
            )

        self.log_info(
            f"Actor {actor_id} recorded '{decision.value}' on step {outcome.step_order} of leave request {request_id}",
            leave_request_id=request_id,
            request_status=outcome.request_status,
        )
        return outcome

    def _repeated_decision(
        self, leave: LeaveRequest, actor: Employee, decision: Decision, step_order: Optional[int]
    ) -> Optional[ApprovalStep]:
        target = decision.step_status.value
        if step_order is not None:
            step = self.tracker.step(leave.id, step_order)
            if step is None:
                raise NotFoundError("Approval step", f"{leave.id}#{step_order}")
            return step if step.status == target else None

        last = self.tracker.last_decided_step(leave.id)
        if last is None or last.status != target:
            return None
        # Same actor, same outcome: a resubmission, even if a later step is now current
        if last.decided_by_id == actor.id:
            return last
        # Finished request (including auto-approval): nothing left to decide
        if self.tracker.current_step(leave.id) is None:
            return last
        return None

    def cancel_request(self, request_id: int, actor_id: int) -> LeaveRequestStatus:
        """Withdraw a pending request. Only the requester or an admin may do this."""
        with leave_request_context(request_id), self._transaction():
            leave = self._lock_request(request_id)
            actor = directory.resolve_actor(self.db, actor_id)
            if actor.id != leave.employee_id and not actor.is_admin:
                raise UnauthorizedActionError("Only the requester or an admin may cancel a leave request")

            if leave.status == LeaveStatus.CANCELLED.value:
                self.log_warning(f"Leave request {request_id} is already cancelled")
            elif leave.status != LeaveStatus.PENDING.value:
                raise InvalidTransitionError(f"Cannot cancel a leave request that is {leave.status}")
            else:
                self.tracker.close(leave.id)
                self._set_status(leave, LeaveStatus.CANCELLED)
                self.log_info(f"Leave request {request_id} cancelled by actor {actor_id}")

        return self.get_status(request_id)

    def get_status(self, request_id: int) -> LeaveRequestStatus:
        leave = (
            self.db.query(LeaveRequest)
            .filter(LeaveRequest.id == request_id)
            .options(selectinload(LeaveRequest.steps))
            .populate_existing()
            .first()
        )
        if leave is None:
            raise NotFoundError("Leave request", request_id)
        return LeaveRequestStatus(
            id=leave.id,
            employee_id=leave.employee_id,
            leave_type=leave.leave_type,
            start_date=leave.start_date,
            end_date=leave.end_date,
            days_count=leave.days_count,
            reason=leave.reason,
            status=leave.status,
            steps=[ApprovalStepResponse.model_validate(s) for s in leave.steps],
        )

    def get_balance(self, employee_id: int, leave_type: str, year: int) -> LeaveBalanceResponse:
        directory.get_employee(self.db, employee_id)
        return self.ledger.get_balance(employee_id, leave_type, year)

    def carry_forward(self, employee_id: int, leave_type: str, from_year: int, actor_id: int) -> LeaveBalanceResponse:
        """Roll unused days of `from_year` into the next year. HR and admins only."""
        with self._transaction():
            actor = directory.resolve_actor(self.db, actor_id)
            if actor.role not in (UserRole.HR, UserRole.ADMIN):
                raise UnauthorizedActionError("Only HR or an admin may carry balances forward")
            directory.get_employee(self.db, employee_id)
            balance = self.ledger.carry_forward(employee_id, leave_type, from_year)
            response = LeaveBalanceResponse.model_validate(balance)
        return response
