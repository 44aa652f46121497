"""
Balance Ledger

Owns the accumulation logic of LeaveBalance rows. Nothing else writes
used_days, total_days, carried_forward_days or remaining_days.

All writes are single INSERT .. ON CONFLICT DO UPDATE statements keyed on
(employee_id, leave_type, year), so concurrent approvals for the same key
accumulate instead of overwriting each other. remaining_days is always
recomputed as total + carried_forward - used.
"""
from typing import Optional

from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite

from leaveflow.core.config import settings
from leaveflow.core.exceptions import InvalidLeaveRequestError
from leaveflow.models.leave_balance import LeaveBalance
from leaveflow.models.leave_policy import LeavePolicy
from leaveflow.schemas.leave import LeaveBalanceResponse
from leaveflow.services.base import BaseService

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

_BALANCE_KEY = ["employee_id", "leave_type", "year"]


class BalanceLedger(BaseService):

    def active_limit(self, leave_type: str) -> float:
        """Annual limit of the active policy; 0 when no active policy exists."""
        policy = (
            self.db.query(LeavePolicy)
            .filter(LeavePolicy.leave_type == leave_type, LeavePolicy.is_active.is_(True))
            .order_by(LeavePolicy.id.desc())
            .first()
        )
        if policy is None:
            self.log_warning(
                f"No active leave policy for '{leave_type}', using an annual limit of 0",
                leave_type=leave_type,
            )
            return 0.0
        return float(policy.annual_limit)

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        try:
            return _UPSERT_DIALECTS[dialect]
        except KeyError:
            raise RuntimeError(f"Balance upserts are not supported on '{dialect}'") from None

    def _load(self, employee_id: int, leave_type: str, year: int) -> Optional[LeaveBalance]:
        return (
            self.db.query(LeaveBalance)
            .filter(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.leave_type == leave_type,
                LeaveBalance.year == year,
            )
            .populate_existing()
            .first()
        )

    def apply_approval(self, employee_id: int, leave_type: str, year: int, day_count: float) -> LeaveBalance:
        """
        Charge `day_count` days to the (employee, leave_type, year) balance.
        Must run exactly once per request entering the approved state.
        """
        if day_count <= 0:
            raise InvalidLeaveRequestError(f"Cannot charge a non-positive day count ({day_count})")

        limit = self.active_limit(leave_type)
        table = LeaveBalance.__table__
        stmt = self._insert()(table).values(
            employee_id=employee_id,
            leave_type=leave_type,
            year=year,
            total_days=limit,
            used_days=day_count,
            carried_forward_days=0.0,
            remaining_days=limit + 0.0 - day_count,
        )
        used_after = table.c.used_days + stmt.excluded.used_days
        stmt = stmt.on_conflict_do_update(
            index_elements=_BALANCE_KEY,
            set_={
                "used_days": used_after,
                "remaining_days": table.c.total_days + table.c.carried_forward_days - used_after,
                "updated_at": func.now(),
            },
        )
        self.db.execute(stmt)

        balance = self._load(employee_id, leave_type, year)
        self.log_info(
            f"Charged {day_count} {leave_type} day(s) to employee {employee_id} for {year}",
            employee_id=employee_id,
            used_days=balance.used_days,
            remaining_days=balance.remaining_days,
        )
        return balance

    def carry_forward(self, employee_id: int, leave_type: str, from_year: int) -> LeaveBalance:
        """
        Move the unused remainder of `from_year` into the next year's row,
        capped by MAX_CARRY_FORWARD_DAYS. The carried amount is replaced, not
        added, so repeating the call changes nothing.
        """
        source = self.get_balance(employee_id, leave_type, from_year)
        unused = max(0.0, source.remaining_days)
        carried = min(unused, settings.max_carry_forward_days)

        limit = self.active_limit(leave_type)
        table = LeaveBalance.__table__
        stmt = self._insert()(table).values(
            employee_id=employee_id,
            leave_type=leave_type,
            year=from_year + 1,
            total_days=limit,
            used_days=0.0,
            carried_forward_days=carried,
            remaining_days=limit + carried - 0.0,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=_BALANCE_KEY,
            set_={
                "carried_forward_days": stmt.excluded.carried_forward_days,
                "remaining_days": table.c.total_days + stmt.excluded.carried_forward_days - table.c.used_days,
                "updated_at": func.now(),
            },
        )
        self.db.execute(stmt)

        self.log_info(
            f"Carried {carried} {leave_type} day(s) of employee {employee_id} from {from_year} into {from_year + 1}",
            employee_id=employee_id,
        )
        return self._load(employee_id, leave_type, from_year + 1)

    def get_balance(self, employee_id: int, leave_type: str, year: int) -> LeaveBalanceResponse:
        """Stored balance, or the untouched allotment when nothing has been charged yet."""
        balance = self._load(employee_id, leave_type, year)
        if balance is not None:
            return LeaveBalanceResponse.model_validate(balance)
        limit = self.active_limit(leave_type)
        return LeaveBalanceResponse(
            employee_id=employee_id,
            leave_type=leave_type,
            year=year,
            total_days=limit,
            used_days=0.0,
            carried_forward_days=0.0,
            remaining_days=limit,
        )
