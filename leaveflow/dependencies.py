from fastapi import Depends, Header
from sqlalchemy.orm import Session

from leaveflow.core.config import settings
from leaveflow.database import get_db
from leaveflow.services.leave_service import LeaveWorkflowService


def get_actor_id(actor_id: int = Header(..., alias=settings.actor_id_header)) -> int:
    """
    Identity of the caller as forwarded by the authenticating gateway.
    Resolution to a role happens inside the workflow service.
    """
    return actor_id


def get_leave_service(db: Session = Depends(get_db)) -> LeaveWorkflowService:
    return LeaveWorkflowService(db)


__all__ = [
    "get_actor_id",
    "get_leave_service",
]
