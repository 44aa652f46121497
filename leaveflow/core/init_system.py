import logging
from sqlalchemy.orm import Session
from leaveflow.core.config import settings
from leaveflow.database import SessionLocal
from leaveflow.models.leave_policy import LeavePolicy

logger = logging.getLogger(__name__)

DEFAULT_POLICIES = {
    "annual": 20.0,
    "sick": 10.0,
    "personal": 3.0,
}

def seed_default_policies(db: Session) -> int:
    """Create the default leave policies when the table is empty. Returns how many were added."""
    if db.query(LeavePolicy).count() > 0:
        return 0
    for leave_type, limit in DEFAULT_POLICIES.items():
        db.add(LeavePolicy(leave_type=leave_type, annual_limit=limit, is_active=True))
    db.commit()
    return len(DEFAULT_POLICIES)

def init_system_data():
    """
    Checks if the system needs initialization.
    If no leave policy exists, seeds the defaults.
    """
    if not settings.seed_default_policies:
        logger.info("Default policy seeding disabled.")
        return
    db = SessionLocal()
    try:
        added = seed_default_policies(db)
        if added:
            logger.info(f"✓ Seeded {added} default leave policies.")
        else:
            logger.info("System initialization check: leave policies already present.")
    except Exception as e:
        db.rollback()
        logger.error(f"Error during system initialization check: {str(e)}", exc_info=True)
        raise
    finally:
        db.close()
