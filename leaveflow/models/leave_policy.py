from sqlalchemy import Column, Integer, String, Float, Boolean
from leaveflow.database import Base

class LeavePolicy(Base):
    __tablename__ = "leave_policies"

    id = Column(Integer, primary_key=True, index=True)
    leave_type = Column(String, index=True, nullable=False)
    annual_limit = Column(Float, nullable=False, default=0.0)
    is_active = Column(Boolean, default=True, nullable=False)
