"""Fee structure: named set of fee components per institute type / course."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Numeric, String, Uuid

from feeledger.db.session import Base


class FeeStructure(Base):
    """total_amount is the sum of component amounts, computed by the service before insert."""

    __tablename__ = "fee_structures"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    college_id = Column(Uuid, ForeignKey("colleges.id", ondelete="CASCADE"), nullable=False, index=True)
    sr_no = Column(String(30), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    institute_type = Column(String(30), nullable=False)  # school, college, academy, short_course
    course_name = Column(String(255), nullable=True)
    # [{"name": "Tuition", "amount": "1500.00", "frequency": "monthly"}, ...]
    components = Column(JSON, nullable=False, default=list)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
