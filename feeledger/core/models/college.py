import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Uuid
from sqlalchemy.orm import relationship

from feeledger.db.session import Base


class College(Base):
    """
    Tenant (college/school) in the multi-tenant platform.

    - id: Internal primary key. Used for all college_id FKs and data isolation.
    - code: Human-readable public identifier; UNIQUE, never used as a foreign key.
    """

    __tablename__ = "colleges"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    code = Column(String(20), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default="ACTIVE")
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    users = relationship("User", back_populates="college")
