import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from feeledger.db.session import Base


class User(Base):
    """Login principal within a college. Credentials live with the external auth service."""

    __tablename__ = "users"
    __table_args__ = (
        # Email must be unique per college
        UniqueConstraint("college_id", "email", name="uq_user_college_email"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # Owning college; null only for super_admin
    college_id = Column(Uuid, ForeignKey("colleges.id"), nullable=True)
    email = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    # super_admin, admin, accountant, teacher, student
    role = Column(String(50), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    college = relationship("College", back_populates="users")
