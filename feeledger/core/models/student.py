"""Student with its cached fee aggregate. Fee columns are written only by core.fee_ledger."""

import uuid
from datetime import date, datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import relationship

from feeledger.core.enums import StudentStatus
from feeledger.db.session import Base


class Student(Base):
    """
    Admitted student. sr_no (STU-NNNN) and admission_no (ADM-NNNN) come from the serial allocator.

    Fee aggregate (derived, recomputable from invoices/transactions):
      pending_fee   = total_fee - paid_fee
      remaining_fee = total_fee + admission_fee - paid_fee
    """

    __tablename__ = "students"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    college_id = Column(Uuid, ForeignKey("colleges.id", ondelete="CASCADE"), nullable=False, index=True)
    # Login account, when the student has one
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    sr_no = Column(String(30), unique=True, nullable=False)
    admission_no = Column(String(30), unique=True, nullable=False)
    full_name = Column(String(255), nullable=False)
    institute_type = Column(String(30), nullable=True)
    session = Column(String(30), nullable=True)
    admission_date = Column(Date, default=date.today, nullable=False)
    status = Column(String(20), nullable=False, default=StudentStatus.active.value)
    admitted_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    admitted_by_name = Column(String(255), nullable=True)

    total_fee = Column(Numeric(12, 2), nullable=False, default=0)
    admission_fee = Column(Numeric(12, 2), nullable=False, default=0)
    paid_fee = Column(Numeric(12, 2), nullable=False, default=0)
    pending_fee = Column(Numeric(12, 2), nullable=False, default=0)
    remaining_fee = Column(Numeric(12, 2), nullable=False, default=0)
    fee_structure_id = Column(Uuid, ForeignKey("fee_structures.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    college = relationship("College")
    fee_structure = relationship("FeeStructure")
