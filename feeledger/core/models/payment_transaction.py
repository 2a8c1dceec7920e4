"""Payment transaction: append-only record of a single monetary movement."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from feeledger.db.session import Base


class PaymentTransaction(Base):
    """Created once per payment event and never updated."""

    __tablename__ = "payment_transactions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    college_id = Column(Uuid, ForeignKey("colleges.id", ondelete="CASCADE"), nullable=False, index=True)
    transaction_no = Column(String(30), unique=True, nullable=False)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    # Kept as a plain reference: the transaction outlives a reversed (deleted) invoice
    invoice_id = Column(Uuid, nullable=True, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(30), nullable=False)  # cash, bank_transfer, online, cheque
    payment_date = Column(DateTime(timezone=True), nullable=False)
    collected_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    collected_by_name = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    receipt_no = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    student = relationship("Student")
    collected_by_user = relationship("User", foreign_keys=[collected_by])
