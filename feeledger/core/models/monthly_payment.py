"""Monthly fee installment. One row per (student, month, year) for monthly fees, enforced by storage."""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import relationship

from feeledger.db.session import Base

PERIOD_INDEX = "uq_monthly_payment_period"


class MonthlyPayment(Base):
    """
    Immutable once created except for transaction_id, which is linked right after the
    PaymentTransaction row exists. The partial unique index is the source of truth for
    "already paid for this period"; the service pre-check is only a fast path.
    """

    __tablename__ = "monthly_payments"
    __table_args__ = (
        CheckConstraint("month BETWEEN 1 AND 12", name="chk_monthly_payment_month"),
        Index(
            PERIOD_INDEX,
            "student_id",
            "month",
            "year",
            unique=True,
            postgresql_where=text("is_monthly_fee"),
            sqlite_where=text("is_monthly_fee = 1"),
        ),
        Index("ix_monthly_payment_student_period", "student_id", "year", "month"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    college_id = Column(Uuid, ForeignKey("colleges.id", ondelete="CASCADE"), nullable=False, index=True)
    payment_no = Column(String(30), unique=True, nullable=False)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    invoice_id = Column(Uuid, ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True)
    transaction_id = Column(Uuid, ForeignKey("payment_transactions.id", ondelete="SET NULL"), nullable=True)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(30), nullable=False)  # cash, bank_transfer, online, cheque
    payment_date = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)
    collected_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    collected_by_name = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    receipt_no = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default="paid")
    is_monthly_fee = Column(Boolean, nullable=False, default=True)
    is_admission_fee = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student")
    invoice = relationship("Invoice")
    transaction = relationship("PaymentTransaction")
