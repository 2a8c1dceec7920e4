"""Invoice and its line items. Derived amounts/status come from core.invoice_math.compute_invoice_fields."""

import uuid
from datetime import date, datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from feeledger.core.enums import InvoiceStatus
from feeledger.db.session import Base


class Invoice(Base):
    """
    Fee invoice for a student. total_amount grows when monthly-fee line items are appended.
    Never hard-deleted without reversing its paid_amount on the student aggregate.
    """

    __tablename__ = "invoices"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    college_id = Column(Uuid, ForeignKey("colleges.id", ondelete="CASCADE"), nullable=False, index=True)
    invoice_no = Column(String(30), unique=True, nullable=False)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    fee_structure_id = Column(Uuid, ForeignKey("fee_structures.id", ondelete="SET NULL"), nullable=True)
    invoice_date = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    due_date = Column(Date, nullable=True)

    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    pending_amount = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default=InvoiceStatus.pending.value)

    payment_method = Column(String(30), nullable=True)
    payment_date = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    collected_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    collected_by_name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
        lazy="selectin",
    )
    student = relationship("Student")


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    invoice_id = Column(Uuid, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    description = Column(String(255), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)

    invoice = relationship("Invoice", back_populates="items")
