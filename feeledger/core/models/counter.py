"""Serial counter: one row per prefix. Mutated only by the atomic increment-and-fetch in core.serials."""

from datetime import datetime

from sqlalchemy import BigInteger, Column, DateTime, String

from feeledger.db.session import Base


class Counter(Base):
    """Process-wide counter per serial prefix (STU, ADM, INV, MPAY, TXN, ...). Never deleted."""

    __tablename__ = "counters"

    prefix = Column(String(20), primary_key=True)  # uppercase
    count = Column(BigInteger, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
