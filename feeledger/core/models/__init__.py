from feeledger.auth.models import User
from feeledger.core.models.college import College
from feeledger.core.models.counter import Counter
from feeledger.core.models.fee_structure import FeeStructure
from feeledger.core.models.student import Student
from feeledger.core.models.teacher import Teacher
from feeledger.core.models.invoice import Invoice, InvoiceItem
from feeledger.core.models.payment_transaction import PaymentTransaction
from feeledger.core.models.monthly_payment import MonthlyPayment
from feeledger.core.models.fee_audit_log import FeeAuditLog

__all__ = [
    "User",
    "College",
    "Counter",
    "FeeStructure",
    "Student",
    "Teacher",
    "Invoice",
    "InvoiceItem",
    "PaymentTransaction",
    "MonthlyPayment",
    "FeeAuditLog",
]
