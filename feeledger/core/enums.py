from enum import Enum


class UserRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    ACCOUNTANT = "accountant"
    TEACHER = "teacher"
    STUDENT = "student"


class InstituteType(str, Enum):
    SCHOOL = "school"
    COLLEGE = "college"
    ACADEMY = "academy"
    SHORT_COURSE = "short_course"


class StudentStatus(str, Enum):
    active = "active"
    inactive = "inactive"
    graduated = "graduated"
    transferred = "transferred"


class InvoiceStatus(str, Enum):
    pending = "pending"
    partial = "partial"
    paid = "paid"
    overdue = "overdue"


class PaymentMethod(str, Enum):
    cash = "cash"
    bank_transfer = "bank_transfer"
    online = "online"
    cheque = "cheque"


class FeeFrequency(str, Enum):
    one_time = "one_time"
    monthly = "monthly"
    quarterly = "quarterly"
    yearly = "yearly"


class PaymentTiming(str, Enum):
    paid_on_time = "paid_on_time"
    paid_late = "paid_late"
    # Paid, but without both a due date and a payment date to compare
    paid = "paid"
    partial = "partial"
    overdue = "overdue"
    pending = "pending"


class OverallFeeStatus(str, Enum):
    complete = "complete"
    pending = "pending"
    overdue = "overdue"
