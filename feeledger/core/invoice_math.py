"""Pure invoice arithmetic. Called explicitly before every invoice persist."""

import calendar
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Tuple

from feeledger.core.enums import InvoiceStatus, PaymentTiming

ZERO = Decimal("0")


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    total_amount: Decimal
    pending_amount: Decimal
    status: InvoiceStatus


def _dec(val: Any) -> Decimal:
    if val is None:
        return ZERO
    return val if isinstance(val, Decimal) else Decimal(str(val))


def item_field(item: Any, name: str, default: Any = None) -> Any:
    if isinstance(item, Mapping):
        return item.get(name, default)
    return getattr(item, name, default)


def line_total(item: Any) -> Decimal:
    quantity = item_field(item, "quantity")
    return _dec(item_field(item, "amount")) * (1 if quantity is None else int(quantity))


def derive_status(
    pending_amount: Decimal,
    paid_amount: Decimal,
    due_date: Optional[date],
    today: date,
) -> InvoiceStatus:
    if pending_amount <= 0:
        return InvoiceStatus.paid
    if paid_amount > 0:
        return InvoiceStatus.partial
    if due_date is not None and today > due_date:
        return InvoiceStatus.overdue
    return InvoiceStatus.pending


def classify_payment(
    status: InvoiceStatus,
    due_date: Optional[date],
    payment_date: Optional[Any],
    today: date,
) -> Tuple[PaymentTiming, bool]:
    """
    Payment timing of an invoice and whether its unpaid balance is past due.

    A paid invoice is on time when it was paid on or before its due date. Unpaid and
    partially paid invoices are past due once ``today`` is after the due date.
    """
    if status == InvoiceStatus.paid:
        if due_date is None or payment_date is None:
            return PaymentTiming.paid, False
        paid_on = payment_date.date() if isinstance(payment_date, datetime) else payment_date
        return (PaymentTiming.paid_on_time if paid_on <= due_date else PaymentTiming.paid_late), False
    past_due = due_date is not None and today > due_date
    if status == InvoiceStatus.partial:
        return PaymentTiming.partial, past_due
    if status == InvoiceStatus.overdue or past_due:
        return PaymentTiming.overdue, True
    return PaymentTiming.pending, False


def compute_invoice_fields(
    items: Iterable[Any],
    discount: Any = ZERO,
    paid_amount: Any = ZERO,
    due_date: Optional[date] = None,
    today: Optional[date] = None,
) -> InvoiceTotals:
    """
    subtotal = sum(amount * quantity); total = subtotal - discount; pending = total - paid.
    Status: paid when nothing is pending, else partial once anything is paid, else
    overdue past the due date, else pending.
    """
    subtotal = sum((line_total(i) for i in items), ZERO)
    total = subtotal - _dec(discount)
    paid = _dec(paid_amount)
    pending = total - paid
    return InvoiceTotals(
        subtotal=subtotal,
        total_amount=total,
        pending_amount=pending,
        status=derive_status(pending, paid, due_date, today or date.today()),
    )


def apply_invoice_fields(invoice, today: Optional[date] = None) -> InvoiceTotals:
    """Recompute and assign the derived columns of an Invoice from its items."""
    totals = compute_invoice_fields(
        invoice.items,
        discount=invoice.discount,
        paid_amount=invoice.paid_amount,
        due_date=invoice.due_date,
        today=today,
    )
    invoice.subtotal = totals.subtotal
    invoice.total_amount = totals.total_amount
    invoice.pending_amount = totals.pending_amount
    invoice.status = totals.status.value
    return totals


def month_label(month: int, year: int) -> str:
    return f"{calendar.month_name[month]} {year}"


def monthly_fee_description(month: int, year: int) -> str:
    return f"Monthly Fee - {month_label(month, year)}"
