"""Payment Rules — overpayment guard and invoice status reconciliation. Pure, no IO.

Invariants:
    - Cumulative payments never exceed invoice.total_cents
    - Cancelled invoices accept no payments and are never reconciled
    - total_paid >= total -> paid; 0 < total_paid and draft -> sent; else unchanged
    - Reconcile never moves sent/overdue backward on a partial payment and never
      invents overdue (that transition is date-driven, outside this engine)
    - Removing payment from a paid invoice that is now under-paid reverts to
      sent (payments remain) or draft (none remain)
    - An invoice edit may not lower the total below what has been paid

Design Decisions:
    - Functions return the next status (or an error descriptor) instead of writing:
      the shell applies the change in the same transaction as the payment write
"""

from invoicer.core.domain_types import InvoiceStatus
from invoicer.core.money import format_cents


def outstanding_cents(total_cents: int, total_paid_cents: int) -> int:
    return total_cents - total_paid_cents


def validate_payable(status: InvoiceStatus) -> dict | None:
    if InvoiceStatus(status) == InvoiceStatus.CANCELLED:
        return {
            "error_code": "INVOICE_CANCELLED",
            "message": "Cannot add payments to cancelled invoices",
        }
    return None


def check_overpayment(
    total_cents: int,
    paid_before_cents: int,
    amount_cents: int,
    verb: str = "Payment",
) -> dict | None:
    """Reject if paid_before + amount exceeds the invoice total.

    paid_before_cents excludes the payment being created or edited, so the
    reported outstanding balance is what the caller may still apply.
    """
    new_total = paid_before_cents + amount_cents
    if new_total <= total_cents:
        return None
    outstanding = outstanding_cents(total_cents, paid_before_cents)
    return {
        "error_code": "OVERPAYMENT",
        "message": (
            f"{verb} amount of {format_cents(amount_cents)} would exceed invoice total. "
            f"Outstanding balance: {format_cents(outstanding)}. "
            f"Invoice total: {format_cents(total_cents)}, "
            f"Already paid: {format_cents(paid_before_cents)}"
        ),
        "outstanding_cents": outstanding,
        "total_cents": total_cents,
        "paid_cents": paid_before_cents,
    }


def reconciled_status(
    current: InvoiceStatus, total_paid_cents: int, total_cents: int,
) -> InvoiceStatus:
    """Status an invoice should hold given its cumulative payments."""
    current = InvoiceStatus(current)
    if current == InvoiceStatus.CANCELLED:
        return current
    if total_paid_cents >= total_cents:
        return InvoiceStatus.PAID
    if total_paid_cents > 0 and current == InvoiceStatus.DRAFT:
        return InvoiceStatus.SENT
    return current


def status_after_removal(
    current: InvoiceStatus, remaining_paid_cents: int, total_cents: int,
) -> InvoiceStatus:
    """Status after a payment is deleted."""
    current = InvoiceStatus(current)
    if current == InvoiceStatus.PAID and remaining_paid_cents < total_cents:
        return InvoiceStatus.SENT if remaining_paid_cents > 0 else InvoiceStatus.DRAFT
    return reconciled_status(current, remaining_paid_cents, total_cents)


def check_total_covers_payments(total_cents: int, paid_cents: int) -> dict | None:
    """Reject an invoice edit that would leave recorded payments above the new total."""
    if paid_cents <= total_cents:
        return None
    return {
        "error_code": "TOTAL_BELOW_PAYMENTS",
        "message": (
            f"Invoice total of {format_cents(total_cents)} would be less than "
            f"payments already recorded ({format_cents(paid_cents)})"
        ),
        "outstanding_cents": outstanding_cents(total_cents, paid_cents),
        "total_cents": total_cents,
        "paid_cents": paid_cents,
    }
