"""Payment Reconciler — payment writes and the invoice status they drive.

Invariants:
    - The invoice row is locked (SELECT ... FOR UPDATE) before the payment sum is
      read; sum, guard, write, and status change share one transaction
    - Cumulative payments never exceed invoice.total_cents
    - Cancelled invoices accept no new payments and are never reconciled
    - Deleting a payment from a paid invoice that becomes under-paid reverts it
      to sent (payments remain) or draft (none remain)

Design Decisions:
    - Status rules live in core.payment_rules; this module only sequences IO
    - update_payment reconciles with the ordinary forward-only rule: lowering a
      payment on a paid invoice does not revert it (only deletion does)
"""

import logging
from datetime import date
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from invoicer.core.domain_types import InvoiceStatus, PaymentMethod
from invoicer.core.errors import BadRequestError, ErrorContext, NotFoundError
from invoicer.core.payment_rules import (
    check_overpayment,
    reconciled_status,
    status_after_removal,
    validate_payable,
)
from invoicer.core.repository_protocols import Clock
from invoicer.infrastructure.clock import SystemClock
from invoicer.infrastructure.database import atomic
from invoicer.models.invoice import Invoice
from invoicer.models.payment import Payment
from invoicer.services.invoice_store import InvoiceStore

logger = logging.getLogger(__name__)

PAYMENT_FIELDS = frozenset({
    "amount_cents", "payment_date", "payment_method", "reference_number", "notes",
})


def _overpayment_error(error: dict, invoice_id: UUID, payment_id: UUID | None = None):
    return BadRequestError(
        error["message"], error["error_code"],
        ErrorContext(
            invoice_id=str(invoice_id),
            payment_id=str(payment_id) if payment_id else None,
            debug_info={
                "outstanding_cents": error["outstanding_cents"],
                "total_cents": error["total_cents"],
                "paid_cents": error["paid_cents"],
            },
        ),
    )


class PaymentReconciler:
    def __init__(self, db: AsyncSession, clock: Clock | None = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.invoices = InvoiceStore(db)

    # ─── Reads ───────────────────────────────────────────────────

    async def get(self, payment_id: UUID) -> Payment:
        payment = await self.invoices.get_payment(payment_id)
        if payment is None:
            raise NotFoundError("Payment", str(payment_id))
        return payment

    async def list_by_invoice(self, invoice_id: UUID) -> list[Payment]:
        if await self.invoices.get(invoice_id) is None:
            raise NotFoundError("Invoice", str(invoice_id))
        return await self.invoices.list_payments(invoice_id)

    async def total_paid(self, invoice_id: UUID) -> int:
        if await self.invoices.get(invoice_id) is None:
            raise NotFoundError("Invoice", str(invoice_id))
        return await self.invoices.total_paid(invoice_id)

    # ─── Writes ──────────────────────────────────────────────────

    async def create_payment(
        self,
        invoice_id: UUID,
        amount_cents: int,
        payment_date: date | None = None,
        payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER,
        reference_number: str | None = None,
        notes: str | None = None,
    ) -> Payment:
        if amount_cents <= 0:
            raise BadRequestError("Amount must be positive", "INVALID_AMOUNT")

        async with atomic(self.db):
            invoice = await self._lock_invoice(invoice_id)
            error = validate_payable(invoice.status)
            if error is not None:
                raise BadRequestError(
                    error["message"], error["error_code"],
                    ErrorContext(invoice_id=str(invoice_id)),
                )
            paid_before = await self.invoices.total_paid(invoice_id)
            error = check_overpayment(invoice.total_cents, paid_before, amount_cents)
            if error is not None:
                logger.warning(
                    "Overpayment rejected",
                    extra={
                        "invoice_id": invoice_id, "amount_cents": amount_cents,
                        "error_code": error["error_code"],
                    },
                )
                raise _overpayment_error(error, invoice_id)

            payment = Payment(
                invoice_id=invoice_id,
                amount_cents=amount_cents,
                payment_date=payment_date or self.clock.now().date(),
                payment_method=PaymentMethod(payment_method),
                reference_number=reference_number,
                notes=notes,
            )
            self.db.add(payment)
            await self.db.flush()
            self.reconcile(invoice, paid_before + amount_cents)
            await self.db.flush()

        logger.info(
            f"Payment recorded on {invoice.invoice_number}; invoice now {invoice.status.value}",
            extra={
                "invoice_id": invoice_id, "payment_id": payment.id,
                "amount_cents": amount_cents,
            },
        )
        return payment

    async def update_payment(self, payment_id: UUID, fields: dict) -> Payment:
        unknown = set(fields) - PAYMENT_FIELDS
        if unknown:
            raise BadRequestError(
                f"Fields cannot be updated: {', '.join(sorted(unknown))}",
                "FIELD_NOT_EDITABLE",
            )
        new_amount = fields.get("amount_cents")
        if new_amount is not None and new_amount <= 0:
            raise BadRequestError("Amount must be positive", "INVALID_AMOUNT")

        async with atomic(self.db):
            payment = await self.get(payment_id)
            invoice = await self._lock_invoice(payment.invoice_id)
            amount_changed = new_amount is not None and new_amount != payment.amount_cents
            if amount_changed:
                others = await self.invoices.total_paid(
                    invoice.id, exclude_payment_id=payment_id,
                )
                error = check_overpayment(
                    invoice.total_cents, others, new_amount, verb="Updated payment",
                )
                if error is not None:
                    logger.warning(
                        "Payment update rejected as overpayment",
                        extra={"payment_id": payment_id, "error_code": error["error_code"]},
                    )
                    raise _overpayment_error(error, invoice.id, payment_id)

            for name, value in fields.items():
                setattr(payment, name, value)
            await self.db.flush()
            if amount_changed:
                self.reconcile(invoice, others + new_amount)
                await self.db.flush()
        return payment

    async def delete_payment(self, payment_id: UUID) -> None:
        async with atomic(self.db):
            payment = await self.get(payment_id)
            invoice = await self._lock_invoice(payment.invoice_id)
            await self.db.delete(payment)
            await self.db.flush()
            remaining = await self.invoices.total_paid(invoice.id)
            previous = InvoiceStatus(invoice.status)
            invoice.status = status_after_removal(previous, remaining, invoice.total_cents)
            await self.db.flush()
        logger.info(
            f"Payment deleted from {invoice.invoice_number}: "
            f"{previous.value} -> {InvoiceStatus(invoice.status).value}",
            extra={"invoice_id": invoice.id, "payment_id": payment_id},
        )

    def reconcile(self, invoice: Invoice, total_paid_cents: int) -> InvoiceStatus:
        """Move invoice.status to what its cumulative payments imply. Caller flushes."""
        current = InvoiceStatus(invoice.status)
        target = reconciled_status(current, total_paid_cents, invoice.total_cents)
        if target != current:
            invoice.status = target
            logger.info(
                f"Invoice {invoice.invoice_number} reconciled: {current.value} -> {target.value}",
                extra={"invoice_id": invoice.id, "status": target.value},
            )
        return target

    async def _lock_invoice(self, invoice_id: UUID) -> Invoice:
        invoice = await self.invoices.get(invoice_id, for_update=True)
        if invoice is None:
            raise NotFoundError("Invoice", str(invoice_id))
        return invoice
