"""Invoice Lifecycle — reads, edits, status changes, item edits, and deletion.

Invariants:
    - Paid invoices are read-only: no field, item, or delete operation applies
    - An invoice with payments cannot be deleted
    - Deleting an invoice or an item returns its billed sessions to the unbilled
      pool in the same transaction
    - An invoice always keeps at least one item
    - Every item or tax change recalculates totals under the invoice lock, then
      refuses a total below recorded payments and reconciles status against them

Design Decisions:
    - Manual status change to 'paid' requires cumulative payments to cover the
      total: payment reconciliation is the only other way to reach 'paid'
"""

import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from invoicer.core.domain_types import InvoiceStatus
from invoicer.core.errors import BadRequestError, ErrorContext, NotFoundError
from invoicer.core.invoice_math import manual_item_total
from invoicer.core.payment_rules import check_total_covers_payments, reconciled_status
from invoicer.core.repository_protocols import ClientLookup
from invoicer.infrastructure.database import atomic
from invoicer.models.invoice import Invoice
from invoicer.models.invoice_item import InvoiceItem
from invoicer.services.invoice_store import InvoiceStore
from invoicer.services.project_lookup import SqlClientLookup
from invoicer.services.session_store import SessionStore

logger = logging.getLogger(__name__)

INVOICE_FIELDS = frozenset({
    "issue_date", "due_date", "service_period_end_date", "tax_rate",
    "currency", "notes", "terms", "status",
})
ITEM_FIELDS = frozenset({"description", "quantity", "unit_price_cents"})


def _reject_if_paid(invoice: Invoice, message: str) -> None:
    if InvoiceStatus(invoice.status) == InvoiceStatus.PAID:
        raise BadRequestError(
            message, "INVOICE_PAID", ErrorContext(invoice_id=str(invoice.id)),
        )


class InvoiceLifecycleService:
    def __init__(self, db: AsyncSession, clients: ClientLookup | None = None):
        self.db = db
        self.clients = clients or SqlClientLookup(db)
        self.invoices = InvoiceStore(db)
        self.sessions = SessionStore(db)

    async def get(self, invoice_id: UUID) -> Invoice:
        invoice = await self.invoices.get(invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice", str(invoice_id))
        return invoice

    async def list_by_client(self, client_id: UUID) -> list[Invoice]:
        if not await self.clients.client_exists(client_id):
            raise NotFoundError("Client", str(client_id))
        return await self.invoices.list_by_client(client_id)

    async def update(self, invoice_id: UUID, fields: dict) -> Invoice:
        unknown = set(fields) - INVOICE_FIELDS
        if unknown:
            raise BadRequestError(
                f"Fields cannot be updated: {', '.join(sorted(unknown))}",
                "FIELD_NOT_EDITABLE",
            )
        async with atomic(self.db):
            invoice = await self._lock(invoice_id)
            _reject_if_paid(invoice, "Cannot update a paid invoice")

            fields = dict(fields)
            status = fields.pop("status", None)
            tax_changed = (
                "tax_rate" in fields
                and Decimal(fields["tax_rate"]) != Decimal(invoice.tax_rate)
            )
            for name, value in fields.items():
                setattr(invoice, name, value)
            if tax_changed:
                await self._settle_totals(invoice)
            if status is not None:
                await self._apply_status(invoice, InvoiceStatus(status))
            await self.db.flush()
        logger.info(
            f"Invoice {invoice.invoice_number} updated: {sorted(fields)}",
            extra={"invoice_id": invoice_id},
        )
        return invoice

    async def update_status(self, invoice_id: UUID, status: InvoiceStatus) -> Invoice:
        async with atomic(self.db):
            invoice = await self._lock(invoice_id)
            await self._apply_status(invoice, InvoiceStatus(status))
            await self.db.flush()
        return invoice

    async def delete(self, invoice_id: UUID) -> None:
        async with atomic(self.db):
            invoice = await self._lock(invoice_id)
            if await self.invoices.payment_count(invoice_id) > 0:
                raise BadRequestError(
                    "Cannot delete an invoice that has payments", "INVOICE_HAS_PAYMENTS",
                    ErrorContext(invoice_id=str(invoice_id)),
                )
            _reject_if_paid(invoice, "Cannot delete a paid invoice")
            released = await self.sessions.unlink_items(item.id for item in invoice.items)
            number = invoice.invoice_number
            await self.db.delete(invoice)
        logger.info(
            f"Invoice {number} deleted; {released} session(s) returned to unbilled",
            extra={"invoice_id": invoice_id},
        )

    # ─── Items ───────────────────────────────────────────────────

    async def add_item(
        self, invoice_id: UUID, description: str, quantity: Decimal, unit_price_cents: int,
    ) -> Invoice:
        async with atomic(self.db):
            invoice = await self._lock(invoice_id)
            _reject_if_paid(invoice, "Cannot add items to a paid invoice")
            invoice.items.append(InvoiceItem(
                description=description,
                quantity=Decimal(quantity),
                unit_price_cents=unit_price_cents,
                total_cents=manual_item_total(Decimal(quantity), unit_price_cents),
                position=len(invoice.items),
            ))
            await self.db.flush()
            await self._settle_totals(invoice)
        return invoice

    async def update_item(self, invoice_id: UUID, item_id: UUID, fields: dict) -> Invoice:
        unknown = set(fields) - ITEM_FIELDS
        if unknown:
            raise BadRequestError(
                f"Fields cannot be updated: {', '.join(sorted(unknown))}",
                "FIELD_NOT_EDITABLE",
            )
        async with atomic(self.db):
            invoice = await self._lock(invoice_id)
            _reject_if_paid(invoice, "Cannot update items on a paid invoice")
            item = self._find_item(invoice, item_id)
            for name, value in fields.items():
                setattr(item, name, value)
            if "quantity" in fields or "unit_price_cents" in fields:
                item.total_cents = manual_item_total(
                    Decimal(item.quantity), item.unit_price_cents,
                )
            await self._settle_totals(invoice)
        return invoice

    async def delete_item(self, invoice_id: UUID, item_id: UUID) -> Invoice:
        async with atomic(self.db):
            invoice = await self._lock(invoice_id)
            _reject_if_paid(invoice, "Cannot delete items from a paid invoice")
            item = self._find_item(invoice, item_id)
            if len(invoice.items) <= 1:
                raise BadRequestError(
                    "Cannot delete the last item from an invoice", "LAST_ITEM",
                    ErrorContext(invoice_id=str(invoice_id)),
                )
            await self.sessions.unlink_items([item.id])
            invoice.items.remove(item)
            for position, remaining in enumerate(invoice.items):
                remaining.position = position
            await self.db.flush()
            await self._settle_totals(invoice)
        return invoice

    async def recalculate_totals(self, invoice_id: UUID) -> Invoice:
        async with atomic(self.db):
            invoice = await self._lock(invoice_id)
            await self._settle_totals(invoice)
        return invoice

    # ─── Internals ───────────────────────────────────────────────

    async def _lock(self, invoice_id: UUID) -> Invoice:
        invoice = await self.invoices.get(invoice_id, for_update=True)
        if invoice is None:
            raise NotFoundError("Invoice", str(invoice_id))
        return invoice

    @staticmethod
    def _find_item(invoice: Invoice, item_id: UUID) -> InvoiceItem:
        for item in invoice.items:
            if item.id == item_id:
                return item
        raise NotFoundError("InvoiceItem", str(item_id))

    async def _settle_totals(self, invoice: Invoice) -> None:
        """Recalculate totals, then hold payments <= total and reconcile status."""
        await self.invoices.recalculate_totals(invoice)
        paid = await self.invoices.total_paid(invoice.id)
        error = check_total_covers_payments(invoice.total_cents, paid)
        if error is not None:
            logger.warning(
                "Invoice edit rejected: total below recorded payments",
                extra={"invoice_id": invoice.id, "error_code": error["error_code"]},
            )
            raise BadRequestError(
                error["message"], error["error_code"],
                ErrorContext(
                    invoice_id=str(invoice.id),
                    debug_info={
                        "outstanding_cents": error["outstanding_cents"],
                        "total_cents": error["total_cents"],
                        "paid_cents": error["paid_cents"],
                    },
                ),
            )
        if paid == 0:
            return
        current = InvoiceStatus(invoice.status)
        target = reconciled_status(current, paid, invoice.total_cents)
        if target != current:
            invoice.status = target
            await self.db.flush()
            logger.info(
                f"Invoice {invoice.invoice_number} reconciled after edit: "
                f"{current.value} -> {target.value}",
                extra={"invoice_id": invoice.id, "status": target.value},
            )

    async def _apply_status(self, invoice: Invoice, status: InvoiceStatus) -> None:
        if status == InvoiceStatus.PAID and InvoiceStatus(invoice.status) != InvoiceStatus.PAID:
            paid = await self.invoices.total_paid(invoice.id)
            if paid < invoice.total_cents:
                raise BadRequestError(
                    "Cannot mark invoice as paid before payments cover the total",
                    "INVOICE_NOT_FULLY_PAID",
                    ErrorContext(
                        invoice_id=str(invoice.id),
                        debug_info={"paid_cents": paid, "total_cents": invoice.total_cents},
                    ),
                )
        previous = InvoiceStatus(invoice.status)
        invoice.status = status
        logger.info(
            f"Invoice {invoice.invoice_number}: {previous.value} -> {status.value}",
            extra={"invoice_id": invoice.id, "status": status.value},
        )
