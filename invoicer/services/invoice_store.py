"""Invoice Store — invoice, item, and payment queries shared by the billing services.

Invariants:
    - get(for_update=True) takes the row lock with a write (touching updated_at)
      before the locking SELECT, and repopulates any cached instance, so totals
      and payment sums read afterwards are the committed ones
    - Lock first: the touch must be the first write of its transaction
    - recalculate_totals() derives subtotal/tax/total from the loaded items only;
      running it twice without changes writes the same values
    - Nothing here commits

Design Decisions:
    - Payment sums are aggregate queries, not a loaded relationship: the sum
      is read under the invoice lock in the same transaction as the write
"""

import logging
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from invoicer.core.invoice_math import compute_totals
from invoicer.models.invoice import Invoice
from invoicer.models.payment import Payment

logger = logging.getLogger(__name__)


class InvoiceStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, invoice_id: UUID, for_update: bool = False) -> Invoice | None:
        query = select(Invoice).where(Invoice.id == invoice_id)
        if for_update:
            # SQLite ignores FOR UPDATE; a write takes its database lock
            await self.db.execute(
                update(Invoice)
                .where(Invoice.id == invoice_id)
                .values(updated_at=func.now())
                .execution_options(synchronize_session=False),
            )
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def list_by_client(self, client_id: UUID) -> list[Invoice]:
        result = await self.db.execute(
            select(Invoice)
            .where(Invoice.client_id == client_id)
            .order_by(Invoice.issue_date.desc(), Invoice.invoice_number.desc()),
        )
        return list(result.scalars().all())

    async def total_paid(self, invoice_id: UUID, exclude_payment_id: UUID | None = None) -> int:
        query = select(func.coalesce(func.sum(Payment.amount_cents), 0)).where(
            Payment.invoice_id == invoice_id,
        )
        if exclude_payment_id is not None:
            query = query.where(Payment.id != exclude_payment_id)
        return int((await self.db.execute(query)).scalar_one())

    async def payment_count(self, invoice_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(Payment.id)).where(Payment.invoice_id == invoice_id),
        )
        return int(result.scalar_one())

    async def get_payment(self, payment_id: UUID) -> Payment | None:
        result = await self.db.execute(
            select(Payment).where(Payment.id == payment_id),
        )
        return result.scalar_one_or_none()

    async def list_payments(self, invoice_id: UUID) -> list[Payment]:
        result = await self.db.execute(
            select(Payment)
            .where(Payment.invoice_id == invoice_id)
            .order_by(Payment.payment_date.desc(), Payment.created_at.desc()),
        )
        return list(result.scalars().all())

    async def recalculate_totals(self, invoice: Invoice) -> Invoice:
        """Recompute and flush subtotal, tax, and total from the invoice's items."""
        totals = compute_totals(
            (item.total_cents for item in invoice.items), invoice.tax_rate,
        )
        invoice.subtotal_cents = totals.subtotal_cents
        invoice.tax_amount_cents = totals.tax_amount_cents
        invoice.total_cents = totals.total_cents
        await self.db.flush()
        logger.debug(
            f"Totals recalculated: subtotal={totals.subtotal_cents} "
            f"tax={totals.tax_amount_cents} total={totals.total_cents}",
            extra={"invoice_id": invoice.id},
        )
        return invoice
