"""Invoice Generator — manual invoices and session-to-invoice conversion.

Invariants:
    - One transaction per invoice: number allocation, invoice row, items, and
      session links commit together or not at all
    - A session is linked only if it is still unbilled at write time
      (UPDATE ... WHERE invoice_item_id IS NULL, rowcount checked)
    - Sessions are read FOR UPDATE so a concurrent conversion waits, then sees
      them billed and is rejected
    - Item totals for session-derived lines are exact sums of session amounts

Design Decisions:
    - Validation happens before number allocation, so rejected requests never
      touch the counter row
    - tax_rate / currency fall back to the user settings row when omitted
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from invoicer.core.errors import BadRequestError, ErrorContext, NotFoundError
from invoicer.core.invoice_math import (
    ItemDraft,
    SessionLine,
    build_manual_items,
    build_session_items,
    compute_totals,
    validate_sessions_for_billing,
)
from invoicer.core.repository_protocols import ClientLookup, Clock
from invoicer.infrastructure.clock import SystemClock
from invoicer.infrastructure.database import atomic
from invoicer.models.invoice import Invoice
from invoicer.models.invoice_item import InvoiceItem
from invoicer.models.time_session import TimeSession
from invoicer.models.user_settings import UserSettings
from invoicer.services.invoice_numbers import InvoiceNumberAllocator, ensure_settings
from invoicer.services.project_lookup import SqlClientLookup
from invoicer.services.session_store import SessionStore

logger = logging.getLogger(__name__)

DOUBLE_BILLING_CONFLICT = "One or more sessions have already been billed"


def _session_line(session: TimeSession) -> SessionLine:
    return SessionLine(
        session_id=session.id,
        project_id=session.project_id,
        project_name=session.project.name if session.project is not None else None,
        task_description=session.task_description,
        duration_seconds=session.duration_seconds or 0,
        hourly_rate_cents=session.hourly_rate_cents,
        billable_amount_cents=session.billable_amount_cents or 0,
    )


class InvoiceGenerator:
    """Creates invoices; every public method is a single atomic unit."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Clock | None = None,
        clients: ClientLookup | None = None,
    ):
        self.db = db
        self.clock = clock or SystemClock()
        self.clients = clients or SqlClientLookup(db)
        self.sessions = SessionStore(db)
        self.numbers = InvoiceNumberAllocator(db)

    async def create_manual(
        self,
        client_id: UUID,
        items: Iterable[tuple[str, Decimal, int]],
        tax_rate: Decimal | None = None,
        issue_date: date | None = None,
        due_date: date | None = None,
        service_period_end_date: date | None = None,
        currency: str | None = None,
        notes: str | None = None,
        terms: str | None = None,
    ) -> Invoice:
        drafts = build_manual_items(items)
        if not drafts:
            raise BadRequestError("At least one item is required", "NO_ITEMS")

        async with atomic(self.db):
            await self._require_client(client_id)
            settings = await ensure_settings(self.db)
            invoice = await self._persist(
                client_id, drafts, settings,
                tax_rate=tax_rate, issue_date=issue_date, due_date=due_date,
                service_period_end_date=service_period_end_date,
                currency=currency, notes=notes, terms=terms,
            )
        logger.info(
            f"Invoice {invoice.invoice_number} created with {len(drafts)} item(s)",
            extra={"invoice_id": invoice.id, "amount_cents": invoice.total_cents},
        )
        return invoice

    async def create_from_sessions(
        self,
        session_ids: Sequence[UUID],
        client_id: UUID,
        group_by_project: bool = True,
        tax_rate: Decimal | None = None,
        issue_date: date | None = None,
        due_date: date | None = None,
        service_period_end_date: date | None = None,
        currency: str | None = None,
        notes: str | None = None,
        terms: str | None = None,
    ) -> Invoice:
        ids = list(dict.fromkeys(session_ids))

        async with atomic(self.db, DOUBLE_BILLING_CONFLICT):
            by_id = {
                s.id: s for s in await self.sessions.get_many(ids, for_update=True)
            }
            if len(by_id) != len(ids):
                missing = [str(i) for i in ids if i not in by_id]
                raise NotFoundError(
                    "TimeSession",
                    message="One or more time sessions not found",
                    context=ErrorContext(debug_info={"missing_session_ids": missing}),
                )
            sessions = [by_id[i] for i in ids]

            error = validate_sessions_for_billing(sessions, client_id)
            if error is not None:
                logger.warning(
                    f"Session conversion rejected: {error['message']}",
                    extra={"error_code": error["error_code"]},
                )
                raise BadRequestError(error["message"], error["error_code"])

            drafts = build_session_items(
                [_session_line(s) for s in sessions], group_by_project,
            )
            settings = await ensure_settings(self.db)
            invoice = await self._persist(
                client_id, drafts, settings,
                tax_rate=tax_rate, issue_date=issue_date, due_date=due_date,
                service_period_end_date=service_period_end_date,
                currency=currency, notes=notes, terms=terms,
            )
            await self._link_sessions(invoice, drafts, by_id)

        logger.info(
            f"Invoice {invoice.invoice_number} created from {len(sessions)} session(s) "
            f"as {len(drafts)} item(s)",
            extra={"invoice_id": invoice.id, "amount_cents": invoice.total_cents},
        )
        return invoice

    # ─── Internals ───────────────────────────────────────────────

    async def _require_client(self, client_id: UUID) -> None:
        if not await self.clients.client_exists(client_id):
            raise NotFoundError("Client", str(client_id))

    async def _persist(
        self,
        client_id: UUID,
        drafts: list[ItemDraft],
        settings: UserSettings,
        tax_rate: Decimal | None,
        issue_date: date | None,
        due_date: date | None,
        service_period_end_date: date | None,
        currency: str | None,
        notes: str | None,
        terms: str | None,
    ) -> Invoice:
        rate = Decimal(tax_rate) if tax_rate is not None else settings.default_tax_rate
        issued = issue_date or self.clock.now().date()
        totals = compute_totals((d.total_cents for d in drafts), rate)

        invoice = Invoice(
            invoice_number=await self.numbers.next_number(),
            client_id=client_id,
            issue_date=issued,
            due_date=due_date or issued + timedelta(days=settings.default_payment_terms),
            service_period_end_date=service_period_end_date,
            tax_rate=rate,
            subtotal_cents=totals.subtotal_cents,
            tax_amount_cents=totals.tax_amount_cents,
            total_cents=totals.total_cents,
            currency=currency or settings.default_currency,
            notes=notes,
            terms=terms,
            items=[
                InvoiceItem(
                    description=d.description,
                    quantity=d.quantity,
                    unit_price_cents=d.unit_price_cents,
                    total_cents=d.total_cents,
                    position=d.position,
                )
                for d in drafts
            ],
        )
        self.db.add(invoice)
        await self.db.flush()
        return invoice

    async def _link_sessions(
        self,
        invoice: Invoice,
        drafts: list[ItemDraft],
        sessions: dict[UUID, TimeSession],
    ) -> None:
        billed_at = self.clock.now()
        for item, draft in zip(invoice.items, drafts):
            for session_id in draft.session_ids:
                if not await self.sessions.link_to_item(sessions[session_id], item.id, billed_at):
                    raise BadRequestError(
                        DOUBLE_BILLING_CONFLICT, "SESSION_ALREADY_BILLED",
                        ErrorContext(
                            session_id=str(session_id), invoice_id=str(invoice.id),
                        ),
                    )
