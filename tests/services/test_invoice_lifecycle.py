"""Invoice Lifecycle — edits, item changes, status guards, and deletion.

Invariants:
    - Paid invoices refuse edits; invoices with payments refuse deletion
    - Deleting an invoice or an item frees its sessions for re-billing
    - Totals follow every item and tax change
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from invoicer.core.domain_types import InvoiceStatus
from invoicer.core.errors import BadRequestError, NotFoundError
from invoicer.models.invoice_item import InvoiceItem
from invoicer.services.invoice_generator import InvoiceGenerator
from invoicer.services.invoice_lifecycle import InvoiceLifecycleService
from invoicer.services.payment_reconciler import PaymentReconciler
from invoicer.services.time_sessions import TimeSessionService


@pytest.fixture
def lifecycle(test_db):
    return InvoiceLifecycleService(test_db)


@pytest.fixture
def generator(test_db, clock):
    return InvoiceGenerator(test_db, clock=clock)


@pytest.fixture
def timer(test_db, clock):
    return TimeSessionService(test_db, clock=clock)


@pytest.fixture
async def invoice(generator, seed_client):
    return await generator.create_manual(
        seed_client.id,
        [("Design", Decimal("1"), 6000), ("Build", Decimal("2"), 2000)],
        tax_rate=Decimal("0"),
    )


async def _session_invoice(generator, timer, clock, project, seconds_list):
    ids = []
    for seconds in seconds_list:
        session = await timer.start(project.id, "Work")
        clock.advance(seconds)
        ids.append((await timer.stop(session.id)).id)
    invoice = await generator.create_from_sessions(
        ids, project.client_id, group_by_project=False,
    )
    return invoice, ids


# ─── Edits ──────────────────────────────────────────────────────

async def test_tax_change_recalculates(lifecycle, invoice):
    updated = await lifecycle.update(invoice.id, {"tax_rate": Decimal("20"), "notes": "Net 30"})
    assert updated.subtotal_cents == 10000
    assert updated.tax_amount_cents == 2000
    assert updated.total_cents == 12000
    assert updated.notes == "Net 30"


async def test_paid_invoice_is_read_only(lifecycle, test_db, invoice, clock):
    invoice_id = invoice.id
    item_id = invoice.items[0].id
    await PaymentReconciler(test_db, clock=clock).create_payment(invoice_id, 10000)

    with pytest.raises(BadRequestError, match="Cannot update a paid invoice"):
        await lifecycle.update(invoice_id, {"notes": "late"})
    with pytest.raises(BadRequestError) as exc:
        await lifecycle.add_item(invoice_id, "Extra", Decimal("1"), 100)
    assert exc.value.code == "INVOICE_PAID"
    with pytest.raises(BadRequestError):
        await lifecycle.update_item(invoice_id, item_id, {"unit_price_cents": 1})
    with pytest.raises(BadRequestError):
        await lifecycle.delete(invoice_id)


async def test_unknown_field_rejected(lifecycle, invoice):
    with pytest.raises(BadRequestError) as exc:
        await lifecycle.update(invoice.id, {"invoice_number": "X-1"})
    assert exc.value.code == "FIELD_NOT_EDITABLE"


async def test_manual_paid_requires_full_payment(lifecycle, test_db, invoice, clock):
    invoice_id = invoice.id
    with pytest.raises(BadRequestError) as exc:
        await lifecycle.update_status(invoice_id, InvoiceStatus.PAID)
    assert exc.value.code == "INVOICE_NOT_FULLY_PAID"

    sent = await lifecycle.update_status(invoice_id, InvoiceStatus.SENT)
    assert sent.status == InvoiceStatus.SENT


async def test_list_by_unknown_client(lifecycle):
    with pytest.raises(NotFoundError):
        await lifecycle.list_by_client(uuid4())


async def test_list_by_client(lifecycle, generator, seed_client, invoice):
    await generator.create_manual(seed_client.id, [("More", Decimal("1"), 500)])
    invoices = await lifecycle.list_by_client(seed_client.id)
    assert len(invoices) == 2


# ─── Items ──────────────────────────────────────────────────────

async def test_add_update_delete_item(lifecycle, invoice):
    invoice_id = invoice.id

    updated = await lifecycle.add_item(invoice_id, "Hosting", Decimal("3"), 1000)
    assert [i.position for i in updated.items] == [0, 1, 2]
    assert updated.total_cents == 13000

    hosting = updated.items[2]
    updated = await lifecycle.update_item(invoice_id, hosting.id, {"quantity": Decimal("1.5")})
    assert hosting.total_cents == 1500
    assert updated.total_cents == 11500

    first = updated.items[0]
    updated = await lifecycle.delete_item(invoice_id, first.id)
    assert [i.description for i in updated.items] == ["Build", "Hosting"]
    assert [i.position for i in updated.items] == [0, 1]
    assert updated.total_cents == 5500


async def test_cannot_delete_last_item(lifecycle, generator, seed_client):
    single = await generator.create_manual(seed_client.id, [("Only", Decimal("1"), 100)])
    single_id, item_id = single.id, single.items[0].id

    with pytest.raises(BadRequestError) as exc:
        await lifecycle.delete_item(single_id, item_id)
    assert exc.value.code == "LAST_ITEM"
    assert len((await lifecycle.get(single_id)).items) == 1


async def test_missing_item_is_not_found(lifecycle, invoice):
    with pytest.raises(NotFoundError):
        await lifecycle.update_item(invoice.id, uuid4(), {"description": "x"})


async def test_deleting_item_frees_its_sessions(
    lifecycle, generator, timer, seed_project, clock,
):
    invoice, ids = await _session_invoice(generator, timer, clock, seed_project, [900, 1800])
    invoice_id, item_id = invoice.id, invoice.items[0].id

    updated = await lifecycle.delete_item(invoice_id, item_id)
    assert updated.total_cents == 5000

    unbilled = await timer.list_unbilled()
    assert [s.id for s in unbilled] == [ids[0]]


# ─── Deletion ───────────────────────────────────────────────────

async def test_delete_invoice_returns_sessions_to_pool(
    lifecycle, generator, timer, test_db, seed_project, clock,
):
    invoice, ids = await _session_invoice(generator, timer, clock, seed_project, [900, 900])

    await lifecycle.delete(invoice.id)

    unbilled = await timer.list_unbilled()
    assert sorted(s.id for s in unbilled) == sorted(ids)
    assert all(s.billed_at is None for s in unbilled)
    assert (await test_db.execute(select(func.count(InvoiceItem.id)))).scalar_one() == 0

    again = await generator.create_from_sessions(ids, seed_project.client_id)
    assert again.total_cents == 5000


async def test_invoice_with_payments_cannot_be_deleted(lifecycle, test_db, invoice, clock):
    invoice_id = invoice.id
    await PaymentReconciler(test_db, clock=clock).create_payment(invoice_id, 1000)

    with pytest.raises(BadRequestError) as exc:
        await lifecycle.delete(invoice_id)
    assert exc.value.code == "INVOICE_HAS_PAYMENTS"
    assert (await lifecycle.get(invoice_id)).id == invoice_id


async def test_delete_missing_invoice(lifecycle):
    with pytest.raises(NotFoundError):
        await lifecycle.delete(uuid4())


# ─── Totals against recorded payments ───────────────────────────

async def test_deleting_item_below_payments_rejected(lifecycle, test_db, invoice, clock):
    invoice_id, build_id = invoice.id, invoice.items[1].id
    await PaymentReconciler(test_db, clock=clock).create_payment(invoice_id, 9000)

    with pytest.raises(BadRequestError) as exc:
        await lifecycle.delete_item(invoice_id, build_id)
    assert exc.value.code == "TOTAL_BELOW_PAYMENTS"
    assert exc.value.context.debug_info["paid_cents"] == 9000

    unchanged = await lifecycle.get(invoice_id)
    assert unchanged.total_cents == 10000
    assert len(unchanged.items) == 2


async def test_lowering_item_price_below_payments_rejected(
    lifecycle, test_db, invoice, clock,
):
    invoice_id, design_id = invoice.id, invoice.items[0].id
    await PaymentReconciler(test_db, clock=clock).create_payment(invoice_id, 9000)

    with pytest.raises(BadRequestError) as exc:
        await lifecycle.update_item(invoice_id, design_id, {"unit_price_cents": 1000})
    assert exc.value.code == "TOTAL_BELOW_PAYMENTS"
    assert (await lifecycle.get(invoice_id)).total_cents == 10000


async def test_edit_that_payments_now_cover_marks_paid(lifecycle, test_db, invoice, clock):
    invoice_id, build_id = invoice.id, invoice.items[1].id
    await PaymentReconciler(test_db, clock=clock).create_payment(invoice_id, 6000)

    updated = await lifecycle.delete_item(invoice_id, build_id)
    assert updated.total_cents == 6000
    assert updated.status == InvoiceStatus.PAID


async def test_tax_cut_that_payments_now_cover_marks_paid(
    lifecycle, generator, test_db, seed_client, clock,
):
    taxed = await generator.create_manual(
        seed_client.id, [("Retainer", Decimal("1"), 10000)], tax_rate=Decimal("10"),
    )
    invoice_id = taxed.id
    await PaymentReconciler(test_db, clock=clock).create_payment(invoice_id, 10000)
    assert (await lifecycle.get(invoice_id)).status == InvoiceStatus.SENT

    updated = await lifecycle.update(invoice_id, {"tax_rate": Decimal("0")})
    assert updated.total_cents == 10000
    assert updated.status == InvoiceStatus.PAID


async def test_edit_without_payments_keeps_status(lifecycle, invoice):
    updated = await lifecycle.update_item(
        invoice.id, invoice.items[0].id, {"unit_price_cents": 0},
    )
    assert updated.total_cents == 4000
    assert updated.status == InvoiceStatus.DRAFT
