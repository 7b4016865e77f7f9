"""Invoice Generator — manual invoices and session-to-invoice conversion.

Invariants:
    - K projects grouped -> K items, each total an exact sum of session amounts
    - Every converted session ends up linked to an item of the new invoice
    - A session can be billed once; a failed conversion leaves nothing behind
"""

import asyncio
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from invoicer.core.domain_types import InvoiceStatus
from invoicer.core.errors import BadRequestError, NotFoundError
from invoicer.models.invoice import Invoice
from invoicer.models.time_session import TimeSession
from invoicer.models.user_settings import UserSettings
from invoicer.services.invoice_generator import InvoiceGenerator
from invoicer.services.time_sessions import TimeSessionService


@pytest.fixture
def generator(test_db, clock):
    return InvoiceGenerator(test_db, clock=clock)


@pytest.fixture
def timer(test_db, clock):
    return TimeSessionService(test_db, clock=clock)


async def _stopped(timer, clock, project_id, seconds, task="Work"):
    session = await timer.start(project_id, task)
    clock.advance(seconds)
    stopped = await timer.stop(session.id)
    return stopped.id


# ─── Manual invoices ────────────────────────────────────────────

async def test_create_manual_invoice(generator, seed_client, clock):
    invoice = await generator.create_manual(
        seed_client.id,
        [("Design", Decimal("2"), 10000), ("Hosting", Decimal("1.5"), 3333)],
        tax_rate=Decimal("10"),
    )

    assert invoice.invoice_number == "INV-0001"
    assert invoice.status == InvoiceStatus.DRAFT
    assert [i.total_cents for i in invoice.items] == [20000, 5000]
    assert invoice.subtotal_cents == 25000
    assert invoice.tax_amount_cents == 2500
    assert invoice.total_cents == 27500
    assert invoice.issue_date == clock.now().date()
    assert invoice.due_date == date(2026, 4, 1)
    assert invoice.currency == "USD"


async def test_manual_invoice_requires_items(generator, seed_client):
    with pytest.raises(BadRequestError):
        await generator.create_manual(seed_client.id, [])


async def test_manual_invoice_unknown_client(generator, test_db):
    with pytest.raises(NotFoundError):
        await generator.create_manual(uuid4(), [("x", Decimal("1"), 100)])
    settings = (await test_db.execute(select(UserSettings))).scalar_one()
    assert settings.next_invoice_number == 1


async def test_invoice_numbers_are_sequential(generator, seed_client):
    numbers = []
    for _ in range(3):
        invoice = await generator.create_manual(seed_client.id, [("x", Decimal("1"), 100)])
        numbers.append(invoice.invoice_number)
    assert numbers == ["INV-0001", "INV-0002", "INV-0003"]


async def test_concurrent_invoices_get_distinct_numbers(test_session_factory, seed_client, clock):
    async def create():
        async with test_session_factory() as db:
            invoice = await InvoiceGenerator(db, clock=clock).create_manual(
                seed_client.id, [("x", Decimal("1"), 100)],
            )
            return invoice.invoice_number

    numbers = await asyncio.gather(*(create() for _ in range(5)))
    assert sorted(numbers) == [f"INV-000{n}" for n in range(1, 6)]


# ─── Session conversion ─────────────────────────────────────────

async def test_grouped_conversion_round_trip(
    generator, timer, test_db, seed_project, second_project, clock,
):
    web_a = await _stopped(timer, clock, seed_project.id, 1800)
    app_a = await _stopped(timer, clock, second_project.id, 900)
    web_b = await _stopped(timer, clock, seed_project.id, 2700)
    ids = [web_a, app_a, web_b]

    invoice = await generator.create_from_sessions(
        ids, seed_project.client_id, tax_rate=Decimal("0"),
    )

    assert [i.description for i in invoice.items] == [
        "Website - Time tracking (1.25 hours)",
        "Mobile App - Time tracking (0.25 hours)",
    ]
    assert [i.total_cents for i in invoice.items] == [12500, 3000]
    assert invoice.items[0].unit_price_cents == 10000
    assert invoice.items[0].quantity == Decimal("1.25")
    assert invoice.subtotal_cents == 15500
    assert invoice.total_cents == 15500

    sessions = (await test_db.execute(
        select(TimeSession).where(TimeSession.id.in_(ids)),
    )).scalars().all()
    item_ids = {i.id for i in invoice.items}
    assert all(s.invoice_item_id in item_ids for s in sessions)
    assert all(s.billed_at is not None for s in sessions)
    assert await timer.list_unbilled() == []


async def test_ungrouped_conversion(generator, timer, seed_project, clock):
    first = await _stopped(timer, clock, seed_project.id, 900, task="Header")
    second = await _stopped(timer, clock, seed_project.id, 1800, task="Footer")

    invoice = await generator.create_from_sessions(
        [first, second], seed_project.client_id, group_by_project=False,
    )

    assert [i.description for i in invoice.items] == [
        "Website - Header", "Website - Footer",
    ]
    assert [i.total_cents for i in invoice.items] == [2500, 5000]
    assert [i.position for i in invoice.items] == [0, 1]


async def test_session_cannot_be_billed_twice(generator, timer, seed_project, clock):
    session_id = await _stopped(timer, clock, seed_project.id, 900)
    client_id = seed_project.client_id
    await generator.create_from_sessions([session_id], client_id)

    with pytest.raises(BadRequestError) as exc:
        await generator.create_from_sessions([session_id], client_id)
    assert exc.value.message == "One or more sessions have already been billed"


async def test_concurrent_conversions_bill_once(
    test_session_factory, timer, seed_project, clock,
):
    session_id = await _stopped(timer, clock, seed_project.id, 900)
    client_id = seed_project.client_id

    async def convert():
        async with test_session_factory() as db:
            return await InvoiceGenerator(db, clock=clock).create_from_sessions(
                [session_id], client_id,
            )

    results = await asyncio.gather(convert(), convert(), return_exceptions=True)
    invoices = [r for r in results if isinstance(r, Invoice)]
    assert len(invoices) == 1
    assert all(isinstance(r, (Invoice, BadRequestError)) for r in results)


async def test_validation_failures(generator, timer, test_db, seed_project, clock):
    client_id = seed_project.client_id
    running = await timer.start(seed_project.id, "Live")
    running_id = running.id

    with pytest.raises(NotFoundError):
        await generator.create_from_sessions([uuid4()], client_id)
    with pytest.raises(BadRequestError, match="must be stopped"):
        await generator.create_from_sessions([running_id], client_id)
    await timer.stop(running_id)
    with pytest.raises(BadRequestError, match="do not belong"):
        await generator.create_from_sessions([running_id], uuid4())

    count = (await test_db.execute(select(func.count(Invoice.id)))).scalar_one()
    assert count == 0


async def test_failed_link_rolls_back_everything(
    generator, timer, test_db, seed_project, clock, monkeypatch,
):
    first = await _stopped(timer, clock, seed_project.id, 900)
    second = await _stopped(timer, clock, seed_project.id, 900)
    client_id = seed_project.client_id

    calls = {"n": 0}
    original = generator.sessions.link_to_item

    async def link_then_fail(session, item_id, billed_at):
        calls["n"] += 1
        if calls["n"] == 2:
            return False
        return await original(session, item_id, billed_at)

    monkeypatch.setattr(generator.sessions, "link_to_item", link_then_fail)
    with pytest.raises(BadRequestError):
        await generator.create_from_sessions([first, second], client_id)

    assert (await test_db.execute(select(func.count(Invoice.id)))).scalar_one() == 0
    billed = (await test_db.execute(
        select(func.count(TimeSession.id)).where(TimeSession.invoice_item_id.is_not(None)),
    )).scalar_one()
    assert billed == 0
    settings = (await test_db.execute(select(UserSettings))).scalar_one()
    assert settings.next_invoice_number == 1
