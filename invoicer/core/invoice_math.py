"""Invoice Math — item construction, totals, and invoice numbering. Pure, no IO.

Invariants:
    - item.total = round_half_up(quantity * unit_price) for manual items
    - Session-derived item.total = exact sum of the sessions' billable amounts
      (never quantity * unit_price, which would drift by rounding)
    - subtotal = sum(item.total); tax = round_half_up(subtotal * rate / 100);
      total = subtotal + tax
    - compute_totals() is idempotent: recomputing from stored items reproduces
      the stored values
    - Grouped items follow first-seen project order; positions are 0..n-1

Design Decisions:
    - ItemDraft carries the ids of the sessions it consumes so the shell can link
      each session to its persisted item without re-grouping
    - Grouped unit price is a derived average (sessions may have different
      snapshot rates) computed in integer arithmetic from seconds, not hours
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Sequence
from uuid import UUID

from invoicer.core.domain_types import INVOICE_NUMBER_PAD, SECONDS_PER_HOUR, SessionStatus
from invoicer.core.money import div_round_half_up, round_cents, seconds_to_hours
from invoicer.core.repository_protocols import BillableSessionLike

UNKNOWN_PROJECT_NAME = "Unknown Project"


@dataclass(frozen=True)
class SessionLine:
    """The slice of a stopped session that invoice construction needs."""
    session_id: UUID
    project_id: UUID
    project_name: str | None
    task_description: str
    duration_seconds: int
    hourly_rate_cents: int
    billable_amount_cents: int


@dataclass
class ItemDraft:
    """An invoice line before it is persisted."""
    description: str
    quantity: Decimal
    unit_price_cents: int
    total_cents: int
    position: int = 0
    session_ids: list[UUID] = field(default_factory=list)


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal_cents: int
    tax_amount_cents: int
    total_cents: int


def manual_item_total(quantity: Decimal, unit_price_cents: int) -> int:
    return round_cents(Decimal(quantity) * unit_price_cents)


def build_manual_items(items: Iterable[tuple[str, Decimal, int]]) -> list[ItemDraft]:
    """(description, quantity, unit_price_cents) triples -> positioned drafts."""
    return [
        ItemDraft(
            description=description,
            quantity=Decimal(quantity),
            unit_price_cents=unit_price_cents,
            total_cents=manual_item_total(Decimal(quantity), unit_price_cents),
            position=index,
        )
        for index, (description, quantity, unit_price_cents) in enumerate(items)
    ]


def compute_tax(subtotal_cents: int, tax_rate: Decimal) -> int:
    return round_cents(Decimal(subtotal_cents) * Decimal(tax_rate) / Decimal(100))


def compute_totals(item_totals: Iterable[int], tax_rate: Decimal) -> InvoiceTotals:
    subtotal = sum(item_totals)
    tax = compute_tax(subtotal, tax_rate)
    return InvoiceTotals(
        subtotal_cents=subtotal,
        tax_amount_cents=tax,
        total_cents=subtotal + tax,
    )


def average_rate_cents(total_amount_cents: int, total_seconds: int) -> int:
    """round(total_amount / total_hours) without dividing by fractional hours."""
    if total_seconds <= 0:
        return 0
    return div_round_half_up(total_amount_cents * SECONDS_PER_HOUR, total_seconds)


def _project_label(name: str | None) -> str:
    return name or UNKNOWN_PROJECT_NAME


def _group_by_project(lines: Sequence[SessionLine]) -> dict[UUID, list[SessionLine]]:
    groups: dict[UUID, list[SessionLine]] = {}
    for line in lines:
        groups.setdefault(line.project_id, []).append(line)
    return groups


def build_session_items(
    lines: Sequence[SessionLine], group_by_project: bool,
) -> list[ItemDraft]:
    """One item per project (grouped) or one item per session."""
    if not group_by_project:
        return [
            ItemDraft(
                description=f"{_project_label(line.project_name)} - {line.task_description}",
                quantity=seconds_to_hours(line.duration_seconds),
                unit_price_cents=line.hourly_rate_cents,
                total_cents=line.billable_amount_cents,
                position=index,
                session_ids=[line.session_id],
            )
            for index, line in enumerate(lines)
        ]

    drafts = []
    for index, group in enumerate(_group_by_project(lines).values()):
        total_seconds = sum(line.duration_seconds for line in group)
        total_amount = sum(line.billable_amount_cents for line in group)
        hours = seconds_to_hours(total_seconds)
        drafts.append(ItemDraft(
            description=(
                f"{_project_label(group[0].project_name)} - "
                f"Time tracking ({hours:.2f} hours)"
            ),
            quantity=hours,
            unit_price_cents=average_rate_cents(total_amount, total_seconds),
            total_cents=total_amount,
            position=index,
            session_ids=[line.session_id for line in group],
        ))
    return drafts


def validate_sessions_for_billing(
    sessions: Sequence[BillableSessionLike], client_id: UUID,
) -> dict | None:
    """Rules a session set must satisfy before conversion. Existence is checked by the shell."""
    if not sessions:
        return {
            "error_code": "NO_SESSIONS",
            "message": "At least one session required",
        }
    if any(s.status != SessionStatus.STOPPED for s in sessions):
        return {
            "error_code": "SESSION_NOT_STOPPED",
            "message": "All time sessions must be stopped before creating an invoice",
        }
    if any(s.invoice_item_id is not None for s in sessions):
        return {
            "error_code": "SESSION_ALREADY_BILLED",
            "message": "One or more sessions have already been billed",
        }
    if any(not s.is_billable for s in sessions):
        return {
            "error_code": "SESSION_NOT_BILLABLE",
            "message": "All sessions must be billable",
        }
    client_ids = {s.client_id for s in sessions}
    if len(client_ids) > 1:
        return {
            "error_code": "MIXED_CLIENTS",
            "message": "All sessions must belong to the same client",
        }
    if client_ids != {client_id}:
        return {
            "error_code": "CLIENT_MISMATCH",
            "message": "Sessions do not belong to the specified client",
        }
    return None


def format_invoice_number(prefix: str, number: int) -> str:
    """INV- + 7 -> 'INV-0007'. Numbers wider than the pad are kept whole."""
    return f"{prefix}{number:0{INVOICE_NUMBER_PAD}d}"
