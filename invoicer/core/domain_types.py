"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - SessionId, InvoiceId, InvoiceItemId, PaymentId, ProjectId, ClientId wrap UUIDs
    - Cents is always an integer amount of the minor currency unit
    - All valid states encoded as Enums — no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: stored as-is in String columns and serialized to JSON without encoders
"""

from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

SessionId = NewType("SessionId", UUID)
ProjectId = NewType("ProjectId", UUID)
ClientId = NewType("ClientId", UUID)
InvoiceId = NewType("InvoiceId", UUID)
InvoiceItemId = NewType("InvoiceItemId", UUID)
PaymentId = NewType("PaymentId", UUID)


# ─── Value Types ─────────────────────────────────────────────────

Cents = NewType("Cents", int)


# ─── Billing constants ───────────────────────────────────────────

SECONDS_PER_HOUR: int = 3600
BILLING_INCREMENT_SECONDS: int = 900        # 15 minutes, durations round UP to this
INVOICE_NUMBER_PAD: int = 4
DEFAULT_CURRENCY: str = "USD"
DEFAULT_INVOICE_PREFIX: str = "INV-"


# ─── Enums ───────────────────────────────────────────────────────

class SessionStatus(str, Enum):
    """Time session lifecycle states — maps to DB `status` column."""
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


class SessionAction(str, Enum):
    """Operations that move a session between states."""
    PAUSE = "pause"
    RESUME = "resume"
    STOP = "stop"


class InvoiceStatus(str, Enum):
    """Invoice lifecycle states — maps to DB `status` column."""
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    """How a payment was received."""
    BANK_TRANSFER = "bank_transfer"
    CHECK = "check"
    CASH = "cash"
    CREDIT_CARD = "credit_card"
    OTHER = "other"


# Statuses that occupy the single "active" timer slot
ACTIVE_SESSION_STATUSES: frozenset[SessionStatus] = frozenset({
    SessionStatus.RUNNING, SessionStatus.PAUSED,
})
