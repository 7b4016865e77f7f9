"""Invoice Number Allocator — the persistent, atomic invoice counter.

Invariants:
    - The counter moves only through a single UPDATE ... SET n = n + 1 RETURNING
      statement: two concurrent callers can never read the same value
    - The assigned number is the pre-increment value, formatted {prefix}{n:04d}
    - Allocation runs in the caller's transaction: a rolled-back invoice releases
      its number (the counter rolls back with it)

Design Decisions:
    - The settings singleton has a fixed primary key (SETTINGS_ID) so the counter
      UPDATE targets one row and the migration can seed it
    - find-or-create on first use keeps fresh test databases working without the seed
"""

import logging
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from invoicer.config import get_settings
from invoicer.core.invoice_math import format_invoice_number
from invoicer.models.user_settings import UserSettings

logger = logging.getLogger(__name__)

SETTINGS_ID = UUID("a0000000-0000-4000-8000-000000000001")


async def ensure_settings(db: AsyncSession) -> UserSettings:
    """Return the settings row, creating it from configured defaults if missing."""
    result = await db.execute(
        select(UserSettings).where(UserSettings.id == SETTINGS_ID),
    )
    row = result.scalar_one_or_none()
    if row is not None:
        return row

    config = get_settings()
    row = UserSettings(
        id=SETTINGS_ID,
        business_name=config.default_business_name,
        default_payment_terms=config.default_payment_terms_days,
        default_currency=config.default_currency,
        invoice_prefix=config.default_invoice_prefix,
        next_invoice_number=1,
    )
    db.add(row)
    await db.flush()
    logger.info("Created user settings row with configured defaults")
    return row


class InvoiceNumberAllocator:
    """Hands out invoice numbers from the user_settings counter."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def next_number(self) -> str:
        settings = await ensure_settings(self.db)
        result = await self.db.execute(
            update(UserSettings)
            .where(UserSettings.id == SETTINGS_ID)
            .values(next_invoice_number=UserSettings.next_invoice_number + 1)
            .returning(UserSettings.invoice_prefix, UserSettings.next_invoice_number)
            .execution_options(synchronize_session=False),
        )
        prefix, next_value = result.one()
        set_committed_value(settings, "next_invoice_number", next_value)
        number = format_invoice_number(prefix, next_value - 1)
        logger.info(f"Allocated invoice number {number}", extra={"invoice_number": number})
        return number
