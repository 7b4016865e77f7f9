"""User Settings Service — invoice defaults on the singleton settings row."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from invoicer.core.errors import BadRequestError
from invoicer.infrastructure.database import atomic
from invoicer.models.user_settings import UserSettings
from invoicer.services.invoice_numbers import ensure_settings

logger = logging.getLogger(__name__)

SETTINGS_FIELDS = frozenset({
    "business_name", "default_payment_terms", "default_currency",
    "default_tax_rate", "invoice_prefix",
})


class UserSettingsService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self) -> UserSettings:
        async with atomic(self.db):
            settings = await ensure_settings(self.db)
        return settings

    async def update(self, fields: dict) -> UserSettings:
        if "next_invoice_number" in fields:
            raise BadRequestError(
                "Invoice number counter cannot be changed directly",
                "COUNTER_NOT_EDITABLE",
            )
        unknown = set(fields) - SETTINGS_FIELDS
        if unknown:
            raise BadRequestError(
                f"Fields cannot be updated: {', '.join(sorted(unknown))}",
                "FIELD_NOT_EDITABLE",
            )
        if "business_name" in fields and not (fields["business_name"] or "").strip():
            raise BadRequestError("Business name is required", "BUSINESS_NAME_REQUIRED")

        async with atomic(self.db):
            settings = await ensure_settings(self.db)
            for name, value in fields.items():
                setattr(settings, name, value)
            await self.db.flush()
        logger.info(f"User settings updated: {sorted(fields)}")
        return settings
