"""User Settings Schemas.

Invariants:
    - next_invoice_number is readable but absent from the update schema;
      extra="forbid" turns an attempt to set it into a 400
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class UserSettingsUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    business_name: str | None = Field(None, min_length=1, max_length=255)
    default_payment_terms: int | None = Field(None, ge=0, le=365)
    default_currency: str | None = Field(None, min_length=3, max_length=3)
    default_tax_rate: Decimal | None = Field(None, ge=0, le=100, decimal_places=2)
    invoice_prefix: str | None = Field(None, max_length=20)


class UserSettingsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    business_name: str
    default_payment_terms: int
    default_currency: str
    default_tax_rate: Decimal
    invoice_prefix: str
    next_invoice_number: int
