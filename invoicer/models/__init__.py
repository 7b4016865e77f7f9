"""ORM Models — SQLAlchemy declarative models for all billing entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Money columns are integer cents (BigInteger); quantities and rates are Numeric

Design Decisions:
    - One file per entity for locality
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs
"""

from invoicer.models.client import Client  # noqa: F401
from invoicer.models.project import Project  # noqa: F401
from invoicer.models.time_session import TimeSession  # noqa: F401
from invoicer.models.invoice import Invoice  # noqa: F401
from invoicer.models.invoice_item import InvoiceItem  # noqa: F401
from invoicer.models.payment import Payment  # noqa: F401
from invoicer.models.user_settings import UserSettings  # noqa: F401
