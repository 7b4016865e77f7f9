"""SQLAlchemy Declarative Base — shared base class for all ORM models.

Invariants:
    - All models inherit from Base
    - Base is the single source of truth for table metadata
    - Status enums persist their .value (e.g. 'running'), never the member name

Design Decisions:
    - Separate file for Base: avoids circular imports between models
    - Non-native enums (VARCHAR): partial indexes and raw SQL compare plain strings
"""

from enum import Enum

from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all billing ORM models."""
    pass


def str_enum(enum_cls: type[Enum], length: int = 20) -> SAEnum:
    """VARCHAR-backed enum column type storing member values."""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
    )
