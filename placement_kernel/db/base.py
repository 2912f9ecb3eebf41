"""
Declarative base and portable column types for the placement models.

Every table gets a uuid4 primary key stored as ``String(36)`` so the same
models run on PostgreSQL and SQLite.  Prices are ``Decimal`` (Numeric);
hours are ``float``.  ``TrackedBase`` adds ``created_at``/``updated_at``,
which the read side uses for newest-first listings.

Nothing in here imports models, services or selectors.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import Date, DateTime, Float, Numeric, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """``uuid.UUID`` in Python, 36-character string in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class StringList(TypeDecorator):
    """
    Ordered list of strings in one text column, joined with ``;``.

    Order and duplicates survive the round trip (expertise lists may repeat
    an entry).  ``None`` and ``[]`` both load back as ``[]``.  An element
    containing the separator is rejected with ``ValueError`` on bind.
    """

    impl = Text
    cache_ok = True

    SEPARATOR = ";"

    def process_bind_param(self, value, dialect):
        items = list(value or ())
        bad = [item for item in items if self.SEPARATOR in item]
        if bad:
            raise ValueError(f"List element may not contain '{self.SEPARATOR}': {bad[0]!r}")
        return self.SEPARATOR.join(items)

    def process_result_value(self, value, dialect):
        return value.split(self.SEPARATOR) if value else []


class Base(DeclarativeBase):
    """Declarative base: uuid4 ``id`` and the annotation-to-column type map."""

    type_annotation_map: ClassVar[dict] = {
        UUID: UUIDString(),
        Decimal: Numeric(38, 9),
        float: Float,
        date: Date,
        datetime: DateTime(timezone=True),
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """Abstract base with server-side ``created_at`` and ``updated_at``."""

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
