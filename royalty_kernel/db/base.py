"""
Declarative base and column types shared by every ledger table.

Conventions every model inherits:
    - ``id`` is a uuid4 primary key, stored as a 36-character string so the
      same schema works on PostgreSQL and SQLite.
    - ``Decimal`` attributes map to Numeric(38, 9).  Royalty amounts are
      never floats.
    - ``datetime`` attributes are timezone-aware UTC on the way in and on
      the way out.  Naive datetimes are rejected at bind time.

Nothing here imports from models, services or selectors.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID bound as its canonical string, loaded back as ``uuid.UUID``."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, PyUUID):
            return value
        return PyUUID(value)


class UTCDateTime(TypeDecorator):
    """
    Aware datetime stored in UTC.

    PostgreSQL receives the aware value for its TIMESTAMPTZ column.  SQLite
    cannot keep an offset, so the UTC wall time is written naive and tagged
    as UTC again when read.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime not allowed: {value!r}")
        utc_value = value.astimezone(timezone.utc)
        return utc_value.replace(tzinfo=None) if dialect.name == "sqlite" else utc_value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: UTCDateTime(),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Adds creation and last-update stamps with the acting user.

    ``created_*`` are set once.  ``updated_*`` move on every status change,
    including on plays whose calculated amounts are already frozen.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(),
    )
    created_by_id: Mapped[PyUUID] = mapped_column()
    updated_by_id: Mapped[PyUUID | None] = mapped_column()


UUID = PyUUID
