"""
SQLAlchemy Base Model
Source: https://docs.sqlalchemy.org/en/20/orm/declarative_styles.html
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Numeric, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """
    Base class for all fund models.

    Money columns annotated as Decimal map to NUMERIC(12, 2).
    """

    type_annotation_map = {
        Decimal: Numeric(12, 2),
    }


class TimeStampedModel:
    """
    Mixin for models with created_at and updated_at timestamps.

    Python-side defaults keep the values populated on the instance after a
    flush, so async sessions never need a lazy refresh to read them.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )


class UUIDModel:
    """
    Mixin for models with UUID primary key.

    Uses the generic Uuid type: native UUID on PostgreSQL, CHAR(32) elsewhere.
    """

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
