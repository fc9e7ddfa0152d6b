"""
Number Sequence Model.

One row per named counter (MCDF, RCP202401, CLM202401, ...). Values are only
ever advanced with a single UPDATE ... SET value = value + 1.
"""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from mcdf.models.base import Base, TimeStampedModel


class NumberSequence(Base, TimeStampedModel):
    """Monotonic counter used to allocate human-readable numbers."""

    __tablename__ = "number_sequences"

    name: Mapped[str] = mapped_column(String(32), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
