"""
Module: yield_kernel.models.sequence
Responsibility: Named counter rows backing every allocated sequence number.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - One row per sequence name.
    - current_value only grows, and only through SequenceService under a
      row lock.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from yield_kernel.db.base import Base


class SequenceCounter(Base):
    """Last value handed out for one named sequence."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<SequenceCounter {self.name}={self.current_value}>"
