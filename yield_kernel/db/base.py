"""
Module: yield_kernel.db.base
Responsibility: Declarative bases for every ORM model in the kernel.
Architecture position: Kernel > DB.  Imported by models/ only; imports
    nothing from the kernel except db/types.py.

Invariants enforced:
    - Every row has a uuid4 primary key, stored as a 36-character string.
    - Every timestamp column is timezone-aware.
"""

from datetime import datetime
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from yield_kernel.db.types import UUIDString


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
    }

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)


class TrackedBase(Base):
    """Base for mutable rows: adds database-stamped created/updated times."""

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
    )
