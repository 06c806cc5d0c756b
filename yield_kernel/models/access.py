"""
Module: yield_kernel.models.access
Responsibility: ORM persistence for per-destination access grants and the
    remaining yield allowance of each destination.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - One record per (router, destination) (uq_access_destination).
    - yield_allowance only decreases through payout, is reset to zero on
      revoke, and only increases through a fresh grant
      (AccessRegistryService is the only writer besides route_yield).
"""

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from yield_kernel.db.base import TrackedBase
from yield_kernel.db.types import ADDRESS_LENGTH, RayAmount, UUIDString


class AccessRecord(TrackedBase):
    """Grant flag and RAY-scaled principal-value allowance for one destination."""

    __tablename__ = "access_records"

    __table_args__ = (
        UniqueConstraint("router_id", "destination", name="uq_access_destination"),
    )

    router_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("routers.id"),
        nullable=False,
    )

    destination: Mapped[str] = mapped_column(String(ADDRESS_LENGTH), nullable=False)

    granted_access: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    yield_allowance: Mapped[int] = mapped_column(RayAmount(), nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<AccessRecord {self.destination} granted={self.granted_access} "
            f"allowance={self.yield_allowance}>"
        )
