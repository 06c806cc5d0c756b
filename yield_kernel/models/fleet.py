"""
Module: yield_kernel.models.fleet
Responsibility: ORM persistence for a fleet -- the higher-trust principal that
    provisions routers, holds the ordered active-router list, and collects
    routing fees.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - fee_rate is a RAY fraction in [0, RAY) (validated by FleetRegistryService).
    - active_routers positions are dense 0..n-1 per fleet (uq_active_position);
      removal is swap-and-pop.
    - A router appears at most once in the active list (uq_active_router).

Failure modes:
    - IntegrityError on a duplicate position or router in the active list.

Audit relevance:
    fee_balance_wad is the fleet-level fee ledger; it only grows through
    route_yield and only shrinks through FleetRegistryService.withdraw_fees,
    both of which record a RouterEvent.
"""

from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from yield_kernel.db.base import Base, TrackedBase
from yield_kernel.db.types import ADDRESS_LENGTH, RayAmount, UUIDString


class Fleet(TrackedBase):
    """
    One fleet of routers sharing an oracle, an asset pair and a fee policy.

    Guarantees:
        - owner is the only principal allowed to change fees, withdraw fees
          or perform an emergency shutdown.
        - custody_address is the fee-collection account and the principal
          the sweeper acts as when it invokes route_yield.
    """

    __tablename__ = "fleets"

    owner: Mapped[str] = mapped_column(String(ADDRESS_LENGTH), nullable=False)

    custody_address: Mapped[str] = mapped_column(
        String(ADDRESS_LENGTH),
        nullable=False,
        unique=True,
    )

    # Yield-bearing token routers accept, and the reference asset the
    # oracle prices it against
    yield_asset: Mapped[str] = mapped_column(String(ADDRESS_LENGTH), nullable=False)
    reference_asset: Mapped[str] = mapped_column(String(ADDRESS_LENGTH), nullable=False)

    fee_rate: Mapped[int] = mapped_column(RayAmount(), nullable=False, default=0)

    fee_balance_wad: Mapped[int] = mapped_column(RayAmount(), nullable=False, default=0)

    fee_exempt_owners: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    def is_fee_exempt(self, owner: str) -> bool:
        return owner == self.owner or owner in (self.fee_exempt_owners or ())

    def __repr__(self) -> str:
        return f"<Fleet {self.id} owner={self.owner}>"


class ActiveRouterSlot(Base):
    """One position in a fleet's ordered active-router list."""

    __tablename__ = "active_routers"

    __table_args__ = (
        UniqueConstraint("fleet_id", "position", name="uq_active_position"),
        UniqueConstraint("router_id", name="uq_active_router"),
    )

    fleet_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fleets.id"),
        nullable=False,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False)

    router_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("routers.id"),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ActiveRouterSlot {self.position}: {self.router_id}>"
