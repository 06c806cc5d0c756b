"""
Module: yield_kernel.models.router
Responsibility: ORM persistence for a router (identity and lifecycle status)
    and its owner balance.
Architecture position: Kernel > Models.  May import from db/ and the pure
    domain helpers only.

Invariants enforced:
    - One router per owner per fleet (uq_router_owner).
    - is_locked => is_active (enforced by RouterStateService through the
      transition table in domain/router_state.py).
    - principal_yield is NOT a column.  It is derived from
      index_adjusted_balance, principal_balance and an index on every read.

Failure modes:
    - IntegrityError on a second router for the same owner in one fleet.
"""

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from yield_kernel.db.base import TrackedBase
from yield_kernel.db.types import ADDRESS_LENGTH, RayAmount, UUIDString
from yield_kernel.domain.ray_math import RAY
from yield_kernel.domain.router_state import RouterState, state_of
from yield_kernel.domain.yield_math import compute_principal_yield


class Router(TrackedBase):
    """
    A single owner's yield router.

    Guarantees:
        - custody_address holds the router's tokens; it is the sender of
          every payout and withdrawal.
        - current_destination is None whenever is_active is False.
    """

    __tablename__ = "routers"

    __table_args__ = (
        UniqueConstraint("fleet_id", "owner", name="uq_router_owner"),
    )

    fleet_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fleets.id"),
        nullable=False,
    )

    owner: Mapped[str] = mapped_column(String(ADDRESS_LENGTH), nullable=False)

    custody_address: Mapped[str] = mapped_column(
        String(ADDRESS_LENGTH),
        nullable=False,
        unique=True,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    current_destination: Mapped[str | None] = mapped_column(
        String(ADDRESS_LENGTH),
        nullable=True,
    )

    @property
    def state(self) -> RouterState:
        return state_of(self.is_active, self.is_locked)

    def __repr__(self) -> str:
        return f"<Router {self.id} owner={self.owner} state={self.state.value}>"


class OwnerBalance(TrackedBase):
    """
    Principal and index-adjusted balance of one router.

    Guarantees:
        - principal_balance and index_adjusted_balance are RAY-scaled ints.
        - last_index is the index observed by the latest oracle read.
    """

    __tablename__ = "owner_balances"

    router_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("routers.id"),
        nullable=False,
        unique=True,
    )

    principal_balance: Mapped[int] = mapped_column(RayAmount(), nullable=False, default=0)

    index_adjusted_balance: Mapped[int] = mapped_column(
        RayAmount(),
        nullable=False,
        default=0,
    )

    last_index: Mapped[int] = mapped_column(RayAmount(), nullable=False, default=RAY)

    def principal_yield_at(self, index: int) -> int:
        return compute_principal_yield(
            self.index_adjusted_balance, self.principal_balance, index
        )

    @property
    def principal_yield(self) -> int:
        """Yield at the last observed index."""
        return self.principal_yield_at(self.last_index)

    def __repr__(self) -> str:
        return (
            f"<OwnerBalance router={self.router_id} "
            f"principal={self.principal_balance} adjusted={self.index_adjusted_balance}>"
        )
