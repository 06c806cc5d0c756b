"""
Module: yield_kernel.models.router_event
Responsibility: Append-only record of every state-changing router and fleet
    operation (the equivalent of emitted events).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Amounts are recorded at the external (WAD) scale.
    - Rows are written once by RouterEventRecorder and never updated.
    - seq is unique across the table.

Audit relevance:
    The event stream reconstructs every deposit, withdrawal, grant, state
    transition, payout and fee movement of a fleet in order of seq.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from yield_kernel.db.base import Base
from yield_kernel.db.types import ADDRESS_LENGTH, RayAmount, UUIDString


class RouterEventType(str, Enum):
    """Kinds of recorded router and fleet events."""

    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    ACCESS_GRANTED = "access_granted"
    ACCESS_REVOKED = "access_revoked"
    ACTIVATED = "activated"
    DEACTIVATED = "deactivated"
    LOCKED = "locked"
    YIELD_ROUTED = "yield_routed"
    EMERGENCY_SHUTDOWN = "emergency_shutdown"
    FEES_WITHDRAWN = "fees_withdrawn"
    FEE_RATE_CHANGED = "fee_rate_changed"
    ROUTER_PROVISIONED = "router_provisioned"


class RouterEvent(Base):
    """One recorded operation."""

    __tablename__ = "router_events"

    __table_args__ = (
        Index("idx_router_event_router", "router_id", "seq"),
        Index("idx_router_event_fleet", "fleet_id", "seq"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    fleet_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fleets.id"),
        nullable=False,
    )

    # Null for fleet-level events (fees_withdrawn, fee_rate_changed)
    router_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("routers.id"),
        nullable=True,
    )

    event_type: Mapped[str] = mapped_column(String(50), nullable=False)

    actor: Mapped[str] = mapped_column(String(ADDRESS_LENGTH), nullable=False)

    counterparty: Mapped[str | None] = mapped_column(String(ADDRESS_LENGTH), nullable=True)

    amount_wad: Mapped[int | None] = mapped_column(RayAmount(), nullable=True)

    detail: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<RouterEvent {self.seq} {self.event_type} router={self.router_id}>"
