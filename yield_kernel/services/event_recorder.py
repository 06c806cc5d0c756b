"""
RouterEventRecorder -- append-only event stream for routers and fleets.

Responsibility:
    Writes one RouterEvent row per state-changing operation, stamped with an
    injected Clock and a sequence number allocated by SequenceService.

Architecture position:
    Kernel > Services -- imperative shell.  Called by every mutating service
    inside the caller's transaction, so an operation that rolls back leaves
    no event behind.

Invariants enforced:
    - Flush-only: never commits or rolls back the session.
    - seq is unique and strictly increasing in commit order; it comes from
      the locked ``router_event`` counter, never from the existing rows.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from yield_kernel.domain.clock import Clock, SystemClock
from yield_kernel.models.router_event import RouterEvent, RouterEventType
from yield_kernel.services.base import BaseService
from yield_kernel.services.sequence_service import SequenceService


class RouterEventRecorder(BaseService[RouterEvent]):
    """Records router and fleet events within the active transaction."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._sequences = SequenceService(session)

    def record(
        self,
        event_type: RouterEventType,
        fleet_id: UUID,
        actor: str,
        router_id: UUID | None = None,
        counterparty: str | None = None,
        amount_wad: int | None = None,
        detail: dict | None = None,
    ) -> RouterEvent:
        event = RouterEvent(
            seq=self._sequences.next_value(SequenceService.ROUTER_EVENT),
            fleet_id=fleet_id,
            router_id=router_id,
            event_type=event_type.value,
            actor=actor,
            counterparty=counterparty,
            amount_wad=amount_wad,
            detail=detail,
            occurred_at=self._clock.now(),
        )
        self.session.add(event)
        self.session.flush()
        return event

    def list_events(
        self,
        router_id: UUID | None = None,
        fleet_id: UUID | None = None,
    ) -> list[RouterEvent]:
        """Events in seq order, optionally filtered by router or fleet."""
        stmt = select(RouterEvent).order_by(RouterEvent.seq)
        if router_id is not None:
            stmt = stmt.where(RouterEvent.router_id == router_id)
        if fleet_id is not None:
            stmt = stmt.where(RouterEvent.fleet_id == fleet_id)
        return list(self.session.execute(stmt).scalars())
