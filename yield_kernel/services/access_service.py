"""
AccessRegistryService -- per-destination grants and yield allowances.

Responsibility:
    Grants and revokes a destination's right to receive yield from a
    router, storing the allowance in RAY principal-value terms.

Architecture position:
    Kernel > Services -- imperative shell.  Has no balance side effects;
    route_yield is the only other writer of yield_allowance.

Invariants enforced:
    - Grant on a granted destination and revoke on a non-granted one are
      rejected, not ignored.
    - Revoke zeroes the allowance; only a fresh grant raises it.
    - The current destination of an active router cannot be revoked.

Failure modes:
    - NotOwnerError, InvalidAmountError.
    - AccessAlreadyGrantedError / AccessAlreadyRevokedError.
    - RouterActiveError when revoking the destination being routed to.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from yield_kernel.domain.clock import Clock, SystemClock
from yield_kernel.domain.dtos import AccessRecordInfo
from yield_kernel.domain.ray_math import wad_to_ray
from yield_kernel.exceptions import (
    AccessAlreadyGrantedError,
    AccessAlreadyRevokedError,
    InvalidAmountError,
    NotOwnerError,
    RouterActiveError,
)
from yield_kernel.logging_config import get_logger
from yield_kernel.models.access import AccessRecord
from yield_kernel.models.router_event import RouterEventType
from yield_kernel.services.base import BaseService
from yield_kernel.services.event_recorder import RouterEventRecorder

logger = get_logger("services.access")


def _to_info(record: AccessRecord) -> AccessRecordInfo:
    return AccessRecordInfo(
        router_id=record.router_id,
        destination=record.destination,
        granted_access=record.granted_access,
        yield_allowance=record.yield_allowance,
    )


class AccessRegistryService(BaseService[AccessRecord]):
    """Owner-managed destination grants for one or more routers."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        recorder: RouterEventRecorder | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._recorder = recorder or RouterEventRecorder(session, self._clock)

    def find_record(
        self,
        router_id: UUID,
        destination: str,
        for_update: bool = False,
    ) -> AccessRecord | None:
        stmt = select(AccessRecord).where(
            AccessRecord.router_id == router_id,
            AccessRecord.destination == destination,
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def set_access(
        self,
        router_id: UUID,
        caller: str,
        destination: str,
        grant: bool,
        allowance_wad: int = 0,
    ) -> AccessRecordInfo:
        """
        Grant or revoke ``destination``.

        Args:
            router_id: Router whose registry is changed.
            caller: Must be the router owner.
            destination: Account that receives routed yield.
            grant: True to grant, False to revoke.
            allowance_wad: Principal value of yield the destination may
                receive (18 decimals).  Ignored on revoke.
        """
        router = self._load_router(router_id, for_update=True)
        if caller != router.owner:
            raise NotOwnerError(str(router_id), caller)

        record = self.find_record(router_id, destination, for_update=True)
        granted = record is not None and record.granted_access

        if grant:
            if granted:
                raise AccessAlreadyGrantedError(str(router_id), destination)
            if (
                isinstance(allowance_wad, bool)
                or not isinstance(allowance_wad, int)
                or allowance_wad < 0
            ):
                raise InvalidAmountError(allowance_wad, "allowance")
            if record is None:
                record = AccessRecord(router_id=router_id, destination=destination)
                self.session.add(record)
            record.granted_access = True
            record.yield_allowance = wad_to_ray(allowance_wad)
            event_type = RouterEventType.ACCESS_GRANTED
        else:
            if not granted:
                raise AccessAlreadyRevokedError(str(router_id), destination)
            if router.is_active and router.current_destination == destination:
                raise RouterActiveError(str(router_id), "revoke current destination")
            record.granted_access = False
            record.yield_allowance = 0
            event_type = RouterEventType.ACCESS_REVOKED

        self.session.flush()

        self._recorder.record(
            event_type,
            fleet_id=router.fleet_id,
            actor=caller,
            router_id=router_id,
            counterparty=destination,
            amount_wad=allowance_wad if grant else 0,
        )
        logger.info(
            event_type.value,
            extra={
                "router_id": str(router_id),
                "destination": destination,
                "allowance_wad": allowance_wad if grant else 0,
            },
        )
        return _to_info(record)

    def get_access(self, router_id: UUID, destination: str) -> AccessRecordInfo:
        """Record for ``destination``; an unknown destination reads as not granted."""
        self._load_router(router_id)
        record = self.find_record(router_id, destination)
        if record is None:
            return AccessRecordInfo(
                router_id=router_id,
                destination=destination,
                granted_access=False,
                yield_allowance=0,
            )
        return _to_info(record)

    def list_access(self, router_id: UUID) -> tuple[AccessRecordInfo, ...]:
        self._load_router(router_id)
        records = self.session.execute(
            select(AccessRecord)
            .where(AccessRecord.router_id == router_id)
            .order_by(AccessRecord.destination)
        ).scalars()
        return tuple(_to_info(r) for r in records)
