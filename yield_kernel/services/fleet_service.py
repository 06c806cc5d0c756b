"""
FleetRegistryService -- fleet provisioning, active-router list and fee ledger.

Responsibility:
    Creates fleets, provisions one router per owner, maintains the ordered
    list of routers currently routing yield (append / swap-and-pop), credits
    routing fees to the fleet-level fee ledger, and lets the fleet owner
    change the fee rate and withdraw collected fees.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by RouterStateService (register / deregister / credit_fee) and by
    the orchestrator (provisioning, fee administration, views).  It never
    reads or writes a router's balances or access records.

Invariants enforced:
    - Active-list positions stay dense 0..n-1; removal moves the last slot
      into the vacated position.
    - A router can only be registered with the fleet that provisioned it.
    - fee_rate stays in [0, RAY).
    - Fees leave the fee ledger only after the outgoing transfer succeeds.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - NotFleetMemberError: router provisioned by another fleet.
    - RouterAlreadyRegisteredError: router already in the active list.
    - RouterNotFoundError: deregistering a router that is not listed.
    - NotFleetOwnerError: fee administration by anyone but the fleet owner.
    - InvalidFeeRateError / InvalidAmountError / InsufficientBalanceError.
    - TransferFailedError: fee withdrawal transfer failed.

Audit relevance:
    Provisioning, fee-rate changes and fee withdrawals are recorded as
    RouterEvents and logged with fleet_id, actor and amounts.
"""

from collections.abc import Iterable
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from yield_kernel.domain.clock import Clock, SystemClock
from yield_kernel.domain.collaborators import ValueTransfer
from yield_kernel.domain.dtos import FleetInfo, RouterStatusInfo
from yield_kernel.domain.ray_math import RAY
from yield_kernel.exceptions import (
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidFeeRateError,
    NotFleetMemberError,
    NotFleetOwnerError,
    RouterAlreadyRegisteredError,
    RouterNotFoundError,
    UnknownRouterError,
)
from yield_kernel.logging_config import get_logger
from yield_kernel.models.fleet import ActiveRouterSlot, Fleet
from yield_kernel.models.router import OwnerBalance, Router
from yield_kernel.models.router_event import RouterEventType
from yield_kernel.services import transfers
from yield_kernel.services.base import BaseService
from yield_kernel.services.event_recorder import RouterEventRecorder

logger = get_logger("services.fleet")


def router_status(router: Router) -> RouterStatusInfo:
    """Convert an ORM Router to a RouterStatusInfo DTO."""
    return RouterStatusInfo(
        router_id=router.id,
        fleet_id=router.fleet_id,
        owner=router.owner,
        custody_address=router.custody_address,
        is_active=router.is_active,
        is_locked=router.is_locked,
        current_destination=router.current_destination,
        state=router.state,
    )


def _validate_fee_rate(fee_rate: int) -> int:
    if isinstance(fee_rate, bool) or not isinstance(fee_rate, int) or not 0 <= fee_rate < RAY:
        raise InvalidFeeRateError(fee_rate)
    return fee_rate


class FleetRegistryService(BaseService[Fleet]):
    """
    Registry of routers belonging to one or more fleets.

    Contract:
        Lifecycle and fee methods flush within the caller's transaction and
        return frozen DTOs.

    Non-goals:
        - Does NOT invoke payouts; sweeping lives in yield_services.
        - Does NOT serialize concurrent callers; the orchestrator holds the
          fleet mutex around every call that touches the active list.
    """

    def __init__(
        self,
        session: Session,
        token: ValueTransfer | None = None,
        clock: Clock | None = None,
        recorder: RouterEventRecorder | None = None,
    ):
        super().__init__(session)
        self._token = token
        self._clock = clock or SystemClock()
        self._recorder = recorder or RouterEventRecorder(session, self._clock)

    # -------------------------------------------------------------------------
    # Fleets
    # -------------------------------------------------------------------------

    def create_fleet(
        self,
        owner: str,
        yield_asset: str,
        reference_asset: str,
        fee_rate: int = 0,
        fee_exempt_owners: Iterable[str] = (),
        custody_address: str | None = None,
    ) -> FleetInfo:
        """
        Create a fleet.

        Args:
            owner: Fleet owner principal (fee administration, emergency shutdown).
            yield_asset: Token routers accept on deposit.
            reference_asset: Asset whose index the oracle reports.
            fee_rate: RAY fraction taken from every payout.
            fee_exempt_owners: Router owners who pay no fee.
            custody_address: Fee-collection account; generated when omitted.
        """
        _validate_fee_rate(fee_rate)
        fleet_id = uuid4()
        fleet = Fleet(
            id=fleet_id,
            owner=owner,
            custody_address=custody_address or f"fleet:{fleet_id}",
            yield_asset=yield_asset,
            reference_asset=reference_asset,
            fee_rate=fee_rate,
            fee_balance_wad=0,
            fee_exempt_owners=sorted(set(fee_exempt_owners)),
        )
        self.session.add(fleet)
        self.session.flush()

        logger.info(
            "fleet_created",
            extra={
                "fleet_id": str(fleet_id),
                "owner": owner,
                "yield_asset": yield_asset,
                "fee_rate": fee_rate,
            },
        )
        return self.get_fleet(fleet_id)

    def find_fleet(self, custody_address: str) -> FleetInfo | None:
        """Fleet collecting fees at ``custody_address``, if one exists."""
        fleet_id = self.session.execute(
            select(Fleet.id).where(Fleet.custody_address == custody_address)
        ).scalar_one_or_none()
        return None if fleet_id is None else self.get_fleet(fleet_id)

    def get_fleet(self, fleet_id: UUID) -> FleetInfo:
        fleet = self._load_fleet(fleet_id)
        return FleetInfo(
            fleet_id=fleet.id,
            owner=fleet.owner,
            custody_address=fleet.custody_address,
            yield_asset=fleet.yield_asset,
            reference_asset=fleet.reference_asset,
            fee_rate=fleet.fee_rate,
            fee_balance_wad=fleet.fee_balance_wad,
            fee_exempt_owners=tuple(fleet.fee_exempt_owners or ()),
            active_router_ids=self.list_active(fleet_id),
        )

    # -------------------------------------------------------------------------
    # Router provisioning (one router per owner)
    # -------------------------------------------------------------------------

    def provision_router(self, fleet_id: UUID, owner: str) -> RouterStatusInfo:
        """Return the owner's router, creating it with an empty balance on first use."""
        fleet = self._load_fleet(fleet_id)
        existing = self.session.execute(
            select(Router).where(Router.fleet_id == fleet_id, Router.owner == owner)
        ).scalar_one_or_none()
        if existing is not None:
            return router_status(existing)

        router_id = uuid4()
        router = Router(
            id=router_id,
            fleet_id=fleet.id,
            owner=owner,
            custody_address=f"router:{router_id}",
            is_active=False,
            is_locked=False,
            current_destination=None,
        )
        self.session.add(router)
        self.session.flush()
        self.session.add(
            OwnerBalance(
                router_id=router_id,
                principal_balance=0,
                index_adjusted_balance=0,
                last_index=RAY,
            )
        )
        self.session.flush()

        self._recorder.record(
            RouterEventType.ROUTER_PROVISIONED,
            fleet_id=fleet.id,
            actor=owner,
            router_id=router_id,
        )
        logger.info(
            "router_provisioned",
            extra={"fleet_id": str(fleet.id), "router_id": str(router_id), "owner": owner},
        )
        return router_status(router)

    def find_router(self, fleet_id: UUID, owner: str) -> RouterStatusInfo:
        router = self.session.execute(
            select(Router).where(Router.fleet_id == fleet_id, Router.owner == owner)
        ).scalar_one_or_none()
        if router is None:
            raise UnknownRouterError(owner)
        return router_status(router)

    # -------------------------------------------------------------------------
    # Active-router list
    # -------------------------------------------------------------------------

    def _slot(self, router_id: UUID) -> ActiveRouterSlot | None:
        return self.session.execute(
            select(ActiveRouterSlot).where(ActiveRouterSlot.router_id == router_id)
        ).scalar_one_or_none()

    def _check_member(self, fleet_id: UUID, router_id: UUID) -> None:
        router = self._load_router(router_id)
        if router.fleet_id != fleet_id:
            raise NotFleetMemberError(str(fleet_id), str(router_id))

    def register_active(self, fleet_id: UUID, router_id: UUID) -> int:
        """Append ``router_id`` to the active list; returns its position."""
        self._check_member(fleet_id, router_id)
        if self._slot(router_id) is not None:
            raise RouterAlreadyRegisteredError(str(fleet_id), str(router_id))

        count = self.session.execute(
            select(func.count())
            .select_from(ActiveRouterSlot)
            .where(ActiveRouterSlot.fleet_id == fleet_id)
        ).scalar_one()
        self.session.add(
            ActiveRouterSlot(fleet_id=fleet_id, position=count, router_id=router_id)
        )
        self.session.flush()

        logger.debug(
            "router_registered_active",
            extra={"fleet_id": str(fleet_id), "router_id": str(router_id), "position": count},
        )
        return count

    def deregister(self, fleet_id: UUID, router_id: UUID) -> None:
        """Remove ``router_id`` from the active list by swap-and-pop."""
        self._check_member(fleet_id, router_id)
        slot = self._slot(router_id)
        if slot is None:
            raise RouterNotFoundError(str(fleet_id), str(router_id))

        last = self.session.execute(
            select(ActiveRouterSlot)
            .where(ActiveRouterSlot.fleet_id == fleet_id)
            .order_by(ActiveRouterSlot.position.desc())
            .limit(1)
        ).scalar_one()

        vacated = slot.position
        self.session.delete(slot)
        # Delete before moving the last slot so the unique position never collides
        self.session.flush()
        if last.id != slot.id:
            last.position = vacated
            self.session.flush()

        logger.debug(
            "router_deregistered_active",
            extra={"fleet_id": str(fleet_id), "router_id": str(router_id), "position": vacated},
        )

    def list_active(self, fleet_id: UUID) -> tuple[UUID, ...]:
        """Active router ids in list order."""
        rows = self.session.execute(
            select(ActiveRouterSlot.router_id)
            .where(ActiveRouterSlot.fleet_id == fleet_id)
            .order_by(ActiveRouterSlot.position)
        ).scalars()
        return tuple(rows)

    # -------------------------------------------------------------------------
    # Fee ledger
    # -------------------------------------------------------------------------

    def credit_fee(self, fleet_id: UUID, fee_wad: int) -> None:
        """Add a fee already transferred to the fleet custody account."""
        if fee_wad == 0:
            return
        fleet = self._load_fleet(fleet_id, for_update=True)
        fleet.fee_balance_wad = fleet.fee_balance_wad + fee_wad
        self.session.flush()

    def set_fee_rate(self, fleet_id: UUID, caller: str, fee_rate: int) -> FleetInfo:
        fleet = self._load_fleet(fleet_id, for_update=True)
        if caller != fleet.owner:
            raise NotFleetOwnerError(str(fleet_id), caller)
        _validate_fee_rate(fee_rate)

        previous = fleet.fee_rate
        fleet.fee_rate = fee_rate
        self.session.flush()

        self._recorder.record(
            RouterEventType.FEE_RATE_CHANGED,
            fleet_id=fleet.id,
            actor=caller,
            detail={"previous": str(previous), "current": str(fee_rate)},
        )
        logger.info(
            "fee_rate_changed",
            extra={"fleet_id": str(fleet_id), "previous": previous, "current": fee_rate},
        )
        return self.get_fleet(fleet_id)

    def withdraw_fees(
        self,
        fleet_id: UUID,
        caller: str,
        recipient: str,
        amount_wad: int,
    ) -> FleetInfo:
        """Transfer collected fees out of the fleet custody account."""
        fleet = self._load_fleet(fleet_id, for_update=True)
        if caller != fleet.owner:
            raise NotFleetOwnerError(str(fleet_id), caller)
        if isinstance(amount_wad, bool) or not isinstance(amount_wad, int) or amount_wad <= 0:
            raise InvalidAmountError(amount_wad)
        if amount_wad > fleet.fee_balance_wad:
            raise InsufficientBalanceError(
                fleet.custody_address, amount_wad, fleet.fee_balance_wad
            )
        if self._token is None:
            raise RuntimeError("FleetRegistryService needs a ValueTransfer to withdraw fees")

        transfers.push(self._token, fleet.custody_address, recipient, amount_wad)
        fleet.fee_balance_wad = fleet.fee_balance_wad - amount_wad
        self.session.flush()

        self._recorder.record(
            RouterEventType.FEES_WITHDRAWN,
            fleet_id=fleet.id,
            actor=caller,
            counterparty=recipient,
            amount_wad=amount_wad,
        )
        logger.info(
            "fees_withdrawn",
            extra={
                "fleet_id": str(fleet_id),
                "recipient": recipient,
                "amount_wad": amount_wad,
                "remaining_wad": fleet.fee_balance_wad,
            },
        )
        return self.get_fleet(fleet_id)
