"""
RouterStateService -- router lifecycle and the yield payout algorithm.

Responsibility:
    Drives a router through INACTIVE -> ACTIVE -> LOCKED -> INACTIVE and
    performs ``route_yield``: read the index, derive yield, consume the
    destination allowance, split the fee, transfer, then apply the ledger,
    allowance and lifecycle mutations.

Architecture position:
    Kernel > Services -- imperative shell.
    Composes BalanceLedgerService (index and balances),
    AccessRegistryService (grants and allowances) and FleetRegistryService
    (active list and fee ledger) on one session.

Invariants enforced:
    - Every flag change goes through VALID_TRANSITIONS, so is_locked
      implies is_active.
    - current_destination is only ever set to a granted destination and is
      cleared on every transition to INACTIVE.
    - Both payout transfers succeed before any mutation; a failed net
      transfer refunds the fee already moved.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - NotOwnerError / NotFleetOwnerError on the wrong caller.
    - NoBalanceError, AlreadyActiveError, DestinationNotGrantedError on
      activate.
    - RouterNotActiveError, RouterLockedError, AlreadyLockedError,
      RouterNotLockedError, LockConfirmationRequiredError.
    - InvalidIndexError, NoYieldError, TransferFailedError on payout.

Audit relevance:
    Every transition and payout is recorded as a RouterEvent.  A payout
    event carries index, principal-value amount, fee and net token amounts,
    and the remaining allowance, which is enough to replay the split.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from yield_kernel.domain.clock import Clock, SystemClock
from yield_kernel.domain.collaborators import IndexOracle, ValueTransfer
from yield_kernel.domain.dtos import RouteResult, RouterStatusInfo
from yield_kernel.domain.router_state import (
    RouterState,
    RouterTransition,
    flags_of,
    next_state,
)
from yield_kernel.domain.yield_math import plan_route
from yield_kernel.exceptions import (
    AlreadyActiveError,
    AlreadyLockedError,
    DestinationNotGrantedError,
    LockConfirmationRequiredError,
    NoBalanceError,
    NotFleetOwnerError,
    NotOwnerError,
    NoYieldError,
    RouterLockedError,
    RouterNotActiveError,
    RouterNotLockedError,
    TransferFailedError,
)
from yield_kernel.logging_config import get_logger
from yield_kernel.models.router import Router
from yield_kernel.models.router_event import RouterEventType
from yield_kernel.services import transfers
from yield_kernel.services.access_service import AccessRegistryService
from yield_kernel.services.base import BaseService
from yield_kernel.services.event_recorder import RouterEventRecorder
from yield_kernel.services.fleet_service import FleetRegistryService, router_status
from yield_kernel.services.ledger_service import BalanceLedgerService

logger = get_logger("services.router")


class RouterStateService(BaseService[Router]):
    """
    Router state machine and payout.

    Contract:
        Guards run in a fixed order (caller, then state, then balances) and
        raise before anything is read for mutation.  The sub-services are
        exposed as attributes so callers share one recorder and session.
    """

    def __init__(
        self,
        session: Session,
        oracle: IndexOracle,
        token: ValueTransfer,
        clock: Clock | None = None,
        recorder: RouterEventRecorder | None = None,
    ):
        super().__init__(session)
        self._token = token
        self._clock = clock or SystemClock()
        self._recorder = recorder or RouterEventRecorder(session, self._clock)
        self.ledger = BalanceLedgerService(
            session, oracle, token, self._clock, self._recorder
        )
        self.access = AccessRegistryService(session, self._clock, self._recorder)
        self.fleets = FleetRegistryService(session, token, self._clock, self._recorder)

    def _transition(self, router: Router, transition: RouterTransition) -> RouterState:
        new_state = next_state(router.state, transition)
        router.is_active, router.is_locked = flags_of(new_state)
        if new_state is RouterState.INACTIVE:
            router.current_destination = None
        return new_state

    def _require_owner(self, router: Router, caller: str) -> None:
        if caller != router.owner:
            raise NotOwnerError(str(router.id), caller)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def activate(self, router_id: UUID, caller: str, destination: str) -> RouterStatusInfo:
        """Start routing yield to a granted ``destination``."""
        router = self._load_router(router_id, for_update=True)
        self._require_owner(router, caller)

        balance = self._load_balance(router_id, for_update=True)
        if balance.index_adjusted_balance == 0:
            raise NoBalanceError(str(router_id))
        if router.is_active:
            raise AlreadyActiveError(str(router_id), router.current_destination)

        record = self.access.find_record(router_id, destination)
        if record is None or not record.granted_access:
            raise DestinationNotGrantedError(str(router_id), destination)

        fleet = self._load_fleet(router.fleet_id)
        index = self.ledger.current_index(fleet)
        principal_yield = self.ledger.refresh_yield(balance, index)

        self._transition(router, RouterTransition.ACTIVATE)
        router.current_destination = destination
        self.session.flush()
        self.fleets.register_active(router.fleet_id, router.id)

        self._recorder.record(
            RouterEventType.ACTIVATED,
            fleet_id=router.fleet_id,
            actor=caller,
            router_id=router_id,
            counterparty=destination,
            detail={"index": str(index), "principal_yield": str(principal_yield)},
        )
        logger.info(
            "router_activated",
            extra={"router_id": str(router_id), "destination": destination, "index": index},
        )
        return router_status(router)

    def deactivate(self, router_id: UUID, caller: str) -> RouterStatusInfo:
        router = self._load_router(router_id, for_update=True)
        self._require_owner(router, caller)
        if not router.is_active:
            raise RouterNotActiveError(str(router_id))
        if router.is_locked:
            raise RouterLockedError(str(router_id), "deactivate")

        destination = router.current_destination
        self._transition(router, RouterTransition.DEACTIVATE)
        self.session.flush()
        self.fleets.deregister(router.fleet_id, router.id)

        self._recorder.record(
            RouterEventType.DEACTIVATED,
            fleet_id=router.fleet_id,
            actor=caller,
            router_id=router_id,
            counterparty=destination,
            detail={"reason": "owner"},
        )
        logger.info("router_deactivated", extra={"router_id": str(router_id)})
        return router_status(router)

    def lock(self, router_id: UUID, caller: str, confirm: bool = False) -> RouterStatusInfo:
        """
        Freeze principal until the current destination's allowance is paid.

        The only way out short of exhaustion is an emergency shutdown by the
        fleet owner, so ``confirm`` must be passed explicitly.
        """
        router = self._load_router(router_id, for_update=True)
        self._require_owner(router, caller)
        if confirm is not True:
            raise LockConfirmationRequiredError(str(router_id))
        if not router.is_active:
            raise RouterNotActiveError(str(router_id))
        if router.is_locked:
            raise AlreadyLockedError(str(router_id))

        self._transition(router, RouterTransition.LOCK)
        self.session.flush()

        self._recorder.record(
            RouterEventType.LOCKED,
            fleet_id=router.fleet_id,
            actor=caller,
            router_id=router_id,
            counterparty=router.current_destination,
        )
        logger.warning(
            "router_locked",
            extra={"router_id": str(router_id), "destination": router.current_destination},
        )
        return router_status(router)

    def emergency_shutdown(self, router_id: UUID, caller: str) -> RouterStatusInfo:
        """Fleet-owner override that unlocks and deactivates a locked router."""
        router = self._load_router(router_id, for_update=True)
        fleet = self._load_fleet(router.fleet_id)
        if caller != fleet.owner:
            raise NotFleetOwnerError(str(fleet.id), caller)
        if not router.is_locked:
            raise RouterNotLockedError(str(router_id))

        destination = router.current_destination
        self._transition(router, RouterTransition.EMERGENCY_SHUTDOWN)
        self.session.flush()
        self.fleets.deregister(router.fleet_id, router.id)

        self._recorder.record(
            RouterEventType.EMERGENCY_SHUTDOWN,
            fleet_id=router.fleet_id,
            actor=caller,
            router_id=router_id,
            counterparty=destination,
        )
        logger.warning(
            "emergency_shutdown",
            extra={"router_id": str(router_id), "destination": destination},
        )
        return router_status(router)

    # -------------------------------------------------------------------------
    # Payout
    # -------------------------------------------------------------------------

    def route_yield(self, router_id: UUID, caller: str) -> RouteResult:
        """
        Pay accrued yield to the current destination.

        ``caller`` is the router owner or the fleet custody address (the
        principal the sweeper acts as).
        """
        router = self._load_router(router_id, for_update=True)
        fleet = self._load_fleet(router.fleet_id)
        if caller not in (router.owner, fleet.custody_address):
            raise NotOwnerError(str(router_id), caller)
        destination = router.current_destination
        if not router.is_active or destination is None:
            raise RouterNotActiveError(str(router_id))

        balance = self._load_balance(router_id, for_update=True)
        index = self.ledger.current_index(fleet)
        principal_yield = balance.principal_yield_at(index)
        if principal_yield == 0:
            raise NoYieldError(str(router_id), index)

        record = self.access.find_record(router_id, destination, for_update=True)
        if record is None or not record.granted_access:
            raise DestinationNotGrantedError(str(router_id), destination)

        plan = plan_route(
            principal_yield,
            record.yield_allowance,
            index,
            fleet.fee_rate,
            fee_exempt=fleet.is_fee_exempt(router.owner),
        )
        fee_wad = plan.fee_wad
        net_wad = plan.net_wad

        # Transfers first; nothing below runs unless both succeed
        transfers.push(self._token, router.custody_address, fleet.custody_address, fee_wad)
        try:
            transfers.push(self._token, router.custody_address, destination, net_wad)
        except TransferFailedError:
            self._refund_fee(router, fleet.custody_address, fee_wad)
            raise

        balance.index_adjusted_balance = (
            balance.index_adjusted_balance - plan.route_amount_adjusted
        )
        balance.last_index = index
        record.yield_allowance = plan.remaining_allowance

        deactivated = plan.exhausts_allowance
        if deactivated:
            self._transition(router, RouterTransition.EXHAUST)
        self.session.flush()
        if deactivated:
            self.fleets.deregister(router.fleet_id, router.id)
        self.fleets.credit_fee(fleet.id, fee_wad)

        self._recorder.record(
            RouterEventType.YIELD_ROUTED,
            fleet_id=router.fleet_id,
            actor=caller,
            router_id=router_id,
            counterparty=destination,
            amount_wad=net_wad,
            detail={
                "index": str(index),
                "route_amount": str(plan.route_amount),
                "fee_wad": str(fee_wad),
                "remaining_allowance": str(plan.remaining_allowance),
            },
        )
        if deactivated:
            self._recorder.record(
                RouterEventType.DEACTIVATED,
                fleet_id=router.fleet_id,
                actor=caller,
                router_id=router_id,
                counterparty=destination,
                detail={"reason": "allowance_exhausted"},
            )

        logger.info(
            "yield_routed",
            extra={
                "router_id": str(router_id),
                "destination": destination,
                "index": index,
                "route_amount": plan.route_amount,
                "fee_wad": fee_wad,
                "net_amount_wad": net_wad,
                "remaining_allowance": plan.remaining_allowance,
                "deactivated": deactivated,
            },
        )
        return RouteResult(
            router_id=router.id,
            destination=destination,
            index=index,
            route_amount=plan.route_amount,
            route_amount_adjusted=plan.route_amount_adjusted,
            fee_wad=fee_wad,
            net_amount_wad=net_wad,
            remaining_allowance=plan.remaining_allowance,
            deactivated=deactivated,
        )

    def _refund_fee(self, router: Router, fee_account: str, fee_wad: int) -> None:
        """Return a fee already moved when the net transfer failed."""
        if fee_wad == 0:
            return
        try:
            transfers.push(self._token, fee_account, router.custody_address, fee_wad)
        except TransferFailedError:
            logger.error(
                "fee_refund_failed",
                extra={"router_id": str(router.id), "fee_wad": fee_wad},
                exc_info=True,
            )
            raise

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def get_status(self, router_id: UUID) -> RouterStatusInfo:
        return router_status(self._load_router(router_id))
