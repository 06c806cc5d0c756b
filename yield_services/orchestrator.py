"""
YieldRouterOrchestrator -- public entry point for one fleet of routers.

Contract:
    Every public operation is one atomic unit of work: the required mutexes
    are taken, a ``session_scope`` is opened (commit on success, rollback on
    exception), the kernel services run flush-only inside it, and a frozen
    DTO is returned.  Routers are addressed by owner identity.

Architecture: yield_services (top-level).  The only layer that combines
    yield_kernel with yield_config; the kernel never imports this module.

Invariants enforced:
    - Per-router serialization: router mutex held for the whole transaction.
    - Operations touching the active list or fee ledger also hold the
      fleet mutex, acquired after the router mutex.
    - A sweep takes one router mutex at a time without waiting, and runs
      each router in its own transaction.
    - Clock injection: all services receive the same Clock.

Non-goals:
    - Does NOT schedule sweeps; callers (or a cron) invoke ``sweep_active``.
    - Does NOT retry failed operations.
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import ExitStack
from typing import TypeVar
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from yield_config.schema import FleetConfig
from yield_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from yield_kernel.domain.clock import Clock, SystemClock
from yield_kernel.domain.collaborators import IndexOracle, ValueTransfer
from yield_kernel.domain.dtos import (
    AccessRecordInfo,
    FleetInfo,
    OwnerBalanceInfo,
    RouteResult,
    RouterStatusInfo,
    SweepResult,
)
from yield_kernel.logging_config import LogContext, get_logger
from yield_kernel.services.fleet_service import FleetRegistryService
from yield_kernel.services.router_service import RouterStateService
from yield_services.router_locks import RouterLockRegistry, fleet_lock_key
from yield_services.sweeper import FleetSweeper

logger = get_logger("services.orchestrator")

T = TypeVar("T")


class YieldRouterOrchestrator:
    """
    Wires kernel services for one fleet and owns their transactions.

    Contract:
        - ``from_config()`` creates (or reattaches to) the configured fleet.
        - Router operations take the calling owner first.
        - ``sweep_active()`` pays every active router, isolating failures.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        fleet_id: UUID,
        oracle: IndexOracle,
        token: ValueTransfer,
        clock: Clock | None = None,
        locks: RouterLockRegistry | None = None,
        sweep_lock_timeout: float = 0.0,
    ) -> None:
        self._session_factory = session_factory
        self.fleet_id = fleet_id
        self._oracle = oracle
        self._token = token
        self._clock = clock or SystemClock()
        self._locks = locks or RouterLockRegistry()
        self._fleet_key = fleet_lock_key(fleet_id)
        self._sweep_lock_timeout = sweep_lock_timeout

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: FleetConfig,
        oracle: IndexOracle,
        token: ValueTransfer,
        session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
    ) -> YieldRouterOrchestrator:
        """
        Attach to the fleet described by ``config``, creating it on first use.

        The fleet is keyed by its custody address ``fleet:<config_id>``; an
        existing fleet keeps its persisted fee rate.

        Args:
            config: Parsed fleet definition.
            oracle: Index oracle for the reference asset.
            token: Value-transfer capability for the yield-bearing asset.
            session_factory: Existing factory.  When omitted the engine is
                initialized from ``config.database_url`` and the schema created.
            clock: Optional clock for deterministic testing.
        """
        if session_factory is None:
            engine = init_engine_from_url(config.database_url)
            create_tables(engine)
            session_factory = get_session_factory()

        effective_clock = clock or SystemClock()
        custody_address = f"fleet:{config.config_id}"
        with session_scope(session_factory) as session:
            fleets = FleetRegistryService(session, token, effective_clock)
            fleet = fleets.find_fleet(custody_address)
            if fleet is None:
                fleet = fleets.create_fleet(
                    owner=config.fleet_owner,
                    yield_asset=config.yield_asset,
                    reference_asset=config.reference_asset,
                    fee_rate=config.fee_rate_ray,
                    fee_exempt_owners=config.fee_exempt_owners,
                    custody_address=custody_address,
                )

        logger.info(
            "orchestrator_ready",
            extra={
                "fleet_id": str(fleet.fleet_id),
                "config_id": config.config_id,
                "checksum": config.checksum,
            },
        )
        return cls(session_factory, fleet.fleet_id, oracle, token, clock=effective_clock)

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    def _services(self, session: Session) -> RouterStateService:
        return RouterStateService(session, self._oracle, self._token, self._clock)

    def _read(self, fn: Callable[[RouterStateService], T]) -> T:
        with session_scope(self._session_factory) as session:
            return fn(self._services(session))

    def _resolve(self, owner: str) -> UUID:
        return self._read(lambda svc: svc.fleets.find_router(self.fleet_id, owner).router_id)

    def _run(
        self,
        operation: str,
        actor: str,
        fn: Callable[[RouterStateService], T],
        router_id: UUID | None = None,
        fleet: bool = False,
    ) -> T:
        with ExitStack() as stack:
            if router_id is not None:
                stack.enter_context(self._locks.hold(router_id))
            if fleet:
                stack.enter_context(self._locks.hold(self._fleet_key))
            stack.enter_context(
                LogContext.bind(
                    fleet_id=str(self.fleet_id),
                    router_id=str(router_id) if router_id is not None else None,
                    actor=actor,
                    operation=operation,
                )
            )
            with session_scope(self._session_factory) as session:
                return fn(self._services(session))

    # -------------------------------------------------------------------------
    # Provisioning
    # -------------------------------------------------------------------------

    def provision_router(self, owner: str) -> RouterStatusInfo:
        """Get or create ``owner``'s router in this fleet."""
        return self._run(
            "provision_router",
            owner,
            lambda svc: svc.fleets.provision_router(self.fleet_id, owner),
            fleet=True,
        )

    # -------------------------------------------------------------------------
    # Balance ledger
    # -------------------------------------------------------------------------

    def deposit(self, caller: str, amount_wad: int, asset: str) -> OwnerBalanceInfo:
        """Deposit into the caller's router, provisioning it on first use."""
        router_id = self.provision_router(caller).router_id
        return self._run(
            "deposit",
            caller,
            lambda svc: svc.ledger.deposit(router_id, caller, amount_wad, asset),
            router_id=router_id,
        )

    def withdraw(self, caller: str, amount_wad: int) -> OwnerBalanceInfo:
        router_id = self._resolve(caller)
        return self._run(
            "withdraw",
            caller,
            lambda svc: svc.ledger.withdraw(router_id, caller, amount_wad),
            router_id=router_id,
        )

    # -------------------------------------------------------------------------
    # Access registry
    # -------------------------------------------------------------------------

    def set_access(
        self,
        caller: str,
        destination: str,
        grant: bool,
        allowance_wad: int = 0,
    ) -> AccessRecordInfo:
        router_id = self._resolve(caller)
        return self._run(
            "set_access",
            caller,
            lambda svc: svc.access.set_access(
                router_id, caller, destination, grant, allowance_wad
            ),
            router_id=router_id,
        )

    # -------------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------------

    def activate(self, caller: str, destination: str) -> RouterStatusInfo:
        router_id = self._resolve(caller)
        return self._run(
            "activate",
            caller,
            lambda svc: svc.activate(router_id, caller, destination),
            router_id=router_id,
            fleet=True,
        )

    def deactivate(self, caller: str) -> RouterStatusInfo:
        router_id = self._resolve(caller)
        return self._run(
            "deactivate",
            caller,
            lambda svc: svc.deactivate(router_id, caller),
            router_id=router_id,
            fleet=True,
        )

    def lock(self, caller: str, confirm: bool = False) -> RouterStatusInfo:
        """
        Lock the caller's router.

        Principal stays frozen until the destination allowance is paid out,
        so ``confirm=True`` is required.
        """
        router_id = self._resolve(caller)
        return self._run(
            "lock",
            caller,
            lambda svc: svc.lock(router_id, caller, confirm=confirm),
            router_id=router_id,
        )

    def emergency_shutdown(self, caller: str, owner: str) -> RouterStatusInfo:
        """Fleet-owner override for ``owner``'s locked router."""
        router_id = self._resolve(owner)
        return self._run(
            "emergency_shutdown",
            caller,
            lambda svc: svc.emergency_shutdown(router_id, caller),
            router_id=router_id,
            fleet=True,
        )

    def route_yield(self, caller: str, owner: str | None = None) -> RouteResult:
        """Pay out ``owner``'s router (default: the caller's own)."""
        router_id = self._resolve(owner if owner is not None else caller)
        return self._run(
            "route_yield",
            caller,
            lambda svc: svc.route_yield(router_id, caller),
            router_id=router_id,
            fleet=True,
        )

    # -------------------------------------------------------------------------
    # Fleet
    # -------------------------------------------------------------------------

    def sweep_active(self, caller: str) -> SweepResult:
        """
        Route yield for every active router; failures are recorded per router.

        A router busy with another operation is skipped as ``ROUTER_BUSY``
        once ``sweep_lock_timeout`` seconds pass (immediately by default).
        """
        sweeper = FleetSweeper(
            self._session_factory,
            self._services,
            self._locks,
            self._clock,
            lock_timeout=self._sweep_lock_timeout,
        )
        with LogContext.bind(fleet_id=str(self.fleet_id), actor=caller, operation="sweep_active"):
            return sweeper.sweep_active(self.fleet_id, caller)

    def set_fee_rate(self, caller: str, fee_rate: int) -> FleetInfo:
        """Set the RAY fee fraction (``RAY // 100`` is one percent)."""
        return self._run(
            "set_fee_rate",
            caller,
            lambda svc: svc.fleets.set_fee_rate(self.fleet_id, caller, fee_rate),
            fleet=True,
        )

    def withdraw_fees(self, caller: str, recipient: str, amount_wad: int) -> FleetInfo:
        return self._run(
            "withdraw_fees",
            caller,
            lambda svc: svc.fleets.withdraw_fees(self.fleet_id, caller, recipient, amount_wad),
            fleet=True,
        )

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def get_fleet(self) -> FleetInfo:
        return self._read(lambda svc: svc.fleets.get_fleet(self.fleet_id))

    def list_active(self) -> tuple[UUID, ...]:
        return self._read(lambda svc: svc.fleets.list_active(self.fleet_id))

    def get_status(self, owner: str) -> RouterStatusInfo:
        return self._read(lambda svc: svc.fleets.find_router(self.fleet_id, owner))

    def get_balance(self, owner: str) -> OwnerBalanceInfo:
        return self._read(
            lambda svc: svc.ledger.get_balance(
                svc.fleets.find_router(self.fleet_id, owner).router_id
            )
        )

    def get_access(self, owner: str, destination: str) -> AccessRecordInfo:
        return self._read(
            lambda svc: svc.access.get_access(
                svc.fleets.find_router(self.fleet_id, owner).router_id, destination
            )
        )

    def list_access(self, owner: str) -> tuple[AccessRecordInfo, ...]:
        return self._read(
            lambda svc: svc.access.list_access(
                svc.fleets.find_router(self.fleet_id, owner).router_id
            )
        )
