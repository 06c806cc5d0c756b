"""
FleetSweeper -- transaction-per-router payout sweep over a fleet's active list.

Contract:
    ``sweep_active()`` snapshots the active list, then pays out one router
    at a time.  Each router gets its own mutex attempt and its own
    ``session_scope``: a router whose mutex is held elsewhere is recorded
    as a ROUTER_BUSY failure without waiting, and a router that fails (no
    yield, transfer failure, a failed commit, anything else) is rolled back
    and recorded as a FAILED item.  The remaining routers are still
    processed.

Architecture: yield_services.  Imports kernel services and domain types.

Invariants enforced:
    - At most one router mutex held at a time, taken before the fleet
      mutex, so a sweep never waits on a busy router.
    - Transaction isolation per router: one failure never aborts the sweep
      and never discards another router's committed payout.
    - The sweeper never touches balances directly; it only calls the
      router's public payout entry point, acting as the fleet custody
      principal.
    - All timestamps come from the injected Clock.

Non-goals:
    - Does NOT retry failed or busy routers; re-running a sweep is the
      caller's call.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from yield_kernel.db.engine import session_scope
from yield_kernel.domain.clock import Clock, SystemClock
from yield_kernel.domain.dtos import (
    FleetInfo,
    RouteResult,
    SweepItemResult,
    SweepItemStatus,
    SweepResult,
)
from yield_kernel.exceptions import RouterBusyError, YieldKernelError
from yield_kernel.logging_config import LogContext, get_logger
from yield_kernel.services.router_service import RouterStateService
from yield_services.router_locks import RouterLockRegistry, fleet_lock_key

logger = get_logger("services.sweeper")


class FleetSweeper:
    """Drives ``route_yield`` across a fleet's active routers."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        services: Callable[[Session], RouterStateService],
        locks: RouterLockRegistry,
        clock: Clock | None = None,
        lock_timeout: float = 0.0,
    ):
        self._session_factory = session_factory
        self._services = services
        self._locks = locks
        self._clock = clock or SystemClock()
        self._lock_timeout = lock_timeout

    def _route_one(self, fleet: FleetInfo, router_id: UUID) -> RouteResult:
        with self._locks.try_hold(router_id, self._lock_timeout) as acquired:
            if not acquired:
                raise RouterBusyError(str(router_id))
            with self._locks.hold(fleet_lock_key(fleet.fleet_id)):
                with LogContext.bind(router_id=str(router_id)):
                    with session_scope(self._session_factory) as session:
                        return self._services(session).route_yield(
                            router_id, fleet.custody_address
                        )

    def sweep_active(self, fleet_id: UUID, actor: str) -> SweepResult:
        """
        Pay out every router on the fleet's active list, in list order.

        Args:
            fleet_id: Fleet whose routers are swept.
            actor: Principal that triggered the sweep (logged only).

        Raises:
            FleetNotFoundError: If the fleet does not exist.
        """
        start_time = time.monotonic()
        started_at = self._clock.now()
        with session_scope(self._session_factory) as session:
            fleet = self._services(session).fleets.get_fleet(fleet_id)
        snapshot = fleet.active_router_ids
        sweep_id = uuid4()

        routed = 0
        failed = 0
        fees_collected = 0
        item_results: list[SweepItemResult] = []

        with LogContext.bind(fleet_id=str(fleet_id), sweep_id=str(sweep_id), actor=actor):
            logger.info("sweep_started", extra={"total_routers": len(snapshot)})

            for position, router_id in enumerate(snapshot):
                item_start = time.monotonic()

                try:
                    route = self._route_one(fleet, router_id)
                    routed += 1
                    fees_collected += route.fee_wad
                    item_results.append(
                        SweepItemResult(
                            position=position,
                            router_id=router_id,
                            status=SweepItemStatus.ROUTED,
                            route=route,
                            duration_ms=int((time.monotonic() - item_start) * 1000),
                        )
                    )

                except YieldKernelError as exc:
                    failed += 1
                    item_results.append(
                        SweepItemResult(
                            position=position,
                            router_id=router_id,
                            status=SweepItemStatus.FAILED,
                            error_code=exc.code,
                            error_message=str(exc),
                            duration_ms=int((time.monotonic() - item_start) * 1000),
                        )
                    )
                    logger.info(
                        "sweep_item_failed",
                        extra={"router_id": str(router_id), "error_code": exc.code},
                    )

                except Exception as exc:
                    failed += 1
                    item_results.append(
                        SweepItemResult(
                            position=position,
                            router_id=router_id,
                            status=SweepItemStatus.FAILED,
                            error_code="UNHANDLED_EXCEPTION",
                            error_message=str(exc),
                            duration_ms=int((time.monotonic() - item_start) * 1000),
                        )
                    )
                    logger.error(
                        "sweep_item_failed",
                        extra={
                            "router_id": str(router_id),
                            "error_code": "UNHANDLED_EXCEPTION",
                        },
                        exc_info=True,
                    )

            completed_at = self._clock.now()
            total_duration = int((time.monotonic() - start_time) * 1000)
            logger.info(
                "sweep_completed",
                extra={
                    "total_routers": len(snapshot),
                    "routed": routed,
                    "failed": failed,
                    "fees_collected_wad": fees_collected,
                    "duration_ms": total_duration,
                },
            )

        return SweepResult(
            sweep_id=sweep_id,
            fleet_id=fleet_id,
            total_routers=len(snapshot),
            routed=routed,
            failed=failed,
            fees_collected_wad=fees_collected,
            item_results=tuple(item_results),
            started_at=started_at,
            completed_at=completed_at,
            duration_ms=total_duration,
        )
