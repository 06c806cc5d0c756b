"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable snapshots returned by every public router and fleet operation:
    balances, access records, router status, payout results and sweep
    results.  Services never hand ORM entities to callers.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Frozen dataclasses; collections are tuples.
    - Amounts carry their scale in the field name or docstring: ``*_wad``
      fields are external (18 decimals), everything else is RAY (27).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from yield_kernel.domain.ray_math import from_ray
from yield_kernel.domain.router_state import RouterState


@dataclass(frozen=True)
class OwnerBalanceInfo:
    """
    Balance snapshot of one router.

    ``principal_yield`` is derived at ``last_index`` and never stored.
    """

    router_id: UUID
    owner: str
    principal_balance: int
    index_adjusted_balance: int
    principal_yield: int
    last_index: int

    @property
    def principal_display(self) -> Decimal:
        return from_ray(self.principal_balance)

    @property
    def yield_display(self) -> Decimal:
        return from_ray(self.principal_yield)


@dataclass(frozen=True)
class AccessRecordInfo:
    """Grant flag and remaining allowance (RAY, principal-value) of one destination."""

    router_id: UUID
    destination: str
    granted_access: bool
    yield_allowance: int


@dataclass(frozen=True)
class RouterStatusInfo:
    """Lifecycle status of one router."""

    router_id: UUID
    fleet_id: UUID
    owner: str
    custody_address: str
    is_active: bool
    is_locked: bool
    current_destination: str | None
    state: RouterState


@dataclass(frozen=True)
class RouteResult:
    """
    Outcome of one successful ``route_yield`` call.

    Contract:
        ``net_amount_wad`` and ``fee_wad`` are the token amounts actually
        transferred.  ``route_amount`` and ``remaining_allowance`` are RAY
        principal-value.
    """

    router_id: UUID
    destination: str
    index: int
    route_amount: int
    route_amount_adjusted: int
    fee_wad: int
    net_amount_wad: int
    remaining_allowance: int
    deactivated: bool


@dataclass(frozen=True)
class FleetInfo:
    """Fleet configuration and fee ledger snapshot."""

    fleet_id: UUID
    owner: str
    custody_address: str
    yield_asset: str
    reference_asset: str
    fee_rate: int
    fee_balance_wad: int
    fee_exempt_owners: tuple[str, ...]
    active_router_ids: tuple[UUID, ...]


class SweepItemStatus(str, Enum):
    """Per-router outcome of a sweep."""

    ROUTED = "routed"
    FAILED = "failed"


@dataclass(frozen=True)
class SweepItemResult:
    """
    Outcome for one router in a sweep.

    A failed item carries the typed error code; its transaction was rolled
    back (or never opened, for ROUTER_BUSY) and the remaining routers were
    still processed.
    """

    position: int
    router_id: UUID
    status: SweepItemStatus
    route: RouteResult | None = None
    error_code: str | None = None
    error_message: str | None = None
    duration_ms: int = 0


@dataclass(frozen=True)
class SweepResult:
    """Result of one ``sweep_active`` call."""

    sweep_id: UUID
    fleet_id: UUID
    total_routers: int
    routed: int
    failed: int
    fees_collected_wad: int
    item_results: tuple[SweepItemResult, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0

    def failures(self) -> tuple[SweepItemResult, ...]:
        return tuple(r for r in self.item_results if r.status is SweepItemStatus.FAILED)
