"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (other than the injectable Clock interface)
- I/O

All domain objects are immutable and deterministic.
"""

from yield_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from yield_kernel.domain.collaborators import IndexOracle, ValueTransfer
from yield_kernel.domain.dtos import (
    AccessRecordInfo,
    FleetInfo,
    OwnerBalanceInfo,
    RouteResult,
    RouterStatusInfo,
    SweepItemResult,
    SweepItemStatus,
    SweepResult,
)
from yield_kernel.domain.ray_math import (
    RAY,
    WAD,
    WAD_RAY_RATIO,
    from_ray,
    from_wad,
    ray_div,
    ray_mul,
    ray_to_wad,
    ray_to_wad_up,
    to_ray,
    to_wad,
    wad_to_ray,
)
from yield_kernel.domain.router_state import (
    VALID_TRANSITIONS,
    RouterState,
    RouterTransition,
)
from yield_kernel.domain.yield_math import (
    RoutePlan,
    compute_principal_yield,
    index_adjusted_delta,
    plan_route,
    principal_equivalent,
    validate_index,
)

__all__ = [
    "AccessRecordInfo",
    "Clock",
    "DeterministicClock",
    "FleetInfo",
    "IndexOracle",
    "OwnerBalanceInfo",
    "RAY",
    "RoutePlan",
    "RouteResult",
    "RouterState",
    "RouterStatusInfo",
    "RouterTransition",
    "SweepItemResult",
    "SweepItemStatus",
    "SweepResult",
    "SystemClock",
    "VALID_TRANSITIONS",
    "ValueTransfer",
    "WAD",
    "WAD_RAY_RATIO",
    "compute_principal_yield",
    "from_ray",
    "from_wad",
    "index_adjusted_delta",
    "plan_route",
    "principal_equivalent",
    "ray_div",
    "ray_mul",
    "ray_to_wad",
    "ray_to_wad_up",
    "to_ray",
    "to_wad",
    "validate_index",
    "wad_to_ray",
]
