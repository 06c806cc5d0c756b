"""
yield_services -- orchestration above the yield kernel.

Owns transaction boundaries, per-router serialization and fleet sweeps.
"""

from yield_services.orchestrator import YieldRouterOrchestrator
from yield_services.router_locks import RouterLockRegistry
from yield_services.sweeper import FleetSweeper

__all__ = [
    "FleetSweeper",
    "RouterLockRegistry",
    "YieldRouterOrchestrator",
]
