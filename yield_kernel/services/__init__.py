"""
Kernel services -- the imperative shell around the pure domain.

All services share one Session and are flush-only; the caller owns the
transaction boundary.
"""

from yield_kernel.services.access_service import AccessRegistryService
from yield_kernel.services.base import BaseService
from yield_kernel.services.event_recorder import RouterEventRecorder
from yield_kernel.services.fleet_service import FleetRegistryService, router_status
from yield_kernel.services.ledger_service import BalanceLedgerService
from yield_kernel.services.router_service import RouterStateService
from yield_kernel.services.sequence_service import SequenceService

__all__ = [
    "AccessRegistryService",
    "BalanceLedgerService",
    "BaseService",
    "FleetRegistryService",
    "RouterEventRecorder",
    "RouterStateService",
    "SequenceService",
    "router_status",
]
