"""ORM models for the yield kernel."""

from yield_kernel.models.access import AccessRecord
from yield_kernel.models.fleet import ActiveRouterSlot, Fleet
from yield_kernel.models.router import OwnerBalance, Router
from yield_kernel.models.router_event import RouterEvent, RouterEventType
from yield_kernel.models.sequence import SequenceCounter

__all__ = [
    "AccessRecord",
    "ActiveRouterSlot",
    "Fleet",
    "OwnerBalance",
    "Router",
    "RouterEvent",
    "RouterEventType",
    "SequenceCounter",
]
