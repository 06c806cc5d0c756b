"""
Kernel Invariants Contract.

These invariants are structural law for every router.  No fleet
configuration, fee rate, or caller may override them.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across the ledger, access and router services.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    DERIVED_YIELD = "derived_yield"
    """principal_yield == max(0, ray_mul(index_adjusted, index) - principal).
    Yield is never stored; it is recomputed from the two running totals
    (yield_kernel.domain.yield_math.compute_principal_yield)."""

    LOCK_IMPLIES_ACTIVE = "lock_implies_active"
    """is_locked => is_active.  Enforced by the transition table in
    yield_kernel.domain.router_state."""

    WITHDRAW_WHEN_IDLE = "withdraw_when_idle"
    """Principal leaves only when the router is neither active nor locked.
    Enforced by BalanceLedgerService.withdraw."""

    GRANTED_DESTINATION = "granted_destination"
    """current_destination always has a granted AccessRecord.  Enforced by
    RouterStateService.activate and AccessRegistryService.set_access."""

    ALLOWANCE_MONOTONIC = "allowance_monotonic"
    """yield_allowance decreases only through payout, is zeroed on revoke,
    and increases only through a fresh grant."""

    TRANSFER_BEFORE_MUTATION = "transfer_before_mutation"
    """Ledger mutations are applied only after every value transfer of the
    operation has succeeded."""

    CUSTODY_COVERS_LEDGER = "custody_covers_ledger"
    """Custody tokens scaled to RAY are never below the summed
    index_adjusted_balance.  Deposits pull ray_to_wad_up(delta); every push
    truncates (BalanceLedgerService)."""


ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "yield_services",
    "yield_config",
)
