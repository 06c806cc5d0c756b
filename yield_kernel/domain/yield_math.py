"""
Module: yield_kernel.domain.yield_math
Responsibility:
    Pure accounting for index-accruing balances: index validation, the
    index-adjusted delta of a deposit or withdrawal, the derived principal
    yield, and the payout plan (route amount, index-adjusted amount, fee,
    net) for one ``route_yield`` call.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    May only import yield_kernel.domain.ray_math and yield_kernel.exceptions.

Invariants enforced:
    - principal_yield is derived, never stored:
      ``max(0, ray_mul(index_adjusted, index) - principal)``.  Routing lowers
      index_adjusted by exactly the routed amount, so recomputation stays
      correct without a separate decrement.  Yield is overwritten on every
      computation, never accumulated.
    - route_amount == min(yield, allowance); net + fee == route_amount_adjusted.
    - Index below RAY unity is rejected (sanity floor).

Failure modes:
    - InvalidIndexError when the oracle index is below RAY.
    - ValueError from RoutePlan on an inconsistent split.

Audit relevance:
    Truncating division means an allowance may take one extra epsilon-sized
    payout to exhaust.  Every plan is deterministic for a given
    (yield, allowance, index, fee_rate) so payouts replay exactly.
"""

from __future__ import annotations

from dataclasses import dataclass

from yield_kernel.domain.ray_math import RAY, ray_div, ray_mul, ray_to_wad, wad_to_ray
from yield_kernel.exceptions import InvalidIndexError


def validate_index(asset: str, index: int) -> int:
    """Return ``index`` unchanged, or raise InvalidIndexError below RAY unity."""
    if isinstance(index, bool) or not isinstance(index, int) or index < RAY:
        raise InvalidIndexError(asset, index)
    return index


def index_adjusted_delta(amount_wad: int, index: int) -> int:
    """Index-adjusted (RAY) units represented by an external amount at ``index``."""
    return ray_div(wad_to_ray(amount_wad), index)


def principal_equivalent(index_adjusted: int, index: int) -> int:
    """Current principal-equivalent value (RAY) of an index-adjusted balance."""
    return ray_mul(index_adjusted, index)


def compute_principal_yield(index_adjusted: int, principal: int, index: int) -> int:
    """Derived yield (RAY, principal-value terms); zero when value <= principal."""
    value = principal_equivalent(index_adjusted, index)
    return value - principal if value > principal else 0


@dataclass(frozen=True)
class RoutePlan:
    """
    Amounts moved by one payout.

    Contract:
        All fields are RAY-scaled.  ``route_amount`` is principal-value;
        ``route_amount_adjusted``, ``fee`` and ``net_adjusted`` are
        index-adjusted (token) units.
    Guarantees:
        - ``fee + net_adjusted == route_amount_adjusted``.
        - ``remaining_allowance == allowance - route_amount >= 0``.
    """

    principal_yield: int
    allowance: int
    route_amount: int
    route_amount_adjusted: int
    fee: int
    net_adjusted: int
    remaining_allowance: int

    def __post_init__(self) -> None:
        if self.fee + self.net_adjusted != self.route_amount_adjusted:
            raise ValueError("fee + net must equal the index-adjusted route amount")
        if self.remaining_allowance < 0:
            raise ValueError("remaining allowance cannot be negative")

    @property
    def exhausts_allowance(self) -> bool:
        return self.remaining_allowance == 0

    @property
    def fee_wad(self) -> int:
        return ray_to_wad(self.fee)

    @property
    def net_wad(self) -> int:
        return ray_to_wad(self.net_adjusted)


def plan_route(
    principal_yield: int,
    allowance: int,
    index: int,
    fee_rate: int,
    fee_exempt: bool = False,
) -> RoutePlan:
    """
    Split available yield against a destination allowance.

    Args:
        principal_yield: Freshly computed yield (RAY, principal-value).
        allowance: Destination's remaining allowance (RAY, principal-value).
        index: Validated current index (RAY).
        fee_rate: Fleet fee fraction (RAY; ``RAY // 100`` is 1%).
        fee_exempt: True when the router owner pays no fee.

    Returns:
        RoutePlan with the amounts to move.
    """
    route_amount = min(principal_yield, allowance)
    route_amount_adjusted = ray_div(route_amount, index)
    fee = 0 if fee_exempt else ray_mul(route_amount_adjusted, fee_rate)
    return RoutePlan(
        principal_yield=principal_yield,
        allowance=allowance,
        route_amount=route_amount,
        route_amount_adjusted=route_amount_adjusted,
        fee=fee,
        net_adjusted=route_amount_adjusted - fee,
        remaining_allowance=allowance - route_amount,
    )
