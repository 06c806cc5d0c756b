"""
Module: yield_kernel.domain.ray_math
Responsibility:
    Fixed-point arithmetic for the two scales used by routers: WAD (18
    decimals) at the external boundary and RAY (27 decimals) for all
    internal storage and computation.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - All amounts are Python ints; no float ever enters a computation.
    - WAD <-> RAY conversion is exact multiplication / division by 10^9.
    - Division truncates toward zero.  Inputs to ray_div/ray_to_wad are
      non-negative, so truncation and floor coincide.
    - ray_to_wad_up is the one rounding-up conversion; it sizes amounts
      pulled into custody so custody never holds less than the ledger.

Failure modes:
    - ValueError when converting a Decimal with more precision than the
      target scale can represent, or a negative value.
    - ZeroDivisionError from ray_div with a zero divisor.

Usage:
    from yield_kernel.domain.ray_math import RAY, ray_div, wad_to_ray

    delta = ray_div(wad_to_ray(amount_wad), index)
"""

from decimal import Decimal, localcontext

WAD_DECIMALS = 18
RAY_DECIMALS = 27

WAD = 10**WAD_DECIMALS
RAY = 10**RAY_DECIMALS
WAD_RAY_RATIO = 10 ** (RAY_DECIMALS - WAD_DECIMALS)


def wad_to_ray(amount: int) -> int:
    """Scale an external (WAD) amount up to RAY.  Exact."""
    return amount * WAD_RAY_RATIO


def ray_to_wad(amount: int) -> int:
    """Scale a RAY amount down to WAD, truncating the sub-WAD remainder."""
    return amount // WAD_RAY_RATIO


def ray_to_wad_up(amount: int) -> int:
    """Scale a non-negative RAY amount down to WAD, rounding any remainder up."""
    return -(-amount // WAD_RAY_RATIO)


def ray_mul(a: int, b: int) -> int:
    """Multiply two RAY values, truncating."""
    return a * b // RAY


def ray_div(a: int, b: int) -> int:
    """Divide RAY value ``a`` by RAY value ``b``, truncating."""
    return a * RAY // b


# Wide enough for any RAY-scaled product of realistic balances
_PRECISION = 120


def _to_fixed(value: Decimal | str | int, decimals: int) -> int:
    amount = Decimal(value)
    if amount < 0:
        raise ValueError(f"Negative amount: {value}")
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        scaled = amount.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"{value} has more than {decimals} decimal places")
    return int(scaled)


def to_wad(value: Decimal | str | int) -> int:
    """Convert a human-readable amount (e.g. ``"1000.5"``) to WAD."""
    return _to_fixed(value, WAD_DECIMALS)


def to_ray(value: Decimal | str | int) -> int:
    """Convert a human-readable value (e.g. ``"1.2"`` or ``"0.01"``) to RAY."""
    return _to_fixed(value, RAY_DECIMALS)


def from_wad(amount: int) -> Decimal:
    """Convert a WAD amount back to a Decimal for display."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return Decimal(amount).scaleb(-WAD_DECIMALS)


def from_ray(amount: int) -> Decimal:
    """Convert a RAY amount back to a Decimal for display."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return Decimal(amount).scaleb(-RAY_DECIMALS)
