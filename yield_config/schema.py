"""
FleetConfig schema.

The human-authored YAML fleet definition is parsed by the loader into this
frozen dataclass.  The orchestrator turns it into a persisted Fleet on
first start.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from yield_kernel.domain.ray_math import to_ray


@dataclass(frozen=True)
class FleetConfig:
    """
    One fleet's configuration.

    fee_rate is a plain fraction (``Decimal("0.01")`` is one percent); the
    kernel works with its RAY form, ``fee_rate_ray``.
    """

    config_id: str
    version: int
    fleet_owner: str
    yield_asset: str
    reference_asset: str
    fee_rate: Decimal = Decimal("0")
    fee_exempt_owners: tuple[str, ...] = ()
    database_url: str = "sqlite://"
    checksum: str = ""

    def __post_init__(self) -> None:
        if not self.fleet_owner:
            raise ValueError("fleet_owner must be non-empty")
        if not self.yield_asset or not self.reference_asset:
            raise ValueError("yield_asset and reference_asset must be non-empty")
        if not Decimal("0") <= self.fee_rate < Decimal("1"):
            raise ValueError(f"fee_rate must be in [0, 1), got {self.fee_rate}")

    @property
    def fee_rate_ray(self) -> int:
        return to_ray(self.fee_rate)
