"""
yield_config -- single public entrypoint for fleet configuration.

Responsibility:
    Provides the one way to obtain fleet configuration at runtime through
    ``get_active_config()``.  Returns a frozen ``FleetConfig``.

Architecture position:
    Configuration -- sits above ``yield_kernel`` and below
    ``yield_services``.  The kernel MUST NEVER import from ``yield_config``;
    the orchestrator translates a FleetConfig into kernel calls.

Failure modes:
    - ``FileNotFoundError`` -- the requested definition file does not exist.
    - ``KeyError`` / ``ValueError`` -- missing or invalid fields.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``YIELD_CONFIG_TRACE`` log entry with the config id, version, checksum
    and fee rate, tying every payout back to the configuration in force.
"""

from __future__ import annotations

import logging
from pathlib import Path

from yield_config.loader import compute_checksum, load_fleet_config, parse_fleet_config
from yield_config.schema import FleetConfig

_logger = logging.getLogger("yield_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | None = None) -> FleetConfig:
    """
    The ONLY public configuration entrypoint.

    Args:
        path: Fleet definition to load.  Defaults to yield_config/sets/default.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        KeyError: If a required field is missing.
        ValueError: If a field is invalid.
    """
    config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH
    if not config_path.is_file():
        raise FileNotFoundError(f"Fleet configuration not found: {config_path}")

    config = load_fleet_config(config_path)

    _logger.info(
        "YIELD_CONFIG_TRACE",
        extra={
            "trace_type": "YIELD_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "fee_rate": str(config.fee_rate),
            "yield_asset": config.yield_asset,
            "fee_exempt_count": len(config.fee_exempt_owners),
        },
    )
    return config


__all__ = [
    "FleetConfig",
    "compute_checksum",
    "get_active_config",
    "load_fleet_config",
    "parse_fleet_config",
]
