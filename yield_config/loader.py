"""
Configuration Loader (``yield_config.loader``).

Responsibility
--------------
Loads a YAML fleet definition and parses it into a frozen ``FleetConfig``.
Runtime callers go through ``yield_config.get_active_config()``; the
functions here are exposed for tooling and tests.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required fields have no silent defaults.
* ``fee_rate`` is parsed from its string form into ``Decimal`` so no float
  rounding enters the fee path.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Out-of-range fee rate  -> ``ValueError`` from ``FleetConfig``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from yield_config.schema import FleetConfig


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_fee_rate(value: Any) -> Decimal:
    """Parse a fee fraction from a YAML string or int."""
    if isinstance(value, float):
        raise ValueError(f"fee_rate must be quoted to avoid float rounding: {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Cannot parse fee_rate from {value!r}") from exc


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_fleet_config(data: dict[str, Any]) -> FleetConfig:
    """
    Parse a ``FleetConfig`` from a dict.

    Expected shape::

        config_id: default
        version: 1
        fleet:
          owner: ...
          yield_asset: ...
          reference_asset: ...
          fee_rate: "0.01"
          fee_exempt_owners: [...]
        database:
          url: sqlite://
    """
    fleet = data["fleet"]
    database = data.get("database") or {}
    return FleetConfig(
        config_id=data["config_id"],
        version=int(data["version"]),
        fleet_owner=fleet["owner"],
        yield_asset=fleet["yield_asset"],
        reference_asset=fleet["reference_asset"],
        fee_rate=parse_fee_rate(fleet.get("fee_rate", "0")),
        fee_exempt_owners=tuple(fleet.get("fee_exempt_owners") or ()),
        database_url=database.get("url", "sqlite://"),
        checksum=compute_checksum(data),
    )


def load_fleet_config(path: Path) -> FleetConfig:
    """Load and parse one fleet definition file."""
    return parse_fleet_config(load_yaml_file(path))
