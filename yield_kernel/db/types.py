"""
Module: yield_kernel.db.types
Responsibility: Column types for fixed-point amounts, UUID keys and account
    addresses.
Architecture position: Kernel > DB.  May be imported by models/ and services/.
    MUST NOT import from either of those layers.

Invariants enforced:
    CRITICAL: No floats anywhere.  RAY-scaled products exceed the 38 digits a
    SQL NUMERIC column can hold, so amounts are persisted as the exact decimal
    string of the Python int and parsed back without rounding.

Failure modes:
    - ValueError on bind if a non-int (including bool) is assigned to a
      RayAmount column.
"""

from uuid import UUID

from sqlalchemy import String
from sqlalchemy.types import TypeDecorator


class RayAmount(TypeDecorator):
    """
    Arbitrary-precision non-negative integer stored as a decimal string.

    Guarantees:
        - process_bind_param: int -> str, exact.
        - process_result_value: str -> int, exact.
    """

    impl = String(96)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"RayAmount requires int, got {type(value).__name__}")
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)


# Column width for account addresses, router ids and asset references
ADDRESS_LENGTH = 66


class UUIDString(TypeDecorator):
    """UUID <-> 36-character string, portable across PostgreSQL and SQLite."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)
