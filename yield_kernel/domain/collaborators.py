"""
External collaborator interfaces.

Responsibility:
    Declares the two boundaries the kernel consumes but does not own: the
    index oracle (lending venue's normalized income) and the value-transfer
    capability (fungible token).  Services receive implementations through
    constructor injection, the same way they receive a Clock.

Architecture position:
    Kernel > Domain -- interfaces only, zero I/O.

Failure modes:
    Implementations may return False or raise; the kernel treats both as
    TransferFailedError (see yield_kernel.services.transfers).
"""

from abc import ABC, abstractmethod


class IndexOracle(ABC):
    """Supplies the current exchange index of a reference asset."""

    @abstractmethod
    def get_index(self, asset: str) -> int:
        """Return the RAY-scaled index; >= RAY in normal operation."""
        ...


class ValueTransfer(ABC):
    """
    Push/pull transfer capability of the yield-bearing token.

    Contract:
        Amounts are WAD-scaled token units.  ``transfer`` moves tokens held
        by ``sender``; ``transfer_from`` moves tokens of ``owner`` that
        ``owner`` has approved ``spender`` to move.
    """

    @abstractmethod
    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        ...

    @abstractmethod
    def transfer_from(self, spender: str, owner: str, recipient: str, amount: int) -> bool:
        ...

    @abstractmethod
    def allowance(self, owner: str, spender: str) -> int:
        ...
