"""
In-memory collaborators for the yield kernel test suite.

FakeOracle and FakeToken implement the IndexOracle / ValueTransfer
boundaries with just enough behaviour to observe every transfer and to
inject failures.
"""

from __future__ import annotations

import threading
from collections import defaultdict

from yield_kernel.domain.collaborators import IndexOracle, ValueTransfer
from yield_kernel.domain.ray_math import RAY

FLEET_OWNER = "fleet-operator"
YIELD_ASSET = "aUSDC"
REFERENCE_ASSET = "USDC"
ONE_PERCENT = RAY // 100


class FakeOracle(IndexOracle):
    """Index per asset, RAY unity until set."""

    def __init__(self, default: int = RAY):
        self._default = default
        self._indexes: dict[str, int] = {}
        self.reads = 0

    def set_index(self, asset: str, index: int) -> None:
        self._indexes[asset] = index

    def get_index(self, asset: str) -> int:
        self.reads += 1
        return self._indexes.get(asset, self._default)


class FakeToken(ValueTransfer):
    """
    Fungible token ledger.

    ``fail_transfers_to`` makes ``transfer`` return False for the listed
    recipients; ``raise_transfers_to`` makes it raise instead.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.balances: dict[str, int] = defaultdict(int)
        self.allowances: dict[tuple[str, str], int] = defaultdict(int)
        self.fail_transfers_to: set[str] = set()
        self.raise_transfers_to: set[str] = set()
        self.fail_pulls = False
        self.log: list[tuple[str, str, int]] = []

    def mint(self, account: str, amount: int) -> None:
        with self._lock:
            self.balances[account] += amount

    def approve(self, owner: str, spender: str, amount: int) -> None:
        with self._lock:
            self.allowances[(owner, spender)] = amount

    def balance_of(self, account: str) -> int:
        with self._lock:
            return self.balances[account]

    def allowance(self, owner: str, spender: str) -> int:
        with self._lock:
            return self.allowances[(owner, spender)]

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        if recipient in self.raise_transfers_to:
            raise ConnectionError(f"transfer to {recipient} unavailable")
        if recipient in self.fail_transfers_to:
            return False
        with self._lock:
            if self.balances[sender] < amount:
                return False
            self.balances[sender] -= amount
            self.balances[recipient] += amount
            self.log.append((sender, recipient, amount))
        return True

    def transfer_from(self, spender: str, owner: str, recipient: str, amount: int) -> bool:
        if self.fail_pulls:
            return False
        with self._lock:
            if self.allowances[(owner, spender)] < amount or self.balances[owner] < amount:
                return False
            self.allowances[(owner, spender)] -= amount
            self.balances[owner] -= amount
            self.balances[recipient] += amount
            self.log.append((owner, recipient, amount))
        return True
