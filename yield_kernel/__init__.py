"""
Yield Kernel

Bookkeeping and routing core for index-accruing deposits:
- Per-owner balances under a growing exchange index
- Per-destination yield allowances
- Activate / route / lock state machine with fee split
- Fleet-wide active-router registry and fee ledger
"""

__version__ = "0.1.0"
