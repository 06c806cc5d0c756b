"""
BalanceLedgerService -- principal and index-adjusted bookkeeping per router.

Responsibility:
    Reads the index oracle, pulls tokens on deposit, pushes tokens on
    withdrawal, and keeps principal_balance / index_adjusted_balance /
    last_index current.  Yield is reported, never stored.

Architecture position:
    Kernel > Services -- imperative shell.
    Pure arithmetic lives in yield_kernel.domain.yield_math; this service
    supplies the I/O (oracle, value transfer, persistence).

Invariants enforced:
    - principal_yield is derived from the two running totals at the
      observed index (see OwnerBalance.principal_yield_at).
    - Tokens move before the ledger mutates; a failed transfer leaves the
      row untouched.
    - Deposits pull the index-adjusted delta rounded up to WAD; withdrawals
      and payouts push it rounded down.  Custody therefore never holds
      fewer tokens than the ledger's index-adjusted balances.
    - Withdrawal only while the router is neither active nor locked.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - NotOwnerError, AssetMismatchError, InvalidAmountError.
    - InvalidIndexError from the oracle guard.
    - AllowanceExceededError when the token allowance is below the pull.
    - RouterLockedError / RouterActiveError on withdraw while routing.
    - InsufficientBalanceError when the withdrawal exceeds the balance.
    - TransferFailedError from the value-transfer collaborator.

Audit relevance:
    Deposits and withdrawals are recorded as RouterEvents with WAD amounts
    and the index they were priced at.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from yield_kernel.domain.clock import Clock, SystemClock
from yield_kernel.domain.collaborators import IndexOracle, ValueTransfer
from yield_kernel.domain.dtos import OwnerBalanceInfo
from yield_kernel.domain.ray_math import ray_to_wad, ray_to_wad_up, wad_to_ray
from yield_kernel.domain.yield_math import index_adjusted_delta, validate_index
from yield_kernel.exceptions import (
    AllowanceExceededError,
    AssetMismatchError,
    InsufficientBalanceError,
    InvalidAmountError,
    NotOwnerError,
    RouterActiveError,
    RouterLockedError,
)
from yield_kernel.logging_config import get_logger
from yield_kernel.models.fleet import Fleet
from yield_kernel.models.router import OwnerBalance, Router
from yield_kernel.models.router_event import RouterEventType
from yield_kernel.services import transfers
from yield_kernel.services.base import BaseService
from yield_kernel.services.event_recorder import RouterEventRecorder

logger = get_logger("services.ledger")


def _require_amount(amount: int, field: str = "amount") -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmountError(amount, field)
    return amount


class BalanceLedgerService(BaseService[OwnerBalance]):
    """
    Deposit / withdraw / yield view for a router's owner balance.

    Contract:
        Every mutating method loads the router and balance rows for update,
        validates, moves tokens, then mutates and flushes.
    """

    def __init__(
        self,
        session: Session,
        oracle: IndexOracle,
        token: ValueTransfer,
        clock: Clock | None = None,
        recorder: RouterEventRecorder | None = None,
    ):
        super().__init__(session)
        self._oracle = oracle
        self._token = token
        self._clock = clock or SystemClock()
        self._recorder = recorder or RouterEventRecorder(session, self._clock)

    # -------------------------------------------------------------------------
    # Index and yield
    # -------------------------------------------------------------------------

    def current_index(self, fleet: Fleet) -> int:
        """Read and validate the reference-asset index for ``fleet``."""
        return validate_index(
            fleet.reference_asset,
            self._oracle.get_index(fleet.reference_asset),
        )

    def refresh_yield(self, balance: OwnerBalance, index: int) -> int:
        """Record ``index`` as observed and return the yield it implies."""
        balance.last_index = index
        return balance.principal_yield_at(index)

    # -------------------------------------------------------------------------
    # Deposit / withdraw
    # -------------------------------------------------------------------------

    def deposit(
        self,
        router_id: UUID,
        caller: str,
        amount_wad: int,
        asset: str,
    ) -> OwnerBalanceInfo:
        """
        Pull ``amount_wad`` of the yield-bearing asset into the router.

        Args:
            router_id: Router receiving the deposit.
            caller: Must be the router owner.
            amount_wad: Principal value deposited (18 decimals).
            asset: Must equal the fleet's yield-bearing asset.
        """
        router = self._load_router(router_id, for_update=True)
        if caller != router.owner:
            raise NotOwnerError(str(router_id), caller)
        fleet = self._load_fleet(router.fleet_id)
        if asset != fleet.yield_asset:
            raise AssetMismatchError(fleet.yield_asset, asset)
        _require_amount(amount_wad)

        balance = self._load_balance(router_id, for_update=True)
        index = self.current_index(fleet)
        amount = wad_to_ray(amount_wad)
        delta = index_adjusted_delta(amount_wad, index)
        if delta == 0:
            raise InvalidAmountError(amount_wad, "amount")
        # Rounded up: custody must cover every index-adjusted unit credited
        pull_wad = ray_to_wad_up(delta)

        approved = self._token.allowance(caller, router.custody_address)
        if pull_wad > approved:
            raise AllowanceExceededError(caller, pull_wad, approved)

        transfers.pull(self._token, router.custody_address, caller, router.custody_address, pull_wad)

        balance.index_adjusted_balance = balance.index_adjusted_balance + delta
        balance.principal_balance = balance.principal_balance + amount
        self.refresh_yield(balance, index)
        self.session.flush()

        self._recorder.record(
            RouterEventType.DEPOSIT,
            fleet_id=router.fleet_id,
            actor=caller,
            router_id=router_id,
            amount_wad=amount_wad,
            detail={"index": str(index), "tokens_wad": str(pull_wad)},
        )
        logger.info(
            "deposit_recorded",
            extra={
                "router_id": str(router_id),
                "amount_wad": amount_wad,
                "tokens_wad": pull_wad,
                "index": index,
            },
        )
        return self._to_info(router, balance)

    def withdraw(self, router_id: UUID, caller: str, amount_wad: int) -> OwnerBalanceInfo:
        """
        Return ``amount_wad`` of principal value to the owner.

        Principal floors at zero when the withdrawal reaches into yield
        that was never routed.
        """
        router = self._load_router(router_id, for_update=True)
        if caller != router.owner:
            raise NotOwnerError(str(router_id), caller)
        if router.is_locked:
            raise RouterLockedError(str(router_id), "withdraw")
        if router.is_active:
            raise RouterActiveError(str(router_id), "withdraw")
        _require_amount(amount_wad)

        fleet = self._load_fleet(router.fleet_id)
        balance = self._load_balance(router_id, for_update=True)
        index = self.current_index(fleet)
        amount = wad_to_ray(amount_wad)
        delta = index_adjusted_delta(amount_wad, index)
        if delta > balance.index_adjusted_balance:
            raise InsufficientBalanceError(
                router.owner, delta, balance.index_adjusted_balance
            )

        push_wad = ray_to_wad(delta)
        transfers.push(self._token, router.custody_address, caller, push_wad)

        balance.index_adjusted_balance = balance.index_adjusted_balance - delta
        balance.principal_balance = max(0, balance.principal_balance - amount)
        self.refresh_yield(balance, index)
        self.session.flush()

        self._recorder.record(
            RouterEventType.WITHDRAW,
            fleet_id=router.fleet_id,
            actor=caller,
            router_id=router_id,
            counterparty=caller,
            amount_wad=amount_wad,
            detail={"index": str(index), "tokens_wad": str(push_wad)},
        )
        logger.info(
            "withdraw_recorded",
            extra={
                "router_id": str(router_id),
                "amount_wad": amount_wad,
                "tokens_wad": push_wad,
                "index": index,
            },
        )
        return self._to_info(router, balance)

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def get_balance(self, router_id: UUID) -> OwnerBalanceInfo:
        """Balance snapshot with yield reported at the last observed index."""
        router = self._load_router(router_id)
        return self._to_info(router, self._load_balance(router_id))

    @staticmethod
    def _to_info(router: Router, balance: OwnerBalance) -> OwnerBalanceInfo:
        return OwnerBalanceInfo(
            router_id=router.id,
            owner=router.owner,
            principal_balance=balance.principal_balance,
            index_adjusted_balance=balance.index_adjusted_balance,
            principal_yield=balance.principal_yield,
            last_index=balance.last_index,
        )
