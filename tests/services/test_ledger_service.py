"""Tests for BalanceLedgerService: deposit, withdraw, derived yield."""

import pytest

from yield_kernel.domain.ray_math import RAY, WAD
from yield_kernel.exceptions import (
    AllowanceExceededError,
    AssetMismatchError,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidIndexError,
    NotOwnerError,
    RouterActiveError,
    RouterLockedError,
    TransferFailedError,
)
from yield_kernel.models.router_event import RouterEventType
from yield_kernel.services.event_recorder import RouterEventRecorder

from tests.fakes import REFERENCE_ASSET, YIELD_ASSET


@pytest.fixture
def alice(provision):
    return provision("alice")


@pytest.fixture
def ledger(router_service):
    return router_service.ledger


class TestDeposit:
    def test_deposit_at_unity(self, ledger, alice, token):
        info = ledger.deposit(alice.router_id, "alice", 1000 * WAD, YIELD_ASSET)

        assert info.principal_balance == 1000 * RAY
        assert info.index_adjusted_balance == 1000 * RAY
        assert info.principal_yield == 0
        assert token.balance_of(alice.custody_address) == 1000 * WAD

    def test_deposit_at_higher_index_pulls_fewer_tokens(self, ledger, alice, token, oracle):
        oracle.set_index(REFERENCE_ASSET, 2 * RAY)
        info = ledger.deposit(alice.router_id, "alice", 1000 * WAD, YIELD_ASSET)

        assert info.index_adjusted_balance == 500 * RAY
        assert info.principal_balance == 1000 * RAY
        assert info.last_index == 2 * RAY
        assert token.balance_of(alice.custody_address) == 500 * WAD

    def test_pull_rounds_up_at_fractional_index(self, ledger, alice, token, oracle):
        oracle.set_index(REFERENCE_ASSET, 15 * RAY // 10)
        info = ledger.deposit(alice.router_id, "alice", 1000 * WAD, YIELD_ASSET)

        assert info.index_adjusted_balance == 666_666_666_666_666_666_666_666_666_666
        assert token.balance_of(alice.custody_address) == 666_666_666_666_666_666_667

    def test_dust_deposits_stay_covered_by_custody(self, ledger, alice, token, oracle):
        oracle.set_index(REFERENCE_ASSET, 15 * RAY // 10)
        for _ in range(10):
            info = ledger.deposit(alice.router_id, "alice", 1, YIELD_ASSET)

        assert info.index_adjusted_balance == 10 * 666_666_666
        assert token.balance_of(alice.custody_address) == 10
        assert token.balance_of(alice.custody_address) * 10**9 >= info.index_adjusted_balance

    def test_not_owner(self, ledger, alice):
        with pytest.raises(NotOwnerError):
            ledger.deposit(alice.router_id, "mallory", WAD, YIELD_ASSET)

    def test_asset_mismatch(self, ledger, alice):
        with pytest.raises(AssetMismatchError) as exc_info:
            ledger.deposit(alice.router_id, "alice", WAD, "aDAI")
        assert exc_info.value.expected == YIELD_ASSET

    @pytest.mark.parametrize("amount", [0, -1, True])
    def test_invalid_amount(self, ledger, alice, amount):
        with pytest.raises(InvalidAmountError):
            ledger.deposit(alice.router_id, "alice", amount, YIELD_ASSET)

    def test_allowance_exceeded(self, ledger, alice, token):
        token.approve("alice", alice.custody_address, 10 * WAD)
        with pytest.raises(AllowanceExceededError) as exc_info:
            ledger.deposit(alice.router_id, "alice", 11 * WAD, YIELD_ASSET)
        assert exc_info.value.approved == 10 * WAD

    def test_failed_pull_leaves_balance_untouched(self, ledger, alice, token):
        token.fail_pulls = True
        with pytest.raises(TransferFailedError):
            ledger.deposit(alice.router_id, "alice", WAD, YIELD_ASSET)
        assert ledger.get_balance(alice.router_id).principal_balance == 0

    def test_invalid_index(self, ledger, alice, oracle):
        oracle.set_index(REFERENCE_ASSET, RAY - 1)
        with pytest.raises(InvalidIndexError):
            ledger.deposit(alice.router_id, "alice", WAD, YIELD_ASSET)

    def test_deposit_records_event(self, ledger, alice, session):
        ledger.deposit(alice.router_id, "alice", 5 * WAD, YIELD_ASSET)
        events = RouterEventRecorder(session).list_events(router_id=alice.router_id)
        deposits = [e for e in events if e.event_type == RouterEventType.DEPOSIT.value]
        assert len(deposits) == 1
        assert deposits[0].amount_wad == 5 * WAD


class TestWithdraw:
    def test_deposit_then_withdraw_restores_balances(self, ledger, alice, oracle):
        oracle.set_index(REFERENCE_ASSET, 13 * RAY // 10)
        ledger.deposit(alice.router_id, "alice", 400 * WAD, YIELD_ASSET)
        info = ledger.withdraw(alice.router_id, "alice", 400 * WAD)

        assert info.principal_balance == 0
        assert info.index_adjusted_balance == 0

    def test_withdraw_returns_tokens(self, ledger, alice, token):
        ledger.deposit(alice.router_id, "alice", 100 * WAD, YIELD_ASSET)
        before = token.balance_of("alice")
        ledger.withdraw(alice.router_id, "alice", 40 * WAD)
        assert token.balance_of("alice") == before + 40 * WAD

    def test_insufficient_balance(self, ledger, alice):
        ledger.deposit(alice.router_id, "alice", 100 * WAD, YIELD_ASSET)
        with pytest.raises(InsufficientBalanceError):
            ledger.withdraw(alice.router_id, "alice", 101 * WAD)

    def test_withdraw_into_yield_floors_principal(self, ledger, alice, oracle):
        ledger.deposit(alice.router_id, "alice", 100 * WAD, YIELD_ASSET)
        oracle.set_index(REFERENCE_ASSET, 2 * RAY)
        info = ledger.withdraw(alice.router_id, "alice", 150 * WAD)

        assert info.principal_balance == 0
        assert info.index_adjusted_balance == 25 * RAY
        assert info.principal_yield == 50 * RAY

    def test_failed_transfer_leaves_balance_untouched(self, ledger, alice, token):
        ledger.deposit(alice.router_id, "alice", 100 * WAD, YIELD_ASSET)
        token.fail_transfers_to.add("alice")
        with pytest.raises(TransferFailedError):
            ledger.withdraw(alice.router_id, "alice", 10 * WAD)
        assert ledger.get_balance(alice.router_id).principal_balance == 100 * RAY

    def test_withdraw_while_active(self, router_service, ledger, alice):
        ledger.deposit(alice.router_id, "alice", 100 * WAD, YIELD_ASSET)
        router_service.access.set_access(alice.router_id, "alice", "bob", True, 10 * WAD)
        router_service.activate(alice.router_id, "alice", "bob")
        with pytest.raises(RouterActiveError):
            ledger.withdraw(alice.router_id, "alice", WAD)

    def test_withdraw_while_locked(self, router_service, ledger, alice):
        ledger.deposit(alice.router_id, "alice", 100 * WAD, YIELD_ASSET)
        router_service.access.set_access(alice.router_id, "alice", "bob", True, 10 * WAD)
        router_service.activate(alice.router_id, "alice", "bob")
        router_service.lock(alice.router_id, "alice", confirm=True)
        with pytest.raises(RouterLockedError):
            ledger.withdraw(alice.router_id, "alice", WAD)


class TestDerivedYield:
    def test_yield_reported_at_last_index(self, ledger, alice, oracle):
        ledger.deposit(alice.router_id, "alice", 1000 * WAD, YIELD_ASSET)
        oracle.set_index(REFERENCE_ASSET, 12 * RAY // 10)
        ledger.deposit(alice.router_id, "alice", 1 * WAD, YIELD_ASSET)

        info = ledger.get_balance(alice.router_id)
        assert info.last_index == 12 * RAY // 10
        # 1000 deposited at 1.0 is worth 1200 at 1.2; the second deposit adds no yield
        assert info.principal_yield in (200 * RAY, 200 * RAY - 1)
