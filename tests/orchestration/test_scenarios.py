"""
End-to-end routing scenarios through YieldRouterOrchestrator.

Each public call runs in its own transaction, so these tests also cover
commit/rollback of whole operations.
"""

import pytest

from yield_kernel.domain.ray_math import RAY, WAD
from yield_kernel.domain.router_state import RouterState
from yield_kernel.exceptions import (
    LockConfirmationRequiredError,
    RouterLockedError,
    RouterNotActiveError,
    TransferFailedError,
)

from tests.fakes import FLEET_OWNER, REFERENCE_ASSET, YIELD_ASSET


@pytest.fixture
def no_fee(make_orchestrator):
    return make_orchestrator(fee_rate=0)


def _fund(orch, token, owner, funds_wad=10**24):
    status = orch.provision_router(owner)
    token.mint(owner, funds_wad)
    token.approve(owner, status.custody_address, funds_wad)
    return status


class TestScenarioA:
    """Index doubles; allowance 500 is paid in one route and the router stops."""

    def test_single_route_exhausts_allowance(self, orchestrator, fund, oracle, token):
        fund("alice")
        orchestrator.deposit("alice", 1000 * WAD, YIELD_ASSET)
        oracle.set_index(REFERENCE_ASSET, 2 * RAY)

        balance = orchestrator.get_balance("alice")
        assert balance.principal_yield == 0  # not observed yet

        orchestrator.set_access("alice", "bob", True, 500 * WAD)
        orchestrator.activate("alice", "bob")
        assert orchestrator.get_balance("alice").principal_yield == 1000 * RAY

        result = orchestrator.route_yield("alice")

        assert result.route_amount == 500 * RAY
        assert result.route_amount_adjusted == 250 * RAY
        assert result.fee_wad + result.net_amount_wad == 250 * WAD
        assert token.balance_of("bob") == result.net_amount_wad
        assert result.remaining_allowance == 0
        assert result.deactivated is True

        status = orchestrator.get_status("alice")
        assert status.state is RouterState.INACTIVE
        assert orchestrator.get_access("alice", "bob").yield_allowance == 0
        assert orchestrator.list_active() == ()

        with pytest.raises(RouterNotActiveError):
            orchestrator.route_yield("alice")


class TestScenarioB:
    """Index 1.2; allowance above yield pays the full yield and stays active."""

    def test_full_yield_paid_router_stays_active(self, no_fee, oracle, token):
        _fund(no_fee, token, "alice")
        no_fee.deposit("alice", 1000 * WAD, YIELD_ASSET)
        oracle.set_index(REFERENCE_ASSET, 12 * RAY // 10)
        no_fee.set_access("alice", "bob", True, 450 * WAD)
        no_fee.activate("alice", "bob")

        result = no_fee.route_yield("alice")

        assert result.route_amount == 200 * RAY
        # 200 / 1.2 = 166.67 index-adjusted, leaving 833.33
        assert result.route_amount_adjusted == 166_666_666_666_666_666_666_666_666_666
        assert result.net_amount_wad == 166_666_666_666_666_666_666
        assert result.remaining_allowance == 250 * RAY
        assert result.deactivated is False

        balance = no_fee.get_balance("alice")
        assert balance.index_adjusted_balance == 833_333_333_333_333_333_333_333_333_334
        assert balance.principal_balance == 1000 * RAY
        assert balance.principal_yield == 0
        assert no_fee.get_status("alice").is_active


class TestScenarioC:
    """Lock mid-payout: principal is frozen until the allowance is paid."""

    def test_lock_clears_on_exhaustion(self, no_fee, oracle, token):
        _fund(no_fee, token, "alice")
        no_fee.deposit("alice", 1000 * WAD, YIELD_ASSET)
        no_fee.set_access("alice", "bob", True, 300 * WAD)
        no_fee.activate("alice", "bob")

        oracle.set_index(REFERENCE_ASSET, 11 * RAY // 10)
        no_fee.route_yield("alice")

        with pytest.raises(LockConfirmationRequiredError):
            no_fee.lock("alice")
        no_fee.lock("alice", confirm=True)

        with pytest.raises(RouterLockedError):
            no_fee.withdraw("alice", 10 * WAD)
        with pytest.raises(RouterLockedError):
            no_fee.deactivate("alice")

        oracle.set_index(REFERENCE_ASSET, 15 * RAY // 10)
        result = no_fee.route_yield("alice")
        assert result.deactivated is True

        status = no_fee.get_status("alice")
        assert status.is_locked is False
        assert status.is_active is False

        balance = no_fee.withdraw("alice", 100 * WAD)
        assert balance.principal_balance == 900 * RAY


class TestEmergencyShutdown:
    def test_fleet_owner_releases_locked_router(self, orchestrator, fund):
        fund("alice")
        orchestrator.deposit("alice", 100 * WAD, YIELD_ASSET)
        orchestrator.set_access("alice", "bob", True, 50 * WAD)
        orchestrator.activate("alice", "bob")
        orchestrator.lock("alice", confirm=True)

        status = orchestrator.emergency_shutdown(FLEET_OWNER, "alice")

        assert status.state is RouterState.INACTIVE
        assert orchestrator.list_active() == ()
        assert orchestrator.withdraw("alice", 100 * WAD).principal_balance == 0


class TestAtomicity:
    def test_failed_route_commits_nothing(self, orchestrator, fund, oracle, token):
        fund("alice")
        orchestrator.deposit("alice", 1000 * WAD, YIELD_ASSET)
        orchestrator.set_access("alice", "bob", True, 500 * WAD)
        orchestrator.activate("alice", "bob")
        oracle.set_index(REFERENCE_ASSET, 2 * RAY)
        token.fail_transfers_to.add("bob")

        with pytest.raises(TransferFailedError):
            orchestrator.route_yield("alice")

        assert orchestrator.get_access("alice", "bob").yield_allowance == 500 * RAY
        assert orchestrator.get_fleet().fee_balance_wad == 0
        assert orchestrator.get_status("alice").is_active

    def test_fee_exempt_owner_pays_no_fee(self, make_orchestrator, oracle, token):
        orch = make_orchestrator(fee_exempt_owners=("alice",))
        _fund(orch, token, "alice")
        orch.deposit("alice", 1000 * WAD, YIELD_ASSET)
        orch.set_access("alice", "bob", True, 500 * WAD)
        orch.activate("alice", "bob")
        oracle.set_index(REFERENCE_ASSET, 2 * RAY)

        result = orch.route_yield("alice")
        assert result.fee_wad == 0
        assert result.net_amount_wad == 250 * WAD


class TestFeeAdministration:
    def test_fees_accumulate_and_withdraw(self, orchestrator, fund, oracle, token):
        fund("alice")
        orchestrator.deposit("alice", 1000 * WAD, YIELD_ASSET)
        orchestrator.set_access("alice", "bob", True, 500 * WAD)
        orchestrator.activate("alice", "bob")
        oracle.set_index(REFERENCE_ASSET, 2 * RAY)
        result = orchestrator.route_yield("alice")

        fleet = orchestrator.get_fleet()
        assert fleet.fee_balance_wad == result.fee_wad

        after = orchestrator.withdraw_fees(FLEET_OWNER, "treasury", result.fee_wad)
        assert after.fee_balance_wad == 0
        assert token.balance_of("treasury") == result.fee_wad

    def test_set_fee_rate(self, orchestrator):
        assert orchestrator.set_fee_rate(FLEET_OWNER, 0).fee_rate == 0
