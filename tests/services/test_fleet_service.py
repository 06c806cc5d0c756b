"""Tests for FleetRegistryService: provisioning, active list and fee ledger."""

import pytest

from yield_kernel.domain.ray_math import RAY, WAD
from yield_kernel.exceptions import (
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidFeeRateError,
    NotFleetMemberError,
    NotFleetOwnerError,
    RouterAlreadyRegisteredError,
    RouterNotFoundError,
    TransferFailedError,
    UnknownRouterError,
)

from tests.fakes import FLEET_OWNER, REFERENCE_ASSET, YIELD_ASSET


@pytest.fixture
def fleets(router_service):
    return router_service.fleets


class TestProvisioning:
    def test_provision_is_get_or_create(self, fleets, fleet):
        first = fleets.provision_router(fleet.fleet_id, "alice")
        second = fleets.provision_router(fleet.fleet_id, "alice")
        assert first.router_id == second.router_id
        assert first.custody_address == f"router:{first.router_id}"

    def test_find_router_by_owner(self, fleets, fleet):
        created = fleets.provision_router(fleet.fleet_id, "alice")
        assert fleets.find_router(fleet.fleet_id, "alice").router_id == created.router_id

    def test_unknown_owner(self, fleets, fleet):
        with pytest.raises(UnknownRouterError):
            fleets.find_router(fleet.fleet_id, "nobody")

    def test_invalid_fee_rate_on_create(self, fleets):
        with pytest.raises(InvalidFeeRateError):
            fleets.create_fleet(FLEET_OWNER, YIELD_ASSET, REFERENCE_ASSET, fee_rate=RAY)


class TestActiveList:
    def _routers(self, fleets, fleet, *owners):
        return [fleets.provision_router(fleet.fleet_id, o).router_id for o in owners]

    def test_append_order(self, fleets, fleet):
        a, b, c = self._routers(fleets, fleet, "a", "b", "c")
        for r in (a, b, c):
            fleets.register_active(fleet.fleet_id, r)
        assert fleets.list_active(fleet.fleet_id) == (a, b, c)

    def test_swap_and_pop(self, fleets, fleet):
        a, b, c, d = self._routers(fleets, fleet, "a", "b", "c", "d")
        for r in (a, b, c, d):
            fleets.register_active(fleet.fleet_id, r)

        fleets.deregister(fleet.fleet_id, b)
        assert fleets.list_active(fleet.fleet_id) == (a, d, c)

        fleets.deregister(fleet.fleet_id, c)
        assert fleets.list_active(fleet.fleet_id) == (a, d)

    def test_deregister_absent(self, fleets, fleet):
        (a,) = self._routers(fleets, fleet, "a")
        with pytest.raises(RouterNotFoundError):
            fleets.deregister(fleet.fleet_id, a)

    def test_duplicate_register(self, fleets, fleet):
        (a,) = self._routers(fleets, fleet, "a")
        fleets.register_active(fleet.fleet_id, a)
        with pytest.raises(RouterAlreadyRegisteredError):
            fleets.register_active(fleet.fleet_id, a)

    def test_foreign_router_rejected(self, fleets, fleet):
        other = fleets.create_fleet("other-operator", YIELD_ASSET, REFERENCE_ASSET)
        foreign = fleets.provision_router(other.fleet_id, "alice").router_id
        with pytest.raises(NotFleetMemberError):
            fleets.register_active(fleet.fleet_id, foreign)


class TestFees:
    def test_set_fee_rate(self, fleets, fleet):
        info = fleets.set_fee_rate(fleet.fleet_id, FLEET_OWNER, RAY // 20)
        assert info.fee_rate == RAY // 20

    def test_set_fee_rate_not_owner(self, fleets, fleet):
        with pytest.raises(NotFleetOwnerError):
            fleets.set_fee_rate(fleet.fleet_id, "alice", 0)

    @pytest.mark.parametrize("rate", [-1, RAY, RAY + 1])
    def test_set_fee_rate_out_of_range(self, fleets, fleet, rate):
        with pytest.raises(InvalidFeeRateError):
            fleets.set_fee_rate(fleet.fleet_id, FLEET_OWNER, rate)

    def test_withdraw_fees(self, fleets, fleet, token):
        token.mint(fleet.custody_address, 10 * WAD)
        fleets.credit_fee(fleet.fleet_id, 10 * WAD)

        info = fleets.withdraw_fees(fleet.fleet_id, FLEET_OWNER, "treasury", 4 * WAD)
        assert info.fee_balance_wad == 6 * WAD
        assert token.balance_of("treasury") == 4 * WAD

    def test_withdraw_above_balance(self, fleets, fleet, token):
        fleets.credit_fee(fleet.fleet_id, WAD)
        with pytest.raises(InsufficientBalanceError):
            fleets.withdraw_fees(fleet.fleet_id, FLEET_OWNER, "treasury", 2 * WAD)

    def test_withdraw_zero(self, fleets, fleet):
        with pytest.raises(InvalidAmountError):
            fleets.withdraw_fees(fleet.fleet_id, FLEET_OWNER, "treasury", 0)

    def test_withdraw_not_owner(self, fleets, fleet):
        fleets.credit_fee(fleet.fleet_id, WAD)
        with pytest.raises(NotFleetOwnerError):
            fleets.withdraw_fees(fleet.fleet_id, "alice", "alice", WAD)

    def test_failed_transfer_keeps_fee_balance(self, fleets, fleet, token):
        token.mint(fleet.custody_address, WAD)
        fleets.credit_fee(fleet.fleet_id, WAD)
        token.fail_transfers_to.add("treasury")
        with pytest.raises(TransferFailedError):
            fleets.withdraw_fees(fleet.fleet_id, FLEET_OWNER, "treasury", WAD)
        assert fleets.get_fleet(fleet.fleet_id).fee_balance_wad == WAD
