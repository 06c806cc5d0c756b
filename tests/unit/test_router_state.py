"""Tests for the router transition table (yield_kernel/domain/router_state.py)."""

import pytest

from yield_kernel.domain.router_state import (
    VALID_TRANSITIONS,
    RouterState,
    RouterTransition,
    flags_of,
    next_state,
    state_of,
)


class TestStateMapping:
    def test_flag_pairs(self):
        assert state_of(False, False) is RouterState.INACTIVE
        assert state_of(True, False) is RouterState.ACTIVE
        assert state_of(True, True) is RouterState.LOCKED

    def test_locked_but_inactive_is_not_a_state(self):
        with pytest.raises(ValueError):
            state_of(False, True)

    @pytest.mark.parametrize("state", list(RouterState))
    def test_flags_round_trip(self, state):
        assert state_of(*flags_of(state)) is state


class TestTransitions:
    def test_happy_path(self):
        state = next_state(RouterState.INACTIVE, RouterTransition.ACTIVATE)
        state = next_state(state, RouterTransition.LOCK)
        assert state is RouterState.LOCKED
        assert next_state(state, RouterTransition.EXHAUST) is RouterState.INACTIVE

    def test_locked_cannot_deactivate(self):
        with pytest.raises(ValueError):
            next_state(RouterState.LOCKED, RouterTransition.DEACTIVATE)

    def test_emergency_shutdown_only_from_locked(self):
        assert (
            next_state(RouterState.LOCKED, RouterTransition.EMERGENCY_SHUTDOWN)
            is RouterState.INACTIVE
        )
        with pytest.raises(ValueError):
            next_state(RouterState.ACTIVE, RouterTransition.EMERGENCY_SHUTDOWN)

    def test_every_target_keeps_lock_implies_active(self):
        for transitions in VALID_TRANSITIONS.values():
            for target in transitions.values():
                is_active, is_locked = flags_of(target)
                assert not is_locked or is_active
