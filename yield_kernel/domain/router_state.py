"""
Router lifecycle states and the legal transitions between them.

The persisted status is the pair (is_active, is_locked); RouterState is the
single-valued view of that pair.  (is_active=False, is_locked=True) is not a
state: locking is only meaningful while routing is in progress.

    INACTIVE --activate--> ACTIVE --lock--> LOCKED
    ACTIVE   --deactivate / allowance exhausted--> INACTIVE
    LOCKED   --allowance exhausted / emergency shutdown--> INACTIVE
"""

from enum import Enum


class RouterState(str, Enum):
    """Lifecycle state of a router."""

    INACTIVE = "inactive"
    ACTIVE = "active"
    LOCKED = "locked"


class RouterTransition(str, Enum):
    """Named transitions of the router state machine."""

    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    LOCK = "lock"
    EXHAUST = "exhaust"
    EMERGENCY_SHUTDOWN = "emergency_shutdown"


VALID_TRANSITIONS: dict[RouterState, dict[RouterTransition, RouterState]] = {
    RouterState.INACTIVE: {
        RouterTransition.ACTIVATE: RouterState.ACTIVE,
    },
    RouterState.ACTIVE: {
        RouterTransition.DEACTIVATE: RouterState.INACTIVE,
        RouterTransition.LOCK: RouterState.LOCKED,
        RouterTransition.EXHAUST: RouterState.INACTIVE,
    },
    RouterState.LOCKED: {
        RouterTransition.EXHAUST: RouterState.INACTIVE,
        RouterTransition.EMERGENCY_SHUTDOWN: RouterState.INACTIVE,
    },
}


def state_of(is_active: bool, is_locked: bool) -> RouterState:
    """Map the persisted flag pair to a RouterState."""
    if is_locked:
        if not is_active:
            raise ValueError("A locked router must be active")
        return RouterState.LOCKED
    return RouterState.ACTIVE if is_active else RouterState.INACTIVE


def flags_of(state: RouterState) -> tuple[bool, bool]:
    """Map a RouterState back to (is_active, is_locked)."""
    return state is not RouterState.INACTIVE, state is RouterState.LOCKED


def next_state(current: RouterState, transition: RouterTransition) -> RouterState:
    """
    Resolve a transition, raising ValueError if it is not in the table.

    Services check their typed guards first (RouterLockedError and friends);
    this is the structural backstop that keeps the flag pair consistent.
    """
    try:
        return VALID_TRANSITIONS[current][transition]
    except KeyError:
        raise ValueError(
            f"Invalid router transition {transition.value} from {current.value}"
        ) from None
