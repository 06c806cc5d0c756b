"""
Pytest fixtures for the yield kernel test suite.

Provides:
- A fresh in-memory SQLite database per test (schema created from the models)
- Kernel services bound to one session, with fake oracle and token
- A fully wired orchestrator for end-to-end scenarios
- Structured log capture

Tests that need real multi-threaded access use the ``file_session_factory``
fixture, which backs the engine with a SQLite file instead of memory.
"""

import json
import logging
from io import StringIO

import pytest
from sqlalchemy.orm import Session, sessionmaker

from tests.fakes import (
    FLEET_OWNER,
    ONE_PERCENT,
    REFERENCE_ASSET,
    YIELD_ASSET,
    FakeOracle,
    FakeToken,
)
from yield_kernel.db.engine import build_engine, create_tables, drop_tables, session_scope
from yield_kernel.domain.clock import DeterministicClock
from yield_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from yield_kernel.services.fleet_service import FleetRegistryService
from yield_kernel.services.router_service import RouterStateService
from yield_services.orchestrator import YieldRouterOrchestrator

# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture yield_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, orchestrator):
            orchestrator.route_yield("alice")
            logs = captured_logs()
            assert any(r["message"] == "yield_routed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("yield_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    create_tables(engine)
    yield engine
    drop_tables(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def file_session_factory(tmp_path) -> sessionmaker[Session]:
    """Session factory over a SQLite file, safe to share across threads."""
    engine = build_engine(f"sqlite:///{tmp_path / 'routers.db'}")
    create_tables(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock()


@pytest.fixture
def oracle() -> FakeOracle:
    return FakeOracle()


@pytest.fixture
def token() -> FakeToken:
    return FakeToken()


# =============================================================================
# Kernel services (single session, caller owns the transaction)
# =============================================================================


@pytest.fixture
def router_service(session, oracle, token, clock) -> RouterStateService:
    return RouterStateService(session, oracle, token, clock)


@pytest.fixture
def fleet(router_service):
    """A fleet with a 1% fee and no exempt owners besides the fleet owner."""
    return router_service.fleets.create_fleet(
        owner=FLEET_OWNER,
        yield_asset=YIELD_ASSET,
        reference_asset=REFERENCE_ASSET,
        fee_rate=ONE_PERCENT,
    )


@pytest.fixture
def provision(router_service, fleet, token):
    """
    Provision a router for ``owner``, fund the owner and approve the router.

    Returns the RouterStatusInfo of the new router.
    """

    def _provision(owner: str, funds_wad: int = 10**24):
        status = router_service.fleets.provision_router(fleet.fleet_id, owner)
        token.mint(owner, funds_wad)
        token.approve(owner, status.custody_address, funds_wad)
        return status

    return _provision


# =============================================================================
# Orchestrator (one transaction per public call)
# =============================================================================


@pytest.fixture
def make_orchestrator(session_factory, oracle, token, clock):
    def _make(
        fee_rate: int = ONE_PERCENT,
        fee_exempt_owners=(),
        factory=None,
        locks=None,
        sweep_lock_timeout: float = 0.0,
    ):
        factory = factory or session_factory
        with session_scope(factory) as s:
            info = FleetRegistryService(s, token, clock).create_fleet(
                owner=FLEET_OWNER,
                yield_asset=YIELD_ASSET,
                reference_asset=REFERENCE_ASSET,
                fee_rate=fee_rate,
                fee_exempt_owners=fee_exempt_owners,
            )
        return YieldRouterOrchestrator(
            factory,
            info.fleet_id,
            oracle,
            token,
            clock=clock,
            locks=locks,
            sweep_lock_timeout=sweep_lock_timeout,
        )

    return _make


@pytest.fixture
def orchestrator(make_orchestrator) -> YieldRouterOrchestrator:
    return make_orchestrator()


@pytest.fixture
def fund(token, orchestrator):
    """Provision ``owner``'s router through the orchestrator and fund/approve it."""

    def _fund(owner: str, funds_wad: int = 10**24):
        status = orchestrator.provision_router(owner)
        token.mint(owner, funds_wad)
        token.approve(owner, status.custody_address, funds_wad)
        return status

    return _fund
