"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor, the session-handling contract, and the
    row loaders every router service needs.  All concrete services receive
    a SQLAlchemy ``Session`` and use ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or roll back themselves.  The orchestrator (or test
    harness) owns commit/rollback, which is what makes each public router
    operation one atomic unit of work.

Failure modes:
    - UnknownRouterError / FleetNotFoundError from the loaders.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from yield_kernel.db.base import Base
from yield_kernel.exceptions import FleetNotFoundError, UnknownRouterError
from yield_kernel.models.fleet import Fleet
from yield_kernel.models.router import OwnerBalance, Router

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
    """

    def __init__(self, session: Session):
        self.session = session

    def _load_router(self, router_id: UUID, for_update: bool = False) -> Router:
        stmt = select(Router).where(Router.id == router_id)
        if for_update:
            stmt = stmt.with_for_update()
        router = self.session.execute(stmt).scalar_one_or_none()
        if router is None:
            raise UnknownRouterError(str(router_id))
        return router

    def _load_fleet(self, fleet_id: UUID, for_update: bool = False) -> Fleet:
        stmt = select(Fleet).where(Fleet.id == fleet_id)
        if for_update:
            stmt = stmt.with_for_update()
        fleet = self.session.execute(stmt).scalar_one_or_none()
        if fleet is None:
            raise FleetNotFoundError(str(fleet_id))
        return fleet

    def _load_balance(self, router_id: UUID, for_update: bool = False) -> OwnerBalance:
        stmt = select(OwnerBalance).where(OwnerBalance.router_id == router_id)
        if for_update:
            stmt = stmt.with_for_update()
        balance = self.session.execute(stmt).scalar_one_or_none()
        if balance is None:
            raise UnknownRouterError(str(router_id))
        return balance
