"""
SequenceService -- strictly increasing sequence numbers from locked counter rows.

Responsibility:
    Allocates the next value of a named sequence by locking its
    SequenceCounter row (``SELECT ... FOR UPDATE``) and incrementing it in
    the caller's transaction.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Used by
    RouterEventRecorder for the event ``seq``.

Invariants enforced:
    - The locked counter row is the only source of the next value; nothing
      reads the maximum of an existing column.
    - Transactional: a rolled-back transaction hands its value back.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - A concurrent first use of the same name loses the insert race with an
      IntegrityError; the SAVEPOINT around the insert is rolled back and
      the winner's row is locked and incremented instead.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from yield_kernel.logging_config import get_logger
from yield_kernel.models.sequence import SequenceCounter
from yield_kernel.services.base import BaseService

logger = get_logger("services.sequence")


class SequenceService(BaseService[SequenceCounter]):
    """Named, transactional sequence allocator."""

    ROUTER_EVENT = "router_event"

    def _locked_counter(self, name: str) -> SequenceCounter | None:
        return self.session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, name: str) -> int:
        """
        Lock the counter for ``name`` and return its incremented value.

        The first call for a name creates the counter at 1.  The row stays
        locked until the caller's transaction ends.
        """
        counter = self._locked_counter(name)

        if counter is None:
            savepoint = self.session.begin_nested()
            try:
                self.session.add(SequenceCounter(name=name, current_value=1))
                self.session.flush()
                savepoint.commit()
                logger.debug("sequence_allocated", extra={"sequence_name": name, "value": 1})
                return 1
            except IntegrityError:
                savepoint.rollback()
                logger.debug("sequence_counter_race_retry", extra={"sequence_name": name})
                counter = self._locked_counter(name)
                if counter is None:
                    raise

        counter.current_value += 1
        self.session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, name: str) -> int:
        """Last allocated value for ``name`` (0 before first use).  Takes no lock."""
        value = self.session.execute(
            select(SequenceCounter.current_value).where(SequenceCounter.name == name)
        ).scalar_one_or_none()
        return value or 0
