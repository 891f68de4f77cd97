"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Issues strictly increasing numbers for document and payment numbering
    (INV-0001, PMT-R-0001, ...).  Uses a dedicated counter table with
    row-level locking (``SELECT ... FOR UPDATE``) so concurrent requests
    never receive the same value.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Called by the
    document and allocation services inside their own transactions.

Invariants enforced:
    - The locked counter row is the sole source of truth for the next value;
      numbers are never derived from MAX(document_number) + 1.
    - The increment is only visible after the caller's transaction commits.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via savepoint
      rollback and retry).
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from books_kernel.logging_config import get_logger
from books_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


def format_number(prefix: str, value: int, padding: int = 4, separator: str = "-") -> str:
    """Render a sequence value as a document number, e.g. INV-0007."""
    return f"{prefix}{separator}{value:0{padding}d}"


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Does NOT call ``session.commit()``; the caller owns the transaction.

    Usage:
        seq = SequenceService(session).next_value("document.Invoice")
    """

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Locks the counter row (creating it on first use), increments it and
        returns the new value.  If the transaction rolls back the value is
        not consumed.

        Returns:
            The next sequence value (always > 0).
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use. Another transaction may create the row concurrently;
            # the savepoint keeps the caller's other work intact.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None if unused."""
        return self._session.execute(
            select(SequenceCounter.current_value)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
