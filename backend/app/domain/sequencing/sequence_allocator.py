"""
Sequence Allocator.

Hands out human-readable, per-scope sequential reference numbers for
orders (``RW2501-0000001``) and ledger transactions
(``SAL-RW2501-0000001``).

Each scope has a dedicated row in ``sequence_counters``. Allocation locks
that row (``SELECT ... FOR UPDATE``) inside the caller's transaction and
increments it, so concurrent allocators in the same scope serialize on
the lock and never see the same value. A rolled-back transaction rolls
the increment back too.

The first allocation in a scope has no row to lock. It inserts one under
a SAVEPOINT; if a concurrent first-creator wins the unique constraint,
the savepoint is rolled back and the now-existing row is locked and
incremented instead.
"""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import SequenceAllocationError
from backend.app.models.sequence_counter import SequenceCounter
from backend.app.models.ledger_enums import TransactionType, TRANSACTION_NUMBER_PREFIX
from backend.app.models.locale_enums import Country

logger = logging.getLogger(__name__)

SEQUENCE_WIDTH = 7
MAX_SEQUENCE_VALUE = 10 ** SEQUENCE_WIDTH - 1


def _month_stamp(at: datetime) -> str:
    return f"{at.year % 100:02d}{at.month:02d}"


def order_number_scope(country: Country, at: datetime) -> str:
    """Scope for order numbers: ``<COUNTRY><YY><MM>-``."""
    return f"{Country(country).value}{_month_stamp(at)}-"


def transaction_number_scope(transaction_type: TransactionType, country: Country, at: datetime) -> str:
    """Scope for ledger numbers: ``<SAL|EXP>-<COUNTRY><YY><MM>-``."""
    prefix = TRANSACTION_NUMBER_PREFIX[TransactionType(transaction_type)]
    return f"{prefix}-{order_number_scope(country, at)}"


def format_sequence(scope: str, value: int) -> str:
    return f"{scope}{value:0{SEQUENCE_WIDTH}d}"


def parse_sequence_suffix(identifier: str) -> int:
    """Numeric suffix of an allocated identifier (``RW2501-0000042`` -> 42)."""
    suffix = identifier[-SEQUENCE_WIDTH:]
    if len(suffix) != SEQUENCE_WIDTH or not suffix.isdigit():
        raise ValueError(f"Not an allocated identifier: {identifier!r}")
    return int(suffix)


class SequenceAllocator:

    @staticmethod
    async def _locked_counter(db: AsyncSession, scope: str):
        result = await db.execute(
            select(SequenceCounter)
            .where(SequenceCounter.scope == scope)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def next_value(db: AsyncSession, scope: str) -> int:
        """
        Increment the counter for ``scope`` and return the new value.

        Must run inside the caller's open transaction; does not commit.

        Raises:
            SequenceAllocationError: the first-row race kept failing past
                ``settings.sequence_allocation_retries``, or the scope is full.
        """
        attempts = max(1, settings.sequence_allocation_retries)

        for attempt in range(1, attempts + 1):
            counter = await SequenceAllocator._locked_counter(db, scope)

            if counter is not None:
                if counter.last_value >= MAX_SEQUENCE_VALUE:
                    raise SequenceAllocationError(scope, reason="sequence exhausted for this scope")
                counter.last_value += 1
                await db.flush()
                logger.debug("Sequence allocated", extra={"scope": scope, "value": counter.last_value})
                return counter.last_value

            # First use of this scope: create the counter under a savepoint so a
            # lost race only undoes the insert, not the caller's other work.
            savepoint = await db.begin_nested()
            try:
                db.add(SequenceCounter(scope=scope, last_value=1))
                await db.flush()
                await savepoint.commit()
                logger.debug("Sequence allocated", extra={"scope": scope, "value": 1})
                return 1
            except IntegrityError:
                await savepoint.rollback()
                logger.info(
                    "Sequence counter creation raced, retrying",
                    extra={"scope": scope, "attempt": attempt}
                )

        raise SequenceAllocationError(scope)

    @staticmethod
    async def allocate(db: AsyncSession, scope: str) -> str:
        """Allocate the next identifier in ``scope``, e.g. ``RW2501-0000003``."""
        value = await SequenceAllocator.next_value(db, scope)
        return format_sequence(scope, value)
