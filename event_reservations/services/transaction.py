"""
Unit of work for reservation-engine operations.

Every service call runs inside exactly one database transaction:

    async with unit_of_work(db, "reserve"):
        snapshot = await lock_event(db, event_id)
        ...

On normal exit the transaction commits; on any exception it rolls back, so
no partial effect of a failed operation is ever visible. Storage exceptions
(raised mid-block or at commit) are translated into the typed error model:

  - unique violation of the active-booking index -> AlreadyBookedError
  - row-lock wait exceeded                        -> BusyError (retryable)
  - anything else from SQLAlchemy                 -> StorageFailureError

Domain errors raised inside the block pass through untouched. The operation
name and any ids passed along are bound into the structlog context for every
line logged inside it.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from event_reservations.core.config import get_settings
from event_reservations.core.exceptions import (
    AlreadyBookedError,
    BusyError,
    ReservationError,
    StorageFailureError,
)
from event_reservations.core.logging import get_logger, operation_context
from event_reservations.core.metrics import lock_timeouts, storage_failures
from event_reservations.services.booking_guard import is_active_booking_conflict

logger = get_logger(__name__)

LOCK_NOT_AVAILABLE_SQLSTATE = "55P03"
_LOCK_TIMEOUT_MARKERS = ("lock timeout", "database is locked", "could not obtain lock")


def is_lock_timeout(exc: DBAPIError) -> bool:
    orig = exc.orig
    if getattr(orig, "sqlstate", None) == LOCK_NOT_AVAILABLE_SQLSTATE:
        return True
    if getattr(orig, "pgcode", None) == LOCK_NOT_AVAILABLE_SQLSTATE:
        return True
    message = str(orig if orig is not None else exc).lower()
    return any(marker in message for marker in _LOCK_TIMEOUT_MARKERS)


async def _apply_lock_timeout(db: AsyncSession) -> None:
    if db.get_bind().dialect.name == "postgresql":
        timeout_ms = int(get_settings().LOCK_TIMEOUT_MS)
        await db.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))


async def _close_implicit_transaction(db: AsyncSession) -> None:
    # A read issued on the session outside a unit of work autobegins a
    # transaction; end it so this unit of work starts from a clean slate.
    # Service calls must not be nested in a caller's write transaction.
    if not db.in_transaction():
        return
    if db.new or db.dirty or db.deleted:
        storage_failures.inc()
        logger.error("unit_of_work_nested_in_dirty_session", pending=len(db.new) + len(db.dirty) + len(db.deleted))
        raise StorageFailureError()
    await db.commit()


@asynccontextmanager
async def unit_of_work(db: AsyncSession, operation: str = "transaction", **ids) -> AsyncIterator[AsyncSession]:
    with operation_context(operation, **ids):
        await _close_implicit_transaction(db)
        try:
            async with db.begin():
                await _apply_lock_timeout(db)
                yield db
        except ReservationError:
            raise
        except IntegrityError as exc:
            if is_active_booking_conflict(exc):
                logger.info("duplicate_booking_race_detected")
                raise AlreadyBookedError() from exc
            storage_failures.inc()
            logger.exception("storage_failure", error=str(exc.orig))
            raise StorageFailureError() from exc
        except DBAPIError as exc:
            if is_lock_timeout(exc):
                lock_timeouts.inc()
                logger.warning("lock_wait_timeout")
                raise BusyError() from exc
            storage_failures.inc()
            logger.exception("storage_failure", error=str(exc.orig))
            raise StorageFailureError() from exc
        except SQLAlchemyError as exc:
            storage_failures.inc()
            logger.exception("storage_failure", error=str(exc))
            raise StorageFailureError() from exc
