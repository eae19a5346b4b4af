# Overview: Transaction scoping, row locking and retry helpers shared by the write paths.

from __future__ import annotations

import logging
import time
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, scoped_session
from sqlalchemy.orm.exc import StaleDataError

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; transaction() takes the
    database write lock up front there instead.
    """
    return query.with_for_update()


def _real_session(session) -> Session:
    # db.session is a scoped_session proxy; in_transaction() lives on the Session.
    return session.registry() if isinstance(session, scoped_session) else session


def _driver_in_transaction(session: Session) -> bool:
    return session.connection().connection.dbapi_connection.in_transaction


def _begin_write(session) -> None:
    real = _real_session(session)
    if real.get_bind().dialect.name != "sqlite":
        return
    # A plain read autobegins the Session but leaves the connection outside
    # any transaction; only an already started write is joined as is.
    if real.in_transaction() and _driver_in_transaction(real):
        return
    with real.no_autoflush:
        real.execute(text("BEGIN IMMEDIATE"))


@contextmanager
def transaction(session: Session):
    """
    Scope one unit of work.

    Commits when the block exits normally and rolls back on any exception
    (including KeyboardInterrupt / GeneratorExit), then re-raises. Nothing
    written inside the block is visible to other transactions unless the
    commit succeeds.
    """
    _begin_write(session)
    try:
        yield session
        session.commit()
    except BaseException:
        session.rollback()
        raise


def run_with_retry(
    session: Session,
    func,
    *,
    attempts: int = 3,
    backoff_base: float = 0.1,
    retry_on: tuple = RETRYABLE_ERRORS,
):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts) and StaleDataError
    (optimistic locking conflicts) by default. func must be safe to re-run
    from scratch, i.e. own its whole transaction.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            logger.warning("Retrying after %s (attempt %d/%d)", type(exc).__name__, attempt + 1, attempts)
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
